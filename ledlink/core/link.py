"""Connection lifecycle and command dispatch for a single display.

State transitions::

    DISCONNECTED --connect--> CONNECTING --opened--> CONNECTED --> DISCOVERING
    DISCOVERING --endpoint resolved--> READY --disconnect--> DISCONNECTING --> DISCONNECTED
    CONNECTING/DISCOVERING --timeout or failure--> FAILED
    any --peer disconnect--> DISCONNECTED

Transport events may arrive on any thread. Every connect starts a new session
number; events tagged with an older session are dropped.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable

from ledlink.core.codec import encode_command
from ledlink.core.errors import (
    ConnectTimeoutError,
    DiscoveryFailedError,
    EndpointNotFoundError,
    LedlinkError,
    TransportConnectError,
    TransportError,
)
from ledlink.core.model import (
    Command,
    ConnectionState,
    DeviceHandle,
    DiscoveredEndpoint,
    LinkEvent,
    LinkStatus,
    LinkTiming,
    ServiceDescriptor,
    SetText,
    TransportEvent,
)
from ledlink.core.resolver import EndpointResolver
from ledlink.transports.base import Transport

LOGGER = logging.getLogger(__name__)

DiagnosticSink = Callable[[str], None]

_DISCOVERY_RETRIES = 1
_ACTIVE_STATES = frozenset(
    {
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED,
        ConnectionState.DISCOVERING,
        ConnectionState.READY,
    }
)


class LinkStateMachine:
    def __init__(
        self,
        transport: Transport,
        resolver: EndpointResolver,
        *,
        timing: LinkTiming | None = None,
        sink: DiagnosticSink | None = None,
    ) -> None:
        self._transport = transport
        self._resolver = resolver
        self._timing = timing or LinkTiming()
        self._sink = sink
        self._cond = threading.Condition(threading.RLock())
        self._send_lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._session = 0
        self._address: str | None = None
        self._handle: DeviceHandle | None = None
        self._endpoint: DiscoveredEndpoint | None = None
        self._services: tuple[ServiceDescriptor, ...] | None = None
        self._discovery_error: str | None = None
        self._last_error: LedlinkError | None = None

    @property
    def state(self) -> ConnectionState:
        with self._cond:
            return self._state

    @property
    def endpoint(self) -> DiscoveredEndpoint | None:
        with self._cond:
            return self._endpoint

    @property
    def last_error(self) -> LedlinkError | None:
        """The failure behind the most recent FAILED state, if any."""
        with self._cond:
            return self._last_error

    def is_ready(self) -> bool:
        with self._cond:
            return self._state is ConnectionState.READY

    def status(self) -> LinkStatus:
        with self._cond:
            return LinkStatus(
                state=self._state,
                address=self._address,
                endpoint=self._endpoint,
                failure_reason=str(self._last_error) if self._last_error else None,
            )

    def set_diagnostic_sink(self, sink: DiagnosticSink | None) -> None:
        self._sink = sink

    def connect(self, address: str) -> bool:
        with self._cond:
            if self._state is ConnectionState.READY and self._address == address:
                return True
            busy = self._state in _ACTIVE_STATES
        if busy:
            self.disconnect()

        with self._cond:
            self._session += 1
            session = self._session
            self._address = address
            self._last_error = None
            self._set_state(ConnectionState.CONNECTING)
            try:
                handle = self._transport.open(
                    address,
                    functools.partial(self._on_transport_event, session),
                )
            except TransportError as exc:
                self._fail(exc)
                return False
            if self._session != session:
                # Torn down by a synchronous event inside open().
                stale: DeviceHandle | None = handle
            else:
                self._handle = handle
                if self._establish(session, handle):
                    return True
                stale = None
                if self._session == session:
                    stale, self._handle = self._handle, None

        if stale is not None:
            self._close_quietly(stale)
        return False

    def _establish(self, session: int, handle: DeviceHandle) -> bool:
        opened = self._cond.wait_for(
            lambda: self._session != session or self._state is not ConnectionState.CONNECTING,
            timeout=self._timing.connect_timeout_s,
        )
        if self._session != session:
            return False
        if not opened:
            self._fail(
                ConnectTimeoutError(
                    f"No connection to {handle.address} within {self._timing.connect_timeout_s:.1f}s"
                )
            )
            return False
        if self._state is not ConnectionState.CONNECTED:
            return False

        self._set_state(ConnectionState.DISCOVERING)
        services = self._discover(session, handle)
        if self._session != session:
            return False
        if not services:
            reason = self._discovery_error or "no services reported"
            self._fail(DiscoveryFailedError(f"Discovery on {handle.address} incomplete: {reason}"))
            return False

        try:
            endpoint = self._resolver.resolve(services)
        except EndpointNotFoundError as exc:
            self._fail(DiscoveryFailedError(str(exc)))
            return False

        self._endpoint = endpoint
        self._trace(
            f"Endpoint {endpoint.service_id}/{endpoint.feature_id} ({endpoint.tier.value} match)"
        )
        self._set_state(ConnectionState.READY)
        return True

    def _discover(self, session: int, handle: DeviceHandle) -> tuple[ServiceDescriptor, ...] | None:
        for attempt in range(1 + _DISCOVERY_RETRIES):
            if attempt:
                self._trace("Discovery incomplete after grace period; retrying once")
            self._services = None
            self._discovery_error = None
            try:
                self._transport.discover(handle)
            except TransportError as exc:
                self._discovery_error = str(exc)
                continue
            self._cond.wait_for(
                lambda: self._session != session
                or bool(self._services)
                or self._discovery_error is not None,
                timeout=self._timing.discovery_timeout_s,
            )
            if self._session != session:
                return None
            if self._services:
                return self._services
        return None

    def disconnect(self) -> None:
        with self._cond:
            self._session += 1
            session = self._session
            handle = self._handle
            self._clear_session()
            if handle is not None:
                self._set_state(ConnectionState.DISCONNECTING)
            self._cond.notify_all()

        if handle is not None:
            # Waits out any in-flight write so the handle is never closed under it.
            with self._send_lock:
                self._close_quietly(handle)

        with self._cond:
            if self._session == session:
                self._set_state(ConnectionState.DISCONNECTED)

    def send(self, command: Command) -> bool:
        packet = encode_command(command)
        with self._send_lock:
            with self._cond:
                if self._state is not ConnectionState.READY:
                    self._trace(f"Rejected {type(command).__name__}: link is {self._state.value}")
                    return False
                if self._handle is None or self._endpoint is None:
                    self._trace(f"Rejected {type(command).__name__}: no resolved endpoint")
                    return False
                session = self._session
                handle = self._handle
                endpoint = self._endpoint

            try:
                self._transport.write(handle, endpoint, packet)
            except TransportError as exc:
                self._trace(f"Write of {type(command).__name__} failed: {exc}")
                return False
            self._trace(f"Wrote {type(command).__name__} {packet.hex()}")

            settle_s = (
                self._timing.text_settle_s
                if isinstance(command, SetText)
                else self._timing.command_settle_s
            )
            with self._cond:
                interrupted = self._cond.wait_for(lambda: self._session != session, timeout=settle_s)
            if interrupted:
                self._trace(f"Link dropped while {type(command).__name__} was settling")
                return False
            return True

    def _on_transport_event(self, session: int, event: TransportEvent) -> None:
        with self._cond:
            if session != self._session:
                self._trace(f"Ignoring stale {event.kind.value} event")
                return
            self._trace(f"Transport event: {event.kind.value}" + (f" ({event.reason})" if event.reason else ""))

            if event.kind is LinkEvent.CONNECTED:
                if self._state is ConnectionState.CONNECTING:
                    self._set_state(ConnectionState.CONNECTED)
            elif event.kind is LinkEvent.CONNECT_FAILED:
                if self._state is ConnectionState.CONNECTING:
                    self._fail(TransportConnectError(f"Transport open failed: {event.reason}"))
            elif event.kind is LinkEvent.SERVICES_DISCOVERED:
                if self._state is ConnectionState.DISCOVERING:
                    self._services = event.services
            elif event.kind is LinkEvent.DISCOVERY_FAILED:
                if self._state is ConnectionState.DISCOVERING:
                    self._discovery_error = event.reason or "discovery failed"
            elif event.kind is LinkEvent.DISCONNECTED:
                self._session += 1
                self._clear_session()
                self._set_state(ConnectionState.DISCONNECTED)
            self._cond.notify_all()

    def _clear_session(self) -> None:
        self._handle = None
        self._endpoint = None
        self._services = None

    def _fail(self, error: LedlinkError) -> None:
        self._last_error = error
        self._endpoint = None
        self._trace(f"Failure: {error}")
        self._set_state(ConnectionState.FAILED)

    def _close_quietly(self, handle: DeviceHandle) -> None:
        try:
            self._transport.close(handle)
        except TransportError as exc:
            self._trace(f"Close of {handle.address} reported: {exc}")

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._trace(f"State {self._state.value} -> {state.value}")
        self._state = state
        self._cond.notify_all()

    def _trace(self, message: str) -> None:
        LOGGER.debug(message)
        sink = self._sink
        if sink is None:
            return
        try:
            sink(message)
        except Exception:
            LOGGER.exception("Diagnostic sink raised; trace line dropped")
