"""BLE GATT transport implementation."""

from __future__ import annotations

import asyncio
import concurrent.futures
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any

from ledlink.core.errors import (
    TransportError,
    TransportTimeoutError,
    TransportUnavailableError,
    WriteRejectedError,
)
from ledlink.core.model import (
    DetectedDevice,
    DeviceHandle,
    DiscoveredEndpoint,
    FeatureDescriptor,
    LinkEvent,
    ServiceDescriptor,
    TransportEvent,
)
from ledlink.transports.base import EventCallback

LOGGER = logging.getLogger(__name__)


def _bleak() -> Any:
    try:
        import bleak  # type: ignore
    except Exception as exc:
        raise TransportUnavailableError(
            "BLE transport requires 'bleak'. Install dependency and retry."
        ) from exc
    return bleak


@dataclass
class _Session:
    client: Any
    on_event: EventCallback


def _describe(services: Any) -> tuple[ServiceDescriptor, ...]:
    return tuple(
        ServiceDescriptor(
            id=service.uuid,
            features=tuple(
                FeatureDescriptor(id=char.uuid, properties=tuple(char.properties))
                for char in service.characteristics
            ),
        )
        for service in services
    )


class BLEGATTTransport:
    """Runs bleak on a private event loop thread and reports back via callbacks."""

    def __init__(
        self,
        *,
        connect_timeout_s: float = 10.0,
        write_timeout_s: float = 5.0,
        close_timeout_s: float = 5.0,
    ) -> None:
        self.connect_timeout_s = connect_timeout_s
        self.write_timeout_s = write_timeout_s
        self.close_timeout_s = close_timeout_s
        self._sessions: dict[DeviceHandle, _Session] = {}
        self._ids = itertools.count(1)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_lock = threading.Lock()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._loop_lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=loop.run_forever,
                    name="ledlink-ble",
                    daemon=True,
                )
                thread.start()
                self._loop = loop
            return self._loop

    def _wait(self, coro: Any, timeout_s: float, what: str) -> Any:
        future = asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())
        try:
            return future.result(timeout=timeout_s)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise TransportTimeoutError(f"BLE {what} timed out after {timeout_s:.1f}s") from exc

    def open(self, address: str, on_event: EventCallback) -> DeviceHandle:
        bleak = _bleak()
        handle = DeviceHandle(address=address, id=next(self._ids))

        def _on_disconnect(_: Any) -> None:
            session = self._sessions.pop(handle, None)
            if session is not None:
                session.on_event(TransportEvent(LinkEvent.DISCONNECTED, reason="peer dropped the link"))

        try:
            client = bleak.BleakClient(
                address,
                disconnected_callback=_on_disconnect,
                timeout=self.connect_timeout_s,
            )
        except Exception as exc:
            raise TransportUnavailableError(f"Could not create BLE client for {address}: {exc}") from exc
        self._sessions[handle] = _Session(client=client, on_event=on_event)

        async def _connect() -> None:
            try:
                await client.connect()
            except Exception as exc:
                self._sessions.pop(handle, None)
                on_event(TransportEvent(LinkEvent.CONNECT_FAILED, reason=str(exc) or type(exc).__name__))
                return
            if handle not in self._sessions:
                # Closed while the connect was in flight.
                await client.disconnect()
                return
            on_event(TransportEvent(LinkEvent.CONNECTED))

        LOGGER.debug("Opening BLE link to %s", address)
        asyncio.run_coroutine_threadsafe(_connect(), self._ensure_loop())
        return handle

    def discover(self, handle: DeviceHandle) -> None:
        session = self._sessions.get(handle)
        if session is None:
            raise TransportError(f"No open BLE session for {handle.address}")

        async def _discover() -> None:
            if not session.client.is_connected:
                session.on_event(TransportEvent(LinkEvent.DISCOVERY_FAILED, reason="link is down"))
                return
            try:
                services = _describe(session.client.services)
            except Exception as exc:
                session.on_event(TransportEvent(LinkEvent.DISCOVERY_FAILED, reason=str(exc)))
                return
            session.on_event(TransportEvent(LinkEvent.SERVICES_DISCOVERED, services=services))

        asyncio.run_coroutine_threadsafe(_discover(), self._ensure_loop())

    def write(self, handle: DeviceHandle, endpoint: DiscoveredEndpoint, payload: bytes) -> None:
        session = self._sessions.get(handle)
        if session is None or not session.client.is_connected:
            raise WriteRejectedError(f"BLE link to {handle.address} is not open")
        try:
            self._wait(
                session.client.write_gatt_char(
                    endpoint.feature_id,
                    payload,
                    response=endpoint.write_with_response,
                ),
                self.write_timeout_s,
                "write",
            )
        except TransportTimeoutError:
            raise
        except Exception as exc:
            raise WriteRejectedError(f"BLE GATT write failed: {exc}") from exc

    def close(self, handle: DeviceHandle) -> None:
        session = self._sessions.pop(handle, None)
        if session is None:
            return
        try:
            self._wait(session.client.disconnect(), self.close_timeout_s, "disconnect")
        except TransportTimeoutError:
            raise
        except Exception as exc:
            raise TransportError(f"BLE disconnect failed: {exc}") from exc

    def scan(self, timeout_s: float = 5.0) -> list[DetectedDevice]:
        bleak = _bleak()
        try:
            found = self._wait(
                bleak.BleakScanner.discover(timeout=timeout_s),
                timeout_s + self.close_timeout_s,
                "scan",
            )
        except TransportTimeoutError:
            raise
        except Exception as exc:
            raise TransportUnavailableError(f"BLE scan failed: {exc}") from exc
        return [
            DetectedDevice(address=device.address.upper(), name=device.name or "<unknown-device>")
            for device in found
        ]
