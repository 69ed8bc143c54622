"""Typer CLI entrypoint."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

import typer

from ledlink.core.codec import parse_color
from ledlink.core.errors import LedlinkError, TransportConnectError
from ledlink.core.service import DEFAULT_PROFILE, DisplayService, profile_for_device

app = typer.Typer(help="Drive BLE LED displays from the command line")

AddressOption = typer.Option(None, "--address", help="Device MAC address (defaults to the profile's)")
ProfileOption = typer.Option(DEFAULT_PROFILE, "--profile", help="Device profile ID")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Trace link events to stderr")


def _build_service(profile: str = DEFAULT_PROFILE) -> DisplayService:
    service = DisplayService(profile_id=profile)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


@contextmanager
def _connected(address: str | None, profile: str, verbose: bool) -> Iterator[DisplayService]:
    service = _build_service(profile)
    if verbose:
        service.set_diagnostic_sink(lambda line: typer.echo(f"[link] {line}", err=True))
    try:
        if not service.connect(address):
            reason = service.status().failure_reason or "link did not become ready"
            raise TransportConnectError(f"Could not connect: {reason}")
        yield service
    finally:
        service.disconnect()


def _run(action: Callable[[], None]) -> None:
    try:
        action()
    except LedlinkError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _require(ok: bool, what: str) -> None:
    if not ok:
        typer.echo(f"Error: {what} was not accepted by the device", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Sent {what}")


@app.command("profiles")
def list_profiles() -> None:
    """List available device profiles."""

    def action() -> None:
        service = _build_service()
        for profile in service.list_profiles():
            address = profile.default_address or "<none>"
            typer.echo(f"{profile.id}: {profile.name} (default address {address})")
            typer.echo(f"  service {profile.endpoint.service_id} write {profile.endpoint.write_feature_id}")

    _run(action)


@app.command("devices")
def list_devices(
    timeout: float = typer.Option(5.0, "--timeout", help="Scan duration in seconds"),
) -> None:
    """Scan for advertising BLE devices and show the matching profile."""

    def action() -> None:
        service = _build_service()
        devices = service.list_devices(timeout)
        if not devices:
            typer.echo("No BLE devices found")
            return
        for device in devices:
            profile = profile_for_device(device, service.profiles)
            matched = profile.id if profile else "<no-match>"
            typer.echo(f"{device.address} {device.name} -> {matched}")

    _run(action)


@app.command("resolve")
def resolve_endpoint(
    address: str | None = AddressOption,
    profile: str = ProfileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Connect, report the resolved write endpoint, and disconnect."""

    def action() -> None:
        with _connected(address, profile, verbose) as service:
            status = service.status()
            endpoint = status.endpoint
            if endpoint is None:
                raise TransportConnectError("Link is ready but no endpoint is cached")
            typer.echo(
                f"{status.address}: service {endpoint.service_id} feature {endpoint.feature_id} "
                f"({endpoint.tier.value} match)"
            )

    _run(action)


@app.command("text")
def send_text(
    text: str,
    color: str = typer.Option("ffffff", "--color", help="Hex color, e.g. 2E7BC3"),
    brightness: int | None = typer.Option(None, "--brightness", help="Set brightness (0-100) first"),
    address: str | None = AddressOption,
    profile: str = ProfileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show TEXT on the display."""

    def action() -> None:
        parse_color(color)
        with _connected(address, profile, verbose) as service:
            if brightness is not None:
                _require(service.set_brightness(brightness), f"brightness={brightness}")
            _require(service.send_text(text, color), f"text={text!r}")

    _run(action)


@app.command("number")
def show_number(
    value: int,
    color: str = typer.Option("ffffff", "--color", help="Hex color, e.g. 2E7BC3"),
    address: str | None = AddressOption,
    profile: str = ProfileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show an integer VALUE on the display."""

    def action() -> None:
        parse_color(color)
        with _connected(address, profile, verbose) as service:
            _require(service.show_number(value, color), f"number={value}")

    _run(action)


@app.command("brightness")
def set_brightness(
    level: int,
    address: str | None = AddressOption,
    profile: str = ProfileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Set display brightness; LEVEL is clamped to 0-100."""

    def action() -> None:
        with _connected(address, profile, verbose) as service:
            _require(service.set_brightness(level), f"brightness={level}")

    _run(action)


@app.command("power")
def set_power(
    state: str,
    address: str | None = AddressOption,
    profile: str = ProfileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Switch the display panel on or off."""
    normalized = state.strip().lower()
    if normalized not in {"on", "off"}:
        typer.echo(f"Error: power state must be 'on' or 'off', not '{state}'", err=True)
        raise typer.Exit(code=1)

    def action() -> None:
        with _connected(address, profile, verbose) as service:
            _require(service.set_power(normalized == "on"), f"power={normalized}")

    _run(action)


@app.command("clear")
def clear_display(
    address: str | None = AddressOption,
    profile: str = ProfileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Blank the display."""

    def action() -> None:
        with _connected(address, profile, verbose) as service:
            _require(service.clear(), "clear")

    _run(action)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
