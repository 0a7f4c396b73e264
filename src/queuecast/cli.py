"""Command-line interface for queuecast."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from queuecast.config import get_settings
from queuecast.discovery import DeviceDiscoverer, select_device
from queuecast.exceptions import (
    AdvanceFailure,
    DeviceNotFound,
    DiscoveryEmpty,
    FatalDeviceLoss,
    InvalidRoomUrl,
    RendererError,
)
from queuecast.logging import configure_logging
from queuecast.models import Device
from queuecast.renderer import RendererClient
from queuecast.renderer.soap import format_duration
from queuecast.room import RoomClient, parse_room_url
from queuecast.session import SessionManager

app = typer.Typer(
    name="queuecast",
    help="queuecast - keep a DLNA renderer in sync with a shared song queue",
    add_completion=False,
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode"),
) -> None:
    """queuecast CLI."""
    settings = get_settings()
    log_file = settings.log_file if settings.log_to_file else None
    if debug or settings.debug:
        configure_logging(log_level="DEBUG", log_file=log_file)
    else:
        configure_logging(log_level=settings.log_level, log_file=log_file)


# Config commands
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show current configuration."""
    settings = get_settings()

    if json_output:
        config_dict = {}
        for field_name in type(settings).model_fields:
            value = getattr(settings, field_name)
            if isinstance(value, Path):
                config_dict[field_name] = str(value)
            else:
                config_dict[field_name] = value
        rprint(json.dumps(config_dict, indent=2))
    else:
        table = Table(title="queuecast Configuration", show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        for field_name in type(settings).model_fields:
            table.add_row(field_name, str(getattr(settings, field_name)))

        console.print(table)


# Device commands
devices_app = typer.Typer(help="DLNA renderer discovery and control")
app.add_typer(devices_app, name="devices")


def _resolve_device(
    discoverer: DeviceDiscoverer,
    selector: Optional[str],
    location: Optional[str],
    timeout: Optional[float],
) -> Device:
    """Load a device by descriptor URL or discover and select one, exiting on failure."""
    try:
        if location:
            return discoverer.from_location(location)

        with console.status("[bold green]Searching for renderers...", spinner="dots"):
            devices = discoverer.discover(timeout=timeout)
        return select_device(devices, selector)
    except (DiscoveryEmpty, DeviceNotFound) as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)


@devices_app.command("list")
def devices_list(
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Discovery window in seconds"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List DLNA renderers on the local network."""
    discoverer = DeviceDiscoverer()
    try:
        with console.status("[bold green]Searching for renderers...", spinner="dots"):
            devices = discoverer.discover(timeout=timeout)
    finally:
        discoverer.close()

    if json_output:
        rprint(json.dumps([device.model_dump(mode="json") for device in devices], indent=2))
        return

    if not devices:
        rprint("[yellow]No DLNA renderers found[/yellow]")
        return

    table = Table(title="DLNA Renderers", show_header=True)
    table.add_column("#", style="dim")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("UDN")
    table.add_column("Location", style="green", overflow="fold")
    table.add_column("Volume")

    for index, device in enumerate(devices):
        table.add_row(
            str(index),
            device.friendly_name,
            device.udn,
            device.location,
            "yes" if device.rendering_control else "no",
        )

    console.print(table)


@devices_app.command("volume")
def devices_volume(
    selector: Optional[str] = typer.Argument(None, help="Renderer index, UDN or name"),
    level: Optional[int] = typer.Argument(None, min=0, max=100, help="New volume (0-100)"),
    location: Optional[str] = typer.Option(None, "--location", help="Descriptor URL, skips discovery"),
) -> None:
    """Show or set a renderer's volume."""
    discoverer = DeviceDiscoverer()
    try:
        device = _resolve_device(discoverer, selector, location, None)
    finally:
        discoverer.close()

    client = RendererClient(device)
    try:
        if level is None:
            rprint(f"[cyan]{device.friendly_name}[/cyan] volume: {client.get_volume()}")
        else:
            client.set_volume(level)
            rprint(f"[green]Volume set to {level} on {device.friendly_name}[/green]")
    except RendererError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        client.close()


@devices_app.command("status")
def devices_status(
    selector: Optional[str] = typer.Argument(None, help="Renderer index, UDN or name"),
    location: Optional[str] = typer.Option(None, "--location", help="Descriptor URL, skips discovery"),
) -> None:
    """Show a renderer's transport state and position."""
    discoverer = DeviceDiscoverer()
    try:
        device = _resolve_device(discoverer, selector, location, None)
    finally:
        discoverer.close()

    client = RendererClient(device)
    try:
        status = client.get_status()
    except RendererError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        client.close()

    position = format_duration(status.position) if status.position is not None else "-"
    duration = format_duration(status.duration) if status.duration is not None else "-"
    rprint(f"[cyan]{device.friendly_name}[/cyan]: {status.state.value} {position} / {duration}")


# Room commands
room_app = typer.Typer(help="Remote room control")
app.add_typer(room_app, name="room")


@room_app.command("next")
def room_next(
    room_url: str = typer.Argument(..., help="Room URL, e.g. https://ktv.example.com/102"),
) -> None:
    """Skip the room to its next track."""
    try:
        room = RoomClient(room_url, settings=get_settings())
    except InvalidRoomUrl as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    try:
        room.advance()
    except AdvanceFailure as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        room.close()

    rprint(f"[green]Skipped to the next track in room {room.room_id}[/green]")


# Casting
@app.command("cast")
def cast(
    room_url: str = typer.Argument(..., help="Room URL, e.g. https://ktv.example.com/102"),
    device: Optional[str] = typer.Option(None, "--device", "-d", help="Renderer index, UDN or name"),
    location: Optional[str] = typer.Option(None, "--location", help="Descriptor URL, skips discovery"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Discovery window in seconds"),
    volume: Optional[int] = typer.Option(None, "--volume", min=0, max=100, help="Set volume before casting"),
) -> None:
    """Play a room's queue on a renderer until interrupted."""
    settings = get_settings()

    try:
        parse_room_url(room_url)
    except InvalidRoomUrl as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    discoverer = DeviceDiscoverer(settings=settings)
    try:
        target = _resolve_device(discoverer, device, location, timeout)
    except typer.Exit:
        discoverer.close()
        raise

    if volume is not None:
        client = RendererClient(target, settings=settings)
        try:
            client.set_volume(volume)
        except RendererError as e:
            rprint(f"[yellow]Could not set volume: {e}[/yellow]")
        finally:
            client.close()

    manager = SessionManager(settings=settings, discoverer=discoverer)
    session = manager.start(target, room_url)
    rprint(
        f"[cyan]Casting room[/cyan] {session.room_id} [cyan]to[/cyan] {target.friendly_name}"
        " (Ctrl-C to stop)"
    )

    exit_code = 0
    try:
        while not manager.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        rprint("\n[yellow]Stopping...[/yellow]")
    except FatalDeviceLoss as e:
        rprint(f"[red]{e}[/red]")
        rprint("Select a renderer again with [cyan]queuecast devices list[/cyan]")
        exit_code = 1
    finally:
        manager.stop()
        discoverer.close()

    if exit_code:
        raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
