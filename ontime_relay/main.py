"""
main.py — ontime-relay application entrypoint.

Bootstraps:
  1. Config loading
  2. Relay instance + ontime connection (event directory, then socket)
  3. TouchOSC/OSC bridge
  4. FastAPI server (uvicorn)

CLI:
  python run.py start              start the relay
  python run.py init-config        create a default config.yaml
  python run.py list-actions       print the action catalogue
  python run.py check              test ontime connectivity and list events
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ontime_relay import __version__
from ontime_relay.api import create_app, set_instance
from ontime_relay.config import Settings, reload_settings
from ontime_relay.core import RelayInstance, build_actions, dispose_connection, init_connection
from ontime_relay.osc import OSCBridge

console = Console()
app = typer.Typer(name="ontime-relay", help="ontime show-control relay — REST, WebSocket and OSC surfaces")


def setup_logging(level: str = "info") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


async def build_and_run(config_path: Optional[Path] = None) -> None:
    settings = reload_settings(config_path)
    setup_logging(settings.api.log_level)
    log = logging.getLogger("ontime_relay")

    console.rule(f"[bold blue]ontime-relay v{__version__}[/bold blue]")

    # 1. Instance + connection
    instance = RelayInstance()
    connection = await init_connection(
        instance,
        host=settings.ontime.host,
        port=settings.ontime.port,
        reconnect_interval=settings.ontime.reconnect_interval,
    )
    instance.attach(connection)

    # 2. Event directory, then the socket (both non-fatal; the socket retries on its own)
    if await connection.init_events():
        instance.init_actions(list(connection.events))
    connected = await connection.connect()
    if not connected:
        console.print(f"[yellow]⚠ ontime not reachable at {connection.ws_url} — will retry in background[/yellow]")

    # 3. OSC bridge
    osc_bridge: Optional[OSCBridge] = None
    if settings.osc.enabled:
        osc_bridge = OSCBridge(
            instance,
            listen_host=settings.osc.listen_host,
            listen_port=settings.osc.listen_port,
            reply_port=settings.osc.reply_port,
            client_host=settings.osc.client_host,
        )
        await osc_bridge.start()

    # 4. Startup summary
    console.print(f"\n[green]✓ ontime[/green]    {connection.ws_url} ({'connected' if connected else 'pending reconnect'})")
    console.print(f"[green]✓ Events[/green]    {len(connection.events)} loaded from {connection.http_url}/events")
    if settings.api.enabled:
        console.print(f"[green]✓ API[/green]       http://{settings.api.host}:{settings.api.port}")
        console.print(f"[green]✓ WS[/green]        ws://{settings.api.host}:{settings.api.port}/ws")
    if osc_bridge:
        console.print(f"[green]✓ OSC[/green]       UDP :{settings.osc.listen_port} → reply :{settings.osc.reply_port}")
    if settings.api.enabled and settings.api.api_key:
        console.print("[green]✓ Auth[/green]      API key set — Bearer token required")
        console.print(f"[dim]            WS auth: ws://host:{settings.api.port}/ws?token=YOUR_KEY[/dim]")
    elif settings.api.enabled:
        console.print("[yellow]⚠ Auth[/yellow]      No API key set — open access (fine for LAN, not internet)")

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    server: Optional[uvicorn.Server] = None

    def shutdown():
        log.info("Shutdown signal received.")
        if server:
            server.should_exit = True
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown)
        except NotImplementedError:
            pass  # Windows

    # 5. uvicorn (or just the relay when the API is disabled)
    try:
        if settings.api.enabled:
            set_instance(instance, osc_bridge)
            config = uvicorn.Config(
                create_app(),
                host=settings.api.host,
                port=settings.api.port,
                log_level=settings.api.log_level,
                loop="asyncio",
            )
            server = uvicorn.Server(config)
            await server.serve()
        else:
            await stop_event.wait()
    finally:
        if osc_bridge:
            await osc_bridge.stop()
        await dispose_connection()


# ──────────────────────────────────────────────────────────────────────────────
# CLI commands
# ──────────────────────────────────────────────────────────────────────────────

@app.command()
def start(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    host: Optional[str] = typer.Option(None, "--host", help="API bind host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="API port"),
    ontime_host: Optional[str] = typer.Option(None, "--ontime-host", help="ontime server host"),
    ontime_port: Optional[int] = typer.Option(None, "--ontime-port", help="ontime server port"),
):
    """Start the ontime-relay server."""
    if host:
        os.environ["API_HOST"] = host
    if port:
        os.environ["API_PORT"] = str(port)
    if ontime_host:
        os.environ["ONTIME_HOST"] = ontime_host
    if ontime_port:
        os.environ["ONTIME_PORT"] = str(ontime_port)
    asyncio.run(build_and_run(config))


@app.command("init-config")
def init_config(
    output: Path = typer.Option(Path("config.yaml"), "--output", "-o"),
):
    """Generate a default config.yaml."""
    s = Settings.load()
    s.to_yaml(output)
    console.print(f"[green]✓[/green] Config written to [bold]{output}[/bold]")


@app.command("list-actions")
def list_actions_cmd():
    """Print the action catalogue and the ontime message each action sends."""
    table = Table(title="ontime Actions", show_header=True)
    table.add_column("Action", style="cyan")
    table.add_column("Message type", style="green")
    table.add_column("Description")
    table.add_column("Value", style="yellow")
    for a in build_actions([]).values():
        table.add_row(a.id, a.message_type, a.name, a.option.type if a.option else "-")
    console.print(table)


@app.command("check")
def check_ontime(
    host: str = typer.Option("localhost", "--host"),
    port: int = typer.Option(4001, "--port"),
):
    """Test ontime connectivity and list its events."""
    async def _check() -> bool:
        instance = RelayInstance()
        connection = await init_connection(instance, host, port)
        instance.attach(connection)
        try:
            fetched = await connection.init_events()
            connected = await connection.connect()
        finally:
            await dispose_connection()

        if connected:
            console.print(f"[green]✓ Socket connected[/green] {connection.ws_url}")
        else:
            console.print(f"[red]✗ Could not open {connection.ws_url}[/red]")
        if fetched:
            table = Table(title=f"Events ({len(connection.events)})", show_header=True)
            table.add_column("Id", style="cyan")
            table.add_column("Title")
            for e in connection.events:
                table.add_row(e.id, e.label)
            console.print(table)
        else:
            console.print(f"[red]✗ Could not fetch {connection.http_url}/events[/red]")
        return connected and fetched

    if not asyncio.run(_check()):
        sys.exit(1)


if __name__ == "__main__":
    app()
