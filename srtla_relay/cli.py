"""
SRTLA Relay CLI - Command line interface for the bonding sender relay.
"""

import logging
import signal
import threading
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .app import RelayApp
from .config import RelayPaths, SettingsStore
from .network.interfaces import detect_interfaces
from .network.monitor import NetworkMonitor
from .relay.controller import DEFAULT_SENDER_EXECUTABLE, RelayProcessController
from .sync.engine import SyncEngine
from .sync.host import InMemoryHost, ServiceFileHost
from .sync.url import build_url, parse_url

console = Console()

STARTUP_CHECK_INTERVAL_SEC = 5.0


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler()]
    )


def _paths(ctx) -> RelayPaths:
    config_dir = ctx.obj.get('config_dir')
    return RelayPaths(config_dir=Path(config_dir)) if config_dir else RelayPaths()


def _store(ctx) -> SettingsStore:
    return SettingsStore(_paths(ctx).settings_path)


def _host(service_file: Optional[str]):
    if service_file:
        return ServiceFileHost(service_file)
    return InMemoryHost()


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config-dir', type=click.Path(), help='Settings directory')
@click.pass_context
def main(ctx, verbose, config_dir):
    """SRTLA Relay - bonded SRT sender supervisor"""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['config_dir'] = config_dir
    setup_logging(verbose)


@main.command()
def interfaces():
    """Show detected IPv4 interfaces."""
    snapshot = detect_interfaces()

    table = Table(title="Network Interfaces")
    table.add_column("Interface", style="cyan")
    table.add_column("IPv4")
    table.add_column("Type", style="dim")
    table.add_column("State")

    for iface in snapshot:
        state = "[green]active[/green]" if iface.is_active else "[red]down[/red]"
        table.add_row(iface.name, iface.ipv4, iface.classification.value, state)

    console.print(table)
    addresses = snapshot.active_addresses()
    if addresses:
        console.print(f"\nIP bank would contain: [cyan]{' '.join(addresses)}[/cyan]")
    else:
        console.print("\n[yellow]No usable interfaces found[/yellow]")


@main.group()
def url():
    """Build and parse SRT connection URLs."""
    pass


@url.command('build')
@click.option('--port', '-p', required=True, type=int, help='Local SRT port')
@click.option('--latency', '-l', default=2000, type=int, help='Latency in ms')
@click.option('--stream-id', '-s', default='', help='Stream ID')
def url_build(port: int, latency: int, stream_id: str):
    """Build a connection URL."""
    console.print(build_url(port, latency, stream_id))


@url.command('parse')
@click.argument('value')
@click.option('--current-port', '-c', default=9000, type=int, help='Port kept when the URL has none')
def url_parse(value: str, current_port: int):
    """Parse a connection URL."""
    parsed = parse_url(value, current_port)

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Valid", "[green]yes[/green]" if parsed.ok else "[red]no[/red]")
    table.add_row("Port", str(parsed.port))
    table.add_row("Latency", f"{parsed.latency_ms} ms")
    table.add_row("Stream ID", parsed.stream_id or "[dim]none[/dim]")
    console.print(table)


@main.group()
def config():
    """Relay settings commands."""
    pass


@config.command('show')
@click.pass_context
def config_show(ctx):
    """Show the stored relay settings."""
    store = _store(ctx)
    settings = store.load()

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Settings file", str(store.path) + ("" if store.exists() else " [dim](defaults)[/dim]"))
    table.add_row("Server", settings.server_host or "[red]not configured[/red]")
    table.add_row("Server port", str(settings.server_port))
    table.add_row("Stream ID", settings.stream_id or "[dim]none[/dim]")
    table.add_row("Local port", str(settings.local_port))
    table.add_row("Fixed local port", "yes" if settings.use_fixed_local_port else "no")
    table.add_row("Latency", f"{settings.latency_ms} ms")
    table.add_row("Auto start", "yes" if settings.auto_start else "no")
    table.add_row("Bidirectional sync", "yes" if settings.bidirectional_sync_enabled else "no")
    table.add_row("Host URL", build_url(settings.local_port, settings.latency_ms, settings.stream_id))
    console.print(table)


@config.command('set')
@click.option('--server', help='SRTLA server host')
@click.option('--server-port', type=int, help='SRTLA server port')
@click.option('--stream-id', help='Stream ID')
@click.option('--local-port', type=int, help='Local SRT port')
@click.option('--fixed-port/--random-port', default=None, help='Use a fixed local port')
@click.option('--latency', type=int, help='Latency in ms (1000-8000)')
@click.option('--auto-start/--no-auto-start', default=None, help='Start with streaming')
@click.option('--sync/--no-sync', default=None, help='Bidirectional sync with the host URL')
@click.option('--service-file', type=click.Path(), help='Host service file to keep in sync')
@click.pass_context
def config_set(ctx, server, server_port, stream_id, local_port, fixed_port,
               latency, auto_start, sync, service_file):
    """Change relay settings."""
    store = _store(ctx)
    controller = RelayProcessController(NetworkMonitor(), store=store, paths=_paths(ctx))
    SyncEngine(controller, _host(service_file)).attach()

    updates = []
    if sync is not None:
        updates.append(("Bidirectional sync", controller.set_bidirectional_sync(sync)))
    if server is not None:
        updates.append(("Server", controller.set_server_host(server)))
    if server_port is not None:
        updates.append(("Server port", controller.set_server_port(server_port)))
    if stream_id is not None:
        updates.append(("Stream ID", controller.set_stream_id(stream_id)))
    if local_port is not None:
        updates.append(("Local port", controller.set_local_port(local_port)))
    if fixed_port is not None:
        updates.append(("Fixed port", controller.set_use_fixed_local_port(fixed_port)))
    if latency is not None:
        updates.append(("Latency", controller.set_latency(latency)))
    if auto_start is not None:
        updates.append(("Auto start", controller.set_auto_start(auto_start)))

    if not updates:
        console.print("[yellow]Nothing to change[/yellow]")
        return

    for label, update in updates:
        if update.changed:
            note = " (host URL updated)" if update.url_synced else ""
            console.print(f"  [green]✓[/green] {label}{note}")
        else:
            console.print(f"  [dim]-[/dim] {label} unchanged")


@main.command()
@click.option('--service-file', type=click.Path(), help='Host service file to keep in sync')
@click.option('--direction', type=click.Choice(['from', 'to', 'both']), default='both',
              help='from: host to relay, to: relay to host, both: reconcile')
@click.pass_context
def sync(ctx, service_file, direction):
    """Synchronize relay settings with the host URL."""
    store = _store(ctx)
    host = _host(service_file)
    controller = RelayProcessController(NetworkMonitor(), store=store, paths=_paths(ctx))
    engine = SyncEngine(controller, host).attach()

    if direction == 'from':
        changed = engine.sync_from_external()
    elif direction == 'to':
        changed = engine.sync_to_external()
    else:
        changed = engine.reconcile()

    if changed:
        console.print(f"[green]Synchronized[/green] host URL: [cyan]{host.get_current_connection_url()}[/cyan]")
    else:
        console.print("[dim]No changes needed[/dim]")


@main.command()
@click.option('--service-file', type=click.Path(), help='Host service file to keep in sync')
@click.option('--executable', default=DEFAULT_SENDER_EXECUTABLE, help='srtla_send binary')
@click.pass_context
def run(ctx, service_file, executable):
    """Run the relay in the foreground until interrupted."""
    paths = _paths(ctx)
    app = RelayApp(
        host=_host(service_file),
        store=SettingsStore(paths.settings_path),
        paths=paths,
        executable=executable,
    )
    app.initialize()

    if not app.controller.start():
        console.print("[red]Failed to start SRTLA sender. Check the log for details.[/red]")
        app.shutdown()
        raise SystemExit(1)

    handle = app.controller.handle
    console.print(
        f"[green]✓[/green] SRTLA sender running on local port "
        f"[cyan]{handle.bound_local_port}[/cyan] (PID {handle.pid})"
    )
    console.print("Press Ctrl+C to stop\n")

    stop_requested = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop_requested.set())

    try:
        while not stop_requested.wait(STARTUP_CHECK_INTERVAL_SEC):
            if not app.startup_complete:
                app.startup_check()
    except KeyboardInterrupt:
        pass
    finally:
        console.print("\n[yellow]Stopping...[/yellow]")
        app.shutdown()


if __name__ == '__main__':
    main()
