"""Command line interface for running and inspecting the web UI server."""

from __future__ import annotations

from dataclasses import dataclass

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .assets import StartupError, load_bundled_assets
from .headers import content_type_for, headers_for
from .health import ComponentVersions
from .logs import configure_logging
from .server import DEFAULT_ADDRESS, ServerSettings, WebUIServer

app = typer.Typer(
    help='Serve the pgwatch3 web UI and inspect its bundled assets.',
    no_args_is_help=False,
)


ADDRESS_OPTION = typer.Option(
    DEFAULT_ADDRESS,
    '--addr',
    '-a',
    help='Bind address as host:port; an empty host listens on every interface.',
)

VERBOSE_OPTION = typer.Option(
    default=False,
    help='Enable debug logging.',
)
VERBOSE_OPTION.param_decls = ('--verbose',)

LOG_JSON_OPTION = typer.Option(
    default=False,
    help='Emit log lines as JSON instead of console output.',
)
LOG_JSON_OPTION.param_decls = ('--log-json',)

VERSION_OPTION = typer.Option(
    default=False,
    help='Show version and exit.',
)
VERSION_OPTION.param_decls = ('--version', '-v')


@dataclass
class CLIState:
    """Holds the console shared by every command."""

    console: Console


def _get_state(ctx: typer.Context) -> CLIState:
    return ctx.ensure_object(CLIState)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = VERBOSE_OPTION,  # noqa: FBT001
    log_json: bool = LOG_JSON_OPTION,  # noqa: FBT001
    version: bool = VERSION_OPTION,  # noqa: FBT001
) -> None:
    """Initialise logging and the shared console."""
    console = Console()
    if version:
        console.print(f'pgwatch web UI version {__version__}')
        raise typer.Exit(0)

    if ctx.invoked_subcommand is None:
        console.print('[yellow]No command specified. Use --help to see available commands.[/]')
        raise typer.Exit(0)

    configure_logging(verbose=verbose, log_json=log_json)
    ctx.obj = CLIState(console=console)


@app.command('serve')
def serve(
    ctx: typer.Context,
    addr: str = ADDRESS_OPTION,
) -> None:
    """Start the web UI server and block until the process is stopped."""
    state = _get_state(ctx)
    try:
        server = WebUIServer(ServerSettings(address=addr))
        server.start()
    except StartupError as exc:
        state.console.print(f'[red]Cannot start the web UI:[/] {exc}')
        raise typer.Exit(code=1) from None

    host, port = server.bound_address
    state.console.print(f'[bold cyan]pgwatch web UI[/] v{__version__} listening on {host}:{port}')
    try:
        server.wait()
    except KeyboardInterrupt:
        state.console.print('[yellow]Interrupted.[/]')


@app.command('assets')
def list_assets(ctx: typer.Context) -> None:
    """List the bundled web UI files with the headers they are served with."""
    state = _get_state(ctx)
    try:
        tree = load_bundled_assets()
    except StartupError as exc:
        state.console.print(f'[red]{exc}[/]')
        raise typer.Exit(code=1) from None

    table = Table(title='Bundled Assets')
    table.add_column('Path', style='cyan', overflow='fold')
    table.add_column('Size', justify='right')
    table.add_column('Content-Type', style='white')
    table.add_column('Cache-Control', style='magenta')
    for path, size in tree.walk():
        extra = headers_for(path)
        table.add_row(
            path,
            '?' if size is None else str(size),
            content_type_for(path) or '-',
            extra.get('Cache-Control', '-'),
        )
    state.console.print(table)


@app.command('versions')
def versions(ctx: typer.Context) -> None:
    """Show the component versions reported on /health."""
    state = _get_state(ctx)
    current = ComponentVersions()
    table = Table(title='Component Versions', show_header=False)
    table.add_column('Component', style='cyan')
    table.add_column('Version', style='white')
    table.add_row('pgwatch3', current.application)
    table.add_row('Grafana', current.grafana)
    table.add_row('Postgres', current.postgres)
    state.console.print(Panel(table, border_style='cyan'))


def run() -> None:
    """Entry point for the CLI script."""
    app()
