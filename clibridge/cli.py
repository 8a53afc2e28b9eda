"""CLI entry point for clibridge.

Commands:
- clibridge init: Write a project config file
- clibridge status: Show installation and authentication state
- clibridge exec: Run a command (gated on install/auth), print its output
- clibridge stream: Run a command, printing events as they arrive
- clibridge oauth: Show cached OAuth token status
- clibridge login: Run the CLI's setup-token flow
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from clibridge import __version__
from clibridge.config import (
    CONFIG_DIRNAME,
    CONFIG_FILENAME,
    DEFAULT_CONFIG_YAML,
    BridgeConfig,
    ConfigError,
    load_config,
)
from clibridge.core.errors import ExecutionError
from clibridge.core.facade import ExecutionFacade
from clibridge.core.models import StreamEventType
from clibridge.core.service import BridgeService

console = Console()


def get_repo_path() -> Path:
    """Get the project path (current directory)."""
    return Path.cwd()


def _service(ctx: click.Context) -> BridgeService:
    return BridgeService(ctx.obj["config"])


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """clibridge - run an AI CLI as a managed subprocess.

    Resolves the CLI's install/auth state and streams its output.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    ctx.ensure_object(dict)
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config(get_repo_path())
        except ConfigError as e:
            console.print(f"[red]Config error:[/red] {escape(str(e))}")
            sys.exit(2)


@main.command()
def init() -> None:
    """Write .clibridge/config.yaml in the current directory."""
    config_dir = get_repo_path() / CONFIG_DIRNAME
    config_path = config_dir / CONFIG_FILENAME

    if config_path.exists():
        console.print("[yellow]Project already initialized[/yellow]")
        return

    config_dir.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_YAML)
    console.print(
        Panel(
            f"[green]Project initialized![/green]\n\nCreated: {config_path}",
            title="clibridge",
        )
    )


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show installation and authentication status."""
    config: BridgeConfig = ctx.obj["config"]
    state = asyncio.run(_service(ctx).check_cli())

    table = Table(title=f"{config.tool_name} status")
    table.add_column("Check", style="cyan")
    table.add_column("Result")

    table.add_row("Installed", _yes_no(state.installed))
    if state.version:
        table.add_row("Version", escape(state.version))
    table.add_row("Authenticated", _yes_no(state.authenticated))
    table.add_row("OAuth token", _yes_no(state.has_oauth_token))
    if state.oauth_token_path:
        table.add_row("Token path", escape(state.oauth_token_path))
    console.print(table)

    if state.error:
        console.print(f"[red]{escape(state.error)}[/red]")
        sys.exit(1)


@main.command("exec")
@click.argument("command")
@click.pass_context
def exec_command(ctx: click.Context, command: str) -> None:
    """Run COMMAND through the CLI after checking install and auth.

    Example:
        clibridge exec '-p "summarize README.md"'
    """
    response = asyncio.run(_service(ctx).execute(command))
    if not response.success:
        console.print(f"[red]Error:[/red] {escape(response.error or 'unknown error')}")
        sys.exit(1)
    click.echo(response.output, nl=False)


@main.command()
@click.argument("command")
@click.option("--raw/--no-raw", default=True, help="Show unclassified output lines")
@click.pass_context
def stream(ctx: click.Context, command: str, raw: bool) -> None:
    """Run COMMAND and print its output as it streams.

    Adds `--output-format stream-json` unless COMMAND sets a format.
    Ctrl-C terminates the CLI process.
    """
    facade = ExecutionFacade(ctx.obj["config"])

    async def _run() -> None:
        events = facade.stream_command(command)
        async for event in events:
            if event.type == StreamEventType.CONTENT:
                console.print(escape(event.text), end="")
            elif event.type == StreamEventType.ERROR:
                console.print(f"[red]{escape(event.text)}[/red]")
            elif raw:
                console.print(f"[dim]{escape(event.text)}[/dim]")
        await events.result()

    try:
        asyncio.run(_run())
    except ExecutionError as e:
        console.print(f"\n[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    console.print()


@main.command()
@click.pass_context
def oauth(ctx: click.Context) -> None:
    """Show whether a cached OAuth token is available."""
    token = asyncio.run(_service(ctx).check_oauth())
    if token.exists:
        console.print(f"[green]OAuth token found:[/green] {escape(token.path or '')}")
    else:
        console.print("[yellow]No OAuth token found[/yellow]")


@main.command()
@click.option("--terminal", is_flag=True, help="Open a new terminal window instead")
@click.pass_context
def login(ctx: click.Context, terminal: bool) -> None:
    """Authenticate the CLI via its setup-token flow."""
    service = _service(ctx)
    result = asyncio.run(service.open_auth() if terminal else service.setup_oauth())

    if not result.success:
        console.print(f"[red]Login failed:[/red] {escape(result.error or 'unknown error')}")
        sys.exit(1)

    if terminal:
        console.print("[green]Terminal opened.[/green] Finish logging in there.")
    elif result.has_token:
        console.print(f"[green]Logged in.[/green] Token stored at {escape(result.token_path or '')}")
    else:
        console.print("[yellow]setup-token finished but no token file was found[/yellow]")


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"


if __name__ == "__main__":
    main()
