"""CLI entry point for browserbridge.

The browser starts this command as its native messaging host and passes the
caller origin (``chrome-extension://<id>/``) as a positional argument, plus
``--parent-window`` on Windows. stdout belongs to the extension; the console
below writes to stderr.
"""

import asyncio
from typing import Optional

import typer
from loguru import logger
from rich.console import Console

from browserbridge import __logo__, __version__
from browserbridge.cli.shared.logging_utils import configure_logging, ensure_rotating_log_file
from browserbridge.config import load_config
from browserbridge.utils.exceptions import PortBindError

app = typer.Typer(
    name="browserbridge",
    help=f"{__logo__} browserbridge - MCP over HTTP to a browser extension over native messaging",
    add_completion=False,
)

console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} browserbridge v{__version__}")
        raise typer.Exit()


def _print_port_hint(exc: PortBindError) -> None:
    console.print(f"[red]{exc.message}[/red]")
    console.print("To resolve this:")
    console.print("  1. Stop the process using the port, or")
    console.print("  2. Use [cyan]--port[/cyan] or [cyan]MCP_PORT[/cyan] to pick a different port")
    console.print("To check what's using the port:")
    console.print(f"  • Linux/Mac: [cyan]lsof -i :{exc.port}[/cyan]")
    console.print(f"  • Windows: [cyan]netstat -ano | findstr :{exc.port}[/cyan]")


@app.command()
def main(
    caller: Optional[str] = typer.Argument(None, hidden=True, help="Caller origin passed by the browser"),
    parent_window: Optional[str] = typer.Option(None, "--parent-window", hidden=True),
    host: Optional[str] = typer.Option(None, "--host", help="HTTP bind host [env: MCP_HOST, default 127.0.0.1]"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="HTTP port [env: MCP_PORT, default 3456]"),
    auth_token: Optional[str] = typer.Option(None, "--auth-token", help="Require this bearer token [env: MCP_AUTH_TOKEN]"),
    cors_origins: Optional[str] = typer.Option(
        None, "--cors-origins", help="Comma-separated allowed origins [env: MCP_CORS_ORIGINS]"
    ),
    tool_timeout: Optional[int] = typer.Option(
        None, "--tool-timeout", help="Tool timeout in milliseconds [env: MCP_TOOL_TIMEOUT_MS]"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    log_file: Optional[bool] = typer.Option(None, "--log-file/--no-log-file", help="Also log to ~/.browserbridge/logs"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
):
    """Run the bridge: MCP endpoint on HTTP, browser extension on stdin/stdout."""
    try:
        config = load_config(
            host=host,
            port=port,
            auth_token=auth_token,
            cors_origins=cors_origins,
            tool_timeout_ms=tool_timeout,
            log_level="DEBUG" if verbose else None,
            log_file=log_file,
        )
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)

    configure_logging(config.log_level)
    if config.log_file:
        log_path = ensure_rotating_log_file("bridge", level=config.log_level)
        console.print(f"[dim]Logs: {log_path}[/dim]")
    if caller:
        logger.info("Launched by {}", caller)
    if parent_window:
        logger.debug("Parent window: {}", parent_window)

    if not config.auth_enabled:
        console.print(
            "[yellow][!] No auth token configured.[/yellow] Any local process can call browser tools; "
            "set [cyan]--auth-token[/cyan] or [cyan]MCP_AUTH_TOKEN[/cyan]."
        )
    console.print(f"{__logo__} Starting browserbridge - MCP endpoint: [cyan]{config.endpoint_url}[/cyan]")

    from browserbridge.bridge.runtime import run_bridge

    try:
        exit_code = asyncio.run(run_bridge(config))
    except PortBindError as e:
        logger.error("{}", e.message)
        _print_port_hint(e)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        exit_code = 0
    raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
