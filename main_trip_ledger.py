"""Mini README: Entry point CLI for the trip ledger service and offline client.

This script exposes a Typer CLI with three commands:
    * run - start the FastAPI application with uvicorn.
    * sync - drain the local offline queue against the server.
    * queue-status - list actions still waiting in the local queue.

Settings come from ``TRIPLEDGER_*`` environment variables or ``.env``;
command options override them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import uvicorn

from tripledger.configuration import get_settings
from tripledger.logging_utils import configure_root_logger, level_for_environment
from tripledger.offline import DrainTrigger, HttpTransport, OfflineActionQueue

cli = typer.Typer(help="Run the trip ledger service and manage the offline queue.")


@cli.command()
def run(
    host: str = typer.Option(None, help="Host interface to bind."),
    port: int = typer.Option(None, help="Port to listen on."),
    production: bool = typer.Option(
        False, help="Use production server settings (disable auto-reload)."
    ),
) -> None:
    """Start the FastAPI application using uvicorn."""

    settings = get_settings()
    effective_host = host or settings.interface_host
    effective_port = port or settings.interface_port
    configure_root_logger(level_for_environment(settings.environment))

    # 0.0.0.0 is a bind address, not something a browser or phone can open.
    browser_host = "127.0.0.1" if effective_host in {"0.0.0.0", "::"} else effective_host
    typer.echo(
        f"Starting trip ledger on {effective_host}:{effective_port}.\n"
        f"API base URL: http://{browser_host}:{effective_port}/api"
    )
    uvicorn.run(
        "tripledger.interface.web_app:create_application",
        host=effective_host,
        port=effective_port,
        factory=True,
        reload=not production,
    )


def _open_queue(server: Optional[str], queue_file: Optional[Path]) -> OfflineActionQueue:
    settings = get_settings()
    transport = HttpTransport(server or settings.client_base_url, timeout=settings.request_timeout_seconds)
    return OfflineActionQueue(transport, queue_file or settings.client_queue_path)


@cli.command()
def sync(
    server: str = typer.Option(None, help="Server base URL (defaults to TRIPLEDGER_CLIENT_BASE_URL)."),
    queue_file: Path = typer.Option(None, help="Offline queue file to drain."),
) -> None:
    """Replay queued actions in order until the queue is empty or the server is unreachable."""

    configure_root_logger(level_for_environment(get_settings().environment))
    queue = _open_queue(server, queue_file)
    report = queue.drain(DrainTrigger.MANUAL)
    for action in report.applied:
        typer.echo(f"applied  {action.method} {action.target}")
    for action, error in report.failed:
        typer.echo(f"rejected {action.method} {action.target}: {error.message}", err=True)
    if report.halted_on is not None:
        typer.echo(f"{len(queue)} action(s) still queued; server unreachable.", err=True)
        raise typer.Exit(code=1)
    typer.echo("Queue is empty.")


@cli.command("queue-status")
def queue_status(
    queue_file: Path = typer.Option(None, help="Offline queue file to inspect."),
) -> None:
    """Print the pending actions in FIFO order."""

    queue = _open_queue(None, queue_file)
    if not len(queue):
        typer.echo("No pending actions.")
        return
    for position, action in enumerate(queue.pending, start=1):
        typer.echo(f"{position:>3}. {action.enqueued_at.isoformat()} {action.method} {action.target} [{action.action_id}]")


if __name__ == "__main__":
    cli()
