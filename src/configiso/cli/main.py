"""Main CLI implementation using Typer."""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Optional

import typer
from rich.console import Console
from rich.markup import escape

from configiso.agent.main import run_agent
from configiso.agent.orchestrator import BootOrchestrator
from configiso.errors import ConfigImageError
from configiso.models.media import BootTarget
from configiso.utils import iso
from configiso.utils.logging import setup_logging


# Create Typer app
app = typer.Typer(
    name="configiso",
    help="Build a configuration ISO and boot a server from it over virtual media",
    add_completion=False,
)

# Console for rich output
console = Console()


def _run_async(coro: Awaitable[Any]) -> Any:
    """Run a coroutine, turning configiso errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except ConfigImageError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


@app.command("serve")
def serve_command(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML configuration file"
    ),
):
    """Build the image, serve it, and boot the configured target."""
    _run_async(run_agent(config))


@app.command("build")
def build_command(
    output: Path = typer.Argument(..., help="Image file to write"),
    source: Path = typer.Option(
        ..., "--from", "-f", help="Directory whose contents are packaged"
    ),
    label: str = typer.Option("config", "--label", "-l", help="Volume label"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
):
    """Build an ISO9660 image from a directory."""
    setup_logging(log_level)
    try:
        iso.create(output, source, label)
    except ConfigImageError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    console.print(f"Image created at [cyan]{output}[/cyan] (label [magenta]{label}[/magenta])")


@app.command("boot")
def boot_command(
    bmc: str = typer.Option(
        ..., "--bmc", help="BMC URL including system path, e.g. https://bmc/redfish/v1/Systems/1"
    ),
    url: str = typer.Option(..., "--image-url", help="URL of the image to insert"),
    user: str = typer.Option("", "--user", "-u", envvar="BMC_USER", help="BMC user"),
    password: str = typer.Option("", "--password", "-p", envvar="BMC_PASSWORD", help="BMC password"),
    dwell: float = typer.Option(
        0.0, "--dwell", help="Seconds to wait after power on before ejecting (0 keeps media inserted)"
    ),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Skip BMC TLS verification"),
    log_level: str = typer.Option("INFO", "--log-level", help="Log level"),
):
    """Insert an image as virtual CD and power the system on."""
    setup_logging(log_level)
    target = BootTarget.from_address(
        bmc,
        image_url=url,
        username=user,
        password=password,
        verify_tls=not insecure,
    )
    orchestrator = BootOrchestrator(dwell=dwell)
    media = _run_async(orchestrator.orchestrate(target))
    console.print(f"Booted from [cyan]{url}[/cyan] via {media.uri}")


def main():
    """Main entry point for CLI."""
    app()
