"""apisurface CLI - Command-line interface.

Usage:
    apisurface discover <capture.har> --output surface.json
    apisurface diff <old.json> <new.json>
"""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from apisurface.types import Surface, SurfaceDiff

console = Console()
app = typer.Typer(
    name="apisurface",
    help="Extract API surfaces from captured HTTP traffic and diff them across runs",
    no_args_is_help=True,
)


def setup_logging(verbose: bool = False) -> None:
    """Set up logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
    )

    logging.getLogger("apisurface").setLevel(level)


@app.command()
def discover(
    input_file: Path = typer.Argument(
        ...,
        help="HAR archive (.har) or JSON list of observations",
        exists=True,
    ),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Where to write the surface (.json, .yaml or .yml)",
    ),
    source_id: str = typer.Option(
        None,
        "--source-id",
        help="Identifier recorded in the surface metadata (defaults to the file name)",
    ),
    config_file: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML discovery configuration",
        exists=True,
    ),
    all_traffic: bool = typer.Option(
        False,
        "--all-traffic",
        help="Keep non-API HAR entries instead of filtering them out",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Build an API surface from captured traffic."""
    from apisurface.config import load_config
    from apisurface.modules.pipeline import discover_from_file

    setup_logging(verbose=verbose)

    try:
        config = load_config(config_file)
        surface = discover_from_file(
            input_file,
            output_path=output,
            source_id=source_id,
            config=config,
            api_only=not all_traffic,
        )
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    _output_surface(surface)


@app.command()
def diff(
    old: Path = typer.Argument(..., help="Previous surface file", exists=True),
    new: Path = typer.Argument(..., help="New surface file", exists=True),
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output changes as JSON",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Compare two surfaces and classify every change."""
    from apisurface.modules.pipeline import compare_surface_files
    from apisurface.modules.surface_store import diff_to_json

    setup_logging(verbose=verbose)

    try:
        result = compare_surface_files(old, new)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    if output_json:
        print(diff_to_json(result), end="")
    else:
        _output_diff(result)

    # Exit with error code if anything breaks existing callers
    if result.has_breaking_changes:
        raise typer.Exit(1)


def _output_surface(surface: Surface) -> None:
    """Print a summary table of the discovered endpoints."""
    table = Table(title=f"Endpoints ({surface.metadata.endpoint_count})")
    table.add_column("Id")
    table.add_column("Method")
    table.add_column("Path")
    table.add_column("Status")
    table.add_column("Seen", justify="right")

    for endpoint in surface.endpoints:
        table.add_row(
            endpoint.id,
            endpoint.method.value,
            endpoint.path,
            ",".join(str(code) for code in endpoint.status_codes),
            str(endpoint.observation_count),
        )

    console.print(table)
    console.print(f"[bold]Auth:[/bold] {surface.auth.primary.value}")
    if surface.models:
        console.print(f"[bold]Models:[/bold] {', '.join(surface.models)}")


def _output_diff(result: SurfaceDiff) -> None:
    """Output a diff with rich formatting."""
    if not result.changes:
        console.print(Panel(
            "[green]✓ No changes detected[/green]\n\n"
            "Both surfaces describe the same API.",
            title="Result",
            border_style="green",
        ))
        return

    color = "red" if result.has_breaking_changes else "yellow"
    console.print(Panel(
        f"[{color}]{len(result.changes)} changes[/{color}]\n\n"
        f"Breaking: {'Yes' if result.has_breaking_changes else 'No'}",
        title="Result",
        border_style=color,
    ))

    table = Table(title="Changes")
    table.add_column("Kind")
    table.add_column("Endpoint")
    table.add_column("Path")
    table.add_column("Message")
    table.add_column("Breaking")

    for change in result.changes:
        table.add_row(
            change.kind.value,
            change.endpoint_id,
            change.json_path or "",
            change.message[:60] + "..." if len(change.message) > 60 else change.message,
            "✗" if change.breaking else "✓",
        )

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from apisurface import __version__
    console.print(f"apisurface version {__version__}")


if __name__ == "__main__":
    app()
