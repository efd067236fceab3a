"""
dddgen CLI - Command-line interface for batch generation

Usage:
    dddgen batch <schema_file> [--dry-run] [--continue-on-error]
    dddgen batch-init [output_file]
    dddgen validate <schema_file>
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from dddgen.errors import DddError, SchemaValidationError
from dddgen.executor import BatchOptions, batch_generate, resolve_schema_path
from dddgen.planner import build_generation_plan
from dddgen.reporter import PlanReporter
from dddgen.schema import load_schema, write_sample_schema

app = typer.Typer(
    name="dddgen",
    help="Generate NestJS DDD modules and entities from batch schemas",
    add_completion=False,
)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(error: DddError) -> NoReturn:
    reporter = PlanReporter(console)
    if isinstance(error, SchemaValidationError):
        reporter.validation_failed(error.errors)
    else:
        rprint(f"[red]Error:[/red] {escape(error.message)}")
    if error.suggestion:
        rprint(f"[dim]{escape(error.suggestion)}[/dim]")
    raise typer.Exit(1)


@app.command()
def batch(
    schema_file: Path = typer.Argument(..., help="Path to a YAML/JSON batch schema"),
    path: Optional[Path] = typer.Option(
        None,
        "--path", "-p",
        help="Project root (defaults to the current directory)",
        file_okay=False,
        resolve_path=True,
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show the generation plan without writing files",
    ),
    continue_on_error: bool = typer.Option(
        False,
        "--continue-on-error",
        help="Skip failing steps instead of rolling back the whole batch",
    ),
    install_deps: bool = typer.Option(
        False,
        "--install-deps",
        help="Install npm packages required by the generated code",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Generate every module and entity described in a batch schema."""
    setup_logging(verbose)
    rprint("\n[bold blue]📦 Batch Generation[/bold blue]\n")

    options = BatchOptions(
        path=path,
        dry_run=dry_run,
        continue_on_error=continue_on_error,
        install_deps=install_deps,
    )
    try:
        batch_generate(schema_file, options, reporter=PlanReporter(console))
    except DddError as e:
        _fail(e)


@app.command("batch-init")
def batch_init(
    output: Path = typer.Argument(Path("ddd-batch.yaml"), help="Schema file to create (.yaml or .json)"),
    path: Optional[Path] = typer.Option(
        None,
        "--path", "-p",
        help="Base directory for the file",
        file_okay=False,
        resolve_path=True,
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Create a sample batch schema."""
    try:
        written = write_sample_schema(output, base_path=path, overwrite=force)
    except DddError as e:
        _fail(e)

    rprint(f"[green]✓[/green] Created batch schema: {written}")
    rprint(f"\nRun with: [cyan]dddgen batch {output}[/cyan]")


@app.command()
def validate(
    schema_file: Path = typer.Argument(..., help="Path to a YAML/JSON batch schema"),
    path: Optional[Path] = typer.Option(
        None,
        "--path", "-p",
        help="Project root used to resolve relative schema paths",
        file_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Validate a batch schema and show what it would generate."""
    try:
        schema = load_schema(resolve_schema_path(schema_file, path or Path.cwd()))
        plan = build_generation_plan(schema)
    except DddError as e:
        _fail(e)

    rprint(f"[green]✓[/green] Valid: [bold]{schema_file}[/bold]")

    table = Table()
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Version", schema.version)
    table.add_row("Project", schema.project.name if schema.project else "-")
    table.add_row("ORM", schema.project.orm if schema.project else "-")
    table.add_row("Modules", str(plan.total_modules))
    table.add_row("Entities", str(plan.total_entities))
    table.add_row("Relations", str(len(schema.relations)))
    table.add_row("Estimated files", str(plan.estimated_files))

    console.print(table)


@app.command()
def version() -> None:
    """Show version."""
    from dddgen import __version__
    rprint(f"dddgen {__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
