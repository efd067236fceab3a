"""
dddgen Reporter - Rich console output for plans and batch progress
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dddgen.planner import EntityStep, GenerationPlan, GenerationStep, ModuleStep

if TYPE_CHECKING:
    from dddgen.executor import BatchResult


def render_plan(plan: GenerationPlan) -> str:
    """Plain-text listing of the steps in execution order."""
    lines = ["Generation Steps:", ""]
    for step in plan.steps:
        if isinstance(step, ModuleStep):
            lines.append(f"📁 Module: {step.name}{' (shared)' if step.shared else ''}")
        else:
            lines.append(f"  📄 {step.module}/{step.name}")
            if step.dependencies:
                lines.append(f"     depends on: {', '.join(step.dependencies)}")
    return "\n".join(lines)


class PlanReporter:
    """User-facing output for a batch run."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def summary(self, plan: GenerationPlan) -> None:
        self.console.print("[cyan]Generation Plan:[/cyan]")
        self.console.print(f"  Modules: {plan.total_modules}")
        self.console.print(f"  Entities: {plan.total_entities}")
        self.console.print(f"  Estimated files: ~{plan.estimated_files}")

    def print_plan(self, plan: GenerationPlan) -> None:
        self.console.print("\n[yellow]🔍 Dry Run - No files will be created[/yellow]\n")

        table = Table(title="Generation Steps")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Type", style="cyan")
        table.add_column("Module")
        table.add_column("Name", style="bold")
        table.add_column("Depends on", style="dim")

        for index, step in enumerate(plan.steps, start=1):
            table.add_row(
                str(index),
                step.step_type.value,
                escape(step.module),
                escape(step.name),
                escape(", ".join(step.dependencies)) or "-",
            )

        self.console.print(table)

    def step_started(self, step: GenerationStep) -> None:
        if isinstance(step, EntityStep):
            self.console.print(f"[cyan]  📄 Creating entity: {escape(step.module)}/{escape(step.name)}[/cyan]")
        else:
            self.console.print(f"[cyan]  📁 Creating module: {escape(step.name)}[/cyan]")

    def progress(self, completed: int, total: int) -> None:
        percent = round(completed / total * 100) if total else 100
        self.console.print(f"[dim]  Progress: {percent}%[/dim]")

    def skipped(self, step: GenerationStep, reason: str) -> None:
        self.console.print(f"[yellow]  ⚠️ Skipped: {escape(step.name)} ({escape(reason)})[/yellow]")

    def completed(self, result: BatchResult) -> None:
        self.console.print("\n[green]✅ Batch generation completed![/green]")
        self.console.print(
            f"[dim]  Created {result.modules_generated} modules "
            f"with {result.entities_generated} entities[/dim]"
        )
        if result.skipped:
            self.console.print(f"[yellow]  {len(result.skipped)} step(s) skipped:[/yellow]")
            for skip in result.skipped:
                self.console.print(
                    f"[yellow]    • {escape(skip.step.qualified_name)}: {escape(skip.reason)}[/yellow]"
                )

    def failed(self, message: str) -> None:
        self.console.print(f"\n[red]❌ Generation failed: {escape(message)}[/red]")
        self.console.print("[yellow]  Changes have been rolled back[/yellow]")

    def validation_failed(self, errors: list[str]) -> None:
        self.console.print("[red]❌ Schema validation failed:[/red]")
        for error in errors:
            self.console.print(f"[red]  • {escape(error)}[/red]")
