"""
dddgen Executor - Runs a generation plan inside one transaction

Steps run one at a time in plan order. A failing step either aborts the batch
and rolls back every file written so far, or, with ``continue_on_error``, is
skipped and reported while the remaining steps carry on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field

from dddgen.config import Settings
from dddgen.errors import GenerationError, StepExecutionError
from dddgen.generator import Generator, NestGenerator
from dddgen.planner import EntityStep, GenerationPlan, GenerationStep, ModuleStep, build_generation_plan
from dddgen.reporter import PlanReporter, render_plan
from dddgen.schema import load_schema
from dddgen.transaction import TransactionScope


logger = logging.getLogger(__name__)

TRANSACTION_NAME = "batch-generation"


class BatchOptions(BaseModel):
    """Options for one batch run."""

    path: Path | None = Field(default=None, description="Project root; defaults to the working directory")
    dry_run: bool = False
    continue_on_error: bool = False
    install_deps: bool = False


@dataclass
class SkippedStep:
    step: GenerationStep
    reason: str


@dataclass
class BatchResult:
    """Outcome of a batch run."""

    plan: GenerationPlan
    dry_run: bool = False
    generated: list[GenerationStep] = field(default_factory=list)
    skipped: list[SkippedStep] = field(default_factory=list)

    @property
    def modules_generated(self) -> int:
        return sum(1 for s in self.generated if isinstance(s, ModuleStep))

    @property
    def entities_generated(self) -> int:
        return sum(1 for s in self.generated if isinstance(s, EntityStep))


def resolve_schema_path(schema_path: str | Path, base_path: Path) -> Path:
    path = Path(schema_path)
    return path if path.is_absolute() else base_path / path


def batch_generate(
    schema_path: str | Path,
    options: BatchOptions | None = None,
    *,
    generator: Generator | None = None,
    scope: TransactionScope | None = None,
    reporter: PlanReporter | None = None,
    settings: Settings | None = None,
) -> BatchResult:
    """
    Load a schema, plan it and either print the plan or execute it.

    Args:
        schema_path: Schema file, relative to ``options.path`` unless absolute
        options: Run options
        generator: Code generator; defaults to ``NestGenerator``
        scope: Transaction scope; a fresh enabled scope when omitted
        reporter: Console reporter
        settings: Project settings; loaded from the project when omitted

    Returns:
        BatchResult with the plan and the generated and skipped steps

    Raises:
        SchemaNotFoundError, SchemaParseError, SchemaValidationError,
        CircularDependencyError: before anything is written
        GenerationError: a step failed and the batch was rolled back
    """
    options = options or BatchOptions()
    reporter = reporter or PlanReporter()
    base_path = Path(options.path or Path.cwd())

    schema = load_schema(resolve_schema_path(schema_path, base_path))
    plan = build_generation_plan(schema)
    reporter.summary(plan)
    logger.debug("%s", render_plan(plan))

    if options.dry_run:
        reporter.print_plan(plan)
        return BatchResult(plan=plan, dry_run=True)

    scope = scope or TransactionScope()
    if generator is None:
        settings = settings or Settings.load(base_path)
        if schema.project is not None:
            settings = settings.with_orm(schema.project.orm)
        generator = NestGenerator(scope, settings)

    result = BatchResult(plan=plan)
    total = len(plan.steps)

    def run_steps() -> None:
        for step in plan.steps:
            reporter.step_started(step)
            try:
                execute_step(step, generator, base_path, options)
            except Exception as exc:
                if not options.continue_on_error:
                    raise StepExecutionError(step, exc) from exc
                logger.warning("Skipping %s: %s", step.qualified_name, exc)
                result.skipped.append(SkippedStep(step=step, reason=str(exc)))
                reporter.skipped(step, str(exc))
                continue
            result.generated.append(step)
            reporter.progress(len(result.generated), total)

    logger.info("Executing %d steps", total)
    try:
        scope.run(TRANSACTION_NAME, run_steps)
    except StepExecutionError as exc:
        reporter.failed(str(exc.cause))
        raise GenerationError(
            f"Generation failed at {exc.step.qualified_name}: {exc.cause}. Changes have been rolled back",
            details={"step": exc.step.key, "completed": len(result.generated)},
        ) from exc

    reporter.completed(result)
    return result


def execute_step(
    step: GenerationStep,
    generator: Generator,
    base_path: Path,
    options: BatchOptions,
) -> None:
    """Dispatch one step to the generator."""
    if isinstance(step, ModuleStep):
        generator.generate_module(step.name, base_path=base_path, shared=step.shared)
    else:
        generator.generate_entity(
            step.name,
            base_path=base_path,
            module=step.module,
            fields=step.field_string,
            options=step.options,
            install_deps=options.install_deps,
        )
