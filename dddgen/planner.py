"""
dddgen Planner - Turns a batch schema into an ordered generation plan

Module steps come first, in schema order. Entity steps follow, ordered so
that the owning side of every many-to-one / one-to-one relation is generated
after the entity it references.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from dddgen.errors import CircularDependencyError
from dddgen.schema import BatchSchema, EntityOptions, FieldSpec


FILES_PER_ENTITY = 8


class StepType(str, Enum):
    MODULE = "module"
    ENTITY = "entity"


# ═══════════════════════════════════════════════════════════════════════════
# STEPS & PLAN
# ═══════════════════════════════════════════════════════════════════════════


class _StepMixin:
    step_type: ClassVar[StepType]
    name: str
    module: str

    @property
    def key(self) -> str:
        """Scheduling key, ``<type>:<module>.<name>``."""
        return f"{self.step_type.value}:{self.module}.{self.name}"

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.name}"


@dataclass(frozen=True)
class ModuleStep(_StepMixin):
    """Create a module skeleton."""

    step_type: ClassVar[StepType] = StepType.MODULE

    order: int
    name: str
    module: str
    shared: bool = False
    dependencies: tuple[str, ...] = ()

    @property
    def config(self) -> dict[str, Any]:
        return {"shared": self.shared}


@dataclass(frozen=True)
class EntityStep(_StepMixin):
    """Create an entity and its companion files inside a module."""

    step_type: ClassVar[StepType] = StepType.ENTITY

    order: int
    name: str
    module: str
    fields: tuple[FieldSpec, ...] = ()
    options: EntityOptions = field(default_factory=EntityOptions)
    dependencies: tuple[str, ...] = ()

    @property
    def field_string(self) -> str:
        return " ".join(f.token for f in self.fields)

    @property
    def config(self) -> dict[str, Any]:
        return {
            "fields": self.field_string,
            **self.options.model_dump(by_alias=True, exclude_none=True),
        }


GenerationStep = Union[ModuleStep, EntityStep]


@dataclass(frozen=True)
class GenerationPlan:
    """Ordered steps plus summary counts for reporting."""

    steps: tuple[GenerationStep, ...]
    total_modules: int
    total_entities: int
    estimated_files: int

    @property
    def module_steps(self) -> list[ModuleStep]:
        return [s for s in self.steps if isinstance(s, ModuleStep)]

    @property
    def entity_steps(self) -> list[EntityStep]:
        return [s for s in self.steps if isinstance(s, EntityStep)]


# ═══════════════════════════════════════════════════════════════════════════
# DEPENDENCIES
# ═══════════════════════════════════════════════════════════════════════════


def build_entity_dependencies(schema: BatchSchema) -> dict[str, list[str]]:
    """
    Map each owning entity reference to the references it depends on.

    Keys and values are the relation's ``from``/``to`` strings exactly as
    written. One-to-many and many-to-many relations add no edge.
    """
    deps: dict[str, list[str]] = {}
    for relation in schema.relations:
        if relation.type.owns_foreign_key:
            deps.setdefault(relation.from_, []).append(relation.to)
    return deps


# ═══════════════════════════════════════════════════════════════════════════
# PLAN BUILDING
# ═══════════════════════════════════════════════════════════════════════════


def build_generation_plan(schema: BatchSchema) -> GenerationPlan:
    """Build the execution plan for a validated schema."""
    steps: list[GenerationStep] = []
    order = 0

    for module in schema.modules:
        steps.append(ModuleStep(order=order, name=module.name, module=module.name, shared=module.shared))
        order += 1

    entity_deps = build_entity_dependencies(schema)

    for module in schema.modules:
        for entity in module.entities:
            # relations may name the owner as "module.Entity" or just "Entity"
            deps = entity_deps.get(f"{module.name}.{entity.name}", []) + entity_deps.get(entity.name, [])
            steps.append(
                EntityStep(
                    order=order,
                    name=entity.name,
                    module=module.name,
                    fields=entity.fields,
                    options=entity.options,
                    dependencies=tuple(dict.fromkeys(deps)),
                )
            )
            order += 1

    total_entities = schema.entity_count
    return GenerationPlan(
        steps=tuple(topological_sort(steps)),
        total_modules=len(schema.modules),
        total_entities=total_entities,
        estimated_files=total_entities * FILES_PER_ENTITY,
    )


def topological_sort(steps: list[GenerationStep]) -> list[GenerationStep]:
    """
    Order steps so every entity comes after the entities it depends on.

    Depth-first visit; module steps are visited before entity steps and each
    group keeps its input order where dependencies allow.

    Raises:
        CircularDependencyError: when entity dependencies form a cycle
    """
    entity_steps = [s for s in steps if isinstance(s, EntityStep)]
    ordered: list[GenerationStep] = []
    visited: set[str] = set()
    visiting: list[GenerationStep] = []

    def resolve(reference: str) -> EntityStep | None:
        match = next(
            (s for s in entity_steps if s.name == reference or s.qualified_name == reference),
            None,
        )
        if match is None and "." in reference:
            bare = reference.split(".")[-1]
            match = next((s for s in entity_steps if s.name == bare), None)
        return match

    def visit(step: GenerationStep) -> None:
        if step.key in visited:
            return

        keys = [s.key for s in visiting]
        if step.key in keys:
            cycle = visiting[keys.index(step.key):] + [step]
            raise CircularDependencyError([s.qualified_name for s in cycle])

        visiting.append(step)
        for reference in step.dependencies:
            target = resolve(reference)
            # self-references need no ordering; dangling ones were rejected by validation
            if target is None or target.key == step.key:
                continue
            visit(target)
        visiting.pop()

        visited.add(step.key)
        ordered.append(step)

    for step in steps:
        if isinstance(step, ModuleStep):
            visit(step)
    for step in entity_steps:
        visit(step)

    return ordered
