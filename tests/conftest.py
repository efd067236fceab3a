"""Shared pytest fixtures for the dddgen test suite.

Provides reusable fixtures for:
- Raw and modeled batch schemas
- Schema files written to a temporary project
- A recording generator that stands in for the NestJS generator
"""

from __future__ import annotations

import copy
import io
import json
from pathlib import Path
from typing import Any

import pytest
import yaml
from rich.console import Console

from dddgen.reporter import PlanReporter
from dddgen.schema import BatchSchema, EntityOptions, build_sample_schema


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_schema_dict() -> dict[str, Any]:
    """The users/posts sample schema as a raw dict."""
    return copy.deepcopy(build_sample_schema())


@pytest.fixture
def sample_schema(sample_schema_dict) -> BatchSchema:
    return BatchSchema.model_validate(sample_schema_dict)


@pytest.fixture
def independent_schema_dict() -> dict[str, Any]:
    """One module with three unrelated entities."""
    return {
        "version": "1.0",
        "modules": [
            {
                "name": "catalog",
                "entities": [
                    {"name": "Product", "fields": ["title:string"]},
                    {"name": "Category", "fields": ["label:string"]},
                    {"name": "Brand", "fields": ["name:string"]},
                ],
            }
        ],
    }


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary target project directory."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    return project_dir


@pytest.fixture
def write_schema(tmp_project_dir):
    """Write a raw schema dict into the project as YAML or JSON."""

    def _write(data: Any, filename: str = "ddd-batch.yaml") -> Path:
        path = tmp_project_dir / filename
        if filename.endswith(".json"):
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        else:
            path.write_text(yaml.dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class RecordingGenerator:
    """Generator double that records calls and can fail on chosen names."""

    def __init__(self, fail_on: set[str] | None = None, scope=None):
        self.calls: list[tuple[str, str]] = []
        self.fail_on = fail_on or set()
        self.scope = scope

    def generate_module(self, name: str, *, base_path: Path, shared: bool = False) -> None:
        self._maybe_fail(name)
        self.calls.append(("module", name))
        if self.scope is not None:
            self.scope.write_file(Path(base_path) / "out" / name / "module.ts", name)

    def generate_entity(
        self,
        name: str,
        *,
        base_path: Path,
        module: str,
        fields: str,
        options: EntityOptions,
        install_deps: bool = False,
    ) -> None:
        self._maybe_fail(name)
        self.calls.append(("entity", f"{module}.{name}"))
        if self.scope is not None:
            self.scope.write_file(Path(base_path) / "out" / module / f"{name}.ts", fields)

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise RuntimeError(f"template error in {name}")


@pytest.fixture
def recording_generator() -> RecordingGenerator:
    return RecordingGenerator()


@pytest.fixture
def quiet_reporter() -> PlanReporter:
    """Reporter writing to an in-memory console."""
    return PlanReporter(Console(file=io.StringIO(), width=120, color_system=None))


@pytest.fixture
def generator_factory():
    """The recording generator class, for tests that need failures or a scope."""
    return RecordingGenerator
