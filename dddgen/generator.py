"""
dddgen Generator - Template-based NestJS module and entity generation

Uses Jinja2 templates shipped in ``dddgen/templates``. Every file goes through
a ``TransactionScope`` so a failed batch can be rolled back.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape

from dddgen.config import Settings
from dddgen.errors import DuplicateEntityError, GenerationError, UnknownModuleError
from dddgen.schema import EntityOptions, FieldSpec, normalize_fields
from dddgen.transaction import TransactionScope


logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# TEMPLATE HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def camel_case(s: str) -> str:
    """Convert to camelCase. Handles PascalCase input correctly."""
    s = re.sub(r"([a-z])([A-Z])", r"\1_\2", s)
    parts = s.replace("-", "_").split("_")
    return parts[0].lower() + "".join(p.capitalize() for p in parts[1:])


def pascal_case(s: str) -> str:
    """Convert to PascalCase."""
    parts = s.replace("-", "_").split("_")
    return "".join(p[0].upper() + p[1:] if p else "" for p in parts)


def snake_case(s: str) -> str:
    """Convert to snake_case."""
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s).lower()
    return s.lstrip("_").replace("-", "_")


def kebab_case(s: str) -> str:
    """Convert to kebab-case."""
    s = re.sub(r"[\s_]+", "-", s)
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", s).lower()
    s = re.sub(r"-+", "-", s)
    return s.strip("-")


def plural(s: str) -> str:
    """Simple English pluralization."""
    if s.endswith("y") and not s.endswith(("ay", "ey", "iy", "oy", "uy")):
        return s[:-1] + "ies"
    if s.endswith(("s", "x", "ch", "sh")):
        return s + "es"
    return s + "s"


# ═══════════════════════════════════════════════════════════════════════════
# TYPE CONVERSIONS
# ═══════════════════════════════════════════════════════════════════════════


_TS_TYPES = {
    "string": "string",
    "text": "string",
    "uuid": "string",
    "email": "string",
    "number": "number",
    "int": "number",
    "integer": "number",
    "float": "number",
    "decimal": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "date": "Date",
    "datetime": "Date",
    "json": "Record<string, unknown>",
}

_COLUMN_TYPES = {
    "string": "varchar",
    "text": "text",
    "uuid": "uuid",
    "email": "varchar",
    "number": "int",
    "int": "int",
    "integer": "int",
    "float": "float",
    "decimal": "decimal",
    "boolean": "boolean",
    "bool": "boolean",
    "date": "timestamp",
    "datetime": "timestamp",
    "json": "jsonb",
}

_PRISMA_TYPES = {
    "string": "String",
    "text": "String",
    "uuid": "String",
    "email": "String",
    "number": "Int",
    "int": "Int",
    "integer": "Int",
    "float": "Float",
    "decimal": "Decimal",
    "boolean": "Boolean",
    "bool": "Boolean",
    "date": "DateTime",
    "datetime": "DateTime",
    "json": "Json",
}

_VALIDATORS = {
    "string": "IsString",
    "text": "IsString",
    "email": "IsEmail",
    "uuid": "IsUUID",
    "number": "IsNumber",
    "int": "IsInt",
    "integer": "IsInt",
    "float": "IsNumber",
    "decimal": "IsNumber",
    "boolean": "IsBoolean",
    "bool": "IsBoolean",
    "date": "IsDate",
    "datetime": "IsDate",
}


def field_to_typescript(field: FieldSpec) -> str:
    """Convert field type to TypeScript type"""
    base = field.base_type.lower()
    if base == "enum" and field.modifiers:
        ts = " | ".join(f"'{v}'" for v in field.modifiers[0].split(","))
    else:
        ts = _TS_TYPES.get(base, "string")
    return f"{ts}[]" if field.is_array else ts


def field_to_column(field: FieldSpec) -> str:
    """Convert field type to a TypeORM column type"""
    if field.is_array:
        return "simple-array"
    return _COLUMN_TYPES.get(field.base_type.lower(), "varchar")


def field_to_prisma(field: FieldSpec) -> str:
    """Convert field to Prisma type"""
    prisma = _PRISMA_TYPES.get(field.base_type.lower(), "String")
    if field.is_array:
        return f"{prisma}[]"
    return f"{prisma}?" if field.is_optional else prisma


def field_validator_name(field: FieldSpec) -> str:
    return _VALIDATORS.get(field.base_type.lower(), "IsString")


def create_jinja_env(templates_dir: Path) -> Environment:
    """Create Jinja2 environment with custom filters."""

    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape([]),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )

    env.filters["camel_case"] = camel_case
    env.filters["pascal_case"] = pascal_case
    env.filters["snake_case"] = snake_case
    env.filters["kebab_case"] = kebab_case
    env.filters["plural"] = plural

    env.filters["ts_type"] = field_to_typescript
    env.filters["column_type"] = field_to_column
    env.filters["prisma_type"] = field_to_prisma
    env.filters["validator"] = field_validator_name

    return env


# ═══════════════════════════════════════════════════════════════════════════
# GENERATOR CAPABILITY
# ═══════════════════════════════════════════════════════════════════════════


class Generator(Protocol):
    """What the batch executor needs from a code generator."""

    def generate_module(self, name: str, *, base_path: Path, shared: bool = False) -> None:
        ...

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
        ...


@dataclass
class GeneratedFile:
    """Represents a generated file."""

    path: str  # Relative to the project root unless generated outside it
    template: str | None = None


MODULE_DIRECTORIES = {
    "application/commands": "CommandHandlers",
    "application/controllers": "Controllers",
    "application/domain/entities": "Entities",
    "application/domain/events": "Events",
    "application/domain/services": "Services",
    "application/domain/usecases": "UseCases",
    "application/dto/requests": "Requests",
    "application/dto/responses": "Responses",
    "application/queries": "Queries",
    "infrastructure/mappers": "Mappers",
    "infrastructure/orm-entities": "OrmEntities",
    "infrastructure/repositories": "Repositories",
}

# (template, output path relative to the module directory)
ENTITY_FILES = [
    ("entity/entity.ts.j2", "application/domain/entities/{file}.entity.ts"),
    ("entity/repository.ts.j2", "infrastructure/repositories/{file}.repository.ts"),
    ("entity/mapper.ts.j2", "infrastructure/mappers/{file}.mapper.ts"),
    ("entity/create-dto.ts.j2", "application/dto/requests/create-{file}.dto.ts"),
    ("entity/response-dto.ts.j2", "application/dto/responses/{file}.response.dto.ts"),
    ("entity/service.ts.j2", "application/domain/services/{file}.service.ts"),
    ("entity/controller.ts.j2", "application/controllers/{file}.controller.ts"),
]

ORM_ENTITY_FILES = {
    "typeorm": ("entity/orm-entity.typeorm.ts.j2", "infrastructure/orm-entities/{file}.orm-entity.ts"),
    "prisma": ("entity/orm-entity.prisma.j2", "infrastructure/orm-entities/{file}.prisma"),
}

OPTIONAL_FILES = {
    "with_tests": ("entity/service.spec.ts.j2", "application/domain/services/{file}.service.spec.ts"),
    "with_graphql": ("entity/resolver.ts.j2", "application/resolvers/{file}.resolver.ts"),
    "with_events": ("entity/created-event.ts.j2", "application/domain/events/{file}-created.event.ts"),
    "with_queries": ("entity/query.ts.j2", "application/queries/get-{file}.query.ts"),
}

BASE_PACKAGES = {
    "typeorm": ["@nestjs/typeorm", "typeorm", "class-validator", "class-transformer"],
    "prisma": ["@prisma/client", "class-validator", "class-transformer"],
}

OPTION_PACKAGES = {
    "with_graphql": ["@nestjs/graphql", "graphql"],
    "with_events": ["@nestjs/cqrs"],
    "with_queries": ["@nestjs/cqrs"],
}


# ═══════════════════════════════════════════════════════════════════════════
# NESTJS GENERATOR
# ═══════════════════════════════════════════════════════════════════════════


class NestGenerator:
    """
    Generates NestJS DDD modules and entities.

    Args:
        scope: Transaction scope that records every write
        settings: Project settings (ORM, module root, feature defaults)
        templates_dir: Path to Jinja2 templates. Defaults to package templates.
    """

    def __init__(
        self,
        scope: TransactionScope,
        settings: Settings | None = None,
        templates_dir: Path | None = None,
    ):
        if templates_dir is None:
            templates_dir = Path(__file__).parent / "templates"

        self.scope = scope
        self.settings = settings or Settings()
        self.env = create_jinja_env(templates_dir)
        self.files: list[GeneratedFile] = []
        self._installed: set[str] = set()

    def _render(self, template: str, context: dict[str, Any]) -> str:
        return self.env.get_template(template).render(**context)

    def _write(self, base_path: Path, target: Path, content: str, template: str | None = None) -> None:
        self.scope.write_file(target, content)
        # absolute module roots may sit outside the project
        path = target.relative_to(base_path) if target.is_relative_to(base_path) else target
        self.files.append(GeneratedFile(path=str(path), template=template))

    def module_path(self, base_path: Path, module: str) -> Path:
        return self.settings.modules_path(base_path) / kebab_case(module)

    # ═══════════════════════════════════════════════════════════════════════
    # MODULES
    # ═══════════════════════════════════════════════════════════════════════

    def generate_module(self, name: str, *, base_path: Path, shared: bool = False) -> None:
        """Create the module directory tree, module file and index barrels."""
        base_path = Path(base_path)
        module_dir = self.module_path(base_path, name)
        module_file = module_dir / f"{kebab_case(name)}.module.ts"

        if module_file.exists():
            logger.info("Module %s already exists, skipping", name)
            return

        logger.debug("Generating module %s in %s", name, module_dir)
        for directory, array_name in MODULE_DIRECTORIES.items():
            index_file = module_dir / directory / "index.ts"
            if not index_file.exists():
                self._write(base_path, index_file, f"export const {array_name} = [];\n")

        context = {
            "name": name,
            "shared": shared,
            "orm": self.settings.orm,
            "barrels": list(MODULE_DIRECTORIES.items()),
        }
        self._write(base_path, module_file, self._render("module/module.ts.j2", context), "module/module.ts.j2")

    # ═══════════════════════════════════════════════════════════════════════
    # ENTITIES
    # ═══════════════════════════════════════════════════════════════════════

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
        """Render the entity, its persistence layer, DTOs, service and controller."""
        base_path = Path(base_path)
        module_dir = self.module_path(base_path, module)
        if not module_dir.is_dir():
            raise UnknownModuleError(module)

        file_name = kebab_case(name)
        entity_file = module_dir / f"application/domain/entities/{file_name}.entity.ts"
        if entity_file.exists():
            raise DuplicateEntityError(name, str(entity_file))

        enabled = self._enabled_options(options)
        context = {
            "name": pascal_case(name),
            "module": module,
            "file": file_name,
            "fields": normalize_fields(fields),
            "orm": self.settings.orm,
            "options": enabled,
        }

        templates = list(ENTITY_FILES)
        templates.append(ORM_ENTITY_FILES[self.settings.orm])
        templates.extend(OPTIONAL_FILES[key] for key in sorted(enabled) if key in OPTIONAL_FILES)

        logger.debug("Generating entity %s.%s (%d files)", module, name, len(templates))
        for template, relative in templates:
            target = module_dir / relative.format(file=file_name)
            self._write(base_path, target, self._render(template, context), template)

        self._register_entity(module_dir, file_name)

        if install_deps:
            self.install_dependencies(base_path, enabled)

    def _enabled_options(self, options: EntityOptions) -> set[str]:
        defaults = {
            "with_tests": self.settings.features.tests,
            "with_events": self.settings.features.events,
        }
        enabled = set()
        for key, value in options.model_dump().items():
            if value if value is not None else defaults.get(key, False):
                enabled.add(key)
        return enabled

    def _register_entity(self, module_dir: Path, file_name: str) -> None:
        index_file = module_dir / "application/domain/entities/index.ts"
        existing = index_file.read_text(encoding="utf-8") if index_file.exists() else ""
        line = f"export * from './{file_name}.entity';\n"
        if line not in existing:
            self.scope.write_file(index_file, existing + line)

    def install_dependencies(self, base_path: Path, enabled: set[str]) -> None:
        """Install the npm packages the generated code imports."""
        packages = list(BASE_PACKAGES[self.settings.orm])
        for key in sorted(enabled):
            packages.extend(OPTION_PACKAGES.get(key, []))
        missing = [p for p in dict.fromkeys(packages) if p not in self._installed]
        if not missing:
            return

        logger.info("Installing %s", " ".join(missing))
        try:
            subprocess.run(
                ["npm", "install", "--save", *missing],
                cwd=base_path,
                check=True,
                capture_output=True,
                text=True,
            )
        except (OSError, subprocess.CalledProcessError) as exc:
            stderr = getattr(exc, "stderr", None) or str(exc)
            raise GenerationError(
                f"Dependency installation failed: {stderr.strip()}",
                details={"packages": missing},
            ) from exc
        self._installed.update(missing)
