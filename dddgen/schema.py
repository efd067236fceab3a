"""
dddgen Schema Models - Pydantic models for batch generation schemas

A batch schema groups entities into modules and declares relations between
them. Entity fields arrive either as a list of ``name:type:modifiers`` tokens
or as a ``name -> type`` map; both are normalized into ``FieldSpec`` values at
the model boundary.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_serializer, field_validator

from dddgen.errors import (
    SchemaExistsError,
    SchemaNotFoundError,
    SchemaParseError,
    SchemaValidationError,
)
from dddgen.validator import validate_schema


# ═══════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════


class RelationKind(str, Enum):
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"

    @property
    def owns_foreign_key(self) -> bool:
        """The ``from`` side holds a foreign key to the ``to`` side."""
        return self in (RelationKind.MANY_TO_ONE, RelationKind.ONE_TO_ONE)


# ═══════════════════════════════════════════════════════════════════════════
# FIELD MODELS
# ═══════════════════════════════════════════════════════════════════════════


class FieldSpec(BaseModel):
    """A single entity field: ``name:type:modifier1:modifier2``"""

    name: str
    type: str = "string"
    modifiers: tuple[str, ...] = ()

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, token: str) -> "FieldSpec":
        """Parse a positional field token."""
        parts = token.strip().split(":")
        return cls(
            name=parts[0],
            type=parts[1] if len(parts) > 1 and parts[1] else "string",
            modifiers=tuple(p for p in parts[2:] if p),
        )

    @classmethod
    def from_mapping(cls, name: str, definition: Any) -> "FieldSpec":
        """Build a field from a map entry such as ``email: "string:unique"``."""
        if definition is None:
            return cls(name=name)
        return cls.parse(f"{name}:{definition}")

    @property
    def token(self) -> str:
        return ":".join([self.name, self.type, *self.modifiers])

    @property
    def is_optional(self) -> bool:
        return "optional" in self.modifiers

    @property
    def is_unique(self) -> bool:
        return "unique" in self.modifiers

    @property
    def is_array(self) -> bool:
        return self.type.endswith("[]")

    @property
    def base_type(self) -> str:
        return self.type[:-2] if self.is_array else self.type


def normalize_fields(value: Any) -> list[FieldSpec]:
    """Normalize either field representation into an ordered ``FieldSpec`` list."""
    if isinstance(value, str):
        return [FieldSpec.parse(token) for token in value.split()]
    if isinstance(value, Mapping):
        return [FieldSpec.from_mapping(str(name), definition) for name, definition in value.items()]
    fields = []
    for item in value or []:
        if isinstance(item, FieldSpec):
            fields.append(item)
        elif isinstance(item, Mapping):
            fields.append(FieldSpec.model_validate(item))
        else:
            fields.append(FieldSpec.parse(str(item)))
    return fields


# ═══════════════════════════════════════════════════════════════════════════
# ENTITY & MODULE
# ═══════════════════════════════════════════════════════════════════════════


class EntityOptions(BaseModel):
    """Per-entity generation switches"""

    with_tests: bool | None = Field(None, alias="withTests")
    with_graphql: bool | None = Field(None, alias="withGraphql")
    with_events: bool | None = Field(None, alias="withEvents")
    with_queries: bool | None = Field(None, alias="withQueries")

    model_config = {"populate_by_name": True, "frozen": True}


class BatchEntity(BaseModel):
    """Entity definition inside a module"""

    name: str
    fields: tuple[FieldSpec, ...]
    options: EntityOptions = EntityOptions()

    model_config = {"frozen": True}

    @field_validator("fields", mode="before")
    @classmethod
    def normalize(cls, v: Any) -> list[FieldSpec]:
        return normalize_fields(v)

    @field_validator("options", mode="before")
    @classmethod
    def default_options(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_serializer("fields")
    def serialize_fields(self, fields: tuple[FieldSpec, ...]) -> list[str]:
        return [f.token for f in fields]

    @property
    def field_string(self) -> str:
        """Space-joined token string handed to the entity generator."""
        return " ".join(f.token for f in self.fields)


class BatchModule(BaseModel):
    """A named group of entities"""

    name: str
    entities: tuple[BatchEntity, ...]
    shared: bool = False

    model_config = {"frozen": True}


class BatchRelation(BaseModel):
    """Relation between two entities, ``module.Entity`` or bare ``Entity``"""

    from_: str = Field(alias="from")
    to: str
    type: RelationKind
    field: str | None = None

    model_config = {"populate_by_name": True, "frozen": True}


class ProjectMeta(BaseModel):
    """Target project metadata"""

    name: str
    orm: Literal["typeorm", "prisma"] = "typeorm"
    database: str = "postgres"

    model_config = {"frozen": True}


# ═══════════════════════════════════════════════════════════════════════════
# COMPLETE SCHEMA
# ═══════════════════════════════════════════════════════════════════════════


class BatchSchema(BaseModel):
    """Complete batch generation schema"""

    version: str
    project: ProjectMeta | None = None
    modules: tuple[BatchModule, ...]
    relations: tuple[BatchRelation, ...] = ()

    model_config = {"frozen": True}

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        # YAML reads `version: 1.0` as a float
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("relations", mode="before")
    @classmethod
    def default_relations(cls, v: Any) -> Any:
        return () if v is None else v

    @property
    def entity_count(self) -> int:
        return sum(len(m.entities) for m in self.modules)

    def known_entity_names(self) -> set[str]:
        """Both ``module.Entity`` and bare ``Entity`` for every entity."""
        names: set[str] = set()
        for module in self.modules:
            for entity in module.entities:
                names.add(f"{module.name}.{entity.name}")
                names.add(entity.name)
        return names

    def get_module(self, name: str) -> BatchModule | None:
        return next((m for m in self.modules if m.name == name), None)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2) + "\n"


# ═══════════════════════════════════════════════════════════════════════════
# LOADING
# ═══════════════════════════════════════════════════════════════════════════


def parse_schema_text(content: str, suffix: str, source: str = "<string>") -> Any:
    """
    Parse raw schema text by file extension.

    ``.json`` is parsed strictly, ``.yaml``/``.yml`` as YAML, anything else is
    tried as YAML first and then as JSON.
    """
    suffix = suffix.lower()
    try:
        if suffix == ".json":
            return json.loads(content)
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(content)
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError:
            return json.loads(content)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise SchemaParseError(source, str(exc)) from exc


def load_raw_schema(path: str | Path) -> Any:
    """Read and parse a schema file without validating it."""
    path = Path(path)
    if not path.is_file():
        raise SchemaNotFoundError(str(path))
    try:
        content = path.read_text(encoding="utf-8")
    except (UnicodeDecodeError, OSError) as exc:
        raise SchemaParseError(str(path), str(exc)) from exc
    return parse_schema_text(content, path.suffix, source=str(path))


def schema_from_raw(raw: Any) -> BatchSchema:
    """Validate a parsed schema and build the model, reporting every problem."""
    result = validate_schema(raw)
    if not result.valid:
        raise SchemaValidationError(result.errors)
    try:
        return BatchSchema.model_validate(raw)
    except ValidationError as exc:
        raise SchemaValidationError(
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        ) from exc


def load_schema(path: str | Path) -> BatchSchema:
    """Load, validate and model a schema file."""
    return schema_from_raw(load_raw_schema(path))


# ═══════════════════════════════════════════════════════════════════════════
# SAMPLE SCHEMA
# ═══════════════════════════════════════════════════════════════════════════


def build_sample_schema() -> dict[str, Any]:
    """Example schema with two modules and three relations."""
    return {
        "version": "1.0",
        "project": {
            "name": "my-project",
            "orm": "typeorm",
            "database": "postgres",
        },
        "modules": [
            {
                "name": "users",
                "entities": [
                    {
                        "name": "User",
                        "fields": {
                            "email": "string:unique",
                            "password": "string",
                            "firstName": "string:optional",
                            "lastName": "string:optional",
                            "isActive": "boolean",
                        },
                        "options": {"withTests": True, "withGraphql": False},
                    },
                    {
                        "name": "Profile",
                        "fields": [
                            "bio:text:optional",
                            "avatarUrl:string:optional",
                            "website:string:optional",
                        ],
                    },
                ],
            },
            {
                "name": "posts",
                "entities": [
                    {
                        "name": "Post",
                        "fields": {
                            "title": "string",
                            "content": "text",
                            "publishedAt": "Date:optional",
                            "status": "string",
                        },
                        "options": {"withEvents": True},
                    },
                    {
                        "name": "Comment",
                        "fields": ["content:text", "authorName:string"],
                    },
                ],
            },
        ],
        "relations": [
            {"from": "users.Profile", "to": "users.User", "type": "one-to-one", "field": "user"},
            {"from": "posts.Post", "to": "users.User", "type": "many-to-one", "field": "author"},
            {"from": "posts.Comment", "to": "posts.Post", "type": "many-to-one", "field": "post"},
        ],
    }


def write_sample_schema(
    output: str | Path,
    base_path: str | Path | None = None,
    overwrite: bool = False,
) -> Path:
    """
    Write the sample schema as JSON (``.json``) or YAML (anything else).

    Returns:
        The path that was written
    """
    target = Path(output)
    if not target.is_absolute():
        target = Path(base_path or Path.cwd()) / target

    if target.exists() and not overwrite:
        raise SchemaExistsError(str(target))

    sample = build_sample_schema()
    if target.suffix.lower() == ".json":
        content = json.dumps(sample, indent=2) + "\n"
    else:
        content = yaml.dump(sample, default_flow_style=False, sort_keys=False)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target
