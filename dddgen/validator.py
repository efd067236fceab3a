"""
dddgen Schema Validator - Structural checks over a parsed schema

Works on the raw parsed document (dicts and lists straight from YAML/JSON) so
that every problem can be reported in one pass, before any model is built.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


RELATION_TYPES = ("one-to-one", "one-to-many", "many-to-one", "many-to-many")


@dataclass
class ValidationResult:
    """Outcome of schema validation."""

    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return len(self.errors) == 0


def validate_schema(raw: Any) -> ValidationResult:
    """
    Validate a parsed schema document.

    Checks run in a fixed order and accumulate; nothing short-circuits except
    a root that is not a mapping at all.
    """
    if not isinstance(raw, Mapping):
        return ValidationResult(errors=["Schema root must be a mapping"])

    errors: list[str] = []

    if raw.get("version") in (None, ""):
        errors.append("Missing version field")

    modules = raw.get("modules")
    if not isinstance(modules, list) or not modules:
        errors.append("Missing or invalid modules array")
        modules = []

    seen_modules: set[str] = set()
    for index, module in enumerate(modules):
        if not isinstance(module, Mapping):
            errors.append(f"Module #{index + 1} must be a mapping")
            continue
        _check_module(module, errors)

        name = module.get("name")
        if isinstance(name, str) and name:
            if name in seen_modules:
                errors.append(f"Duplicate module name: {name}")
            seen_modules.add(name)

    relations = raw.get("relations")
    if relations is not None:
        if not isinstance(relations, list):
            errors.append("Invalid relations array")
        else:
            known = known_entity_names(modules)
            for index, relation in enumerate(relations):
                _check_relation(index, relation, known, errors)

    return ValidationResult(errors=errors)


def known_entity_names(modules: list[Any]) -> set[str]:
    """Collect ``module.Entity`` and bare ``Entity`` names from raw modules."""
    names: set[str] = set()
    for module in modules:
        if not isinstance(module, Mapping):
            continue
        entities = module.get("entities")
        if not isinstance(entities, list):
            continue
        for entity in entities:
            if isinstance(entity, Mapping) and entity.get("name"):
                names.add(f"{module.get('name')}.{entity['name']}")
                names.add(str(entity["name"]))
    return names


def is_known_reference(reference: str, known: set[str]) -> bool:
    """A reference resolves as written or by its last dot-segment."""
    return reference in known or reference.split(".")[-1] in known


# ═══════════════════════════════════════════════════════════════════════════
# SECTION CHECKS
# ═══════════════════════════════════════════════════════════════════════════


def _check_module(module: Mapping[str, Any], errors: list[str]) -> None:
    name = module.get("name")
    if not name:
        errors.append("Module missing name")
    elif not isinstance(name, str):
        errors.append("Module name must be a string")

    entities = module.get("entities")
    if not isinstance(entities, list):
        errors.append(f'Module "{name}" missing entities array')
        return

    seen: set[str] = set()
    for entity in entities:
        if not isinstance(entity, Mapping):
            errors.append(f'Entity in module "{name}" must be a mapping')
            continue
        entity_name = entity.get("name")
        if not entity_name:
            errors.append(f'Entity in module "{name}" missing name')
        elif not isinstance(entity_name, str):
            errors.append(f'Entity name in module "{name}" must be a string')
        elif entity_name in seen:
            errors.append(f'Duplicate entity "{entity_name}" in module "{name}"')
        else:
            seen.add(entity_name)

        fields = entity.get("fields")
        if fields is None:
            errors.append(f'Entity "{entity_name}" missing fields')
        else:
            _check_fields(entity_name, fields, errors)


def _check_fields(entity_name: Any, fields: Any, errors: list[str]) -> None:
    if isinstance(fields, Mapping):
        tokens = [str(name) for name in fields]
    elif isinstance(fields, list):
        tokens = []
        for item in fields:
            if isinstance(item, str):
                tokens.append(item)
            else:
                errors.append(f'Entity "{entity_name}" has invalid field "{item!r}"')
    elif isinstance(fields, str):
        tokens = fields.split()
    else:
        errors.append(f'Entity "{entity_name}" has invalid fields')
        return

    for token in tokens:
        if not token.split(":")[0].strip():
            errors.append(f'Entity "{entity_name}" has invalid field "{token}"')


def _check_relation(index: int, relation: Any, known: set[str], errors: list[str]) -> None:
    if not isinstance(relation, Mapping):
        errors.append(f"Relation #{index + 1} must be a mapping")
        return

    for end in ("from", "to"):
        reference = relation.get(end)
        if not reference:
            errors.append(f'Relation missing "{end}"')
        elif not is_known_reference(str(reference), known):
            errors.append(f"Relation references unknown entity: {reference}")

    kind = relation.get("type")
    if kind not in RELATION_TYPES:
        errors.append(
            f'Relation "{relation.get("from")}" -> "{relation.get("to")}" has invalid type "{kind}"'
        )
