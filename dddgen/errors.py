"""
dddgen Errors - Structured exceptions for schema loading and generation

Every error carries a stable code, optional details and a suggestion that the
CLI prints under the message.
"""

from __future__ import annotations

from typing import Any


ERROR_CODES = {
    # Validation errors (1xxx)
    "VALIDATION_ERROR": "E1000",
    "SCHEMA_INVALID": "E1005",
    # File errors (2xxx)
    "FILE_NOT_FOUND": "E2000",
    "FILE_EXISTS": "E2001",
    "FILE_READ_ERROR": "E2003",
    # Entity errors (3xxx)
    "DUPLICATE_ENTITY": "E3001",
    # Module errors (4xxx)
    "MODULE_NOT_FOUND": "E4000",
    # Relation errors (5xxx)
    "CIRCULAR_DEPENDENCY": "E5001",
    # Generation errors (6xxx)
    "GENERATION_ERROR": "E6000",
    "STEP_FAILED": "E6001",
    "TRANSACTION_ERROR": "E6002",
    "CONFIGURATION_ERROR": "E6003",
}


class DddError(Exception):
    """Base error with a code, details and a suggestion."""

    code_name = "GENERATION_ERROR"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggestion = suggestion

    @property
    def code(self) -> str:
        return ERROR_CODES[self.code_name]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class SchemaNotFoundError(DddError):
    code_name = "FILE_NOT_FOUND"

    def __init__(self, path: str):
        super().__init__(
            f"Schema file not found: {path}",
            details={"path": path},
            suggestion="Create one with: dddgen batch-init",
        )


class SchemaParseError(DddError):
    code_name = "FILE_READ_ERROR"

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Failed to parse schema file {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class SchemaValidationError(DddError):
    """Raised with every structural problem found in a schema."""

    code_name = "SCHEMA_INVALID"

    def __init__(self, errors: list[str]):
        super().__init__(
            "Schema validation failed:\n" + "\n".join(f"  • {e}" for e in errors),
            details={"errors": list(errors)},
        )
        self.errors = list(errors)


class SchemaExistsError(DddError):
    code_name = "FILE_EXISTS"

    def __init__(self, path: str):
        super().__init__(
            f"File already exists: {path}",
            details={"path": path},
            suggestion="Use --force to overwrite or choose a different name",
        )


class CircularDependencyError(DddError):
    code_name = "CIRCULAR_DEPENDENCY"

    def __init__(self, chain: list[str]):
        super().__init__(
            f"Circular dependency detected: {' -> '.join(chain)}",
            details={"chain": list(chain)},
            suggestion="Break the cycle by making one side of the relation one-to-many",
        )
        self.chain = list(chain)


class UnknownModuleError(DddError):
    code_name = "MODULE_NOT_FOUND"

    def __init__(self, module: str):
        super().__init__(
            f"Module not found: {module}",
            details={"module": module},
            suggestion=f"Declare the module '{module}' in the schema before its entities",
        )


class DuplicateEntityError(DddError):
    code_name = "DUPLICATE_ENTITY"

    def __init__(self, entity: str, existing_path: str):
        super().__init__(
            f"Entity already exists: {entity}",
            details={"entity": entity, "existing_path": existing_path},
            suggestion="Use a different name or remove the existing entity first",
        )


class GenerationError(DddError):
    code_name = "GENERATION_ERROR"


class StepExecutionError(DddError):
    """A single plan step failed; wraps the generator's exception."""

    code_name = "STEP_FAILED"

    def __init__(self, step: Any, cause: BaseException):
        super().__init__(
            f"Step '{step.qualified_name}' failed: {cause}",
            details={"step": step.key},
        )
        self.step = step
        self.cause = cause


class TransactionError(DddError):
    code_name = "TRANSACTION_ERROR"


class ConfigurationError(DddError):
    code_name = "CONFIGURATION_ERROR"

    def __init__(self, message: str, key: str | None = None):
        super().__init__(
            message,
            details={"key": key},
            suggestion="Check your .dddrc.json configuration file",
        )
