"""
Validation utilities.

Uses jsonschema for parameter schemas, capability arguments, extraction
results and configuration files.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from .errors import InvalidSchemaError

_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def error(cls, error: str) -> ValidationResult:
        return cls(valid=False, errors=[error])

    def __bool__(self) -> bool:
        return self.valid

    def message(self) -> str:
        return "; ".join(self.errors)


def check_schema(schema: Any, *, owner: str | None = None) -> None:
    """
    Ensure ``schema`` is a well-formed JSON Schema object.

    Raises:
        InvalidSchemaError: The schema is not a dict or violates the metaschema.
    """
    label = f" for {owner}" if owner else ""
    if not isinstance(schema, dict):
        raise InvalidSchemaError(f"Parameter schema{label} must be an object, got {type(schema).__name__}")
    try:
        Draft202012Validator.check_schema(schema)
    except SchemaError as exc:
        raise InvalidSchemaError(f"Invalid parameter schema{label}: {exc.message}", cause=exc) from exc
    if schema.get("type", "object") != "object":
        raise InvalidSchemaError(f"Parameter schema{label} must describe an object")


def validate_against_schema(instance: Any, schema: dict[str, Any]) -> ValidationResult:
    """
    Validate ``instance`` against ``schema`` and collect every error.
    """
    validator = Draft202012Validator(schema)
    errors = []
    for err in sorted(validator.iter_errors(instance), key=lambda e: list(e.path)):
        location = "/".join(str(p) for p in err.path)
        errors.append(f"{location}: {err.message}" if location else err.message)
    if errors:
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult.ok()


def validate_capability_name(name: Any) -> ValidationResult:
    """Capability names must be 1-64 characters of letters, digits, '_' or '-'."""
    if not isinstance(name, str) or not _NAME_PATTERN.match(name):
        return ValidationResult.error(f"Invalid capability name: {name!r}")
    return ValidationResult.ok()


__all__ = [
    "ValidationResult",
    "check_schema",
    "validate_against_schema",
    "validate_capability_name",
]
