"""Field constraint validation and defaulting for entity input.

Each declared field gets a FieldConstraintValidator built from its
schema definition. Validation is pure: it reads the input, never mutates
it, and accumulates every failure instead of stopping at the first.

Checks per field:
- required: absent fails on create, null fails on create and update
- type: string, number, boolean or json (object/array)
- strings: minLength, enum, email/date formats
- numbers: inclusive minimum and maximum
"""

import copy
import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Any

from canteen.core.types import EMAIL_MAX_LENGTH
from canteen.metadata.loader import EntityField, EntitySchema
from canteen.validation.types import ValidationResult

# Email: Basic RFC 5322 compliant pattern
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_MISSING = object()


def _format_bound(value: float) -> str:
    """Render a bound the way it was written: 0 not 0.0."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class FieldConstraintValidator:
    """Validates a single field value against its declared constraints."""

    field: EntityField

    def validate(self, value: Any, is_update: bool = False) -> list[str]:
        name = self.field.name

        if value is _MISSING:
            if self.field.required and not is_update:
                return [f"Field '{name}' is required"]
            return []
        if value is None:
            # Required columns are NOT NULL in either mode
            if self.field.required:
                return [f"Field '{name}' is required"]
            return []

        if self.field.type == "number":
            return self._validate_number(value)
        if self.field.type == "boolean":
            if not isinstance(value, bool):
                return [f"Field '{name}' must be a boolean"]
            return []
        if self.field.type == "json":
            if not isinstance(value, (dict, list)):
                return [f"Field '{name}' must be a valid JSON object or array"]
            return []
        # string, and any unrecognized type, which is stored as text
        return self._validate_string(value)

    def _validate_number(self, value: Any) -> list[str]:
        name = self.field.name
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            return [f"Field '{name}' must be a number"]

        errors = []
        if self.field.minimum is not None and value < self.field.minimum:
            errors.append(f"Field '{name}' must be at least {_format_bound(self.field.minimum)}")
        if self.field.maximum is not None and value > self.field.maximum:
            errors.append(f"Field '{name}' must be at most {_format_bound(self.field.maximum)}")
        return errors

    def _validate_string(self, value: Any) -> list[str]:
        name = self.field.name
        if not isinstance(value, str):
            return [f"Field '{name}' must be a string"]

        errors = []
        if self.field.min_length and len(value) < self.field.min_length:
            errors.append(f"Field '{name}' must be at least {self.field.min_length} characters")
        if self.field.enum is not None and value not in self.field.enum:
            errors.append(f"Field '{name}' must be one of: {', '.join(self.field.enum)}")

        format_error = self._validate_format(value)
        if format_error:
            errors.append(format_error)
        return errors

    def _validate_format(self, value: str) -> str | None:
        name = self.field.name
        if self.field.format == "email":
            if len(value) > EMAIL_MAX_LENGTH or not EMAIL_PATTERN.match(value):
                return f"Field '{name}' must be a valid email address"
        elif self.field.format == "date":
            if not DATE_PATTERN.match(value) or not _is_calendar_date(value):
                return f"Field '{name}' must be a valid date (YYYY-MM-DD)"
        return None


def _is_calendar_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def validate(schema: EntitySchema, data: dict[str, Any], is_update: bool = False) -> ValidationResult:
    """Validate input against every declared field of an entity.

    Implicit columns are server-managed and never validated; keys the
    schema does not declare are ignored.
    """
    errors: list[str] = []
    for field in schema.declared_fields:
        validator = FieldConstraintValidator(field)
        errors.extend(validator.validate(data.get(field.name, _MISSING), is_update=is_update))
    return ValidationResult.from_errors(errors)


def apply_defaults(schema: EntitySchema, data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with declared defaults filled in for absent keys.

    A key present with an explicit null keeps the null.
    """
    result = dict(data)
    for field in schema.declared_fields:
        if field.name not in result and field.has_default:
            result[field.name] = copy.deepcopy(field.default)
    return result
