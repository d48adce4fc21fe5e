"""Field-level validation of entity input.

Usage:
    from canteen.validation import validate, apply_defaults

    result = validate(schema, payload)
    if not result.valid:
        raise ValidationFailed(result.errors)
    row = apply_defaults(schema, payload)
"""

from canteen.validation.types import ValidationResult
from canteen.validation.validator import (
    DATE_PATTERN,
    EMAIL_PATTERN,
    FieldConstraintValidator,
    apply_defaults,
    validate,
)

__all__ = [
    "ValidationResult",
    "DATE_PATTERN",
    "EMAIL_PATTERN",
    "FieldConstraintValidator",
    "apply_defaults",
    "validate",
]
