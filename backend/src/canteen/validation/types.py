"""Result types for entity field validation."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one input object against an entity schema.

    Attributes:
        valid: True when no errors were found
        errors: Human-readable messages, one per failed check, in field order
    """

    valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=errors)
