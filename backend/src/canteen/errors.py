"""Error types raised by the canteen service.

All errors derive from CanteenError and carry a machine-readable ``kind``
plus the HTTP status the API layer renders them with:

- ConfigurationError / SchemaLoadError: fatal, raised before serving traffic
- ValidationFailed: 400, carries the accumulated field messages
- AuthenticationRequired: 401, no principal on a gated action
- Forbidden: 403, principal present but disallowed
- NotFound: 404, target row or entity absent
- StorageError: 500, database failure (never retried)
"""

from __future__ import annotations

from typing import Any


class CanteenError(Exception):
    """Base exception for all canteen errors.

    Attributes:
        message: Human-readable message
        kind: Machine-readable error kind
        status_code: HTTP status used when rendered by the API
    """

    kind = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind}


class ConfigurationError(CanteenError):
    """Startup configuration is missing or invalid."""

    kind = "configuration_error"


class SchemaLoadError(ConfigurationError):
    """An entity document could not be found, parsed or accepted."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(f"{source}: {message}" if source else message)
        self.source = source


class ValidationFailed(CanteenError):
    """Input failed field validation.

    ``items`` is populated for batch requests and maps each rejected
    element index to its own error list.
    """

    kind = "validation_error"
    status_code = 400

    def __init__(
        self,
        errors: list[str],
        message: str = "Validation failed",
        items: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors
        self.items = items

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["errors"] = self.errors
        if self.items is not None:
            body["items"] = self.items
        return body


class AuthenticationRequired(CanteenError):
    kind = "authentication_required"
    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class Forbidden(CanteenError):
    kind = "forbidden"
    status_code = 403

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message)


class NotFound(CanteenError):
    kind = "not_found"
    status_code = 404

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class StorageError(CanteenError):
    """The storage backend rejected or failed an operation."""

    kind = "storage_error"
    status_code = 500
