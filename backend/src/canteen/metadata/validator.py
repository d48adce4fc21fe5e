"""
JSON Schema validation for entity documents.

Validates declarative entity documents (YAML or JSON) against
``schemas/entity.schema.json`` before they are resolved.

Usage:
    from canteen.metadata.validator import validate_entities_dir

    issues = validate_entities_dir(Path("metadata/entities"))
    for issue in issues:
        print(issue)
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

_SCHEMAS_DIR = Path(__file__).parent / "schemas"
ENTITY_SCHEMA = "entity.schema.json"


@dataclass
class ValidationIssue:
    """A single validation finding for an entity document."""

    file: Path
    message: str
    path: str = ""  # location within the document, e.g. "fields/price/minimum"

    def describe(self) -> str:
        loc = f"{self.path}: " if self.path else ""
        return f"{loc}{self.message}"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[ERROR] {self.file}{loc}: {self.message}"


@lru_cache(maxsize=1)
def _entity_validator() -> Draft202012Validator:
    with (_SCHEMAS_DIR / ENTITY_SCHEMA).open() as fh:
        schema = json.load(fh)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def validate_document(doc: Any, source: Path) -> list[ValidationIssue]:
    """Validate an already-parsed entity document.

    Returns:
        A list of ValidationIssue objects (empty on success).
    """
    if doc is None:
        return [ValidationIssue(file=source, message="File is empty or contains only whitespace")]

    validator = _entity_validator()
    return [
        ValidationIssue(file=source, message=error.message, path=_json_path(error))
        for error in sorted(validator.iter_errors(doc), key=_json_path)
    ]


def validate_entity_file(path: Path) -> list[ValidationIssue]:
    """Parse and validate a single entity document."""
    try:
        with path.open(encoding="utf-8") as fh:
            doc = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return [ValidationIssue(file=path, message=f"Parse error: {exc}")]
    return validate_document(doc, path)


def validate_entities_dir(entities_dir: Path) -> list[ValidationIssue]:
    """
    Validate every entity document under *entities_dir*.

    Returns:
        A flat list of ValidationIssue objects across all files.
        Empty list means all files are valid.
    """
    if not entities_dir.is_dir():
        return [
            ValidationIssue(
                file=entities_dir,
                message=f"Entities directory does not exist: {entities_dir}",
            )
        ]

    issues: list[ValidationIssue] = []
    for path in sorted(entities_dir.iterdir()):
        if path.suffix in (".yaml", ".yml", ".json"):
            issues.extend(validate_entity_file(path))
    return issues
