"""
config/validator.py: JSON Schema validation of behavior configuration documents.

The schema covers document shape only: allowed keys, value types and the
supported views. Column element names and expression syntax are checked later
by the loader and the expression compiler.

Usage:
    from colderive.config.validator import validate_document

    for issue in validate_document(data, source=path):
        print(issue)
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

_SCHEMA_PATH = Path(__file__).parent / "schemas" / "config.schema.json"


@dataclass
class ValidationIssue:
    """A single schema finding for a configuration document."""

    source: str
    message: str
    path: str = ""  # e.g. "behaviors[0]/Derive/View"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"{self.source}{loc}: {self.message}"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _validator() -> Draft202012Validator:
    with _SCHEMA_PATH.open() as fh:
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


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_document(data: Any, *, source: Path | str = "<config>") -> list[ValidationIssue]:
    """
    Validate a parsed configuration document against the configuration schema.

    Args:
        data:   Document as returned by ``yaml.safe_load``.
        source: File name used in issue messages.

    Returns:
        A list of :class:`ValidationIssue` objects (empty on success).
    """
    errors = sorted(_validator().iter_errors(data), key=lambda e: list(map(str, e.path)))
    return [
        ValidationIssue(source=str(source), message=error.message, path=_json_path(error))
        for error in errors
    ]
