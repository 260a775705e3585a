from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Iterable

from jsonschema import Draft202012Validator

from .errors import ManifestValidationError
from .resources import boot_schema


@lru_cache(maxsize=1)
def validator() -> Draft202012Validator:
    return Draft202012Validator(boot_schema())


def format_errors(errors: Iterable[Any]) -> str:
    lines: list[str] = []
    for e in errors:
        path = (
            ".".join(str(p) for p in e.path) if getattr(e, "path", None) else "<root>"
        )
        lines.append(f"- {path}: {e.message}")
    return "\n".join(lines)


def validate_boot_manifest_dict(obj: dict[str, Any]) -> None:
    """
    Validate a boot manifest object against the shipped JSON schema.
    Raises ManifestValidationError with a readable message on failure.
    """
    v = validator()
    errs = sorted(v.iter_errors(obj), key=lambda e: list(getattr(e, "path", [])))
    if errs:
        raise ManifestValidationError(
            "Boot manifest validation failed:\n" + format_errors(errs)
        )


def validate_boot_manifest_json(raw: str | bytes) -> dict[str, Any]:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ManifestValidationError(f"Boot manifest is not UTF-8: {e}") from e

    try:
        obj = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ManifestValidationError(f"Boot manifest is not valid JSON: {e}") from e

    if not isinstance(obj, dict):
        raise ManifestValidationError(
            f"Boot manifest must be a JSON object, got {type(obj).__name__}"
        )

    validate_boot_manifest_dict(obj)
    return obj
