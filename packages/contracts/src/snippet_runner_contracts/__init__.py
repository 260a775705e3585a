from __future__ import annotations

from .errors import ContractsError, ContractsResourceError, ManifestValidationError
from .manifest import validate_boot_manifest_dict, validate_boot_manifest_json
from .resources import (
    BOOT_SCHEMA_REL,
    SCHEMA_VERSION_REL,
    boot_schema,
    read_json,
    read_text,
    schema_version_int,
)

__all__ = [
    "ContractsError",
    "ContractsResourceError",
    "ManifestValidationError",
    "read_text",
    "read_json",
    "boot_schema",
    "schema_version_int",
    "BOOT_SCHEMA_REL",
    "SCHEMA_VERSION_REL",
    "validate_boot_manifest_dict",
    "validate_boot_manifest_json",
]
