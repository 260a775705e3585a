from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from snippet_runner.core.errors import InvalidManifest
from snippet_runner_contracts import (
    ManifestValidationError,
    validate_boot_manifest_dict,
    validate_boot_manifest_json,
)


@dataclass(frozen=True, slots=True)
class FingerprintEntry:
    delivery_name: str
    logical_name: str


@dataclass(frozen=True, slots=True)
class ResourceManifest:
    """
    Ordered (delivery name -> logical name) entries from boot.json.
    """

    entries: tuple[FingerprintEntry, ...]

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> "ResourceManifest":
        try:
            validate_boot_manifest_dict(obj)
        except ManifestValidationError as e:
            raise InvalidManifest(str(e)) from e
        return cls._from_validated(obj)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "ResourceManifest":
        try:
            obj = validate_boot_manifest_json(raw)
        except ManifestValidationError as e:
            raise InvalidManifest(str(e)) from e
        return cls._from_validated(obj)

    @classmethod
    def _from_validated(cls, obj: dict[str, Any]) -> "ResourceManifest":
        table = obj["resources"]["fingerprinting"]
        return cls(
            entries=tuple(
                FingerprintEntry(delivery_name=str(d), logical_name=str(name))
                for d, name in table.items()
            )
        )

    def build_index(self) -> Mapping[str, str]:
        """
        Invert entries into logical name -> delivery name.

        First entry claiming a logical name wins; later ones are dropped.
        """
        index: dict[str, str] = {}
        for e in self.entries:
            if e.logical_name not in index:
                index[e.logical_name] = e.delivery_name
        return MappingProxyType(index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resources": {
                "fingerprinting": {e.delivery_name: e.logical_name for e in self.entries}
            }
        }
