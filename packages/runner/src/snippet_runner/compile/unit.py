"""
In-memory unit format produced by emit and consumed by the execution engine.

A unit is a marshalled dict carrying the snippet's code object, its entry
routine metadata, and the code of every reference it was compiled against.
"""

from __future__ import annotations

import marshal
from dataclasses import dataclass
from enum import StrEnum
from types import CodeType
from typing import Any, Final, Sequence

from snippet_runner.core.errors import RunnerError
from snippet_runner.core.hashing import fingerprint

UNIT_FORMAT: Final[str] = "snippet-unit"
UNIT_VERSION: Final[int] = 1


class InvalidUnit(RunnerError):
    """Emitted bytes are not a loadable unit"""


class EntryShape(StrEnum):
    NONE = "none"
    TEXT_SEQUENCE = "text_sequence"


@dataclass(frozen=True, slots=True)
class EntryPoint:
    name: str
    shape: EntryShape


@dataclass(frozen=True, slots=True)
class UnitReference:
    module_name: str
    code: CodeType


@dataclass(frozen=True, slots=True)
class UnitImage:
    name: str
    code: CodeType
    entry: EntryPoint | None
    references: tuple[UnitReference, ...]
    sha256: str

    @property
    def identity(self) -> str:
        return f"{self.name}, sha256={self.sha256}"


def serialize_unit(
    *,
    name: str,
    code: CodeType,
    entry: EntryPoint | None,
    references: Sequence[tuple[str, bytes]],
) -> bytes:
    record: dict[str, Any] = {
        "format": UNIT_FORMAT,
        "version": UNIT_VERSION,
        "name": name,
        "code": code,
        "entry": None
        if entry is None
        else {"name": entry.name, "shape": entry.shape.value},
        "references": [(m, bytes(p)) for m, p in references],
    }
    return marshal.dumps(record)


def load_unit(data: bytes) -> UnitImage:
    try:
        record = marshal.loads(data)
    except (EOFError, ValueError, TypeError) as e:
        raise InvalidUnit(f"Unit is not readable: {e}") from e

    if not isinstance(record, dict) or record.get("format") != UNIT_FORMAT:
        raise InvalidUnit("Unit format marker missing")
    if record.get("version") != UNIT_VERSION:
        raise InvalidUnit(f"Unsupported unit version: {record.get('version')!r}")

    code = record.get("code")
    if not isinstance(code, CodeType):
        raise InvalidUnit("Unit carries no code object")

    entry = None
    raw_entry = record.get("entry")
    if raw_entry is not None:
        try:
            entry = EntryPoint(
                name=str(raw_entry["name"]), shape=EntryShape(raw_entry["shape"])
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidUnit(f"Malformed entry metadata: {e}") from e

    references: list[UnitReference] = []
    for item in record.get("references") or ():
        try:
            module_name, payload = item
            ref_code = marshal.loads(payload)
        except (EOFError, ValueError, TypeError) as e:
            raise InvalidUnit(f"Malformed reference in unit: {e}") from e
        if not isinstance(ref_code, CodeType):
            raise InvalidUnit(f"Reference {module_name!r} carries no code object")
        references.append(UnitReference(module_name=str(module_name), code=ref_code))

    return UnitImage(
        name=str(record.get("name") or "unit"),
        code=code,
        entry=entry,
        references=tuple(references),
        sha256=fingerprint(data, length=16),
    )
