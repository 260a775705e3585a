from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from snippet_runner.convert import encode_wire_module
from snippet_runner.core import (
    atomic_write_bytes,
    atomic_write_json,
    fingerprint,
    utc_now_iso,
)
from snippet_runner_contracts import schema_version_int, validate_boot_manifest_dict

log = structlog.get_logger(__name__)

WIRE_SUFFIX = ".wmod"


@dataclass(frozen=True, slots=True)
class PackedModule:
    logical_name: str
    delivery_name: str
    bytes: int


def delivery_name_for(logical_name: str, data: bytes) -> str:
    stem = logical_name.removesuffix(WIRE_SUFFIX)
    return f"{stem}.{fingerprint(data)}{WIRE_SUFFIX}"


def build_boot_manifest(modules: list[PackedModule]) -> dict[str, Any]:
    return {
        "manifest_version": schema_version_int(),
        "created_at_utc": utc_now_iso(),
        "resources": {
            "fingerprinting": {m.delivery_name: m.logical_name for m in modules}
        },
    }


def build_framework(
    src_dir: Path,
    out_dir: Path,
    *,
    framework_path: str = "_framework",
    manifest_file: str = "boot.json",
    compress: bool = True,
) -> list[PackedModule]:
    """
    Pack every `*.py` under src_dir into a fingerprinted WMOD file and write
    the boot manifest that maps delivery names back to logical names.

    Layout:
      {out_dir}/{framework_path}/{stem}.{sha256[:10]}.wmod
      {out_dir}/{framework_path}/{manifest_file}
    """
    src_dir = Path(src_dir)
    target = Path(out_dir) / framework_path.strip("/")
    sources = sorted(p for p in src_dir.glob("*.py") if p.is_file())
    if not sources:
        raise ValueError(f"No reference modules (*.py) found in {src_dir}")

    packed: list[PackedModule] = []
    for p in sources:
        data = encode_wire_module(
            p.stem, p.read_text(encoding="utf-8"), compress=compress
        )
        logical = f"{p.stem}{WIRE_SUFFIX}"
        delivery = delivery_name_for(logical, data)
        atomic_write_bytes(target / delivery, data)
        packed.append(
            PackedModule(logical_name=logical, delivery_name=delivery, bytes=len(data))
        )
        log.debug("framework.packed", logical_name=logical, delivery_name=delivery)

    manifest = build_boot_manifest(packed)
    validate_boot_manifest_dict(manifest)
    atomic_write_json(target / manifest_file, manifest)

    log.info("framework.built", modules=len(packed), out_dir=str(target))
    return packed
