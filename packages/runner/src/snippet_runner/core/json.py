import json
from pathlib import Path
from typing import Any

from .fs import atomic_write_text


def atomic_write_json(path: Path, obj: Any, *, indent: int = 2) -> None:
    atomic_write_text(path, stable_json_dumps(obj, indent=indent) + "\n")


def stable_json_dumps(obj: Any, *, indent: int | None = 2) -> str:
    """
    Deterministic JSON:
      - sort_keys=True
      - ensure_ascii=False
      - stable separators when indent is None
    """
    if indent is None:
        return json.dumps(
            obj, sort_keys=True, ensure_ascii=False, separators=(",", ":")
        )
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, indent=indent)
