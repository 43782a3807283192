import json
from pathlib import Path
from typing import Any

from .fs import atomic_write_text


def atomic_write_json(path: Path, obj: Any, *, indent: int = 2) -> None:
    atomic_write_text(path, json.dumps(obj, ensure_ascii=False, indent=indent, sort_keys=True) + "\n")


def read_json_object(path: Path) -> dict[str, Any]:
    """
    Parse a JSON file whose top level must be an object. An empty file
    reads as `{}`: tools sometimes create the file before writing to it.
    """
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    obj = json.loads(text)
    if not isinstance(obj, dict):
        raise ValueError(f"{path} does not hold a JSON object")
    return obj
