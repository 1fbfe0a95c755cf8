from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List

from .spec import SymbolDefinition, validate_catalog


def ensure_dir(p: Path) -> Path:
    """Ensure directory exists; return the Path for chaining."""
    p.mkdir(parents=True, exist_ok=True)
    return p


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


def write_text(path: Path, content: str) -> None:
    ensure_dir(path.parent)
    path.write_text(content, encoding="utf-8")


def write_bytes(path: Path, data: bytes) -> None:
    ensure_dir(path.parent)
    path.write_bytes(data)


def read_json(path: Path) -> Any:
    return json.loads(read_text(path))


def write_json(path: Path, data: object) -> None:
    write_text(path, json.dumps(data, indent=2, ensure_ascii=False))


def load_catalog(path: Path) -> List[SymbolDefinition]:
    """Symbol catalog from a JSON list (or {"symbols": [...]})."""
    raw = read_json(path)
    if isinstance(raw, dict):
        raw = raw.get("symbols", [])
    symbols = [SymbolDefinition.from_dict(item) for item in raw]
    validate_catalog(symbols)
    return symbols
