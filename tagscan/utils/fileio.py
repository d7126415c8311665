"""Basic file IO helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml


def parse_yaml_text(text: str) -> Any:
    """Parse YAML (or JSON, which YAML accepts) text into Python data."""

    return yaml.safe_load(text)


def read_yaml_file(path: Path) -> Any:
    """Return the parsed YAML if the file exists, otherwise ``None``."""

    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def read_yaml_mapping(path: Path) -> Dict[str, Any] | None:
    """Load a YAML document that must be a mapping."""

    data = read_yaml_file(path)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"Document at {path} is not a mapping")
    return data
