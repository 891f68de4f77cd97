"""
Configuration Loader (``books_config.loader``).

Responsibility
--------------
Reads the packaged ``defaults.yaml`` and an optional company override
file, merges them key by key and parses the result into a
``BooksConfig``.  Runtime callers go through
``books_config.get_active_config()``.

Invariants enforced
-------------------
* Override keys replace default keys; ``number_formats`` merges per entry.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the merged
  mapping for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError`` from ``BooksConfig``.
* Invalid date format  -> ``ValueError`` from ``date.fromisoformat``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from books_config.schema import BooksConfig

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level of a config file must be a mapping")
    return data


def parse_date(value: Any) -> date:
    """Parse a date from YAML or a query string (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def merge_settings(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(defaults)
    for key, value in overrides.items():
        if key == "number_formats" and isinstance(value, dict):
            formats = dict(merged.get("number_formats") or {})
            formats.update(value)
            merged[key] = formats
        else:
            merged[key] = value
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization; deterministic."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_settings(path: Path | None = None) -> dict[str, Any]:
    """Merged defaults + override mapping, before validation."""
    settings = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        settings = merge_settings(settings, load_yaml_file(path))
    return settings


def load_config(path: Path | None = None) -> BooksConfig:
    return BooksConfig.from_dict(load_settings(path))
