"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into a ``StockConfig``.  Runtime callers
go through ``stock_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import StockConfig


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
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_stock_config(data: dict[str, Any]) -> StockConfig:
    """Parse the ``stock:`` section (or the whole document if absent)."""
    section = data.get("stock", data)
    if not isinstance(section, dict):
        raise ValueError("'stock' section must be a mapping")
    return StockConfig.from_dict(section)


def load_config(path: Path | str) -> StockConfig:
    return parse_stock_config(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization. Deterministic."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
