"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML file and parses its ``inventory`` section into an
``InventoryConfig``.  Callers use ``inventory_config.get_active_config()``
rather than this module.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with descriptive messages; unknown
  keys are rejected rather than ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed section for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Section not a mapping  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import InventoryConfig

SECTION = "inventory"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_inventory_config(data: dict[str, Any]) -> InventoryConfig:
    """
    Build an InventoryConfig from a parsed YAML document.

    The settings live under an ``inventory:`` key; a document without that
    key is treated as the section itself.
    """
    section = data.get(SECTION, data)
    if not isinstance(section, dict):
        raise ValueError(f"'{SECTION}' section must be a mapping, got {type(section).__name__}")
    config = InventoryConfig.from_dict(dict(section))
    config.checksum = compute_checksum(section)
    return config


def load_inventory_config(path: Path) -> InventoryConfig:
    return parse_inventory_config(load_yaml_file(path))
