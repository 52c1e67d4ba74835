"""
inventory_config -- single public entrypoint for inventory configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain settings.
    YAML parsing lives in ``inventory_config.loader``.

Audit relevance:
    Every call emits an ``INVENTORY_CONFIG_TRACE`` log entry with the
    source file and the checksum of the loaded section.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import compute_checksum, load_inventory_config
from inventory_config.schema import InventoryConfig

_logger = logging.getLogger("inventory_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "InventoryConfig",
    "compute_checksum",
    "get_active_config",
]


def get_active_config(config_path: Path | str | None = None) -> InventoryConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``defaults.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file contains invalid settings.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_inventory_config(path)

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": config.checksum,
            "default_strategy": config.default_strategy,
        },
    )
    return config
