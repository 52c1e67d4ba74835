"""
Inventory Configuration Schema.

Defines the structure and defaults of the inventory ledger settings.
Values are loaded from YAML by ``inventory_config.loader`` and reach the
services only through ``inventory_config.get_active_config()``.
"""

from dataclasses import asdict, dataclass
from typing import Any, Self

from inventory_kernel.logging_config import get_logger

logger = get_logger("config.inventory")


VALID_STRATEGIES = {"fifo", "lifo", "fefo"}


@dataclass
class InventoryConfig:
    """
    Configuration schema for the inventory ledger.

    Override at instantiation:

        config = InventoryConfig(
            default_strategy="fefo",
            expiry_warning_days=14,
        )
    """

    # Allocation
    default_strategy: str = "fifo"  # "fifo", "lifo", "fefo"
    exclude_expired_lots: bool = False

    # Expiry classification horizon (days)
    expiry_warning_days: int = 30

    # Commit retries after StaleAllocationError
    max_commit_retries: int = 3

    # Disposal is regulated waste; decrease adjustments always need notes
    require_notes_on_dispose: bool = True

    # Transfers split the source lot; the new lot's code gets this suffix
    transfer_split_suffix: str = "-SPLIT"

    # Set by the loader; None for in-code configs
    checksum: str | None = None

    def __post_init__(self):
        self.default_strategy = str(self.default_strategy).strip().lower()
        if self.default_strategy not in VALID_STRATEGIES:
            raise ValueError(
                f"default_strategy must be one of {sorted(VALID_STRATEGIES)}, "
                f"got '{self.default_strategy}'"
            )

        if not isinstance(self.expiry_warning_days, int) or self.expiry_warning_days < 0:
            raise ValueError("expiry_warning_days must be a non-negative integer")

        if not isinstance(self.max_commit_retries, int) or self.max_commit_retries < 0:
            raise ValueError("max_commit_retries must be a non-negative integer")

        if not self.transfer_split_suffix or not self.transfer_split_suffix.strip():
            raise ValueError("transfer_split_suffix cannot be empty")

        logger.info(
            "inventory_config_initialized",
            extra={
                "default_strategy": self.default_strategy,
                "exclude_expired_lots": self.exclude_expired_lots,
                "expiry_warning_days": self.expiry_warning_days,
                "max_commit_retries": self.max_commit_retries,
                "require_notes_on_dispose": self.require_notes_on_dispose,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the shipped defaults."""
        logger.info("inventory_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a dictionary (e.g., a parsed YAML section)."""
        logger.info(
            "inventory_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown inventory config keys: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("checksum")
        return data
