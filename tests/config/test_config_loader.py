"""Tests for inventory configuration loading.

Covers the packaged defaults, YAML overrides, validation of bad values and
the INVENTORY_CONFIG_TRACE audit log entry.
"""

from __future__ import annotations

import pytest

from inventory_config import (
    DEFAULT_CONFIG_PATH,
    InventoryConfig,
    compute_checksum,
    get_active_config,
)
from inventory_config.loader import parse_inventory_config


def _write(tmp_path, text: str):
    path = tmp_path / "inventory.yaml"
    path.write_text(text)
    return path


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_active_config()

        assert config.default_strategy == "fifo"
        assert config.expiry_warning_days == 30
        assert config.max_commit_retries == 3
        assert config.require_notes_on_dispose is True
        assert config.transfer_split_suffix == "-SPLIT"
        assert config.checksum is not None

    def test_packaged_defaults_match_code_defaults(self):
        assert get_active_config().to_dict() == InventoryConfig.with_defaults().to_dict()

    def test_default_path_ships_with_package(self):
        assert DEFAULT_CONFIG_PATH.name == "defaults.yaml"
        assert DEFAULT_CONFIG_PATH.exists()


class TestYamlOverrides:
    def test_section_under_inventory_key(self, tmp_path):
        path = _write(
            tmp_path,
            "inventory:\n  default_strategy: FEFO\n  expiry_warning_days: 14\n",
        )

        config = get_active_config(path)

        assert config.default_strategy == "fefo"
        assert config.expiry_warning_days == 14
        assert config.max_commit_retries == 3

    def test_bare_section(self, tmp_path):
        path = _write(tmp_path, "exclude_expired_lots: true\n")

        assert get_active_config(path).exclude_expired_lots is True

    def test_empty_file_gives_defaults(self, tmp_path):
        path = _write(tmp_path, "")

        assert get_active_config(path).default_strategy == "fifo"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "missing.yaml")


class TestValidation:
    def test_unknown_key_rejected(self, tmp_path):
        path = _write(tmp_path, "inventory:\n  default_stratgy: lifo\n")

        with pytest.raises(ValueError, match="default_stratgy"):
            get_active_config(path)

    def test_invalid_strategy_rejected(self):
        with pytest.raises(ValueError, match="default_strategy"):
            InventoryConfig(default_strategy="random")

    def test_manual_is_not_a_default_strategy(self):
        with pytest.raises(ValueError):
            InventoryConfig(default_strategy="manual")

    def test_negative_warning_days_rejected(self):
        with pytest.raises(ValueError, match="expiry_warning_days"):
            InventoryConfig(expiry_warning_days=-1)

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError, match="max_commit_retries"):
            InventoryConfig(max_commit_retries=-2)

    def test_blank_split_suffix_rejected(self):
        with pytest.raises(ValueError):
            InventoryConfig(transfer_split_suffix="  ")

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="mapping"):
            parse_inventory_config({"inventory": ["fifo"]})


class TestChecksum:
    def test_deterministic_regardless_of_key_order(self):
        a = compute_checksum({"default_strategy": "lifo", "expiry_warning_days": 7})
        b = compute_checksum({"expiry_warning_days": 7, "default_strategy": "lifo"})

        assert a == b

    def test_changes_with_content(self, tmp_path):
        first = get_active_config(_write(tmp_path, "inventory:\n  expiry_warning_days: 10\n"))
        second = get_active_config(_write(tmp_path, "inventory:\n  expiry_warning_days: 11\n"))

        assert first.checksum != second.checksum

    def test_in_code_config_has_no_checksum(self):
        assert InventoryConfig.from_dict({"default_strategy": "lifo"}).checksum is None


class TestConfigTrace:
    def test_trace_logged_on_load(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "INVENTORY_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["trace_type"] == "INVENTORY_CONFIG_TRACE"
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["config_path"] == str(DEFAULT_CONFIG_PATH)
        assert traces[0]["default_strategy"] == "fifo"
