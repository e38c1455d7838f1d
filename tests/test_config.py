"""Tests for configuration defaults and environment overrides."""

import pytest

from helios_dac.config import DacConfig


def test_defaults():
    config = DacConfig()
    assert config.vendor_id == 0x1209
    assert config.product_id == 0xE500
    assert config.bulk_endpoint == 0x02
    assert config.command_attempts == 3
    assert config.settle_delay == 0.1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"default_rate": 6},
        {"default_rate": 70000},
        {"status_attempts": 0},
        {"command_attempts": 0},
        {"settle_delay": -1},
        {"timeout_ms": 0},
    ],
)
def test_validation(kwargs):
    with pytest.raises(ValueError):
        DacConfig(**kwargs)


def test_from_env():
    config = DacConfig.from_env(
        {
            "HELIOS_STATUS_ATTEMPTS": "3",
            "HELIOS_VENDOR_ID": "0x1234",
            "HELIOS_SETTLE_DELAY": "0.25",
            "UNRELATED": "x",
        }
    )
    assert config.status_attempts == 3
    assert config.vendor_id == 0x1234
    assert config.settle_delay == 0.25
    assert config.default_rate == 30000


def test_from_env_invalid():
    with pytest.raises(ValueError, match="HELIOS_DEFAULT_RATE"):
        DacConfig.from_env({"HELIOS_DEFAULT_RATE": "fast"})
