"""Unit tests for application settings."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from config.settings import Settings


class TestSettings:
    """Tests for Settings parsing."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.reallocation_usd_threshold == Decimal("10000")
        assert settings.usd_flowcap_threshold == Decimal("50000")
        assert settings.default_supply_target_utilization == 905 * 10**15

    def test_usd_strings(self):
        settings = Settings(
            _env_file=None,
            reallocation_usd_threshold="$10,000",
            usd_flowcap_threshold="25_000",
        )

        assert settings.reallocation_usd_threshold == Decimal("10000")
        assert settings.usd_flowcap_threshold == Decimal("25000")

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level=" debug ").log_level == "DEBUG"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("REALLOCATION_USD_THRESHOLD", "$5000")
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "45")

        settings = Settings(_env_file=None)

        assert settings.reallocation_usd_threshold == Decimal("5000")
        assert settings.request_timeout_seconds == 45

    def test_target_above_wad(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_supply_target_utilization=2 * 10**18)

    def test_negative_threshold(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, usd_flowcap_threshold="-1")
