"""Unit tests for environment settings."""

import pytest

from flow_devkit.constants import DEFAULT_TIMEOUT
from flow_devkit.settings import Settings


class TestSettingsFromEnv:
    """Test reading settings from environment variables."""

    def test_defaults(self):
        """Test defaults with an empty environment."""
        settings = Settings.from_env({})

        assert settings.log_level == "WARNING"
        assert settings.timeout == DEFAULT_TIMEOUT
        assert settings.host_overrides == {}

    def test_reads_values(self):
        """Test that every recognized variable is read."""
        settings = Settings.from_env(
            {
                "FLOW_DEVKIT_LOG_LEVEL": "debug",
                "FLOW_DEVKIT_TIMEOUT": "2.5",
                "FLOW_DEVKIT_TESTNET_HOST": "https://rest.example.org",
                "UNRELATED": "x",
            }
        )

        assert settings.log_level == "DEBUG"
        assert settings.timeout == 2.5
        assert settings.host_overrides == {"testnet": "https://rest.example.org"}

    @pytest.mark.parametrize("value", ["soon", "0", "-1"])
    def test_invalid_timeout(self, value):
        """Test that a non-positive or non-numeric timeout is rejected."""
        with pytest.raises(ValueError, match="FLOW_DEVKIT_TIMEOUT"):
            Settings.from_env({"FLOW_DEVKIT_TIMEOUT": value})
