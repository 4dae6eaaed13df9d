"""Environment-driven settings for flow-devkit."""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .constants import DEFAULT_TIMEOUT

ENV_PREFIX = "FLOW_DEVKIT_"


@dataclass
class Settings:
    """Runtime settings, resolved from the environment."""

    log_level: str = "WARNING"
    timeout: float = DEFAULT_TIMEOUT  # Gateway request timeout in seconds
    host_overrides: Dict[str, str] = field(default_factory=dict)  # network -> host

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Read settings from environment variables.

        Recognized variables:
        - FLOW_DEVKIT_LOG_LEVEL: logging level name
        - FLOW_DEVKIT_TIMEOUT: gateway timeout in seconds
        - FLOW_DEVKIT_<NETWORK>_HOST: access node host for a network

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings instance

        Raises:
            ValueError: If FLOW_DEVKIT_TIMEOUT is not a positive number
        """
        if environ is None:
            environ = os.environ

        settings = cls()
        if environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
            settings.log_level = environ[f"{ENV_PREFIX}LOG_LEVEL"].upper()

        if environ.get(f"{ENV_PREFIX}TIMEOUT"):
            raw = environ[f"{ENV_PREFIX}TIMEOUT"]
            try:
                settings.timeout = float(raw)
            except ValueError as e:
                raise ValueError(f"Invalid {ENV_PREFIX}TIMEOUT: {raw!r}") from e
            if settings.timeout <= 0:
                raise ValueError(f"Invalid {ENV_PREFIX}TIMEOUT: {raw!r}")

        for key, value in environ.items():
            if key.startswith(ENV_PREFIX) and key.endswith("_HOST") and value:
                network = key[len(ENV_PREFIX) : -len("_HOST")].lower()
                if network:
                    settings.host_overrides[network] = value

        return settings
