"""Environment settings."""

import os
from typing import Optional, Tuple


class Settings:
    """Application settings from environment variables."""

    @staticmethod
    def get(key: str, default: Optional[str] = None) -> str:
        """
        Get environment variable value.

        Args:
            key: Environment variable name
            default: Default value if not set

        Returns:
            str: Environment variable value, empty if unset
        """
        return os.getenv(key, default) or ""

    @staticmethod
    def config_path() -> Optional[str]:
        """Configuration file named by JMXMON_CONFIG, if any."""
        return Settings.get("JMXMON_CONFIG") or None

    @staticmethod
    def default_credentials() -> Tuple[Optional[str], Optional[str]]:
        """Shared credentials used when the configuration names none."""
        return (Settings.get("JMXMON_USR") or None,
                Settings.get("JMXMON_PWD") or None)

    @staticmethod
    def log_level() -> str:
        return Settings.get("LOG_LEVEL", "INFO")
