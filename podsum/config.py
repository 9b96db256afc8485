"""
Configuration management with three-tier precedence system:
1. Default values from codebase
2. Environment variables from .env
3. Explicit overrides passed by the caller (tests, CLI flags)

Precedence: Overrides > Environment Variables > Defaults
"""

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigManager:
    """Manages configuration with three-tier precedence."""

    # Default values (Tier 1 - Codebase defaults)
    DEFAULTS = {
        "OPENAI_API_KEY": "",
        "LLM_MODEL": "gpt-4-turbo-preview",
        "TRANSCRIPTION_MODEL": "whisper-1",
        "TRANSCRIPTION_BACKEND": "openai",
        "WHISPER_MODEL": "base",
        "OPENAI_MAX_TOKENS": "4000",
        "OPENAI_TEMPERATURE": "0.3",
        "UPLOAD_DIR": "uploads",
        "WORK_DIR": "server_jobs",
        "SUMMARY_DIR": "summaries",
        "FFMPEG_PATH": "ffmpeg",
        "NORMALIZE_LOUDNESS": "true",
        "ENABLE_URL_DOWNLOAD": "false",
        "MAX_DOWNLOAD_MB": "100",
        "MAX_FILE_SIZE_MB": "100",
        "JOB_RETENTION_HOURS": "24",
        "CLEANUP_INTERVAL_MINUTES": "60",
        "LOG_LEVEL": "INFO",
        "PORT": "5001",
    }

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize the manager.

        Args:
            overrides: Values that win over both environment and defaults
        """
        self.overrides = dict(overrides or {})

    def get(self, key: str, override: Optional[Any] = None) -> Any:
        """
        Get configuration value with three-tier precedence.

        Args:
            key: Configuration key
            override: Call-site value (highest priority)

        Returns:
            Configuration value from highest priority source
        """
        value, _ = self.get_display_value(key, override)
        return value

    def get_display_value(self, key: str, override: Optional[Any] = None) -> tuple[Any, str]:
        """
        Get configuration value and its source.

        Returns:
            Tuple of (value, source) where source is 'override', 'env', or 'default'
        """
        if override is not None and override != "":
            return override, "override"

        if key in self.overrides and self.overrides[key] not in (None, ""):
            return self.overrides[key], "override"

        env_value = os.getenv(key)
        if env_value is not None and env_value != "":
            return env_value, "env"

        return self.DEFAULTS.get(key, ""), "default"

    def get_int(self, key: str) -> int:
        value = self.get(key)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Configuration value {key} must be a valid number, got {value!r}")

    def get_float(self, key: str) -> float:
        value = self.get(key)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"Configuration value {key} must be a valid number, got {value!r}")

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    def is_using_default(self, key: str) -> bool:
        """Check if configuration is using default value."""
        _, source = self.get_display_value(key)
        return source == "default"


def configure_logging(config: Optional[ConfigManager] = None) -> None:
    """Configure root logging once from LOG_LEVEL and quiet werkzeug."""
    config = config or ConfigManager()
    log_level = str(config.get("LOG_LEVEL")).upper()
    level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    werkzeug_logger = logging.getLogger("werkzeug")
    werkzeug_logger.setLevel(max(level, logging.WARNING))
