"""Telehook configuration management."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger("telehook.config")

DEFAULT_CONFIG_PATH = "~/.telehook/config.json"
CONFIG_ENV_VAR = "TELEHOOK_CONFIG"

_LOG_LEVELS = ("debug", "info", "warning", "error")


class TelehookSettings(BaseSettings):
    """Settings loaded from config.json, with TELEHOOK_* environment fallbacks."""

    # Logging
    log_level: str = Field(default="info", description="debug, info, warning or error")
    log_file: str = Field(default="~/.telehook/telehook.log", description="Log file path")

    # Telegram
    telegram_enabled: bool = Field(default=False, description="Send hook messages to Telegram")
    telegram_bot_token: str = Field(default="", description="Bot token from @BotFather")
    telegram_user_ids: list[int] = Field(default_factory=list, description="Authorized Telegram user IDs")
    telegram_timeout_ms: int = Field(default=600000, ge=0, description="Stop hook wait, 0 = forever")
    telegram_poll_interval_ms: int = Field(default=10000, ge=0, description="Delay between polls")

    # Permission hook
    permission_hook_enabled: bool = Field(default=False)
    permission_hook_tools_auto_approved: list[str] = Field(default_factory=list)
    permission_hook_timeout_ms: int = Field(default=600000, ge=0)
    permission_hook_allow_on_timeout: bool = Field(default=False, description="Deny on timeout unless set")

    model_config = {"env_prefix": "TELEHOOK_", "extra": "ignore"}

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value):
        value = str(value).strip().lower()
        if value == "warn":
            value = "warning"
        if value not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return value

    @property
    def telegram_ready(self) -> bool:
        """Telegram is enabled and has both a token and recipients."""
        return self.telegram_enabled and bool(self.telegram_bot_token) and bool(self.telegram_user_ids)


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Config path from the argument, then $TELEHOOK_CONFIG, then the default."""
    raw = path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    return Path(raw).expanduser()


def load_settings(path: Optional[Union[str, Path]] = None) -> TelehookSettings:
    """Load settings from the JSON config file.

    Values in the file win over environment variables. A missing, unreadable
    or invalid file falls back to defaults (plus environment) rather than
    failing the hook.
    """
    config_path = resolve_config_path(path)

    if not config_path.exists():
        logger.warning(f"{config_path} not found, using defaults")
        return TelehookSettings()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("top-level value must be an object")
        return TelehookSettings(**data)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Error loading config {config_path}: {e}")
        return TelehookSettings()


def save_settings(settings: TelehookSettings, path: Optional[Union[str, Path]] = None) -> Path:
    """Write settings as pretty JSON, creating the parent directory."""
    config_path = resolve_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(settings.model_dump(), indent=2) + "\n", encoding="utf-8")
    return config_path
