"""Configuration loading and validation."""

from signoff.config.settings import (
    LoggingConfig,
    SecurityConfig,
    Settings,
    TelegramConfig,
    WebConfig,
    load_settings,
)

__all__ = [
    "LoggingConfig",
    "SecurityConfig",
    "Settings",
    "TelegramConfig",
    "WebConfig",
    "load_settings",
]
