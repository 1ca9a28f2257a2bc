"""
Pydantic Settings Configuration
=================================

Type-safe configuration management using Pydantic.
Validates all configuration values at startup and fails fast with clear error messages.
"""

from typing import List, Optional
from pathlib import Path
from importlib import metadata
from pydantic import BaseModel, Field, SecretStr, field_validator, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml


def _project_version() -> str:
    """Resolve the project version from package metadata."""
    try:
        return metadata.version("signoff")
    except metadata.PackageNotFoundError:
        return "0.0.0-dev"


_CHANGEME_PREFIXES = ("changeme", "change-me", "your_", "your-", "placeholder", "secret-change-me")


def _is_placeholder(value: str) -> bool:
    """Return True if value looks like an unfilled template placeholder."""
    v = value.lower()
    return any(v.startswith(p) or p in v for p in _CHANGEME_PREFIXES)


_SECRET_MIN_LENGTH = 16


def _is_weak_secret(value: str) -> bool:
    """Return True if value is too short or low-entropy for use as a signing key."""
    stripped = value.strip()
    if len(stripped) < _SECRET_MIN_LENGTH:
        return True
    # Check for trivially low entropy (all same character, sequential)
    if len(set(stripped)) < 4:
        return True
    return False


class TelegramConfig(BaseModel):
    """Telegram approver channel configuration"""
    bot_token: str = Field(..., description="Telegram bot token from BotFather")
    admin_chat_id: str = Field(..., description="Chat id of the single trusted approver")
    webhook_secret: Optional[str] = Field(
        None, description="Secret echoed by Telegram in X-Telegram-Bot-Api-Secret-Token"
    )

    @field_validator('bot_token')
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Validate bot token format"""
        if not v or v.startswith('your_'):
            raise ValueError("Invalid bot token. Get one from @BotFather")
        if _is_placeholder(v):
            raise ValueError(
                "SIGNOFF_TELEGRAM__BOT_TOKEN is still set to a placeholder value. "
                "Set a real token from @BotFather."
            )
        if ':' not in v:
            raise ValueError("Bot token must be in format: 123456:ABC-DEF...")
        return v

    @field_validator('admin_chat_id', mode='before')
    @classmethod
    def validate_admin_chat_id(cls, v) -> str:
        value = str(v).strip()
        if not value.lstrip('-').isdigit():
            raise ValueError("admin_chat_id must be a numeric Telegram chat id")
        return value

    @field_validator('webhook_secret')
    @classmethod
    def validate_webhook_secret(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if _is_placeholder(v):
            raise ValueError("SIGNOFF_TELEGRAM__WEBHOOK_SECRET is still set to a placeholder value.")
        # Telegram only accepts A-Z, a-z, 0-9, _ and - (1-256 chars)
        if not all(c.isalnum() or c in "_-" for c in v) or len(v) > 256:
            raise ValueError("webhook_secret may only contain letters, digits, '_' and '-'")
        return v

    model_config = ConfigDict(extra='forbid')


class SecurityConfig(BaseModel):
    """Token signing and lifetime configuration"""
    secret_key: Optional[SecretStr] = Field(None, description="HMAC key for integrity tags")
    token_bytes: int = Field(
        16, ge=8, le=24,
        description="Random bytes per correlation token (hex doubles the length)",
    )
    token_ttl_seconds: int = Field(600, ge=1, description="Lifetime of pending sessions and decisions")
    reaper_interval_seconds: int = Field(300, ge=1, description="Interval between expiry sweeps")

    @field_validator('secret_key')
    @classmethod
    def validate_secret_key(cls, v: Optional[SecretStr]) -> Optional[SecretStr]:
        if v is None:
            return v
        raw = v.get_secret_value()
        if _is_placeholder(raw):
            raise ValueError(
                "SIGNOFF_SECURITY__SECRET_KEY is still set to a placeholder value. "
                "Generate one with: signoff gen-secret"
            )
        if _is_weak_secret(raw):
            raise ValueError(
                f"SIGNOFF_SECURITY__SECRET_KEY is too weak (minimum {_SECRET_MIN_LENGTH} characters "
                "with reasonable entropy). Generate one with: signoff gen-secret"
            )
        return v

    model_config = ConfigDict(extra='forbid')


class WebConfig(BaseModel):
    """HTTP server configuration"""
    host: str = Field("0.0.0.0", description="Host to bind to")
    port: int = Field(3000, ge=1, le=65535, description="Port to bind to")
    public_url: Optional[str] = Field(None, description="Externally reachable base URL")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    static_dir: Optional[Path] = Field(None, description="Front-end directory served at /")

    @field_validator('public_url')
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.rstrip('/')

    model_config = ConfigDict(extra='forbid')


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field("json", description="Log format (json, text)")

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator('format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in {'json', 'text'}:
            raise ValueError("Log format must be 'json' or 'text'")
        return v_lower

    model_config = ConfigDict(extra='forbid')


class Settings(BaseSettings):
    """
    Main application settings with type validation.

    Configuration is loaded from:
    1. YAML config file (if provided)
    2. Environment variables with SIGNOFF_ prefix, or a .env file
    3. Default values (fallback)

    Environment variable mapping uses double-underscore nesting:
      SIGNOFF_TELEGRAM__BOT_TOKEN
      SIGNOFF_TELEGRAM__ADMIN_CHAT_ID
      SIGNOFF_SECURITY__SECRET_KEY
      SIGNOFF_WEB__PUBLIC_URL
    """

    telegram: Optional[TelegramConfig] = None
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    version: str = Field(default_factory=_project_version, description="Project version")

    model_config = SettingsConfigDict(
        env_prefix='SIGNOFF_',
        env_nested_delimiter='__',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='allow',
        validate_assignment=True,
    )

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "Settings":
        """
        Load settings from a YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Settings instance with validated configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If configuration is invalid
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables (and .env) only."""
        return cls()

    def validate_required_config(self) -> List[str]:
        """
        Validate that all required configuration is present.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.telegram:
            errors.append("Telegram configuration (bot_token, admin_chat_id) is required")

        if self.security.secret_key is None or not self.security.secret_key.get_secret_value():
            errors.append("security.secret_key is required to sign approval tokens")

        if not self.web.public_url:
            errors.append("web.public_url is required to register the Telegram webhook")

        return errors


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """
    Load and validate application settings.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Validated Settings instance

    Raises:
        ValueError: If configuration is invalid
    """
    if config_path:
        settings = Settings.from_yaml(config_path)
    else:
        settings = Settings.from_env()

    errors = settings.validate_required_config()
    if errors:
        raise ValueError(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    return settings


__all__ = [
    'Settings',
    'TelegramConfig',
    'SecurityConfig',
    'WebConfig',
    'LoggingConfig',
    'load_settings',
]
