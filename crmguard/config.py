"""
Security core configuration, read from environment variables via pydantic-settings.

Invariants:
    - The encryption passphrase is required; there is no default.
    - Settings are assembled once at startup by load_settings() and passed
      by reference to the components that need them.
"""

from typing import Literal

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


MINUTE_MS = 60 * 1000


class Settings(BaseSettings):
    """Every setting the security core recognizes."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Encryption
    encryption_key: SecretStr
    encryption_key_derivation: Literal["record", "process"] = "record"

    @field_validator("encryption_key")
    @classmethod
    def require_passphrase(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("ENCRYPTION_KEY must not be empty")
        return v

    # Rate limiting
    max_failed_login_attempts: int = Field(5, gt=0)
    account_lockout_duration_minutes: int = Field(15, gt=0)
    rate_limit_api: int = Field(100, gt=0)
    password_reset_max_attempts: int = Field(3, gt=0)
    password_reset_window_minutes: int = Field(60, gt=0)
    rate_limit_cleanup_seconds: float = Field(60, gt=0)

    # Two-factor
    totp_issuer: str = Field("CRM Pro", min_length=1)

    # Observability
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    @property
    def lockout_window_ms(self) -> int:
        return self.account_lockout_duration_minutes * MINUTE_MS

    @property
    def password_reset_window_ms(self) -> int:
        return self.password_reset_window_minutes * MINUTE_MS


def load_settings(**overrides) -> Settings:
    """
    Build and validate the settings for this process.

    Keyword overrides take precedence over the environment and .env file.

    Raises:
        ConfigurationError: If a required field is missing or a value is invalid
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        fields = sorted({
            ".".join(str(part) for part in err["loc"]) or "settings"
            for err in e.errors()
        })
        raise ConfigurationError(
            f"Invalid configuration: {', '.join(fields)}"
        ) from e
