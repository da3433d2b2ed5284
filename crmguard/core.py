"""
Security core lifecycle.

Builds the process-wide components from one Settings object, runs the
encryption self-test before anything is served, and shuts the rate limit
sweep down on exit. Request handlers receive the SecurityCore (or the pieces
they need) by reference; nothing here is a module-level singleton.
"""

import logging
from typing import Optional

from .auth.rate_limiter import AuthRateLimits, RateLimiter
from .auth.totp import TOTPGenerator, build_provisioning_uri
from .config import Settings, load_settings
from .errors import ConfigurationError
from .integration.event_logger import EventLogger
from .vault.encryption import EncryptionService


log = logging.getLogger(__name__)


class SecurityCore:
    """Owns the encryption service, rate limiter and audit logger."""

    def __init__(self, settings: Settings, encryption: EncryptionService,
                 rate_limiter: RateLimiter, events: EventLogger):
        self.settings = settings
        self.encryption = encryption
        self.rate_limiter = rate_limiter
        self.rate_limits = AuthRateLimits.from_settings(rate_limiter, settings)
        self.events = events
        self._closed = False

    @classmethod
    def create(cls, settings: Optional[Settings] = None,
               start: bool = True) -> 'SecurityCore':
        """
        Assemble and self-test the security core.

        Args:
            settings: Validated settings (loaded from the environment if None)
            start: Start the rate limit sweep thread

        Raises:
            ConfigurationError: If settings are invalid or the encryption
                self-test fails
        """
        if settings is None:
            settings = load_settings()

        encryption = EncryptionService.from_settings(settings)
        if not encryption.validate_encryption_key():
            raise ConfigurationError("Encryption key self-test failed")
        log.info(
            "Encryption self-test passed (key derivation: %s)",
            encryption.key_derivation,
        )

        limiter = RateLimiter(cleanup_interval=settings.rate_limit_cleanup_seconds)
        core = cls(settings, encryption, limiter, EventLogger())
        if start:
            limiter.start()
        return core

    def totp_generator(self, account_name: str,
                       secret: Optional[str] = None) -> TOTPGenerator:
        """TOTP generator labelled with the configured issuer."""
        return TOTPGenerator(
            secret=secret,
            account_name=account_name,
            issuer=self.settings.totp_issuer,
        )

    def provisioning_uri(self, secret: str, account_name: str) -> str:
        return build_provisioning_uri(secret, account_name, self.settings.totp_issuer)

    def close(self) -> None:
        """Stop background work. Safe to call more than once."""
        if self._closed:
            return
        self.rate_limiter.shutdown()
        self._closed = True
        log.info("Security core shut down")

    def __enter__(self) -> 'SecurityCore':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
