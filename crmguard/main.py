"""
crmguard - startup self-test.

Loads configuration, builds the security core and runs the encryption
self-test. Exits non-zero when the process must not serve traffic.
"""

import logging
import sys

from .config import load_settings
from .core import SecurityCore
from .errors import ConfigurationError
from .logging_config import setup_logging


log = logging.getLogger(__name__)


def main() -> int:
    """Main entry point for the crmguard self-test."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        # Logging is configured from settings, so report this one directly
        print(f"crmguard: {e}", file=sys.stderr)
        return 1

    setup_logging(settings.log_level, settings.log_format)

    try:
        with SecurityCore.create(settings, start=False) as core:
            log.info(
                "Security core ready: login %s attempts per %s min, issuer '%s'",
                core.rate_limits.login.max_attempts,
                settings.account_lockout_duration_minutes,
                settings.totp_issuer,
            )
    except ConfigurationError as e:
        log.critical("Refusing to start: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
