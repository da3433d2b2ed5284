"""
crmguard - security primitives for the CRM backend.

- TOTP second factor and backup codes (crmguard.auth)
- Authenticated encryption of secrets at rest (crmguard.vault)
- In-process rate limiting (crmguard.auth.rate_limiter)
- Security audit events (crmguard.integration)
"""

from .config import Settings, load_settings
from .core import SecurityCore
from .errors import (
    CRMGuardError,
    ConfigurationError,
    DecryptionError,
    EncryptionError,
)

__version__ = "0.1.0"

__all__ = [
    'Settings',
    'load_settings',
    'SecurityCore',
    'CRMGuardError',
    'ConfigurationError',
    'DecryptionError',
    'EncryptionError',
]
