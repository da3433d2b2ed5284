"""
Exception hierarchy for the security core.

Only the encryption service and the startup path raise. TOTP, backup code
and rate limit checks return verdicts instead.
"""


class CRMGuardError(Exception):
    """Base class for all errors raised by crmguard."""


class ConfigurationError(CRMGuardError):
    """Required configuration is missing or failed its startup self-test."""


class EncryptionError(CRMGuardError):
    """A plaintext could not be encrypted."""


class DecryptionError(CRMGuardError):
    """
    A blob could not be decrypted.

    Raised with the same message whether the blob was malformed or its
    authentication tag did not match, so callers cannot tell the two apart.
    """

    MESSAGE = "Failed to decrypt data"

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)
