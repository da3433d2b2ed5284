# Secrets Vault Module
"""
Encryption of third-party credentials at rest:
- scrypt passphrase derivation (once per process)
- AES-256-GCM, salt:iv:ciphertext:tag text blobs
- Per-record HKDF keys
- Token and API key helpers
"""

from .encryption import (
    EncryptionService,
    derive_process_key,
    derive_record_key,
    parse_blob,
    hash_value,
    generate_token,
    generate_api_key,
    KEY_DERIVATION_MODES,
)

__all__ = [
    'EncryptionService',
    'derive_process_key',
    'derive_record_key',
    'parse_blob',
    'hash_value',
    'generate_token',
    'generate_api_key',
    'KEY_DERIVATION_MODES',
]
