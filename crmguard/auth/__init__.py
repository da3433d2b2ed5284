# Authentication Module
"""
Authentication primitives:
- TOTP (2FA, RFC 6238) - totp.py
- Backup recovery codes - backup_codes.py
- Rate limiting - rate_limiter.py
- Password policy and Argon2id hashing - password_policy.py

Security features:
- Constant-time comparison for codes and hashes
- Cryptographically secure random secrets and codes
- Atomic attempt counting under concurrent access
"""

from .totp import (
    TOTPGenerator,
    generate_secret,
    compute_code,
    verify,
    matching_step,
    build_provisioning_uri,
    render_qr_ascii,
    remaining_seconds,
    hotp,
)

from .backup_codes import (
    generate_backup_codes,
    hash_backup_code,
    verify_backup_code,
    find_backup_code,
)

from .rate_limiter import (
    RateLimiter,
    RateLimitResult,
    RateLimitPolicy,
    RateLimitStore,
    AuthRateLimits,
)

from .password_policy import (
    PasswordHasher_,
    PasswordValidationResult,
    validate_password,
    is_common_password,
    contains_personal_info,
    generate_secure_password,
    should_force_password_change,
)

__all__ = [
    # TOTP
    'TOTPGenerator',
    'generate_secret',
    'compute_code',
    'verify',
    'matching_step',
    'build_provisioning_uri',
    'render_qr_ascii',
    'remaining_seconds',
    'hotp',
    # Backup codes
    'generate_backup_codes',
    'hash_backup_code',
    'verify_backup_code',
    'find_backup_code',
    # Rate limiting
    'RateLimiter',
    'RateLimitResult',
    'RateLimitPolicy',
    'RateLimitStore',
    'AuthRateLimits',
    # Passwords
    'PasswordHasher_',
    'PasswordValidationResult',
    'validate_password',
    'is_common_password',
    'contains_personal_info',
    'generate_secure_password',
    'should_force_password_change',
]
