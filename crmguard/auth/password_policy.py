"""
Password Policy Module

Password strength rules and Argon2id hashing.

Features:
- Policy validation (length and character classes) with a 0-100 score
- Common password and personal information checks
- Secure random password generation
- Password age check
- Argon2id hashing via argon2-cffi

Security considerations:
- Never store plaintext passwords
- Salt is automatically handled by argon2-cffi
"""

import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError


# Argon2id configuration
ARGON2_CONFIG = {
    'time_cost': 3,          # Number of iterations
    'memory_cost': 65536,    # 64 MiB memory
    'parallelism': 4,        # 4 parallel threads
    'hash_len': 32,          # 256-bit hash
    'salt_len': 16,          # 128-bit salt
    'type': Type.ID          # Argon2id (hybrid)
}


# Password strength requirements
PASSWORD_MIN_LENGTH = 12
PASSWORD_REQUIREMENTS = {
    'min_length': PASSWORD_MIN_LENGTH,
    'require_uppercase': True,
    'require_lowercase': True,
    'require_number': True,
    'require_special': True,
}

PASSWORD_MAX_AGE_DAYS = 90

COMMON_PASSWORDS = (
    'password', 'password123', '123456', '12345678', 'qwerty',
    'abc123', 'monkey', '1234567', 'letmein', 'trustno1',
    'dragon', 'baseball', 'iloveyou', 'master', 'sunshine',
    'ashley', 'bailey', 'shadow', '123123', '654321',
    'superman', 'qazwsx', 'michael', 'football', 'password1',
)

# Ambiguous characters (0/O, 1/l/I) left out
UPPERCASE_CHARS = 'ABCDEFGHJKLMNPQRSTUVWXYZ'
LOWERCASE_CHARS = 'abcdefghijkmnpqrstuvwxyz'
NUMBER_CHARS = '23456789'
SPECIAL_CHARS = '!@#$%^&*-_=+'


@dataclass
class PasswordValidationResult:
    """Outcome of validate_password()."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    strength: str = 'weak'  # weak | medium | strong | very-strong
    score: int = 0          # 0-100


def _strength_label(score: int) -> str:
    if score < 50:
        return 'weak'
    if score < 70:
        return 'medium'
    if score < 90:
        return 'strong'
    return 'very-strong'


def validate_password(password: str) -> PasswordValidationResult:
    """
    Validate a password against the policy.

    Args:
        password: Password to validate

    Returns:
        PasswordValidationResult with errors, strength label and score
    """
    errors = []
    score = 0

    if len(password) < PASSWORD_REQUIREMENTS['min_length']:
        errors.append(
            f"Password must be at least {PASSWORD_REQUIREMENTS['min_length']} characters long"
        )
    else:
        score += 25
        if len(password) >= 16:
            score += 10
        if len(password) >= 20:
            score += 10

    if PASSWORD_REQUIREMENTS['require_uppercase'] and not re.search(r'[A-Z]', password):
        errors.append("Password must contain at least one uppercase letter")
    else:
        score += 15

    if PASSWORD_REQUIREMENTS['require_lowercase'] and not re.search(r'[a-z]', password):
        errors.append("Password must contain at least one lowercase letter")
    else:
        score += 15

    if PASSWORD_REQUIREMENTS['require_number'] and not re.search(r'[0-9]', password):
        errors.append("Password must contain at least one number")
    else:
        score += 15

    if PASSWORD_REQUIREMENTS['require_special'] and not re.search(r'[^A-Za-z0-9]', password):
        errors.append("Password must contain at least one special character (!@#$%^&*)")
    else:
        score += 15

    # Bonus points for variety
    if len(set(password)) > 10:
        score += 5

    score = min(score, 100)
    return PasswordValidationResult(
        valid=not errors,
        errors=errors,
        strength=_strength_label(score),
        score=score,
    )


def is_common_password(password: str) -> bool:
    """True if the password contains a well-known weak password."""
    lowered = password.lower()
    return any(common in lowered for common in COMMON_PASSWORDS)


def contains_personal_info(password: str, email: Optional[str] = None,
                           name: Optional[str] = None,
                           phone: Optional[str] = None) -> bool:
    """
    Check whether a password embeds parts of the user's own details.

    Args:
        password: Candidate password
        email: Email address; local-part pieces longer than 2 chars are checked
        name: Full name; words longer than 2 chars are checked
        phone: Phone number; its last 4 digits are checked

    Returns:
        True if any personal fragment appears in the password
    """
    lowered = password.lower()

    if email:
        local_part = email.lower().split('@')[0]
        if any(len(part) > 2 and part in lowered
               for part in re.split(r'[._-]', local_part)):
            return True

    if name:
        if any(len(part) > 2 and part in lowered
               for part in name.lower().split(' ')):
            return True

    if phone:
        digits = re.sub(r'\D', '', phone)
        if len(digits) >= 4 and digits[-4:] in lowered:
            return True

    return False


def generate_secure_password(length: int = 16) -> str:
    """
    Generate a random password that satisfies the policy.

    Args:
        length: Password length (at least 4)

    Returns:
        Password with at least one character from every class
    """
    if length < 4:
        raise ValueError("Password length must be at least 4")

    all_chars = UPPERCASE_CHARS + LOWERCASE_CHARS + NUMBER_CHARS + SPECIAL_CHARS

    chars = [
        secrets.choice(UPPERCASE_CHARS),
        secrets.choice(LOWERCASE_CHARS),
        secrets.choice(NUMBER_CHARS),
        secrets.choice(SPECIAL_CHARS),
    ]
    chars.extend(secrets.choice(all_chars) for _ in range(length - len(chars)))

    secrets.SystemRandom().shuffle(chars)
    return ''.join(chars)


def should_force_password_change(changed_at: Optional[datetime],
                                 max_age_days: int = PASSWORD_MAX_AGE_DAYS,
                                 now: Optional[datetime] = None) -> bool:
    """
    Whether a password is too old (or was never changed).

    Naive datetimes are treated as UTC.
    """
    if changed_at is None:
        return True

    if now is None:
        now = datetime.now(timezone.utc)
    if changed_at.tzinfo is None:
        changed_at = changed_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    return now - changed_at > timedelta(days=max_age_days)


class PasswordHasher_:
    """
    Secure password hasher using Argon2id.

    Example:
        >>> hasher = PasswordHasher_()
        >>> hash = hasher.hash_password("Correct-Horse-42")
        >>> hasher.verify_password("Correct-Horse-42", hash)
        True
    """

    def __init__(self, **kwargs):
        """
        Args:
            **kwargs: Override default Argon2 parameters
        """
        config = ARGON2_CONFIG.copy()
        config.update(kwargs)

        self._hasher = PasswordHasher(
            time_cost=config['time_cost'],
            memory_cost=config['memory_cost'],
            parallelism=config['parallelism'],
            hash_len=config['hash_len'],
            salt_len=config['salt_len'],
            type=config['type']
        )

    def hash_password(self, password: str) -> str:
        """
        Hash a password that satisfies the policy.

        Raises:
            ValueError: If the password fails validate_password()
        """
        validation = validate_password(password)
        if not validation.valid:
            raise ValueError(f"Password too weak: {', '.join(validation.errors)}")

        return self._hasher.hash(password)

    def verify_password(self, password: str, hash_str: str) -> bool:
        """True if the password matches; False on mismatch or a bad hash."""
        try:
            return self._hasher.verify(hash_str, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, hash_str: str) -> bool:
        """Whether a stored hash uses outdated parameters."""
        return self._hasher.check_needs_rehash(hash_str)
