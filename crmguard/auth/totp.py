"""
TOTP (Time-based One-Time Password) Implementation

Implements RFC 6238 TOTP for the second login factor.

Features:
- Secret generation (32 random bytes, base32 text)
- Code computation with dynamic truncation (RFC 4226)
- Verification within a +/- step window
- otpauth:// provisioning URI and ASCII QR rendering

Fixed parameters (authenticator apps assume them):
- HMAC-SHA1, 6 digits, 30 second step

Replay protection is NOT done here. verify() is pure and accepts the same
code for as long as it stays inside the window; the caller must remember the
last accepted step per account (see matching_step) and refuse anything at or
before it.
"""

import hashlib
import hmac
import io
import secrets
import struct
import time
from typing import Optional
from urllib.parse import quote

import qrcode
from qrcode.constants import ERROR_CORRECT_L

from ..core_crypto import base32


# TOTP configuration (RFC 6238 defaults)
TOTP_DIGITS = 6           # Number of digits in OTP
TOTP_TIME_STEP = 30       # Time step in seconds
TOTP_SECRET_BYTES = 32    # Secret key length
TOTP_DRIFT_TOLERANCE = 1  # Accept codes from +/- this many time steps

DEFAULT_ISSUER = "CRM Pro"

# Characters encodeURIComponent leaves alone besides the unreserved set
_URI_COMPONENT_SAFE = "!~*'()"


def generate_secret() -> str:
    """
    Generate a new random TOTP secret.

    Returns:
        Base32-encoded secret (52 characters, no padding)
    """
    return base32.encode(secrets.token_bytes(TOTP_SECRET_BYTES))


def get_time_step(timestamp: Optional[float] = None) -> int:
    """
    Get the TOTP time step for a Unix timestamp.

    Args:
        timestamp: Unix timestamp (uses current time if None)

    Returns:
        floor(timestamp / 30)
    """
    if timestamp is None:
        timestamp = time.time()
    return int(timestamp // TOTP_TIME_STEP)


def hotp(key: bytes, counter: int) -> str:
    """
    Generate an HOTP value (RFC 4226) with HMAC-SHA1.

    Args:
        key: Raw shared secret
        counter: Moving factor, packed as an 8-byte big-endian integer

    Returns:
        Zero-padded 6-digit code
    """
    # Two's complement wrap keeps negative steps packable
    counter_bytes = struct.pack('>Q', counter & 0xFFFFFFFFFFFFFFFF)

    digest = hmac.new(key, counter_bytes, hashlib.sha1).digest()

    # Dynamic truncation: low nibble of the last byte picks the offset
    offset = digest[-1] & 0x0F
    truncated = struct.unpack('>I', digest[offset:offset + 4])[0]
    truncated &= 0x7FFFFFFF

    return str(truncated % (10 ** TOTP_DIGITS)).zfill(TOTP_DIGITS)


def compute_code(secret: str, step_offset: int = 0,
                 timestamp: Optional[float] = None) -> str:
    """
    Compute the TOTP code for the current step plus an offset.

    Args:
        secret: Base32-encoded secret
        step_offset: Steps to add to the current step (may be negative)
        timestamp: Unix timestamp (uses current time if None)

    Returns:
        6-digit code
    """
    step = get_time_step(timestamp) + step_offset
    return hotp(base32.decode(secret), step)


def matching_step(secret: str, candidate: str,
                  window: int = TOTP_DRIFT_TOLERANCE,
                  timestamp: Optional[float] = None) -> Optional[int]:
    """
    Find the absolute time step a candidate code belongs to.

    Callers enforcing replay protection store the returned step and reject
    later candidates whose step is less than or equal to it.

    Args:
        secret: Base32-encoded secret
        candidate: Code typed by the user
        window: Steps to check on each side of the current one
        timestamp: Unix timestamp (uses current time if None)

    Returns:
        The matching step, or None if no step in the window matches
    """
    if not isinstance(candidate, str) or not isinstance(secret, str):
        return None
    if len(candidate) != TOTP_DIGITS or not (candidate.isascii() and candidate.isdigit()):
        return None

    current = get_time_step(timestamp)
    key = base32.decode(secret)

    for offset in range(-window, window + 1):
        expected = hotp(key, current + offset)
        if hmac.compare_digest(candidate, expected):
            return current + offset

    return None


def verify(secret: str, candidate: str, window: int = TOTP_DRIFT_TOLERANCE,
           timestamp: Optional[float] = None) -> bool:
    """
    Verify a TOTP code within +/- window steps of the current one.

    Never raises; malformed secrets and candidates simply fail to match.

    Args:
        secret: Base32-encoded secret
        candidate: Code typed by the user
        window: Steps to check on each side of the current one
        timestamp: Unix timestamp (uses current time if None)

    Returns:
        True if any step in the window produces the candidate
    """
    return matching_step(secret, candidate, window, timestamp) is not None


def build_provisioning_uri(secret: str, account_name: str,
                           issuer: str = DEFAULT_ISSUER) -> str:
    """
    Build the otpauth:// URI that authenticator apps import.

    Issuer and account name are percent-encoded; the secret is not (the
    base32 alphabet is already URL-safe).

    Args:
        secret: Base32-encoded secret
        account_name: Account label, usually the user's email
        issuer: Service name shown in the authenticator app

    Returns:
        otpauth://totp/<issuer>:<account>?secret=<secret>&issuer=<issuer>
    """
    enc_issuer = quote(issuer, safe=_URI_COMPONENT_SAFE)
    enc_account = quote(account_name, safe=_URI_COMPONENT_SAFE)
    return (
        f"otpauth://totp/{enc_issuer}:{enc_account}"
        f"?secret={secret}&issuer={enc_issuer}"
    )


def render_qr_ascii(uri: str) -> str:
    """
    Render a provisioning URI as an ASCII QR code for terminals.

    Args:
        uri: otpauth:// URI

    Returns:
        Multi-line string of block characters
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_L,
        box_size=1,
        border=2,
    )
    qr.add_data(uri)
    qr.make(fit=True)

    out = io.StringIO()
    qr.print_ascii(out=out)
    return out.getvalue()


def remaining_seconds(timestamp: Optional[float] = None) -> int:
    """Seconds until the next code."""
    if timestamp is None:
        timestamp = time.time()
    return TOTP_TIME_STEP - (int(timestamp) % TOTP_TIME_STEP)


class TOTPGenerator:
    """
    TOTP generator and verifier bound to one account.

    Example:
        >>> gen = TOTPGenerator(account_name="alice@example.com")
        >>> code = gen.generate()
        >>> gen.verify(code)
        True
    """

    def __init__(self, secret: Optional[str] = None,
                 account_name: str = "user",
                 issuer: str = DEFAULT_ISSUER):
        """
        Args:
            secret: Base32 secret (generated if None)
            account_name: Account label for the provisioning URI
            issuer: Service name for authenticator apps
        """
        self._secret = secret or generate_secret()
        self._account_name = account_name
        self._issuer = issuer

    @property
    def secret(self) -> str:
        """Base32-encoded secret."""
        return self._secret

    def generate(self, timestamp: Optional[float] = None) -> str:
        """Code for the current (or given) time."""
        return compute_code(self._secret, 0, timestamp)

    def verify(self, code: str, timestamp: Optional[float] = None) -> bool:
        return verify(self._secret, code, TOTP_DRIFT_TOLERANCE, timestamp)

    def provisioning_uri(self) -> str:
        return build_provisioning_uri(self._secret, self._account_name, self._issuer)

    def qr_ascii(self) -> str:
        return render_qr_ascii(self.provisioning_uri())

    def __repr__(self) -> str:
        return f"TOTPGenerator(issuer='{self._issuer}', account='{self._account_name}')"
