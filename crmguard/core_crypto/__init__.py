# Core Cryptography Module
"""
Low-level codecs shared by the authentication primitives:
- Base32 (RFC 4648 alphabet, unpadded, lenient decode)
"""

from .base32 import ALPHABET, decode, encode

__all__ = [
    'ALPHABET',
    'encode',
    'decode',
]
