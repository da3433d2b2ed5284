"""
Base32 Codec (RFC 4648 alphabet, no padding)

Encodes raw bytes to the 32-symbol alphabet A-Z2-7 and back. Used for TOTP
secrets, which people type or scan into authenticator apps.

Behavior:
- encode never emits '=' padding; leftover bits are zero-padded
- decode is lenient: input is uppercased, characters outside the alphabet
  (spaces, dashes, '=') are dropped, and a trailing partial byte is discarded
- decode never raises, so a successful decode says nothing about validity
"""

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

# Symbol -> 5-bit value
_DECODE_MAP = {char: index for index, char in enumerate(ALPHABET)}


def encode(data: bytes) -> str:
    """
    Encode bytes as unpadded base32.

    Args:
        data: Raw bytes

    Returns:
        Base32 text, ceil(len(data) * 8 / 5) characters long
    """
    output = []
    value = 0
    bits = 0

    for byte in data:
        value = ((value << 8) | byte) & 0xFFFF
        bits += 8

        while bits >= 5:
            output.append(ALPHABET[(value >> (bits - 5)) & 0x1F])
            bits -= 5

    # Left-shift the remaining bits into a final symbol
    if bits > 0:
        output.append(ALPHABET[(value << (5 - bits)) & 0x1F])

    return "".join(output)


def decode(text: str) -> bytes:
    """
    Decode base32 text to bytes, skipping anything outside the alphabet.

    Args:
        text: Base32 text, any case, padding and separators allowed

    Returns:
        Decoded bytes (best effort for malformed input)
    """
    output = bytearray()
    value = 0
    bits = 0

    for char in text.upper():
        index = _DECODE_MAP.get(char)
        if index is None:
            continue

        value = ((value << 5) | index) & 0xFFFF
        bits += 5

        if bits >= 8:
            output.append((value >> (bits - 8)) & 0xFF)
            bits -= 8

    return bytes(output)
