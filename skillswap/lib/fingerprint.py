"""Bytes32 skill fingerprints.

The ledger stores each skill as a single 32-byte word. Short skills may be
packed as a null-terminated UTF-8 string (recoverable); anything else is a
one-way digest. Nothing outside the reference sources may assume which.
"""

import hashlib

from ..errors import DecodeFailure

WORD_SIZE = 32
ZERO_WORD = "0x" + "00" * WORD_SIZE


def canonical(fingerprint: str | bytes | None) -> str:
    """Fixed textual rendering of a fingerprint: 0x-prefixed lower-case hex."""
    if fingerprint is None:
        return ZERO_WORD
    if isinstance(fingerprint, bytes | bytearray):
        return "0x" + bytes(fingerprint).hex() if fingerprint else ZERO_WORD
    text = str(fingerprint).strip()
    if not text:
        return ZERO_WORD
    if text[:2].lower() == "0x":
        return "0x" + text[2:].lower()
    return text


def to_word(fingerprint: str | bytes) -> bytes:
    """Parse a fingerprint into its 32 raw bytes."""
    if isinstance(fingerprint, bytes | bytearray):
        raw = bytes(fingerprint)
    else:
        text = str(fingerprint).strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError as e:
            raise DecodeFailure(f"Not a hex word: {fingerprint!r}") from e
    if len(raw) != WORD_SIZE:
        raise DecodeFailure(f"Expected {WORD_SIZE} bytes, got {len(raw)}")
    return raw


def encode_bytes32_string(text: str) -> str:
    """Pack text as a null-terminated bytes32 string."""
    payload = text.encode("utf-8")
    if len(payload) > WORD_SIZE - 1:
        raise ValueError("bytes32 string must be less than 32 bytes")
    return "0x" + payload.ljust(WORD_SIZE, b"\x00").hex()


def decode_bytes32_string(fingerprint: str | bytes) -> str:
    """Recover text packed by encode_bytes32_string.

    Raises:
        DecodeFailure: The word is not a packed string (for example a digest).
    """
    raw = to_word(fingerprint)
    if raw[-1] != 0:
        raise DecodeFailure("Word is not null-terminated")

    length = raw.index(0)
    if any(raw[length:]):
        raise DecodeFailure("Non-zero bytes after terminator")
    if length == 0:
        raise DecodeFailure("Empty string word")

    try:
        text = raw[:length].decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeFailure("Word is not valid UTF-8") from e
    if not text.isprintable():
        raise DecodeFailure("Word contains control characters")
    return text


def sha256_word(content: str) -> str:
    """One-way fingerprint: SHA256 of the content as a bytes32 word."""
    return "0x" + hashlib.sha256(content.encode()).hexdigest()


def fingerprint_text(text: str, packed: bool = True) -> str:
    """Fingerprint skill text the way the reference ledger stores it.

    Packed mode keeps short text recoverable and hashes the rest. Hashed mode
    always digests. Text is trimmed but case is preserved.
    """
    text = text.strip()
    if packed:
        try:
            return encode_bytes32_string(text)
        except ValueError:
            pass
    return sha256_word(text)


__all__ = [
    "WORD_SIZE",
    "ZERO_WORD",
    "canonical",
    "decode_bytes32_string",
    "encode_bytes32_string",
    "fingerprint_text",
    "sha256_word",
    "to_word",
]
