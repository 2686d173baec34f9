"""
Boundary normalization for values coming back from the encryption platform.

A decryption result may arrive as int, decimal/hex string, bool or raw bytes
depending on the ciphertext type and the client library. Everything past this
module works with plain ints and canonical handle keys.
"""

from typing import Any, Mapping

from ZBlog_Core.zblog_shared.errors import DecryptionRejectedError


def to_int(value: Any) -> int:
    """Convert a decrypted value to an int."""
    # bool first: it is an int subclass
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    raise TypeError(f"Unsupported decrypted value type: {type(value).__name__}")


def handle_key(handle: Any) -> str:
    """Canonical string key for an encrypted handle (0x + 64 lowercase hex)."""
    if isinstance(handle, (bytes, bytearray)):
        return "0x" + bytes(handle).hex().rjust(64, "0")
    if isinstance(handle, int):
        return "0x" + format(handle, "064x")
    if isinstance(handle, str):
        text = handle.lower()
        if text.startswith("0x"):
            return "0x" + text[2:].rjust(64, "0")
        return "0x" + format(int(text), "064x")
    raise TypeError(f"Unsupported handle type: {type(handle).__name__}")


def lookup_decrypted(results: Mapping[Any, Any], handle: Any) -> int:
    """Find a handle's plaintext in a userDecrypt result map and normalize it."""
    wanted = handle_key(handle)
    for key, value in results.items():
        if handle_key(key) == wanted:
            return to_int(value)
    raise DecryptionRejectedError(f"no plaintext returned for handle {wanted}")
