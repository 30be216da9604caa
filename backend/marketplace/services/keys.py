"""Per-purchase archive key generation."""
import secrets

KEY_BYTES = 32


def generate_key() -> str:
    """Return a 256-bit random key rendered as 64 lowercase hex characters."""
    return secrets.token_hex(KEY_BYTES)
