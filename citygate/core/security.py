"""
Password hashing and one-time token utilities.

Rules:
- Always use a strong hashing algorithm (bcrypt)
- NEVER log plaintext passwords, hashes or invitation tokens
"""
from __future__ import annotations
import secrets
import bcrypt


def _to_bytes(x) -> bytes:
    if x is None:
        return b""
    if isinstance(x, (bytes, bytearray)):
        return bytes(x)
    return str(x).encode()


def hash_password(plain: str) -> str:
    """
    Hash a plaintext password using bcrypt.

    Args:
        plain: Plaintext password

    Returns:
        Hashed password string
    """
    return bcrypt.hashpw(_to_bytes(plain), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str | None) -> bool:
    """
    Verify a plaintext password against a hash.

    Users created without a password (invited, not yet accepted) never verify.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_to_bytes(plain), _to_bytes(hashed))
    except ValueError:
        # Malformed stored hash
        return False


def generate_invitation_token() -> str:
    return secrets.token_urlsafe(32)
