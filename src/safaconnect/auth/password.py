"""
Password hashing and credential validation.

Hashes use argon2id (slow, salted, memory-hard). Plaintext passwords are
never stored or logged.
"""

from __future__ import annotations

import re
import secrets

import argon2

from safaconnect.config import get_settings
from safaconnect.errors import InvalidInputError

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)

_SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>_\-+=\[\]\\/;'`~]")
_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]{3,30}$")


class PasswordStrengthError(InvalidInputError):
    """Raised when a password does not meet strength requirements."""


def hash_password(password: str) -> str:
    """Hash a password using argon2id. Returns the full hash string."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its argon2id hash.

    Returns True if the password matches. Never raises on mismatch.
    """
    try:
        return _hasher.verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False


def check_needs_rehash(password_hash: str) -> bool:
    """Check if the hash needs to be updated (parameters changed)."""
    return _hasher.check_needs_rehash(password_hash)


def upgraded_hash(password: str, password_hash: str) -> str | None:
    """New hash for a verified password when the stored one is outdated, else None."""
    if check_needs_rehash(password_hash):
        return hash_password(password)
    return None


def unusable_password_hash() -> str:
    """Hash of a random secret nobody knows (accounts created through OAuth)."""
    return hash_password(secrets.token_urlsafe(32))


def validate_password_strength(password: str) -> None:
    """
    Validate password meets minimum strength requirements.

    Requirements:
    - Between ``password_min_length`` and ``password_max_length`` characters
    - At least one uppercase letter, one lowercase letter and one digit
    - At least one special character
    - Must not be empty or whitespace-only

    Raises:
        PasswordStrengthError: If the password is too weak.
    """
    settings = get_settings()
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < settings.password_min_length:
        msg = f"Password must be at least {settings.password_min_length} characters"
        raise PasswordStrengthError(msg)
    if len(password) > settings.password_max_length:
        msg = f"Password must not exceed {settings.password_max_length} characters"
        raise PasswordStrengthError(msg)
    if not any(c.isupper() for c in password):
        msg = "Password must contain at least one uppercase letter"
        raise PasswordStrengthError(msg)
    if not any(c.islower() for c in password):
        msg = "Password must contain at least one lowercase letter"
        raise PasswordStrengthError(msg)
    if not any(c.isdigit() for c in password):
        msg = "Password must contain at least one number"
        raise PasswordStrengthError(msg)
    if not _SPECIAL_CHARS.search(password):
        msg = "Password must contain at least one special character"
        raise PasswordStrengthError(msg)


def validate_username(username: str) -> None:
    """Usernames are 3-30 letters, digits, underscores or hyphens."""
    if not _USERNAME_RE.match(username):
        msg = "Username must be 3-30 characters and contain only letters, numbers, underscores, or hyphens"
        raise InvalidInputError(msg)
