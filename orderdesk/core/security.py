"""
Password Hashing

PBKDF2-HMAC-SHA512 hashes stored as ``"<hex salt>$<hex digest>"``.
Only used when seeding the admin account and at login.
"""

import hashlib
import hmac
import secrets
from typing import Callable, Optional

ITERATIONS = 100_000
KEY_LENGTH = 64
SALT_BYTES = 16

# (password, stored_hash) -> matches
PasswordVerifier = Callable[[str, str], bool]


def _derive(password: str, salt: str) -> bytes:
    return hashlib.pbkdf2_hmac(
        "sha512",
        str(password or "").encode("utf-8"),
        salt.encode("utf-8"),
        ITERATIONS,
        dklen=KEY_LENGTH,
    )


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Hash a password with a fresh random salt unless one is given."""
    salt = salt or secrets.token_hex(SALT_BYTES)
    return f"{salt}${_derive(password, salt).hex()}"


def verify_password(password: str, stored: str) -> bool:
    """
    Check a password against a stored hash.

    Malformed stored values never match.
    """
    if not stored or "$" not in stored:
        return False

    salt, _, expected_hex = stored.partition("$")
    if not salt or not expected_hex:
        return False

    try:
        expected = bytes.fromhex(expected_hex)
    except ValueError:
        return False

    return hmac.compare_digest(_derive(password, salt), expected)
