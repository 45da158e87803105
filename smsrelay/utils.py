"""
Utility functions for the SMS relay API.
"""

import hashlib
import hmac
import logging
import secrets

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 260000


def hash_password(password: str) -> str:
    """
    Hash a password with PBKDF2-SHA256 and a random salt.

    Returns:
        "pbkdf2_sha256$<iterations>$<salt>$<hex digest>"
    """
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS
    ).hex()
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest}"


def verify_password(password: str, encoded: str) -> bool:
    """
    Check a password against a value produced by hash_password.

    Args:
        password: Plain-text candidate
        encoded: Stored hash string

    Returns:
        True if the password matches, False otherwise (including malformed hashes)
    """
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False
    if algorithm != "pbkdf2_sha256":
        return False

    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        int(iterations)
    ).hex()

    # Use constant-time comparison to prevent timing attacks
    return hmac.compare_digest(digest, expected)


def mask_phone_number(phone_number: str) -> str:
    """Keep only the last four digits, for logging."""
    if len(phone_number) <= 4:
        return "*" * len(phone_number)
    return "*" * (len(phone_number) - 4) + phone_number[-4:]
