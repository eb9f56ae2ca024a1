"""
Security utilities for password hashing and random secret generation.

This module provides the cryptographic helpers the checkout pipeline relies on:
- Password hashing with bcrypt (used for the unusable placeholder password
  given to guest accounts)
- Cryptographically secure random tokens and identifiers

All randomness comes from the ``secrets`` module; nothing here may use the
``random`` module since tokens produced here grant public read access.
"""

import secrets
import string

from passlib.context import CryptContext

from src.core.logging import get_logger

logger = get_logger(__name__)

# Password hashing context with bcrypt
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12,
    bcrypt__ident="2b",
)

UPPERCASE_ALPHANUMERIC = string.ascii_uppercase + string.digits
LOWERCASE_ALPHANUMERIC = string.ascii_lowercase + string.digits


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.code = code
        self.context = context


class PasswordError(SecurityError):
    """Exception raised for password-related errors."""

    pass


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt with proper salt rounds.

    Args:
        password: Plain text password to hash

    Returns:
        Hashed password string

    Raises:
        PasswordError: If password hashing fails
    """
    if not password:
        logger.error("Attempted to hash empty password")
        raise PasswordError(
            "Password cannot be empty",
            code="EMPTY_PASSWORD",
        )

    try:
        return pwd_context.hash(password)
    except Exception as e:
        logger.error(
            "Password hashing failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise PasswordError(
            "Failed to hash password",
            code="HASH_FAILED",
            original_error=str(e),
        ) from e


def generate_unusable_password_hash() -> str:
    """
    Hash a random secret that is discarded immediately.

    Guest accounts need a stored password hash to satisfy the users table,
    but nobody may ever be able to log in with it.

    Returns:
        Bcrypt hash of a 256-bit random secret
    """
    return hash_password(secrets.token_urlsafe(32))


def generate_hex_token(num_bytes: int = 32) -> str:
    """
    Generate a cryptographically secure hex token.

    Args:
        num_bytes: Number of random bytes (default: 32, i.e. 256 bits)

    Returns:
        Hex-encoded token, two characters per byte

    Raises:
        ValueError: If num_bytes is not positive
    """
    if num_bytes <= 0:
        raise ValueError("Token length must be positive")
    return secrets.token_hex(num_bytes)


def generate_random_code(length: int, alphabet: str = UPPERCASE_ALPHANUMERIC) -> str:
    """
    Draw ``length`` characters uniformly from ``alphabet`` using ``secrets``.

    Args:
        length: Number of characters
        alphabet: Characters to choose from

    Returns:
        Random string

    Raises:
        ValueError: If length is not positive or alphabet is empty
    """
    if length <= 0:
        raise ValueError("Code length must be positive")
    if not alphabet:
        raise ValueError("Alphabet cannot be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))
