"""
Tests for security utilities.

Covers bcrypt password hashing, the unusable guest password hash and the
random token and code generators used for share tokens, invoice numbers and
guest e-mail suffixes.
"""

import re
from unittest.mock import patch

import pytest

from src.core.security import (
    LOWERCASE_ALPHANUMERIC,
    PasswordError,
    generate_hex_token,
    generate_random_code,
    generate_unusable_password_hash,
    hash_password,
)


# ============================================================================
# Password Hashing Tests
# ============================================================================


class TestPasswordHashing:
    """Test suite for bcrypt password hashing."""

    def test_hash_format(self):
        """Test that hashes use bcrypt with the configured cost factor."""
        hashed = hash_password("correct horse")

        assert hashed.startswith("$2b$12$")
        assert len(hashed) == 60
        assert "correct horse" not in hashed

    def test_hash_is_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_empty_password_rejected(self):
        with pytest.raises(PasswordError) as exc_info:
            hash_password("")

        assert exc_info.value.code == "EMPTY_PASSWORD"


class TestUnusablePasswordHash:
    """Test suite for guest account password hashes."""

    def test_hash_of_discarded_secret(self):
        """Test that the secret behind the hash is random and never returned."""
        with patch("src.core.security.hash_password", return_value="$2b$12$x") as hashed:
            result = generate_unusable_password_hash()

        assert result == "$2b$12$x"
        secret = hashed.call_args.args[0]
        assert len(secret) >= 43

    def test_two_guests_get_different_hashes(self):
        assert generate_unusable_password_hash() != generate_unusable_password_hash()


# ============================================================================
# Random Generator Tests
# ============================================================================


class TestRandomGenerators:
    """Test suite for token and code generation."""

    def test_hex_token_default_is_256_bits(self):
        assert re.fullmatch(r"[0-9a-f]{64}", generate_hex_token())

    def test_hex_token_custom_length(self):
        assert len(generate_hex_token(8)) == 16

    def test_hex_token_invalid_length(self):
        with pytest.raises(ValueError):
            generate_hex_token(0)

    def test_random_code_default_alphabet(self):
        assert re.fullmatch(r"[A-Z0-9]{6}", generate_random_code(6))

    def test_random_code_custom_alphabet(self):
        code = generate_random_code(12, LOWERCASE_ALPHANUMERIC)

        assert re.fullmatch(r"[a-z0-9]{12}", code)

    @pytest.mark.parametrize("length,alphabet", [(0, "AB"), (-1, "AB"), (4, "")])
    def test_random_code_invalid_arguments(self, length, alphabet):
        with pytest.raises(ValueError):
            generate_random_code(length, alphabet)

    def test_random_codes_spread_over_alphabet(self):
        """Test that many draws use every character of a small alphabet."""
        drawn = set("".join(generate_random_code(10, "ABC") for _ in range(50)))

        assert drawn == {"A", "B", "C"}
