"""Unit tests for JWT decoding and authentication utilities."""

import time
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import UUID

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from jwt.algorithms import ECAlgorithm

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt, get_signing_key

OPERATOR_ID = "550e8400-e29b-41d4-a716-446655440000"

SIGNING_KEY = ec.generate_private_key(ec.SECP256R1())
OTHER_KEY = ec.generate_private_key(ec.SECP256R1())
PUBLIC_JWK = ECAlgorithm.to_jwk(SIGNING_KEY.public_key())


def create_test_token(
    sub: str | None = OPERATOR_ID,
    email: str | None = "ops@example.com",
    role: str | None = "authenticated",
    exp_offset: int = 3600,
    key: Any = SIGNING_KEY,
) -> str:
    """Create an ES256 test token.

    Args:
        sub: Subject (operator ID); None omits the claim.
        email: Operator email.
        role: Role claim.
        exp_offset: Seconds from now for expiration (negative for expired).
        key: EC private key used for signing.

    Returns:
        str: Encoded JWT token.
    """
    now = int(time.time())
    payload: dict[str, Any] = {
        "email": email,
        "role": role,
        "exp": now + exp_offset,
        "iat": now,
        "aud": "authenticated",
        "iss": "https://test-project.supabase.co/auth/v1",
    }
    if sub is not None:
        payload["sub"] = sub
    return jwt.encode(payload, key, algorithm="ES256")


@pytest.fixture
def signing_settings() -> Generator[MagicMock, None, None]:
    """Configure the signing key JWK and reset the cached key."""
    get_signing_key.cache_clear()
    with patch("src.api.middleware.auth.get_settings") as mock_get_settings:
        mock_get_settings.return_value.supabase_signing_key_jwk = PUBLIC_JWK
        yield mock_get_settings.return_value
    get_signing_key.cache_clear()


class TestDecodeJWT:
    """Tests for decode_jwt function."""

    def test_decode_jwt_with_valid_token(self, signing_settings: MagicMock) -> None:
        """Test decode_jwt successfully decodes a valid token."""
        payload = decode_jwt(create_test_token())

        assert payload.sub == OPERATOR_ID
        assert payload.email == "ops@example.com"
        assert payload.role == "authenticated"
        assert payload.aud == "authenticated"

    def test_decode_jwt_with_expired_token(self, signing_settings: MagicMock) -> None:
        """Test decode_jwt raises AuthError for expired token."""
        token = create_test_token(exp_offset=-3600)

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.TOKEN_EXPIRED
        assert "expired" in exc_info.value.message.lower()

    def test_decode_jwt_with_invalid_signature(self, signing_settings: MagicMock) -> None:
        """Test decode_jwt rejects a token signed with another key."""
        token = create_test_token(key=OTHER_KEY)

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.INVALID_SIGNATURE

    def test_decode_jwt_with_malformed_token(self, signing_settings: MagicMock) -> None:
        """Test decode_jwt raises AuthError for malformed token."""
        with pytest.raises(AuthError) as exc_info:
            decode_jwt("not-a-valid-jwt")

        assert exc_info.value.code == AuthErrorCode.INVALID_TOKEN

    def test_decode_jwt_with_empty_token(self, signing_settings: MagicMock) -> None:
        """Test decode_jwt raises AuthError for empty token."""
        with pytest.raises(AuthError) as exc_info:
            decode_jwt("")

        assert exc_info.value.code == AuthErrorCode.INVALID_TOKEN

    def test_decode_jwt_missing_sub_claim(self, signing_settings: MagicMock) -> None:
        """Test decode_jwt requires the sub claim."""
        token = create_test_token(sub=None)

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.INVALID_TOKEN
        assert "sub" in exc_info.value.message

    def test_decode_jwt_converts_to_user_context(self, signing_settings: MagicMock) -> None:
        """Test that decoded claims become the operator context."""
        user = decode_jwt(create_test_token()).to_user_context()

        assert user.user_id == UUID(OPERATOR_ID)
        assert user.actor_id == OPERATOR_ID
        assert user.email == "ops@example.com"

    def test_decode_jwt_optional_fields(self, signing_settings: MagicMock) -> None:
        """Test that email and role may be absent."""
        payload = decode_jwt(create_test_token(email=None, role=None))

        assert payload.email is None
        assert payload.role is None


class TestGetSigningKey:
    """Tests for signing key loading."""

    def test_missing_key(self) -> None:
        """Test that an unset JWK is rejected."""
        get_signing_key.cache_clear()
        with patch("src.api.middleware.auth.get_settings") as mock_get_settings:
            mock_get_settings.return_value.supabase_signing_key_jwk = ""

            with pytest.raises(AuthError) as exc_info:
                get_signing_key()

        get_signing_key.cache_clear()
        assert exc_info.value.code == AuthErrorCode.INVALID_TOKEN

    def test_invalid_json(self) -> None:
        """Test that a JWK that is not JSON is rejected."""
        get_signing_key.cache_clear()
        with patch("src.api.middleware.auth.get_settings") as mock_get_settings:
            mock_get_settings.return_value.supabase_signing_key_jwk = "not-json"

            with pytest.raises(AuthError) as exc_info:
                get_signing_key()

        get_signing_key.cache_clear()
        assert "JWK" in exc_info.value.message
