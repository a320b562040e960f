# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for JWT token utilities.

Tests the JWTManager class and the request-side token helpers.
"""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from jose import jwt
from pydantic import SecretStr

from src.api.middleware.auth import CurrentUser, extract_bearer_token
from src.domains.auth.jwt import (
    InvalidTokenError,
    JWTManager,
    TokenExpiredError,
    TokenPayload,
)


@pytest.fixture
def jwt_settings() -> MagicMock:
    """Create mock JWT settings."""
    settings = MagicMock()
    settings.secret_key = SecretStr("test-secret-key-for-jwt-testing")
    settings.algorithm = "HS256"
    settings.access_token_expire_minutes = 30
    return settings


@pytest.fixture
def jwt_manager(jwt_settings: MagicMock) -> JWTManager:
    """Create JWT manager with test settings."""
    return JWTManager(jwt_settings)


class TestJWTManager:
    """Tests for JWTManager class."""

    def test_decode_access_token_returns_payload(self, jwt_manager: JWTManager) -> None:
        """Test that decode_token returns the learner claims."""
        learner_id = str(uuid4())

        token = jwt_manager.create_access_token(learner_id, role="ADMIN", name="Grace")
        payload = jwt_manager.decode_token(token)

        assert isinstance(payload, TokenPayload)
        assert payload.sub == learner_id
        assert payload.type == "access"
        assert payload.role == "ADMIN"
        assert payload.name == "Grace"
        assert payload.exp - payload.iat == 30 * 60

    def test_role_defaults_to_student(self, jwt_manager: JWTManager) -> None:
        token = jwt_manager.create_access_token(str(uuid4()))

        assert jwt_manager.decode_token(token).role == "STUDENT"

    def test_decode_expired_token_raises_error(self, jwt_manager: JWTManager) -> None:
        """Test that an expired token is rejected."""
        token = jwt_manager.create_access_token(str(uuid4()), expires_minutes=-1)

        with pytest.raises(TokenExpiredError):
            jwt_manager.decode_token(token)

    def test_decode_token_signed_with_other_secret_raises_error(
        self,
        jwt_manager: JWTManager,
    ) -> None:
        """Test that a token signed with another secret is rejected."""
        other = MagicMock()
        other.secret_key = SecretStr("another-secret")
        other.algorithm = "HS256"
        other.access_token_expire_minutes = 30
        token = JWTManager(other).create_access_token(str(uuid4()))

        with pytest.raises(InvalidTokenError):
            jwt_manager.decode_token(token)

    def test_decode_malformed_token_raises_error(self, jwt_manager: JWTManager) -> None:
        with pytest.raises(InvalidTokenError):
            jwt_manager.decode_token("not-a-jwt")

    def test_decode_token_with_wrong_type_raises_error(
        self,
        jwt_manager: JWTManager,
        jwt_settings: MagicMock,
    ) -> None:
        """Test that non-access tokens are rejected."""
        token = jwt.encode(
            {"sub": "x", "type": "refresh", "exp": 9999999999, "iat": 0, "jti": "j"},
            jwt_settings.secret_key.get_secret_value(),
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError, match="Expected access token"):
            jwt_manager.decode_token(token)

    def test_decode_token_with_unknown_role_raises_error(
        self,
        jwt_manager: JWTManager,
        jwt_settings: MagicMock,
    ) -> None:
        token = jwt.encode(
            {"sub": "x", "role": "TEACHER", "exp": 9999999999, "iat": 0, "jti": "j"},
            jwt_settings.secret_key.get_secret_value(),
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError, match="Invalid token claims"):
            jwt_manager.decode_token(token)

    def test_verify_token(self, jwt_manager: JWTManager) -> None:
        token = jwt_manager.create_access_token(str(uuid4()))

        assert jwt_manager.verify_token(token) is True
        assert jwt_manager.verify_token(token + "x") is False


class TestTokenHelpers:
    """Tests for bearer extraction and the current user wrapper."""

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Bearer abc", "abc"),
            ("bearer abc", "abc"),
            ("Basic abc", None),
            ("Bearer", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract_bearer_token(self, header: str | None, expected: str | None) -> None:
        assert extract_bearer_token(header) == expected

    def test_current_user_from_payload(self, jwt_manager: JWTManager) -> None:
        token = jwt_manager.create_access_token("learner-1", role="ADMIN", name="Grace")
        user = CurrentUser(jwt_manager.decode_token(token))

        assert user.id == "learner-1"
        assert user.name == "Grace"
        assert user.is_admin is True
