# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""JWT token management utilities.

The identity provider issues access tokens carrying the learner id and
role; QuestLMS validates them with python-jose. Token creation is used by
the seed script and tests.

Example:
    >>> from src.core.config import get_settings
    >>> jwt_manager = JWTManager(get_settings().jwt)
    >>> token = jwt_manager.create_access_token(learner_id="learner-123", role="STUDENT")
    >>> claims = jwt_manager.decode_token(token)
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Literal

from jose import ExpiredSignatureError, JWTError as JoseJWTError, jwt
from pydantic import BaseModel

from src.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)

Role = Literal["STUDENT", "ADMIN"]


class TokenPayload(BaseModel):
    """JWT token payload structure.

    Attributes:
        sub: Subject (learner ID).
        type: Token type.
        role: Learner role (STUDENT or ADMIN).
        name: Display name, used for discussion author labels.
        exp: Expiration timestamp.
        iat: Issued at timestamp.
        jti: JWT ID for token tracking.
    """

    sub: str
    type: Literal["access"] = "access"
    role: Role = "STUDENT"
    name: str | None = None
    exp: int
    iat: int
    jti: str


class JWTError(Exception):
    """Base exception for JWT operations."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid."""

    pass


class JWTManager:
    """JWT token creation and validation manager.

    Attributes:
        _settings: JWT configuration settings.
    """

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    def create_access_token(
        self,
        learner_id: str,
        role: Role = "STUDENT",
        name: str | None = None,
        expires_minutes: int | None = None,
    ) -> str:
        """Create an access token.

        Args:
            learner_id: Learner identifier.
            role: Learner role.
            name: Optional display name.
            expires_minutes: Override of the configured lifetime.

        Returns:
            JWT access token string.
        """
        now = datetime.now(timezone.utc)
        lifetime = expires_minutes
        if lifetime is None:
            lifetime = self._settings.access_token_expire_minutes
        exp = now + timedelta(minutes=lifetime)

        payload = {
            "sub": str(learner_id),
            "type": "access",
            "role": role,
            "name": name,
            "exp": int(exp.timestamp()),
            "iat": int(now.timestamp()),
            "jti": secrets.token_urlsafe(16),
        }

        return jwt.encode(
            payload,
            self._settings.secret_key.get_secret_value(),
            algorithm=self._settings.algorithm,
        )

    def decode_token(self, token: str) -> TokenPayload:
        """Decode and validate an access token.

        Args:
            token: JWT token string.

        Returns:
            TokenPayload with decoded claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the token is invalid or malformed.
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key.get_secret_value(),
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JoseJWTError as e:
            logger.warning("Token decode failed: %s", str(e))
            raise InvalidTokenError(f"Invalid token: {e}") from e

        if payload.get("type", "access") != "access":
            raise InvalidTokenError(f"Expected access token, got {payload.get('type')}")

        try:
            return TokenPayload.model_validate(payload)
        except ValueError as e:
            raise InvalidTokenError(f"Invalid token claims: {e}") from e

    def verify_token(self, token: str) -> bool:
        """Check whether a token is valid without raising."""
        try:
            self.decode_token(token)
            return True
        except JWTError:
            return False
