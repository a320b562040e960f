# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authentication domain.

Login and registration belong to the external identity provider; this
package only validates the access tokens it issues.

Exports:
    JWTManager: JWT token creation and validation.
    TokenPayload: Decoded token claims.
"""

from src.domains.auth.jwt import (
    InvalidTokenError,
    JWTError,
    JWTManager,
    TokenExpiredError,
    TokenPayload,
)

__all__ = [
    "JWTManager",
    "TokenPayload",
    "JWTError",
    "TokenExpiredError",
    "InvalidTokenError",
]
