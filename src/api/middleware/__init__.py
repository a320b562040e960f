# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware components.

This package provides middleware for request processing:
- AuthMiddleware: JWT authentication.
- RequestContextMiddleware: Request-scoped logging context.
- limiter: slowapi rate limiter.
"""

from src.api.middleware.auth import AuthMiddleware, CurrentUser
from src.api.middleware.context import RequestContextMiddleware
from src.api.middleware.rate_limit import limiter

__all__ = [
    "AuthMiddleware",
    "CurrentUser",
    "RequestContextMiddleware",
    "limiter",
]
