# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Rate limiting using slowapi.

Limits are applied per client: the learner id when authenticated,
otherwise the IP address.

Example:
    @router.post("")
    @limiter.limit(RATE_LIMIT_DISCUSSION_POST)
    async def post_message(request: Request, ...):
        ...
"""

import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from src.core.config import get_settings

logger = logging.getLogger(__name__)


def get_client_identifier(request: Request) -> str:
    """Get a unique identifier for the client.

    Args:
        request: HTTP request.

    Returns:
        Client identifier string.
    """
    user = getattr(request.state, "user", None)
    if user:
        return f"learner:{user.id}"
    return f"ip:{get_remote_address(request)}"


settings = get_settings()
limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[f"{settings.rate_limit.requests_per_minute}/minute"],
    storage_uri=settings.rate_limit.storage_uri,
    enabled=settings.rate_limit.enabled,
)


async def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Returns a 429 Too Many Requests response in the API error format.
    """
    logger.warning(
        "Rate limit exceeded: %s for %s",
        exc.detail,
        get_client_identifier(request),
    )

    return JSONResponse(
        status_code=429,
        content={"error": "rate_limited", "detail": "Too many requests. Please try again later."},
        headers={"Retry-After": "60"},
    )


# Common rate limit configurations
RATE_LIMIT_DISCUSSION_POST = "30/minute"  # Room messages
RATE_LIMIT_DISCUSSION_LIKE = "120/minute"  # Likes
RATE_LIMIT_QUIZ_SUBMIT = "20/minute"  # Quiz attempts
