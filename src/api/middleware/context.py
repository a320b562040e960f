# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request context middleware.

Binds a request id and the authenticated learner id to the structlog
context for the duration of a request, and echoes the request id in the
X-Request-ID response header.
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request-scoped logging fields.

    Must run after AuthMiddleware so the learner id is known.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        user = getattr(request.state, "user", None)

        clear_context()
        bind_context(
            request_id=request_id,
            learner_id=user.id if user else None,
        )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_context()

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
