# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP client for the discussion REST endpoints.

Example:
    async with DiscussionAPI("http://localhost:3000", token) as api:
        messages = await api.list_messages(program_id)
        saved = await api.post_message(program_id, "Hello")
"""

import logging
from typing import Any

import httpx

from src.models.discussion import DiscussionMessageResponse, LikeResponse

logger = logging.getLogger(__name__)


class DiscussionAPIError(Exception):
    """Raised when a discussion request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status, or None if the server was unreachable.
        error: Machine-readable error code from the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error = error


class DiscussionAPI:
    """Async REST client for program discussion rooms."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Server root, e.g. http://localhost:3000.
            token: Bearer access token.
            timeout: Request timeout in seconds.
            client: Preconfigured httpx client, mainly for tests.
        """
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {token}"}

    async def __aenter__(self) -> "DiscussionAPI":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def list_messages(
        self,
        program_id: str,
        limit: int | None = None,
    ) -> list[DiscussionMessageResponse]:
        """Fetch a room's messages, oldest first."""
        params: dict[str, Any] = {"programId": program_id}
        if limit is not None:
            params["limit"] = limit
        data = await self._request("GET", "/api/v1/discussion", params=params)
        return [DiscussionMessageResponse.model_validate(item) for item in data.get("items", [])]

    async def post_message(self, program_id: str, message: str) -> DiscussionMessageResponse:
        """Persist a message and return the stored record."""
        data = await self._request(
            "POST",
            "/api/v1/discussion",
            json={"programId": program_id, "message": message},
        )
        return DiscussionMessageResponse.model_validate(data)

    async def like_message(self, message_id: str) -> LikeResponse:
        """Increment a message's like counter."""
        data = await self._request("POST", f"/api/v1/discussion/{message_id}/like")
        return LikeResponse.model_validate(data)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                f"{self._base_url}{path}",
                headers=self._headers,
                **kwargs,
            )
        except httpx.RequestError as e:
            logger.warning("Discussion request failed: %s %s: %s", method, path, e)
            raise DiscussionAPIError(f"Server unreachable: {e}") from e

        if response.is_success:
            return response.json()

        error = None
        detail = response.text
        try:
            body = response.json()
            error = body.get("error")
            detail = body.get("detail", detail)
        except ValueError:
            pass

        raise DiscussionAPIError(str(detail), status_code=response.status_code, error=error)
