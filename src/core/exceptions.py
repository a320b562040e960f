# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error hierarchy shared by all QuestLMS domains.

Every domain error inherits from one of the categories below so the API
layer can translate it into a typed response without knowing the domain:

- QuestError: Base exception for all domain errors
- UnauthorizedError: No authenticated identity
- ForbiddenError: Authenticated, but the role does not allow the operation
- NotFoundError: Program, quiz, episode, message or enrollment absent
- InvalidInputError: Malformed request data (answer count, question shape)
- PreconditionFailedError: Operation not allowed in the current state
- ConflictError: Concurrent modification that could not be reconciled

ProgramNotFoundError and LearnerNotFoundError are shared by several domains.
"""


class QuestError(Exception):
    """Base exception for all QuestLMS domain errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
        code: Stable machine-readable error category.
        status_code: HTTP status used when surfaced by the API.
    """

    code = "error"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert to the structured error body returned by the API."""
        body: dict = {"error": self.code, "detail": self.message}
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(QuestError):
    """Raised when no authenticated identity is available."""

    code = "unauthorized"
    status_code = 401


class ForbiddenError(QuestError):
    """Raised when the caller's role does not permit the operation."""

    code = "forbidden"
    status_code = 403


class NotFoundError(QuestError):
    """Raised when a referenced entity does not exist."""

    code = "not_found"
    status_code = 404


class InvalidInputError(QuestError):
    """Raised when request data is malformed."""

    code = "invalid_input"
    status_code = 400


class PreconditionFailedError(QuestError):
    """Raised when an operation is not allowed in the current state."""

    code = "precondition_failed"
    status_code = 412


class ConflictError(QuestError):
    """Raised when a concurrent modification could not be reconciled."""

    code = "conflict"
    status_code = 409


# ========== Shared domain errors ==========


class ProgramNotFoundError(NotFoundError):
    """Raised when a program does not exist."""


class LearnerNotFoundError(NotFoundError):
    """Raised when a learner does not exist."""
