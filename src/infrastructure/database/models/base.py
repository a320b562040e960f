# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Declarative base and shared column mixins for QuestLMS models.

Primary keys are string UUIDs generated client-side so the same models
work on PostgreSQL and SQLite.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.utils.datetime import utc_now


def generate_uuid() -> str:
    """Generate a new string UUID primary key."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Declarative base for all QuestLMS tables."""


class UUIDPrimaryKeyMixin:
    """Adds a string UUID primary key column named id."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)


class TimestampMixin:
    """Adds created_at and updated_at columns maintained by the ORM."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )
