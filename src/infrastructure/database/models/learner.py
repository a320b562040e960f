# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner model.

Learners are provisioned by the identity provider. QuestLMS only mutates
the XP and level columns, and only through the reward ledger.
"""

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Learner(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A platform user, either a STUDENT or an ADMIN."""

    __tablename__ = "learners"
    __table_args__ = (
        CheckConstraint("xp_points >= 0", name="ck_learners_xp_non_negative"),
        CheckConstraint("level >= 1", name="ck_learners_level_positive"),
        CheckConstraint("role IN ('STUDENT', 'ADMIN')", name="ck_learners_role"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="STUDENT")
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    xp_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    @property
    def is_admin(self) -> bool:
        """Check whether the learner holds the ADMIN role."""
        return self.role == "ADMIN"

    def __repr__(self) -> str:
        return f"<Learner {self.email} xp={self.xp_points} level={self.level}>"
