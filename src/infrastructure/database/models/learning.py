# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learning content and progress models.

Content side: Program owns ordered Episodes and Quizzes, a Quiz owns
ordered Questions. Progress side: EpisodeProgress marks, append-only
QuizResult attempts and the Enrollment aggregate for each
(learner, program) pair.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.utils.datetime import utc_now


class Program(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A catalog entry learners enroll in."""

    __tablename__ = "programs"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    episodes: Mapped[list["Episode"]] = relationship(
        back_populates="program",
        cascade="all, delete-orphan",
        order_by="Episode.order",
    )
    quizzes: Mapped[list["Quiz"]] = relationship(
        back_populates="program",
        cascade="all, delete-orphan",
    )


class Episode(UUIDPrimaryKeyMixin, Base):
    """An ordered unit of video content inside a program."""

    __tablename__ = "episodes"
    __table_args__ = (Index("ix_episodes_program_order", "program_id", "order"),)

    program_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("programs.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    video_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    program: Mapped[Program] = relationship(back_populates="episodes")


class EpisodeProgress(UUIDPrimaryKeyMixin, Base):
    """Per (learner, episode) completion mark. Written with upsert semantics."""

    __tablename__ = "episode_progress"
    __table_args__ = (
        UniqueConstraint("learner_id", "episode_id", name="uq_episode_progress_learner_episode"),
    )

    learner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("learners.id", ondelete="CASCADE"), nullable=False, index=True
    )
    episode_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("episodes.id", ondelete="CASCADE"), nullable=False
    )
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class Quiz(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A graded question set belonging to a program."""

    __tablename__ = "quizzes"

    program_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True
    )

    program: Mapped[Program] = relationship(back_populates="quizzes")
    questions: Mapped[list["Question"]] = relationship(
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.order",
    )


class Question(UUIDPrimaryKeyMixin, Base):
    """A multiple-choice question. answer is the index of the correct option."""

    __tablename__ = "questions"
    __table_args__ = (CheckConstraint("answer >= 0", name="ck_questions_answer_non_negative"),)

    quiz_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    answer: Mapped[int] = mapped_column(Integer, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    quiz: Mapped[Quiz] = relationship(back_populates="questions")


class QuizResult(UUIDPrimaryKeyMixin, Base):
    """One grading attempt. Never updated after creation."""

    __tablename__ = "quiz_results"
    __table_args__ = (Index("ix_quiz_results_learner_quiz", "learner_id", "quiz_id"),)

    learner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("learners.id", ondelete="CASCADE"), nullable=False
    )
    quiz_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class Enrollment(UUIDPrimaryKeyMixin, Base):
    """Progress, completion and reward-claim state of a learner in a program."""

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("learner_id", "program_id", name="uq_enrollments_learner_program"),
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_enrollments_progress_range"),
        CheckConstraint("NOT completed OR progress = 100", name="ck_enrollments_completed_full"),
        CheckConstraint("NOT xp_claimed OR completed", name="ck_enrollments_claim_after_completion"),
    )

    learner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("learners.id", ondelete="CASCADE"), nullable=False, index=True
    )
    program_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    xp_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    program: Mapped[Program] = relationship()

    @property
    def claimable(self) -> bool:
        """Check whether the reward for this enrollment can be claimed."""
        return self.completed and not self.xp_claimed

    def __repr__(self) -> str:
        return (
            f"<Enrollment learner={self.learner_id} program={self.program_id} "
            f"progress={self.progress} completed={self.completed}>"
        )
