# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial QuestLMS schema.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2025-06-02

Creates every table backing the SQLAlchemy models in
src/infrastructure/database/models/.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _fk(column: str, target: str) -> sa.Column:
    return sa.Column(
        column,
        sa.String(36),
        sa.ForeignKey(f"{target}.id", ondelete="CASCADE"),
        nullable=False,
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.func.now(),
    )


def upgrade() -> None:
    """Create QuestLMS tables."""
    # ==========================================================================
    # 1. learners
    # ==========================================================================
    op.create_table(
        "learners",
        _id_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="STUDENT"),
        sa.Column("avatar", sa.String(500), nullable=True),
        sa.Column("xp_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("level", sa.Integer, nullable=False, server_default="1"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("xp_points >= 0", name="ck_learners_xp_non_negative"),
        sa.CheckConstraint("level >= 1", name="ck_learners_level_positive"),
        sa.CheckConstraint("role IN ('STUDENT', 'ADMIN')", name="ck_learners_role"),
    )

    # ==========================================================================
    # 2. programs, episodes
    # ==========================================================================
    op.create_table(
        "programs",
        _id_column(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("reward_points", sa.Integer, nullable=False, server_default="100"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "episodes",
        _id_column(),
        _fk("program_id", "programs"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("video_url", sa.String(500), nullable=True),
        sa.Column("duration", sa.Integer, nullable=True),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_episodes_program_order", "episodes", ["program_id", "order"])

    # ==========================================================================
    # 3. quizzes, questions
    # ==========================================================================
    op.create_table(
        "quizzes",
        _id_column(),
        _fk("program_id", "programs"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_quizzes_program_id", "quizzes", ["program_id"])

    op.create_table(
        "questions",
        _id_column(),
        _fk("quiz_id", "quizzes"),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("options", sa.JSON, nullable=False),
        sa.Column("answer", sa.Integer, nullable=False),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        sa.CheckConstraint("answer >= 0", name="ck_questions_answer_non_negative"),
    )
    op.create_index("ix_questions_quiz_id", "questions", ["quiz_id"])

    # ==========================================================================
    # 4. progress facts
    # ==========================================================================
    op.create_table(
        "episode_progress",
        _id_column(),
        _fk("learner_id", "learners"),
        _fk("episode_id", "episodes"),
        sa.Column("completed", sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp("completed_at"),
        sa.UniqueConstraint(
            "learner_id", "episode_id", name="uq_episode_progress_learner_episode"
        ),
    )
    op.create_index("ix_episode_progress_learner_id", "episode_progress", ["learner_id"])

    op.create_table(
        "quiz_results",
        _id_column(),
        _fk("learner_id", "learners"),
        _fk("quiz_id", "quizzes"),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("total", sa.Integer, nullable=False),
        sa.Column("passed", sa.Boolean, nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index("ix_quiz_results_learner_quiz", "quiz_results", ["learner_id", "quiz_id"])

    # ==========================================================================
    # 5. enrollments
    # ==========================================================================
    op.create_table(
        "enrollments",
        _id_column(),
        _fk("learner_id", "learners"),
        _fk("program_id", "programs"),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completed", sa.Boolean, nullable=False, server_default=sa.false()),
        _timestamp("enrolled_at"),
        _timestamp("completed_at", nullable=True),
        sa.Column("xp_claimed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("learner_id", "program_id", name="uq_enrollments_learner_program"),
        sa.CheckConstraint(
            "progress >= 0 AND progress <= 100", name="ck_enrollments_progress_range"
        ),
        sa.CheckConstraint(
            "NOT completed OR progress = 100", name="ck_enrollments_completed_full"
        ),
        sa.CheckConstraint(
            "NOT xp_claimed OR completed", name="ck_enrollments_claim_after_completion"
        ),
    )
    op.create_index("ix_enrollments_learner_id", "enrollments", ["learner_id"])
    op.create_index("ix_enrollments_program_id", "enrollments", ["program_id"])

    # ==========================================================================
    # 6. discussion_messages
    # ==========================================================================
    op.create_table(
        "discussion_messages",
        _id_column(),
        _fk("program_id", "programs"),
        _fk("learner_id", "learners"),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("likes", sa.Integer, nullable=False, server_default="0"),
        _timestamp("created_at"),
        sa.CheckConstraint("likes >= 0", name="ck_discussion_messages_likes_non_negative"),
    )
    op.create_index(
        "ix_discussion_messages_program_created",
        "discussion_messages",
        ["program_id", "created_at"],
    )


def downgrade() -> None:
    """Drop QuestLMS tables in reverse dependency order."""
    op.drop_table("discussion_messages")
    op.drop_table("enrollments")
    op.drop_table("quiz_results")
    op.drop_table("episode_progress")
    op.drop_table("questions")
    op.drop_table("quizzes")
    op.drop_table("episodes")
    op.drop_table("programs")
    op.drop_table("learners")
