# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Demo seed data.

Creates an admin, a learner and one program with two episodes and a
single-question quiz. Seeding is idempotent: existing rows (matched by
email or program title) are reused.

Usage:
    python -m src.infrastructure.database.seeds.demo
"""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models import (
    Episode,
    Learner,
    Program,
    Question,
    Quiz,
)

logger = logging.getLogger(__name__)

DEMO_PROGRAM_TITLE = "Intro to Quest Learning"


async def seed_learners(session: AsyncSession) -> list[Learner]:
    """Seed the demo admin and learner.

    Args:
        session: Database session.

    Returns:
        The admin and learner, in that order.
    """
    learners_data = [
        {"name": "Demo Admin", "email": "admin@questlms.dev", "role": "ADMIN"},
        {"name": "Demo Learner", "email": "learner@questlms.dev", "role": "STUDENT"},
    ]

    learners = []
    for data in learners_data:
        result = await session.execute(select(Learner).where(Learner.email == data["email"]))
        learner = result.scalar_one_or_none()
        if learner is None:
            learner = Learner(**data)
            session.add(learner)
        learners.append(learner)

    await session.flush()
    logger.info("Seeded %d learners", len(learners))
    return learners


async def seed_program(session: AsyncSession) -> Program:
    """Seed the demo program with 2 episodes and 1 quiz.

    Args:
        session: Database session.

    Returns:
        The demo program.
    """
    result = await session.execute(select(Program).where(Program.title == DEMO_PROGRAM_TITLE))
    program = result.scalar_one_or_none()
    if program is not None:
        logger.info("Demo program already present: %s", program.id)
        return program

    program = Program(
        title=DEMO_PROGRAM_TITLE,
        description="Watch two short episodes and pass the quiz to earn XP.",
        reward_points=100,
    )
    session.add(program)
    await session.flush()

    session.add_all(
        [
            Episode(program_id=program.id, title="Welcome", duration=300, order=1),
            Episode(program_id=program.id, title="How XP works", duration=420, order=2),
        ]
    )

    quiz = Quiz(program_id=program.id)
    session.add(quiz)
    await session.flush()

    session.add(
        Question(
            quiz_id=quiz.id,
            text="How much XP is needed to reach level 2?",
            options=["100", "500", "1000", "2000"],
            answer=2,
            order=1,
        )
    )
    await session.flush()

    logger.info("Seeded demo program: %s", program.id)
    return program


async def seed_database(session: AsyncSession) -> dict:
    """Seed all demo data and commit.

    Args:
        session: Database session.

    Returns:
        Dictionary with seeded entities.
    """
    logger.info("Seeding database...")

    admin, learner = await seed_learners(session)
    program = await seed_program(session)

    await session.commit()

    logger.info("Database seeding complete")

    return {"admin": admin, "learner": learner, "program": program}


if __name__ == "__main__":
    from src.core.config import get_settings
    from src.domains.auth.jwt import JWTManager
    from src.infrastructure.database.connection import (
        close_database,
        get_sessionmaker,
        init_database,
    )
    from src.infrastructure.database.migrations.runner import run_migrations
    from src.utils.logging import setup_logging

    async def main():
        settings = get_settings()
        setup_logging(settings)

        await run_migrations(settings.database.url)
        await init_database(settings)
        try:
            async with get_sessionmaker()() as session:
                seeded = await seed_database(session)
        finally:
            await close_database()

        jwt_manager = JWTManager(settings.jwt)
        for key in ("admin", "learner"):
            learner = seeded[key]
            token = jwt_manager.create_access_token(learner.id, role=learner.role, name=learner.name)
            logger.info("%s token: %s", key, token)

    asyncio.run(main())
