# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the learning flow against a real database.

Each service call gets its own session, the way requests do in the API.
"""

import asyncio

import pytest
from sqlalchemy import func, select

from src.domains.discussion import DiscussionService
from src.domains.enrollment import (
    EnrollmentService,
    InvalidProgressOverrideError,
    NotEnrolledError,
)
from src.domains.progress import ProgressStatsService
from src.domains.quiz import QuizService
from src.domains.rewards import (
    EnrollmentNotCompletedError,
    RewardAlreadyClaimedError,
    RewardService,
)
from src.infrastructure.database.models import EpisodeProgress, Learner, QuizResult
from src.infrastructure.events import EventTypes

pytestmark = pytest.mark.integration

PASSING_ANSWERS = [1, 0]
FAILING_ANSWERS = [0, 1]


@pytest.fixture
def services(db_sessionmaker, event_bus):
    """Run a service method in a fresh session."""

    async def run(factory, method: str, *args, **kwargs):
        async with db_sessionmaker() as session:
            service = factory(session, event_bus=event_bus)
            return await getattr(service, method)(*args, **kwargs)

    return run


async def _count(db_sessionmaker, model, *conditions) -> int:
    async with db_sessionmaker() as session:
        result = await session.execute(select(func.count()).select_from(model).where(*conditions))
        return result.scalar_one()


class TestCompletionFlow:
    """Enroll, watch, pass, claim."""

    @pytest.mark.asyncio
    async def test_progress_follows_completed_items(self, learning_data, services, recorded_events):
        learner = learning_data["learner"].id
        program = learning_data["program"].id
        first, second = learning_data["episodes"]
        quiz = learning_data["quiz"].id

        enrollment = await services(EnrollmentService, "enroll", learner, program)
        assert enrollment.progress == 0
        assert enrollment.program.title == "Orbital Mechanics"

        step = await services(EnrollmentService, "mark_episode_complete", learner, first.id)
        assert step.enrollment.progress == 33

        step = await services(EnrollmentService, "mark_episode_complete", learner, second.id)
        assert step.enrollment.progress == 67
        assert step.enrollment.completed is False

        graded = await services(QuizService, "grade", quiz, learner, PASSING_ANSWERS)
        assert graded.passed is True
        assert graded.enrollment.progress == 100
        assert graded.enrollment.completed is True
        assert graded.enrollment.claimable is True

        completed_events = [e for e in recorded_events if e[0] == EventTypes.Enrollment.COMPLETED]
        assert len(completed_events) == 1

    @pytest.mark.asyncio
    async def test_completion_is_stamped_once(self, learning_data, services):
        learner = learning_data["learner"].id
        program = learning_data["program"].id
        first, second = learning_data["episodes"]

        await services(EnrollmentService, "enroll", learner, program)
        await services(EnrollmentService, "mark_episode_complete", learner, first.id)
        await services(EnrollmentService, "mark_episode_complete", learner, second.id)
        done = await services(QuizService, "grade", learning_data["quiz"].id, learner, PASSING_ANSWERS)

        again = await services(EnrollmentService, "recompute_progress", learner, program)
        rewatch = await services(EnrollmentService, "mark_episode_complete", learner, first.id)

        assert again.completed_at == done.enrollment.completed_at
        assert rewatch.enrollment.completed_at == done.enrollment.completed_at
        assert rewatch.enrollment.progress == 100

    @pytest.mark.asyncio
    async def test_failed_attempt_is_stored_without_progress(self, learning_data, services, db_sessionmaker):
        learner = learning_data["learner"].id
        quiz = learning_data["quiz"].id
        await services(EnrollmentService, "enroll", learner, learning_data["program"].id)

        graded = await services(QuizService, "grade", quiz, learner, FAILING_ANSWERS)

        assert graded.passed is False
        assert graded.enrollment is None
        assert await _count(db_sessionmaker, QuizResult, QuizResult.learner_id == learner) == 1
        attempts = await services(QuizService, "list_results", learner, quiz)
        assert [a.passed for a in attempts] == [False]

    @pytest.mark.asyncio
    async def test_marks_without_enrollment_do_not_enroll(self, learning_data, services):
        learner = learning_data["learner"].id
        episode = learning_data["episodes"][0].id

        step = await services(EnrollmentService, "mark_episode_complete", learner, episode)

        assert step.completed is True
        assert step.enrollment is None
        with pytest.raises(NotEnrolledError):
            await services(EnrollmentService, "get_enrollment", learner, learning_data["program"].id)

    @pytest.mark.asyncio
    async def test_concurrent_episode_completions_are_all_counted(self, learning_data, services):
        learner = learning_data["learner"].id
        program = learning_data["program"].id
        await services(EnrollmentService, "enroll", learner, program)

        await asyncio.gather(
            *(
                services(EnrollmentService, "mark_episode_complete", learner, episode.id)
                for episode in learning_data["episodes"]
            )
        )

        enrollment = await services(EnrollmentService, "get_enrollment", learner, program)
        assert enrollment.progress == 67

    @pytest.mark.asyncio
    async def test_enroll_twice_keeps_one_enrollment(self, learning_data, services):
        learner = learning_data["learner"].id
        program = learning_data["program"].id

        first = await services(EnrollmentService, "enroll", learner, program)
        second = await services(EnrollmentService, "enroll", learner, program)

        assert first.id == second.id
        assert len(await services(EnrollmentService, "list_enrollments", learner)) == 1


class TestRewards:
    """One-shot reward claims."""

    async def _complete(self, learning_data, services, learner: str) -> None:
        program = learning_data["program"].id
        await services(EnrollmentService, "enroll", learner, program)
        await services(QuizService, "auto_pass", learning_data["quiz"].id, learner, requested_by_role="ADMIN")
        for episode in learning_data["episodes"]:
            await services(EnrollmentService, "mark_episode_complete", learner, episode.id)

    @pytest.mark.asyncio
    async def test_claim_grants_xp_exactly_once(self, learning_data, services):
        learner = learning_data["learner"].id
        program = learning_data["program"].id
        await self._complete(learning_data, services, learner)

        claim = await services(RewardService, "claim_reward", learner, program)
        assert claim.reward_points == 600
        assert claim.xp_points == 600
        assert claim.level == 1
        assert claim.leveled_up is False

        with pytest.raises(RewardAlreadyClaimedError):
            await services(RewardService, "claim_reward", learner, program)

        stats = await services(RewardService, "get_learner_stats", learner)
        assert stats.xp_points == 600
        assert stats.completed_programs == 1
        assert stats.claimable_programs == 0
        assert stats.xp_to_next_level == 400

    @pytest.mark.asyncio
    async def test_concurrent_claims_credit_once(self, learning_data, services, db_sessionmaker):
        learner = learning_data["learner"].id
        program = learning_data["program"].id
        await self._complete(learning_data, services, learner)

        outcomes = await asyncio.gather(
            services(RewardService, "claim_reward", learner, program),
            services(RewardService, "claim_reward", learner, program),
            return_exceptions=True,
        )

        rejected = [o for o in outcomes if isinstance(o, RewardAlreadyClaimedError)]
        assert len(rejected) == 1
        async with db_sessionmaker() as session:
            xp = (await session.execute(select(Learner.xp_points).where(Learner.id == learner))).scalar_one()
        assert xp == 600

    @pytest.mark.asyncio
    async def test_unfinished_program_cannot_be_claimed(self, learning_data, services):
        learner = learning_data["learner"].id
        program = learning_data["program"].id
        await services(EnrollmentService, "enroll", learner, program)

        with pytest.raises(EnrollmentNotCompletedError):
            await services(RewardService, "claim_reward", learner, program)

        with pytest.raises(NotEnrolledError):
            await services(RewardService, "claim_reward", learning_data["other"].id, program)


class TestUnenroll:
    """Unenrolling removes the learner's program facts."""

    @pytest.mark.asyncio
    async def test_unenroll_cascades_to_marks_and_results(self, learning_data, services, db_sessionmaker):
        learner = learning_data["learner"].id
        other = learning_data["other"].id
        program = learning_data["program"].id
        episode = learning_data["episodes"][0].id
        quiz = learning_data["quiz"].id

        for who in (learner, other):
            await services(EnrollmentService, "enroll", who, program)
            await services(EnrollmentService, "mark_episode_complete", who, episode)
            await services(QuizService, "grade", quiz, who, FAILING_ANSWERS)

        assert await services(EnrollmentService, "unenroll", learner, program) is True

        assert await _count(db_sessionmaker, EpisodeProgress, EpisodeProgress.learner_id == learner) == 0
        assert await _count(db_sessionmaker, QuizResult, QuizResult.learner_id == learner) == 0
        assert await _count(db_sessionmaker, EpisodeProgress, EpisodeProgress.learner_id == other) == 1
        assert await _count(db_sessionmaker, QuizResult, QuizResult.learner_id == other) == 1

        with pytest.raises(NotEnrolledError):
            await services(EnrollmentService, "unenroll", learner, program)
        assert await services(EnrollmentService, "unenroll", learner, program, missing_ok=True) is False

    @pytest.mark.asyncio
    async def test_reenrolling_starts_from_zero(self, learning_data, services):
        learner = learning_data["learner"].id
        program = learning_data["program"].id
        await services(EnrollmentService, "enroll", learner, program)
        await services(EnrollmentService, "mark_episode_complete", learner, learning_data["episodes"][0].id)
        await services(EnrollmentService, "unenroll", learner, program)

        fresh = await services(EnrollmentService, "enroll", learner, program)
        episodes = await services(EnrollmentService, "list_program_episodes", program, learner)

        assert fresh.progress == 0
        assert [e.completed for e in episodes] == [False, False]


class TestAdministration:
    """Manual overrides, participants and dashboard figures."""

    @pytest.mark.asyncio
    async def test_manual_override(self, learning_data, services):
        learner = learning_data["learner"].id
        program = learning_data["program"].id
        await services(EnrollmentService, "enroll", learner, program)

        partial = await services(EnrollmentService, "set_manual_progress", learner, program, 40)
        assert partial.progress == 40
        assert partial.completed is False

        done = await services(EnrollmentService, "set_manual_progress", learner, program, 10, completed=True)
        assert done.progress == 100
        assert done.completed_at is not None

        with pytest.raises(InvalidProgressOverrideError):
            await services(EnrollmentService, "set_manual_progress", learner, program, 50)

        claim = await services(RewardService, "claim_reward", learner, program)
        assert claim.xp_points == 600

    @pytest.mark.asyncio
    async def test_full_override_cannot_store_incomplete(self, learning_data, services):
        learner = learning_data["learner"].id
        program = learning_data["program"].id
        await services(EnrollmentService, "enroll", learner, program)

        result = await services(
            EnrollmentService, "set_manual_progress", learner, program, 100, completed=False
        )
        assert (result.progress, result.completed) == (100, True)

        # The ledger figure is 0 but completion never goes back
        recomputed = await services(EnrollmentService, "recompute_progress", learner, program)
        assert (recomputed.progress, recomputed.completed) == (100, True)

    @pytest.mark.asyncio
    async def test_participants_and_stats(self, learning_data, services):
        learner = learning_data["learner"].id
        other = learning_data["other"].id
        program = learning_data["program"].id
        quiz = learning_data["quiz"].id

        await services(EnrollmentService, "enroll", learner, program)
        await services(EnrollmentService, "enroll", other, program)
        await services(EnrollmentService, "set_manual_progress", learner, program, 100)
        await services(QuizService, "grade", quiz, learner, PASSING_ANSWERS)
        await services(QuizService, "grade", quiz, other, FAILING_ANSWERS)

        participants = await services(EnrollmentService, "list_participants", program)
        assert {p.email for p in participants} == {"ada@questlms.dev", "bo@questlms.dev"}

        def stats_service(session, event_bus):
            return ProgressStatsService(session)

        stats = await services(stats_service, "get_program_stats", program)
        assert stats.total_enrolled == 2
        assert stats.completion_rate == 50
        assert stats.avg_score == 50
        assert stats.active_today == 2


class TestDiscussion:
    """Persisted discussion rooms."""

    @pytest.mark.asyncio
    async def test_messages_and_likes_persist(self, learning_data, services):
        learner = learning_data["learner"].id
        other = learning_data["other"].id
        program = learning_data["program"].id

        first = await services(DiscussionService, "post_message", learner, program, "Hi all")
        second = await services(DiscussionService, "post_message", other, program, "  Hello  ")
        await services(DiscussionService, "like_message", first.id)
        liked = await services(DiscussionService, "like_message", first.id)

        messages = await services(DiscussionService, "list_messages", program)

        assert liked.likes == 2
        assert [m.id for m in messages] == [first.id, second.id]
        assert messages[0].likes == 2
        assert messages[1].message == "Hello"
        assert messages[1].user.name == "Bo Learner"

    @pytest.mark.asyncio
    async def test_concurrent_likes_are_not_lost(self, learning_data, services):
        program = learning_data["program"].id
        message = await services(DiscussionService, "post_message", learning_data["learner"].id, program, "Like me")

        await asyncio.gather(*(services(DiscussionService, "like_message", message.id) for _ in range(5)))

        messages = await services(DiscussionService, "list_messages", program)
        assert messages[0].likes == 5
