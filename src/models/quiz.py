# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Quiz models.

Models sent to learners before grading never include the answer index.
Authoring input is validated by the quiz service, so the question fields
here are intentionally loose.
"""

from datetime import datetime

from pydantic import Field

from src.models.common import CamelModel
from src.models.enrollment import EnrollmentResponse


class QuestionPublic(CamelModel):
    """A question as shown to a learner taking the quiz."""

    id: str
    text: str
    options: list[str]
    order: int


class QuizPublicResponse(CamelModel):
    """A quiz without its correct answers."""

    id: str
    program_id: str
    questions: list[QuestionPublic]


class SubmitQuizRequest(CamelModel):
    """A learner's answer set, one option index per question in order."""

    quiz_id: str = Field(min_length=1)
    answers: list[int]


class QuestionBreakdown(CamelModel):
    """Per-question grading outcome, revealed only after grading."""

    question_id: str
    question: str
    selected: int | None
    correct: int
    is_correct: bool


class QuizGradeResponse(CamelModel):
    """Grading result for one attempt."""

    result_id: str
    quiz_id: str
    score: int
    total: int
    percentage: int
    passed: bool
    breakdown: list[QuestionBreakdown]
    enrollment: EnrollmentResponse | None = None


class QuizResultSummary(CamelModel):
    """One stored attempt."""

    id: str
    quiz_id: str
    score: int
    total: int
    passed: bool
    created_at: datetime


class QuizResultListResponse(CamelModel):
    """Attempt history, newest first."""

    items: list[QuizResultSummary]
    total: int


class QuestionInput(CamelModel):
    """Question data supplied by an admin."""

    text: str = ""
    options: list[str] = Field(default_factory=list)
    answer: int = -1
    order: int | None = None


class CreateQuizRequest(CamelModel):
    """Create a quiz with its questions for a program."""

    program_id: str = Field(min_length=1)
    questions: list[QuestionInput]


class UpdateQuestionRequest(CamelModel):
    """Partial update of a question. Omitted fields are unchanged."""

    text: str | None = None
    options: list[str] | None = None
    answer: int | None = None
    order: int | None = None


class QuestionAdminResponse(CamelModel):
    """A question including its answer, for admins."""

    id: str
    quiz_id: str
    text: str
    options: list[str]
    answer: int
    order: int


class QuizAdminResponse(CamelModel):
    """A quiz including answers, for admins."""

    id: str
    program_id: str
    questions: list[QuestionAdminResponse]
