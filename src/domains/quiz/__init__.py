# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Quiz domain package.

This package provides quiz grading and authoring:
- Learner view of a quiz without answers
- Grading with per-question breakdown
- Admin auto-pass and question management
"""

from src.domains.quiz.service import (
    InvalidAnswerCountError,
    InvalidQuestionError,
    QuestionNotFoundError,
    QuizNotFoundError,
    QuizService,
    validate_question,
)

__all__ = [
    "QuizService",
    "validate_question",
    "QuizNotFoundError",
    "QuestionNotFoundError",
    "InvalidAnswerCountError",
    "InvalidQuestionError",
]
