# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""QuestLMS schema migrations.

- 001_initial_schema: learners, programs, episodes, quizzes, questions,
  progress marks, quiz results, enrollments, discussion messages
"""
