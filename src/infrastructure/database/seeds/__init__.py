# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database seed package.

- demo: admin and learner accounts plus one program (2 episodes, 1 quiz)
"""

from src.infrastructure.database.seeds.demo import seed_database

__all__ = ["seed_database"]
