# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progress domain.

Exports:
    CompletionLedger: Derives progress percentages from completion facts.
    ProgressSnapshot: Counts behind one learner's progress in a program.
    progress_percentage: Half-up whole percentage helper.
    ProgressStatsService: Admin dashboard figures per program.
"""

from src.domains.progress.ledger import CompletionLedger, ProgressSnapshot, progress_percentage
from src.domains.progress.stats import ProgressStatsService

__all__ = [
    "CompletionLedger",
    "ProgressSnapshot",
    "progress_percentage",
    "ProgressStatsService",
]
