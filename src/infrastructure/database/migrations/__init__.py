# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

Alembic revisions live in versions/. runner.py applies them
programmatically at startup or from scripts without the alembic CLI.
"""
