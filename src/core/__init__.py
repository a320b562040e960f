# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for QuestLMS.

This package contains shared building blocks used by every domain:
- config: Application configuration and settings
- exceptions: Typed error hierarchy surfaced at the API boundary
"""
