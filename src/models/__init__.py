# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API request and response models.

All models serialize with camelCase field names (programId, xpPoints, ...)
and accept either camelCase or snake_case on input.
"""
