# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Redis infrastructure.

Redis is only used for cross-process discussion fan-out; a single API
process works without it.
"""

from src.infrastructure.cache.redis_client import RedisClient, RedisError

__all__ = [
    "RedisClient",
    "RedisError",
]
