# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared model configuration and enums."""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class LearnerRole(str, Enum):
    """Roles asserted by the identity provider."""

    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases and reading ORM attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
