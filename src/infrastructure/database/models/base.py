# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Declarative base shared by every tracker model.

Enumerated columns are stored as their string values (not native database
enums) so the same schema works on PostgreSQL and SQLite.
"""

from enum import Enum
from typing import TypeVar

from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase

from src.utils.datetime import utc_now

E = TypeVar("E", bound=Enum)


class Base(DeclarativeBase):
    """Declarative base for tracker models."""

    pass


def enum_type(enum_cls: type[E], length: int = 32) -> SAEnum:
    """Build a non-native enum column type that persists member values.

    Args:
        enum_cls: Python enum class whose values are stored.
        length: Column width.

    Returns:
        SQLAlchemy Enum type.
    """
    return SAEnum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )


__all__ = ["Base", "enum_type", "utc_now"]
