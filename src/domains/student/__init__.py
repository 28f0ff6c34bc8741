# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student domain package.

This package provides student management functionality including:
- Registration
- Archive and restore lifecycle
"""

from src.domains.student.service import (
    StudentNotActiveError,
    StudentNotArchivedError,
    StudentService,
)

__all__ = [
    "StudentService",
    "StudentNotActiveError",
    "StudentNotArchivedError",
]
