# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance domain package."""

from src.domains.attendance.service import AttendanceService, count_consecutive_absences

__all__ = [
    "AttendanceService",
    "count_consecutive_absences",
]
