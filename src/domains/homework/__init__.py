# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Homework domain package."""

from src.domains.homework.service import HomeworkService

__all__ = ["HomeworkService"]
