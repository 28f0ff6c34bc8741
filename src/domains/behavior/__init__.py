# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Behavioral incident domain package."""

from src.domains.behavior.service import BehaviorService, longest_same_type_run

__all__ = [
    "BehaviorService",
    "longest_same_type_run",
]
