# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Target and streak domain."""

from src.domains.targets.service import DEFAULT_TARGET_MESSAGE, TargetService

__all__ = [
    "TargetService",
    "DEFAULT_TARGET_MESSAGE",
]
