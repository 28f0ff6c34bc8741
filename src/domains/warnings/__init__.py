# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Warning domain.

Exports:
    WarningService: Warning generation, resolution and queries.
"""

from src.domains.warnings.service import WarningService

__all__ = ["WarningService"]
