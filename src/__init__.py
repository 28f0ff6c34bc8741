"""Student Tracker core.

Cascading recalculation and ranking engine for student performance:
performance indicators, points ledger and rankings, recovery targets and
streaks, risk warnings, and the reviewed update-request workflow.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
