# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the student tracker.

Each domain module provides a service that owns its tables and exposes
public operations to the other domains. Services flush but never commit;
the caller (usually the update request orchestrator) owns the transaction.

Domains:
    auth: Staff identities and the administrator privilege.
    student: Registration and the archive lifecycle.
    lesson: Lessons and their month groups.
    attendance: Attendance marks and consecutive-absence counting.
    homework: Homework completion records.
    quiz: Quizzes, questions and score entry.
    behavior: Behavioral incidents.
    performance: Per-category performance indicators.
    points: Points ledger, rankings and ranking snapshots.
    targets: Recovery targets and achievement streaks.
    warnings: Risk warnings derived from attendance and behavior.
    update_requests: Reviewed corrections applied with their cascade.
"""
