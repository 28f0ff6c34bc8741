# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Update request domain.

Exports:
    UpdateRequestOrchestrator: Submit, approve and reject corrections.
    UpdateRequestPayload: Discriminated union of request payloads.
    parse_payload: Decode a payload document into its typed variant.
"""

from src.domains.update_requests.schemas import (
    AddBehavioralIncidentPayload,
    RemoveBehavioralIncidentPayload,
    RestoreArchivedStudentPayload,
    UpdateAttendancePayload,
    UpdateHomeworkPayload,
    UpdateQuizScorePayload,
    UpdateRequestPayload,
    parse_payload,
)
from src.domains.update_requests.service import UpdateRequestOrchestrator

__all__ = [
    "UpdateRequestOrchestrator",
    "UpdateRequestPayload",
    "UpdateAttendancePayload",
    "UpdateHomeworkPayload",
    "UpdateQuizScorePayload",
    "AddBehavioralIncidentPayload",
    "RemoveBehavioralIncidentPayload",
    "RestoreArchivedStudentPayload",
    "parse_payload",
]
