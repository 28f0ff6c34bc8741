# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Warning rules and their fixed thresholds."""

from collections.abc import Sequence

from src.infrastructure.database.models.academic import IncidentType
from src.infrastructure.database.models.performance import WarningType

CONSECUTIVE_ABSENCE_LIMIT = 2
ARCHIVE_ABSENCE_LIMIT = 3
SAME_TYPE_RUN_LIMIT = 2
MONTHLY_INCIDENT_LIMIT = 3

AUTO_RESOLVED_REASON = "Auto-resolved: conditions changed"
ESCALATED_REASON = "Escalated to archived warning"
RESTORED_REASON = "Auto-resolved: student restored"


def absence_warning_type(consecutive_absences: int) -> WarningType | None:
    """Warning type a run of consecutive absences calls for.

    Three or more escalate to ARCHIVED instead of CONSECUTIVE_ABSENCE.
    """
    if consecutive_absences >= ARCHIVE_ABSENCE_LIMIT:
        return WarningType.ARCHIVED
    if consecutive_absences >= CONSECUTIVE_ABSENCE_LIMIT:
        return WarningType.CONSECUTIVE_ABSENCE
    return None


def absence_reason(consecutive_absences: int) -> str:
    if consecutive_absences >= ARCHIVE_ABSENCE_LIMIT:
        return (
            f"Absent from the last {consecutive_absences} lessons in a row; "
            "student should be considered for archiving"
        )
    return f"Absent from the last {consecutive_absences} lessons in a row"


def _incident_list(incident_ids: Sequence[int]) -> str:
    return ", ".join(f"#{incident_id}" for incident_id in incident_ids)


def behavioral_reason(
    run_type: IncidentType | None,
    run_incident_ids: Sequence[int],
    month_group: str | None,
    month_incident_ids: Sequence[int],
) -> str | None:
    """Describe which behavioral rules are triggered, or None if neither is.

    The reason names the incidents behind each triggered rule by id.

    Args:
        run_type: Incident type of the longest same-type run.
        run_incident_ids: Incidents forming that run, chronological.
        month_group: Month group of the student's latest incident.
        month_incident_ids: Incidents of any type in that month group.
    """
    reasons: list[str] = []
    if run_type is not None and len(run_incident_ids) >= SAME_TYPE_RUN_LIMIT:
        reasons.append(
            f"{len(run_incident_ids)} consecutive '{run_type.value}' incidents "
            f"({_incident_list(run_incident_ids)})"
        )
    if month_group is not None and len(month_incident_ids) >= MONTHLY_INCIDENT_LIMIT:
        reasons.append(
            f"{len(month_incident_ids)} incidents in {month_group} "
            f"({_incident_list(month_incident_ids)})"
        )
    if not reasons:
        return None
    return "Behavioral concern: " + "; ".join(reasons)
