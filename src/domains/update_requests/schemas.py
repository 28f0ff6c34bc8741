# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Typed payloads for update requests.

Each request type carries its own payload model. The models form a
discriminated union on ``request_type``, so a stored JSON document decodes
back into exactly one variant and malformed documents are rejected at the
boundary.
"""

from abc import ABC, abstractmethod
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.core.exceptions import ValidationError
from src.infrastructure.database.models.academic import (
    AttendanceStatus,
    HomeworkStatus,
    IncidentType,
)


class _PayloadBase(BaseModel, ABC):
    model_config = ConfigDict(extra="forbid")

    @property
    @abstractmethod
    def entity(self) -> tuple[str, int]:
        """(entity_type, entity_id) the request targets."""


class UpdateAttendancePayload(_PayloadBase):
    """Correct the status of an attendance record."""

    request_type: Literal["update_attendance"] = "update_attendance"
    attendance_id: int
    new_status: AttendanceStatus

    @property
    def entity(self) -> tuple[str, int]:
        return ("attendance", self.attendance_id)


class UpdateHomeworkPayload(_PayloadBase):
    """Correct the status of a homework record."""

    request_type: Literal["update_homework"] = "update_homework"
    homework_id: int
    new_status: HomeworkStatus

    @property
    def entity(self) -> tuple[str, int]:
        return ("homework", self.homework_id)


class UpdateQuizScorePayload(_PayloadBase):
    """Correct the points earned on one quiz question."""

    request_type: Literal["update_quiz_score"] = "update_quiz_score"
    score_id: int
    new_points: float = Field(ge=0, description="Corrected points earned")

    @property
    def entity(self) -> tuple[str, int]:
        return ("quiz_score", self.score_id)


class AddBehavioralIncidentPayload(_PayloadBase):
    """Record a behavioral incident after review."""

    request_type: Literal["add_behavioral_incident"] = "add_behavioral_incident"
    student_id: int
    lesson_id: int
    incident_type: IncidentType
    notes: str | None = None

    @property
    def entity(self) -> tuple[str, int]:
        return ("student", self.student_id)


class RemoveBehavioralIncidentPayload(_PayloadBase):
    """Remove a behavioral incident recorded in error."""

    request_type: Literal["remove_behavioral_incident"] = "remove_behavioral_incident"
    incident_id: int

    @property
    def entity(self) -> tuple[str, int]:
        return ("behavioral_incident", self.incident_id)


class RestoreArchivedStudentPayload(_PayloadBase):
    """Bring an archived student back to active."""

    request_type: Literal["restore_archived_student"] = "restore_archived_student"
    student_id: int

    @property
    def entity(self) -> tuple[str, int]:
        return ("student", self.student_id)


UpdateRequestPayload = Annotated[
    Union[
        UpdateAttendancePayload,
        UpdateHomeworkPayload,
        UpdateQuizScorePayload,
        AddBehavioralIncidentPayload,
        RemoveBehavioralIncidentPayload,
        RestoreArchivedStudentPayload,
    ],
    Field(discriminator="request_type"),
]

_payload_adapter: TypeAdapter[UpdateRequestPayload] = TypeAdapter(UpdateRequestPayload)


def parse_payload(data: Any) -> UpdateRequestPayload:
    """Decode a payload document into its typed variant.

    Args:
        data: A payload model instance or a JSON-compatible mapping.

    Returns:
        The typed payload.

    Raises:
        ValidationError: If the document does not match any variant.
    """
    if isinstance(data, _PayloadBase):
        return data  # type: ignore[return-value]
    try:
        return _payload_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(
            "Malformed update request payload",
            {"errors": e.errors(include_url=False, include_context=False)},
        ) from e
