# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Update request model for the correction review workflow."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, enum_type, utc_now


class RequestType(str, Enum):
    """Kinds of correction an assistant can request."""

    UPDATE_ATTENDANCE = "update_attendance"
    UPDATE_HOMEWORK = "update_homework"
    UPDATE_QUIZ_SCORE = "update_quiz_score"
    ADD_BEHAVIORAL_INCIDENT = "add_behavioral_incident"
    REMOVE_BEHAVIORAL_INCIDENT = "remove_behavioral_incident"
    RESTORE_ARCHIVED_STUDENT = "restore_archived_student"


class RequestStatus(str, Enum):
    """Review status. Only PENDING can transition."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class UpdateRequest(Base):
    """Proposed correction awaiting admin review."""

    __tablename__ = "update_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_type: Mapped[RequestType] = mapped_column(
        enum_type(RequestType, length=40), nullable=False
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    status: Mapped[RequestStatus] = mapped_column(
        enum_type(RequestStatus),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True,
    )
    reviewed_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_update_request_entity", "entity_type", "entity_id", "status"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"<UpdateRequest(id={self.id}, type={self.request_type}, "
            f"entity={self.entity_type}:{self.entity_id}, status={self.status})>"
        )
