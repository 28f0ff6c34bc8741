# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the services that record raw facts."""

from datetime import date

import pytest

from src.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.domains.attendance.service import count_consecutive_absences
from src.domains.auth import require_admin
from src.domains.quiz.schemas import QuestionSpec
from src.domains.student.service import StudentNotActiveError, StudentNotArchivedError
from src.infrastructure.database.models import (
    AttendanceStatus,
    Category,
    HomeworkStatus,
    QuestionType,
    StudentStatus,
    UserRole,
)
from src.infrastructure.events import EventTypes


class TestUsers:
    """Tests for staff identities."""

    @pytest.mark.asyncio
    async def test_duplicate_username(self, services, admin) -> None:
        with pytest.raises(ValidationError):
            await services.users.create_user("admin", "Someone Else")
        with pytest.raises(ValidationError):
            await services.users.create_user("  ", "Nobody")

    @pytest.mark.asyncio
    async def test_require_admin(self, db, services, admin, assistant) -> None:
        assert (await require_admin(db, admin.id)).id == admin.id
        assert await services.users.is_admin(admin.id) is True

        with pytest.raises(AuthorizationError):
            await services.users.require_admin(assistant.id)
        with pytest.raises(AuthorizationError):
            await services.users.require_admin(999)

        admin.is_active = False
        with pytest.raises(AuthorizationError):
            await services.users.require_admin(admin.id)

    @pytest.mark.asyncio
    async def test_get_user(self, services) -> None:
        with pytest.raises(NotFoundError):
            await services.users.get_user(1)


class TestStudents:
    """Tests for registration and the archive lifecycle."""

    @pytest.mark.asyncio
    async def test_register(self, services, recorded_events) -> None:
        student = await services.students.register("  Huda Nasser ", phone_number="0100")

        assert student.full_name == "Huda Nasser"
        assert student.status == StudentStatus.ACTIVE
        assert recorded_events[0].event_type == EventTypes.Student.REGISTERED

        with pytest.raises(ValidationError):
            await services.students.register("")

    @pytest.mark.asyncio
    async def test_archive_and_restore(self, services, admin, assistant, student) -> None:
        with pytest.raises(AuthorizationError):
            await services.students.archive(student.id, assistant.id)
        with pytest.raises(StudentNotArchivedError):
            await services.students.restore(student.id, admin.id)

        await services.students.archive(student.id, admin.id)
        assert student.status == StudentStatus.ARCHIVED
        assert student.archived_by == admin.id
        assert await services.students.list_students(StudentStatus.ACTIVE) == []

        with pytest.raises(StudentNotActiveError):
            await services.students.archive(student.id, admin.id)

        await services.students.restore(student.id, admin.id)
        assert student.is_active
        assert student.archived_at is None
        assert student.restored_at is not None


class TestLessons:
    """Tests for lessons."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, services) -> None:
        await services.lessons.create_lesson(date(2025, 2, 1), "2025-02")
        await services.lessons.create_lesson(date(2025, 1, 4), "2025-01")

        lessons = await services.lessons.list_lessons()
        assert [lesson.month_group for lesson in lessons] == ["2025-01", "2025-02"]
        assert len(await services.lessons.list_lessons("2025-02")) == 1

        with pytest.raises(ValidationError):
            await services.lessons.create_lesson(date(2025, 3, 1), " ")
        with pytest.raises(NotFoundError):
            await services.lessons.get_lesson(999)


class TestAttendance:
    """Tests for attendance marks."""

    def test_count_consecutive_absences(self) -> None:
        absent, present = AttendanceStatus.ABSENT, AttendanceStatus.PRESENT

        assert count_consecutive_absences([]) == 0
        assert count_consecutive_absences([absent, absent, present, absent]) == 2
        assert count_consecutive_absences([present, absent]) == 0

    @pytest.mark.asyncio
    async def test_mark_overwrites(self, services, student, lesson) -> None:
        first = await services.attendance.mark(lesson.id, student.id, AttendanceStatus.ABSENT)
        second = await services.attendance.mark(lesson.id, student.id, AttendanceStatus.PRESENT)

        assert first.id == second.id
        assert await services.attendance.present_count(student.id) == 1

    @pytest.mark.asyncio
    async def test_history_newest_first(self, services, student, make_lessons) -> None:
        lessons = await make_lessons(3)
        for lesson in reversed(lessons):
            await services.attendance.mark(lesson.id, student.id, AttendanceStatus.PRESENT)

        history = await services.attendance.history(student.id)

        expected = [lesson.id for lesson in reversed(lessons)]
        assert [record.lesson_id for record in history] == expected

    @pytest.mark.asyncio
    async def test_archived_student_cannot_be_marked(
        self, services, admin, student, lesson
    ) -> None:
        await services.students.archive(student.id, admin.id)

        with pytest.raises(StudentNotActiveError):
            await services.attendance.mark(lesson.id, student.id, AttendanceStatus.PRESENT)

    @pytest.mark.asyncio
    async def test_update_status_keeps_entry_time(self, services, student, lesson) -> None:
        record = await services.attendance.mark(lesson.id, student.id, AttendanceStatus.ABSENT)
        marked_at = record.marked_at

        await services.attendance.update_status(record.id, AttendanceStatus.PRESENT)

        assert record.status == AttendanceStatus.PRESENT
        assert record.marked_at == marked_at


class TestHomework:
    """Tests for homework records."""

    @pytest.mark.asyncio
    async def test_record_and_points(self, services, student, make_lessons) -> None:
        lessons = await make_lessons(2)
        await services.homework.record(lessons[0].id, student.id, HomeworkStatus.PARTIALLY_DONE)
        await services.homework.record(lessons[0].id, student.id, HomeworkStatus.DONE)
        await services.homework.record(lessons[1].id, student.id, HomeworkStatus.PARTIALLY_DONE)

        assert len(await services.homework.records_for_student(student.id)) == 2
        assert await services.homework.total_points(student.id) == 4

    @pytest.mark.asyncio
    async def test_unknown_record(self, services) -> None:
        with pytest.raises(NotFoundError):
            await services.homework.update_status(5, HomeworkStatus.DONE)


class TestQuizzes:
    """Tests for quiz creation and score entry."""

    @pytest.mark.asyncio
    async def test_total_marks(self, services, nahw_adab_quiz) -> None:
        assert nahw_adab_quiz.total_marks == 20
        questions = await services.quizzes.get_questions(nahw_adab_quiz.id)
        assert [q.question_number for q in questions] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_duplicate_question_numbers(self, services, lesson) -> None:
        spec = QuestionSpec(
            question_number=1, question_type=QuestionType.MCQ, category=Category.NAHW, points=1
        )

        with pytest.raises(ValidationError):
            await services.quizzes.create_quiz(lesson.id, [spec, spec])

    @pytest.mark.asyncio
    async def test_absent_student_cannot_be_graded(
        self, services, student, lesson, nahw_adab_quiz, grade
    ) -> None:
        await services.attendance.mark(lesson.id, student.id, AttendanceStatus.ABSENT)

        with pytest.raises(ValidationError):
            await grade(nahw_adab_quiz, student, {1: 3})

    @pytest.mark.asyncio
    async def test_points_out_of_range(self, services, student, nahw_adab_quiz, grade) -> None:
        with pytest.raises(ValidationError):
            await grade(nahw_adab_quiz, student, {1: 3.5})
        with pytest.raises(ValidationError):
            await grade(nahw_adab_quiz, student, {1: -1})

        assert await services.quizzes.scores_for_student(student.id) == []

    @pytest.mark.asyncio
    async def test_question_from_another_quiz(
        self, services, student, lesson, nahw_adab_quiz, make_quiz
    ) -> None:
        other = await make_quiz(lesson)
        foreign = (await services.quizzes.get_questions(other.id))[0]

        with pytest.raises(ValidationError):
            await services.quizzes.enter_scores(nahw_adab_quiz.id, student.id, {foreign.id: 1})

    @pytest.mark.asyncio
    async def test_update_score_range(self, services, student, nahw_adab_quiz, grade) -> None:
        scores = await grade(nahw_adab_quiz, student, {1: 3})

        with pytest.raises(ValidationError):
            await services.quizzes.update_score(scores[0].id, 4)
        with pytest.raises(NotFoundError):
            await services.quizzes.update_score(999, 1)

        updated = await services.quizzes.update_score(scores[0].id, 2)
        assert updated.points_earned == 2
        assert await services.quizzes.total_points_for_student(student.id) == 2


class TestUnprivilegedRoles:
    """Assistants hold no elevated privilege."""

    @pytest.mark.asyncio
    async def test_assistant_role(self, assistant) -> None:
        assert assistant.role == UserRole.ASSISTANT
        assert assistant.is_admin is False
