# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

Cascade tests run against an in-memory SQLite database. Every test gets a
fresh schema, a fresh event bus and a freshly composed set of services.
"""

import json
import logging
import sys
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from datetime import date, timedelta
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.composition import TrackerServices, compose
from src.core.config import Settings
from src.domains.quiz.schemas import QuestionSpec
from src.infrastructure.database import create_schema, create_sessionmaker
from src.infrastructure.database.models import (
    Category,
    Lesson,
    QuestionType,
    Quiz,
    Student,
    User,
    UserRole,
)
from src.infrastructure.events import EventBus, EventData
from src.utils.logging import HANDLER_NAME, remove_handler, setup_logging

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow running")


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests, independent of the environment."""
    return Settings(environment="test", debug=False, log_level="DEBUG", locale="")


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """In-memory SQLite engine with the tracker schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Session bound to the test engine."""
    session_factory = create_sessionmaker(engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def services(db: AsyncSession, event_bus: EventBus, test_settings: Settings) -> TrackerServices:
    """Composed and wired services sharing the test session and bus."""
    return compose(db, event_bus, settings=test_settings)


@pytest.fixture
def recorded_events(event_bus: EventBus) -> list[EventData]:
    """Every event published on the test bus, in publish order."""
    events: list[EventData] = []

    async def record(event: EventData) -> None:
        events.append(event)

    event_bus.subscribe("*", record)
    return events


class _CurrentStdout:
    """Stream forwarding to whatever sys.stdout is at write time."""

    def write(self, text: str) -> int:
        return sys.stdout.write(text)

    def flush(self) -> None:
        sys.stdout.flush()


@pytest.fixture
def log_lines(
    capsys: pytest.CaptureFixture[str], test_settings: Settings
) -> Iterator[Callable[[], list[dict[str, Any]]]]:
    """JSON log configuration writing to captured stdout.

    Yields a reader returning the records logged since the last read.
    """
    setup_logging(test_settings)
    # pytest swaps the capsys stream between the setup and call phases, so the
    # handler must resolve sys.stdout when it writes, not when it is created.
    for handler in logging.getLogger().handlers:
        if handler.get_name() == HANDLER_NAME:
            handler.setStream(_CurrentStdout())  # type: ignore[attr-defined]

    def read() -> list[dict[str, Any]]:
        out = capsys.readouterr().out
        return [json.loads(line) for line in out.splitlines() if line.startswith("{")]

    yield read
    remove_handler()


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def admin(services: TrackerServices) -> User:
    return await services.users.create_user("admin", "Head Teacher", UserRole.ADMIN)


@pytest_asyncio.fixture
async def assistant(services: TrackerServices) -> User:
    return await services.users.create_user("assistant", "Teaching Assistant")


@pytest_asyncio.fixture
async def student(services: TrackerServices) -> Student:
    return await services.students.register("Amina Haddad")


@pytest.fixture
def make_lessons(
    services: TrackerServices,
) -> Callable[..., Awaitable[list[Lesson]]]:
    """Factory creating n weekly lessons."""

    async def factory(count: int, month_group: str = "2025-01") -> list[Lesson]:
        start = date(2025, 1, 4)
        return [
            await services.lessons.create_lesson(start + timedelta(days=7 * i), month_group)
            for i in range(count)
        ]

    return factory


@pytest_asyncio.fixture
async def lesson(make_lessons: Callable[..., Awaitable[list[Lesson]]]) -> Lesson:
    return (await make_lessons(1))[0]


@pytest_asyncio.fixture
async def nahw_adab_quiz(services: TrackerServices, lesson: Lesson) -> Quiz:
    """Quiz with NAHW worth 12 (MCQ 3, MCQ 4, essay 5) and ADAB worth 8 (MCQ 4, MCQ 4)."""
    return await services.quizzes.create_quiz(
        lesson.id,
        [
            QuestionSpec(question_number=1, question_type=QuestionType.MCQ, category=Category.NAHW, points=3),
            QuestionSpec(question_number=2, question_type=QuestionType.MCQ, category=Category.NAHW, points=4),
            QuestionSpec(question_number=3, question_type=QuestionType.ESSAY, category=Category.NAHW, points=5),
            QuestionSpec(question_number=4, question_type=QuestionType.MCQ, category=Category.ADAB, points=4),
            QuestionSpec(question_number=5, question_type=QuestionType.MCQ, category=Category.ADAB, points=4),
        ],
    )


@pytest.fixture
def grade(services: TrackerServices) -> Callable[..., Awaitable[Any]]:
    """Enter scores for a quiz keyed by question number instead of id."""

    async def enter(quiz: Quiz, student: Student, by_number: dict[int, float]) -> Any:
        ids = {q.question_number: q.id for q in await services.quizzes.get_questions(quiz.id)}
        return await services.quizzes.enter_scores(
            quiz.id,
            student.id,
            {ids[number]: points for number, points in by_number.items()},
        )

    return enter


@pytest.fixture
def make_quiz(services: TrackerServices) -> Callable[..., Awaitable[Quiz]]:
    """Factory for quizzes of one-point MCQs in a single category."""

    async def factory(lesson: Lesson, category: Category = Category.NAHW, questions: int = 5) -> Quiz:
        return await services.quizzes.create_quiz(
            lesson.id,
            [
                QuestionSpec(
                    question_number=n,
                    question_type=QuestionType.MCQ,
                    category=category,
                    points=1,
                )
                for n in range(1, questions + 1)
            ],
        )

    return factory
