from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import coursehub` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from coursehub.main import app  # noqa: E402
from coursehub.models.course import Course, Lesson, Question, Quiz  # noqa: E402
from coursehub.models.user import User  # noqa: E402
from coursehub.repos import store  # noqa: E402
from coursehub.repos.store import Repos  # noqa: E402
from coursehub.services import token_service  # noqa: E402
from coursehub.services.cache import InMemoryCacheService, cache_service  # noqa: E402

T = TypeVar("T")


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive an async service/repo call from a sync test."""
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Fresh in-memory repositories for every test."""
    store.reset_memory_repos()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear the in-memory dashboard cache between tests."""
    if isinstance(cache_service, InMemoryCacheService):
        cache_service.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def repos() -> Repos:
    return store.memory_repos


def mint_token(
    user_id: str = "00000000-0000-0000-0000-000000000001",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=user_id, roles=roles)


def auth(user: User) -> dict[str, str]:
    token = mint_token(str(user.id), roles=list(user.roles))
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Seed helpers (write straight into the in-memory repos)
# ---------------------------------------------------------------------------


def seed_user(
    email: str, *, name: str = "", roles: tuple[str, ...] = ("student",)
) -> User:
    user = User.new(email=email, name=name, roles=roles)
    run(store.memory_repos.users.add(user))
    return user


@dataclass
class SeededCourse:
    course: Course
    lessons: list[Lesson]
    quizzes: list[Quiz]
    questions: dict[Any, list[Question]]

    @property
    def id(self):
        return self.course.id


def seed_course(
    instructor: User,
    *,
    lessons: int = 0,
    quizzes: int = 0,
    passing_score: int = 50,
    published: bool = True,
    title: str = "Seeded course",
) -> SeededCourse:
    """A course with N lessons (order 1..N) and M one-question quizzes.

    Each quiz question has options ["a", "b"] with option 0 correct.
    """
    repos = store.memory_repos
    course = Course.new(title=title, created_by=instructor.id)
    run(repos.courses.add(course))
    if published:
        course = run(repos.courses.set_published(course.id, True))

    seeded_lessons = []
    for order in range(1, lessons + 1):
        lesson = Lesson.new(course_id=course.id, title=f"Lesson {order}", order=order)
        run(repos.courses.add_lesson(lesson))
        seeded_lessons.append(lesson)

    seeded_quizzes = []
    questions: dict[Any, list[Question]] = {}
    for n in range(1, quizzes + 1):
        quiz = Quiz.new(
            course_id=course.id, title=f"Quiz {n}", passing_score=passing_score
        )
        question = Question.new(
            quiz_id=quiz.id,
            text=f"Question {n}",
            position=0,
            options=("a", "b"),
            correct_options=frozenset({0}),
        )
        run(repos.courses.add_quiz(quiz, [question]))
        seeded_quizzes.append(quiz)
        questions[quiz.id] = [question]

    return SeededCourse(course, seeded_lessons, seeded_quizzes, questions)


@pytest.fixture
def instructor() -> User:
    return seed_user("ada@example.com", name="Ada Lovelace", roles=("instructor",))


@pytest.fixture
def student() -> User:
    return seed_user("sam@example.com", name="Sam Student")
