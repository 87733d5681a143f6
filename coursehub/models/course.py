from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from coursehub.models.clock import utcnow


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    created_by: UUID
    short_description: str = ""
    category: str = ""
    difficulty: str = ""
    is_published: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @staticmethod
    def new(
        *,
        title: str,
        created_by: UUID,
        short_description: str = "",
        category: str = "",
        difficulty: str = "",
    ) -> Course:
        return Course(
            id=uuid4(),
            title=title,
            created_by=created_by,
            short_description=short_description,
            category=category,
            difficulty=difficulty,
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    course_id: UUID
    title: str
    order: int
    content: str = ""
    video_url: str | None = None
    estimated_duration: int = 0  # minutes
    created_at: datetime = field(default_factory=utcnow)

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        order: int,
        content: str = "",
        video_url: str | None = None,
        estimated_duration: int = 0,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            course_id=course_id,
            title=title,
            order=order,
            content=content,
            video_url=video_url,
            estimated_duration=estimated_duration,
        )


@dataclass(frozen=True, slots=True)
class Quiz:
    id: UUID
    course_id: UUID
    title: str
    passing_score: int  # 0-100
    time_limit: int = 0  # minutes, 0 = no limit
    lesson_id: UUID | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        passing_score: int,
        time_limit: int = 0,
        lesson_id: UUID | None = None,
    ) -> Quiz:
        return Quiz(
            id=uuid4(),
            course_id=course_id,
            title=title,
            passing_score=passing_score,
            time_limit=time_limit,
            lesson_id=lesson_id,
        )


@dataclass(frozen=True, slots=True)
class Question:
    """One multiple-choice question.

    A submission counts as correct only when the selected option indices
    equal ``correct_options`` exactly.
    """

    id: UUID
    quiz_id: UUID
    text: str
    position: int
    options: tuple[str, ...]
    correct_options: frozenset[int]

    @staticmethod
    def new(
        *,
        quiz_id: UUID,
        text: str,
        position: int,
        options: tuple[str, ...],
        correct_options: frozenset[int],
    ) -> Question:
        return Question(
            id=uuid4(),
            quiz_id=quiz_id,
            text=text,
            position=position,
            options=options,
            correct_options=correct_options,
        )
