"""Lesson completion, quiz attempt and video position facts.

Completions and attempts are append-only from the service's point of
view: completions are unique per (student, lesson), attempts accumulate.
Video positions are one row per (student, lesson) that only moves forward.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from coursehub.models.progress import (
    LessonCompletion,
    LessonVideoProgress,
    QuizAttempt,
)
from coursehub.repos.course_repo import InMemoryCourseRepo
from coursehub.repos.errors import DuplicateRecordError


class ProgressRepo(Protocol):
    async def add_completion(self, completion: LessonCompletion) -> None: ...
    async def completions_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonCompletion]: ...
    async def count_completed_lessons(
        self, student_id: UUID, course_ids: set[UUID]
    ) -> int: ...

    async def add_attempt(self, attempt: QuizAttempt) -> None: ...
    async def attempts_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[QuizAttempt]: ...
    async def attempts_for_student(self, student_id: UUID) -> list[QuizAttempt]: ...

    async def record_video_position(
        self, student_id: UUID, lesson_id: UUID, seconds: int, at: datetime
    ) -> LessonVideoProgress: ...
    async def video_positions_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> dict[UUID, int]: ...


class InMemoryProgressRepo:
    """In-memory facts store.

    Filters facts by course through the course repo, the same way the SQL
    implementation joins against lessons/quizzes.
    """

    def __init__(self, courses: InMemoryCourseRepo) -> None:
        self._lesson_course = courses.lesson_course_id
        self._quiz_course = courses.quiz_course_id
        self._completions: dict[tuple[UUID, UUID], LessonCompletion] = {}
        self._attempts: list[QuizAttempt] = []
        self._video: dict[tuple[UUID, UUID], LessonVideoProgress] = {}

    async def add_completion(self, completion: LessonCompletion) -> None:
        key = (completion.student_id, completion.lesson_id)
        if key in self._completions:
            raise DuplicateRecordError("lesson already completed")
        self._completions[key] = completion

    async def completions_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonCompletion]:
        # Orphaned completions (lesson gone) resolve to None and drop out.
        return [
            c
            for (sid, lesson_id), c in self._completions.items()
            if sid == student_id and self._lesson_course(lesson_id) == course_id
        ]

    async def count_completed_lessons(
        self, student_id: UUID, course_ids: set[UUID]
    ) -> int:
        return sum(
            1
            for (sid, lesson_id) in self._completions
            if sid == student_id and self._lesson_course(lesson_id) in course_ids
        )

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        self._attempts.append(attempt)

    async def attempts_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[QuizAttempt]:
        return [
            a
            for a in self._attempts
            if a.student_id == student_id and self._quiz_course(a.quiz_id) == course_id
        ]

    async def attempts_for_student(self, student_id: UUID) -> list[QuizAttempt]:
        # Reversed first so equal timestamps still list the newest first.
        attempts = [a for a in reversed(self._attempts) if a.student_id == student_id]
        return sorted(attempts, key=lambda a: a.attempted_at, reverse=True)

    async def record_video_position(
        self, student_id: UUID, lesson_id: UUID, seconds: int, at: datetime
    ) -> LessonVideoProgress:
        key = (student_id, lesson_id)
        current = self._video.get(key)
        if current is None:
            current = LessonVideoProgress(
                student_id=student_id,
                lesson_id=lesson_id,
                last_watched_seconds=seconds,
                last_updated_at=at,
            )
        elif seconds > current.last_watched_seconds:
            current = replace(current, last_watched_seconds=seconds, last_updated_at=at)
        self._video[key] = current
        return current

    async def video_positions_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> dict[UUID, int]:
        return {
            lesson_id: v.last_watched_seconds
            for (sid, lesson_id), v in self._video.items()
            if sid == student_id and self._lesson_course(lesson_id) == course_id
        }
