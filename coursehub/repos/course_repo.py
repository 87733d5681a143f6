from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.course import Course, Lesson, Question, Quiz


class CourseRepo(Protocol):
    async def get(self, course_id: UUID) -> Course | None: ...
    async def get_many(self, course_ids: set[UUID]) -> dict[UUID, Course]: ...
    async def list_published(self) -> list[Course]: ...
    async def add(self, course: Course) -> None: ...
    async def set_published(self, course_id: UUID, is_published: bool) -> Course | None: ...

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def list_lessons(self, course_id: UUID) -> list[Lesson]: ...
    async def count_lessons(self, course_ids: set[UUID]) -> int: ...
    async def add_lesson(self, lesson: Lesson) -> None: ...

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None: ...
    async def list_quizzes(self, course_id: UUID) -> list[Quiz]: ...
    async def add_quiz(self, quiz: Quiz, questions: list[Question]) -> None: ...
    async def list_questions(self, quiz_id: UUID) -> list[Question]: ...


def _lesson_sort_key(lesson: Lesson) -> tuple[int, str]:
    return (lesson.order, str(lesson.id))


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._quizzes: dict[UUID, Quiz] = {}
        self._questions: dict[UUID, list[Question]] = {}

    async def get(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def get_many(self, course_ids: set[UUID]) -> dict[UUID, Course]:
        return {cid: self._courses[cid] for cid in course_ids if cid in self._courses}

    async def list_published(self) -> list[Course]:
        published = [c for c in self._courses.values() if c.is_published]
        return sorted(published, key=lambda c: c.created_at, reverse=True)

    async def add(self, course: Course) -> None:
        self._courses[course.id] = course

    async def set_published(self, course_id: UUID, is_published: bool) -> Course | None:
        course = self._courses.get(course_id)
        if course is None:
            return None
        updated = replace(course, is_published=is_published)
        self._courses[course_id] = updated
        return updated

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        lessons = [l for l in self._lessons.values() if l.course_id == course_id]
        return sorted(lessons, key=_lesson_sort_key)

    async def count_lessons(self, course_ids: set[UUID]) -> int:
        return sum(1 for l in self._lessons.values() if l.course_id in course_ids)

    async def add_lesson(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        return self._quizzes.get(quiz_id)

    async def list_quizzes(self, course_id: UUID) -> list[Quiz]:
        return [q for q in self._quizzes.values() if q.course_id == course_id]

    async def add_quiz(self, quiz: Quiz, questions: list[Question]) -> None:
        self._quizzes[quiz.id] = quiz
        self._questions[quiz.id] = sorted(questions, key=lambda q: q.position)

    async def list_questions(self, quiz_id: UUID) -> list[Question]:
        return list(self._questions.get(quiz_id, []))

    # Sync lookups used by InMemoryProgressRepo to mimic the SQL joins.

    def lesson_course_id(self, lesson_id: UUID) -> UUID | None:
        lesson = self._lessons.get(lesson_id)
        return lesson.course_id if lesson is not None else None

    def quiz_course_id(self, quiz_id: UUID) -> UUID | None:
        quiz = self._quizzes.get(quiz_id)
        return quiz.course_id if quiz is not None else None
