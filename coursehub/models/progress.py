from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from coursehub.models.clock import utcnow


@dataclass(frozen=True, slots=True)
class LessonCompletion:
    """Fact: a student finished a lesson.  At most one per (student, lesson)."""

    id: UUID
    student_id: UUID
    lesson_id: UUID
    completed_at: datetime

    @staticmethod
    def new(
        *, student_id: UUID, lesson_id: UUID, completed_at: datetime | None = None
    ) -> LessonCompletion:
        return LessonCompletion(
            id=uuid4(),
            student_id=student_id,
            lesson_id=lesson_id,
            completed_at=completed_at or utcnow(),
        )


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """Fact: one scored submission.  Only the latest attempt per quiz counts."""

    id: UUID
    student_id: UUID
    quiz_id: UUID
    score: int  # 0-100
    passed: bool
    attempted_at: datetime

    @staticmethod
    def new(
        *,
        student_id: UUID,
        quiz_id: UUID,
        score: int,
        passed: bool,
        attempted_at: datetime | None = None,
    ) -> QuizAttempt:
        return QuizAttempt(
            id=uuid4(),
            student_id=student_id,
            quiz_id=quiz_id,
            score=score,
            passed=passed,
            attempted_at=attempted_at or utcnow(),
        )


@dataclass(frozen=True, slots=True)
class LessonVideoProgress:
    """Furthest playback position in a lesson video.  One per (student, lesson).

    Display-only: it never feeds the progress percentage or completion.
    """

    student_id: UUID
    lesson_id: UUID
    last_watched_seconds: int
    last_updated_at: datetime


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Derived read model for one (student, course) pair.

    Never persisted; recomputed from the completion and attempt facts.
    """

    progress: int = 0
    total_lessons: int = 0
    completed_lessons: int = 0
    total_quizzes: int = 0
    completed_quizzes: int = 0  # attempted, pass or fail
    passed_quizzes: int = 0
    next_lesson_id: UUID | None = None
    completed_lesson_ids: frozenset[UUID] = field(default_factory=frozenset)
    attempted_quiz_ids: frozenset[UUID] = field(default_factory=frozenset)
    passed_quiz_ids: frozenset[UUID] = field(default_factory=frozenset)
    last_activity_at: datetime | None = None
