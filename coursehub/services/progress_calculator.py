"""Course progress calculation.

Pure function of a course snapshot: the course's lessons and quizzes
plus one student's completion and attempt facts. No I/O, no clock.

Weighting:
  - lessons only      → lesson percentage
  - quizzes only      → passed-quiz percentage
  - both              → 80% lessons + 20% passed quizzes
  - all lessons done  → 100, regardless of quiz results

Only the latest attempt per quiz counts (by attempted_at, then id).
Facts that reference lessons or quizzes outside the snapshot are ignored.
Percentages round half up (62.5 → 63).
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from coursehub.models.course import Lesson, Quiz
from coursehub.models.progress import CourseProgress, LessonCompletion, QuizAttempt

LESSON_WEIGHT = Decimal("0.8")
QUIZ_WEIGHT = Decimal("0.2")
_HUNDRED = Decimal(100)


def round_percent(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _percent(part: int, total: int) -> Decimal:
    if total == 0:
        return _HUNDRED
    return Decimal(part) * _HUNDRED / Decimal(total)


def latest_attempts(
    attempts: Iterable[QuizAttempt], quiz_ids: set[UUID]
) -> dict[UUID, QuizAttempt]:
    """Latest attempt per quiz, restricted to ``quiz_ids``."""
    latest: dict[UUID, QuizAttempt] = {}
    for attempt in attempts:
        if attempt.quiz_id not in quiz_ids:
            continue
        current = latest.get(attempt.quiz_id)
        if current is None or (attempt.attempted_at, attempt.id) > (
            current.attempted_at,
            current.id,
        ):
            latest[attempt.quiz_id] = attempt
    return latest


def calculate_progress(
    lessons: Iterable[Lesson],
    completions: Iterable[LessonCompletion],
    quizzes: Iterable[Quiz],
    attempts: Iterable[QuizAttempt],
) -> CourseProgress:
    lessons = sorted(lessons, key=lambda l: (l.order, str(l.id)))
    quizzes = list(quizzes)
    completions = list(completions)
    attempts = list(attempts)

    lesson_ids = {l.id for l in lessons}
    quiz_ids = {q.id for q in quizzes}

    completed_ids = frozenset(
        c.lesson_id for c in completions if c.lesson_id in lesson_ids
    )
    latest = latest_attempts(attempts, quiz_ids)
    passed_ids = frozenset(qid for qid, a in latest.items() if a.passed)

    total_lessons = len(lessons)
    total_quizzes = len(quizzes)
    completed_lessons = len(completed_ids)
    passed_quizzes = len(passed_ids)

    lesson_progress = _percent(completed_lessons, total_lessons)
    quiz_progress = _percent(passed_quizzes, total_quizzes)

    if lesson_progress >= _HUNDRED:
        progress = 100
    elif total_lessons == 0 and total_quizzes > 0:
        progress = round_percent(quiz_progress)
    elif total_quizzes == 0 and total_lessons > 0:
        progress = round_percent(lesson_progress)
    else:
        weighted = lesson_progress * LESSON_WEIGHT + quiz_progress * QUIZ_WEIGHT
        progress = max(0, min(100, round_percent(weighted)))

    next_lesson_id = next((l.id for l in lessons if l.id not in completed_ids), None)

    timestamps = [c.completed_at for c in completions if c.lesson_id in lesson_ids]
    timestamps += [a.attempted_at for a in attempts if a.quiz_id in quiz_ids]

    return CourseProgress(
        progress=progress,
        total_lessons=total_lessons,
        completed_lessons=completed_lessons,
        total_quizzes=total_quizzes,
        completed_quizzes=len(latest),
        passed_quizzes=passed_quizzes,
        next_lesson_id=next_lesson_id,
        completed_lesson_ids=completed_ids,
        attempted_quiz_ids=frozenset(latest),
        passed_quiz_ids=passed_ids,
        last_activity_at=max(timestamps, default=None),
    )
