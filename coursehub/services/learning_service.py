"""Student actions: enroll, start, complete lessons, attempt quizzes,
save video positions and replay progress recorded offline.

Every action that records a progress fact touches the enrollment's
last_accessed and then runs the completion recheck, so the enrollment
status always reflects the facts written in the same request. Video
positions are display-only and skip the recheck.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from coursehub.core.metrics import (
    LESSON_COMPLETIONS,
    OFFLINE_SYNC_ITEMS,
    QUIZ_ATTEMPTS,
)
from coursehub.models.clock import utcnow
from coursehub.models.course import Lesson, Question, Quiz
from coursehub.models.enrollment import Enrollment
from coursehub.models.progress import (
    LessonCompletion,
    LessonVideoProgress,
    QuizAttempt,
)
from coursehub.repos.errors import DuplicateRecordError
from coursehub.repos.store import Repos
from coursehub.services.completion_service import CompletionService, RecheckResult
from coursehub.services.errors import (
    ConflictError,
    CoursehubError,
    NotEnrolledError,
    NotFoundError,
    ValidationError,
)
from coursehub.services.progress_calculator import round_percent

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LessonCompletionResult:
    completion: LessonCompletion
    recheck: RecheckResult


@dataclass(frozen=True, slots=True)
class QuizAttemptResult:
    attempt: QuizAttempt
    correct_answers: int
    total_questions: int
    recheck: RecheckResult


@dataclass(frozen=True, slots=True)
class QuizForAttempt:
    quiz: Quiz
    questions: tuple[Question, ...]


@dataclass(frozen=True, slots=True)
class VideoPositionIn:
    lesson_id: UUID
    last_watched_seconds: int


@dataclass(frozen=True, slots=True)
class OfflineSyncResult:
    synced_progress_count: int = 0
    synced_completion_count: int = 0
    failed_lesson_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True, slots=True)
class QuizAttemptEntry:
    """One past attempt with its quiz and course, for the history view.

    Titles are empty and course_id is None when the quiz has since been
    deleted.
    """

    attempt: QuizAttempt
    quiz_title: str = ""
    course_id: UUID | None = None
    course_title: str = ""
    passing_score: int = 0


def grade(
    questions: list[Question], answers: Mapping[UUID, set[int] | frozenset[int]]
) -> tuple[int, int]:
    """Return (correct, score). A question counts only on an exact match."""
    correct = sum(
        1 for q in questions if frozenset(answers.get(q.id, ())) == q.correct_options
    )
    if not questions:
        return 0, 0
    score = round_percent(Decimal(correct) * 100 / Decimal(len(questions)))
    return correct, score


class LearningService:
    def __init__(self, repos: Repos, completion: CompletionService | None = None):
        self._repos = repos
        self._completion = completion or CompletionService(repos)

    async def enroll(self, student_id: UUID, course_id: UUID) -> Enrollment:
        course = await self._repos.courses.get(course_id)
        if course is None or not course.is_published:
            raise NotFoundError("course not found")

        enrollment = Enrollment.new(student_id=student_id, course_id=course_id)
        try:
            await self._repos.enrollments.add(enrollment)
        except DuplicateRecordError:
            logger.warning(
                "Rejected duplicate enrollment  student=%s course=%s",
                student_id,
                course_id,
            )
            raise ConflictError("already enrolled") from None
        logger.info("Enrolled  student=%s course=%s", student_id, course_id)
        return enrollment

    async def start_course(self, student_id: UUID, course_id: UUID) -> RecheckResult:
        await self._completion.start_course(student_id, course_id)
        # An empty course completes as soon as it is started.
        return await self._completion.recheck(student_id, course_id)

    async def complete_lesson(
        self, student_id: UUID, lesson_id: UUID
    ) -> LessonCompletionResult:
        lesson, completion = await self._record_completion(student_id, lesson_id)
        await self._touch(student_id, lesson.course_id)
        recheck = await self._completion.recheck(student_id, lesson.course_id)
        return LessonCompletionResult(completion=completion, recheck=recheck)

    async def submit_quiz_attempt(
        self,
        student_id: UUID,
        quiz_id: UUID,
        answers: Mapping[UUID, set[int] | frozenset[int]],
    ) -> QuizAttemptResult:
        quiz = await self._repos.courses.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError("quiz not found")
        await self._require_enrollment(student_id, quiz.course_id)

        questions = await self._repos.courses.list_questions(quiz_id)
        correct, score = grade(questions, answers)
        attempt = QuizAttempt.new(
            student_id=student_id,
            quiz_id=quiz_id,
            score=score,
            passed=score >= quiz.passing_score,
        )
        await self._repos.progress.add_attempt(attempt)
        QUIZ_ATTEMPTS.labels(result="passed" if attempt.passed else "failed").inc()
        logger.info(
            "Quiz attempt recorded  student=%s quiz=%s score=%d passed=%s",
            student_id,
            quiz_id,
            score,
            attempt.passed,
        )

        await self._touch(student_id, quiz.course_id)
        recheck = await self._completion.recheck(student_id, quiz.course_id)
        return QuizAttemptResult(
            attempt=attempt,
            correct_answers=correct,
            total_questions=len(questions),
            recheck=recheck,
        )

    async def quiz_for_attempt(self, student_id: UUID, quiz_id: UUID) -> QuizForAttempt:
        quiz = await self._repos.courses.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError("quiz not found")
        await self._require_enrollment(student_id, quiz.course_id)
        questions = await self._repos.courses.list_questions(quiz_id)
        return QuizForAttempt(quiz=quiz, questions=tuple(questions))

    async def save_video_progress(
        self, student_id: UUID, lesson_id: UUID, last_watched_seconds: int
    ) -> LessonVideoProgress:
        """Record how far the student got in a lesson video.

        The stored position only moves forward; an earlier position is
        accepted and the furthest one is returned.
        """
        if last_watched_seconds < 0:
            raise ValidationError("last_watched_seconds must be non-negative")
        lesson = await self._require_lesson(lesson_id)
        await self._require_enrollment(student_id, lesson.course_id)

        now = utcnow()
        position = await self._repos.progress.record_video_position(
            student_id, lesson_id, last_watched_seconds, now
        )
        await self._repos.enrollments.touch(student_id, lesson.course_id, now)
        return position

    async def sync_offline_progress(
        self,
        student_id: UUID,
        progress_updates: Iterable[VideoPositionIn],
        completed_lesson_ids: Iterable[UUID],
    ) -> OfflineSyncResult:
        """Replay video positions and lesson completions recorded offline.

        Items are applied independently: one that fails is reported in
        failed_lesson_ids and the rest still land. A lesson that was
        already completed counts as synced. Each course that gained a
        completion is rechecked once, after all items.
        """
        synced_progress = 0
        synced_completions = 0
        failed: list[UUID] = []
        # dict keeps first-seen order for the rechecks
        affected: dict[UUID, None] = {}

        for item in progress_updates:
            try:
                async with self._repos.savepoint():
                    await self.save_video_progress(
                        student_id, item.lesson_id, item.last_watched_seconds
                    )
            except Exception as e:
                self._sync_failed("video", student_id, item.lesson_id, e)
                failed.append(item.lesson_id)
                continue
            OFFLINE_SYNC_ITEMS.labels(kind="video", result="synced").inc()
            synced_progress += 1

        for lesson_id in completed_lesson_ids:
            try:
                async with self._repos.savepoint():
                    course_id = await self._sync_completion(student_id, lesson_id)
            except Exception as e:
                self._sync_failed("completion", student_id, lesson_id, e)
                failed.append(lesson_id)
                continue
            OFFLINE_SYNC_ITEMS.labels(kind="completion", result="synced").inc()
            synced_completions += 1
            if course_id is not None:
                affected.setdefault(course_id, None)

        for course_id in affected:
            await self._completion.recheck(student_id, course_id)

        logger.info(
            "Offline progress synced  student=%s videos=%d completions=%d failed=%d",
            student_id,
            synced_progress,
            synced_completions,
            len(failed),
        )
        return OfflineSyncResult(
            synced_progress_count=synced_progress,
            synced_completion_count=synced_completions,
            failed_lesson_ids=tuple(failed),
        )

    async def quiz_attempt_history(self, student_id: UUID) -> list[QuizAttemptEntry]:
        """Every attempt by the student, newest first.  Always a list."""
        try:
            return await self._quiz_attempt_history(student_id)
        except Exception:
            logger.exception("Quiz attempt history failed  student=%s", student_id)
            return []

    async def _require_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment:
        enrollment = await self._repos.enrollments.get(student_id, course_id)
        if enrollment is None:
            logger.warning(
                "Rejected action, not enrolled  student=%s course=%s",
                student_id,
                course_id,
            )
            raise NotEnrolledError("not enrolled in this course")
        return enrollment

    async def _touch(self, student_id: UUID, course_id: UUID) -> None:
        await self._repos.enrollments.touch(student_id, course_id, utcnow())

    async def _require_lesson(self, lesson_id: UUID) -> Lesson:
        lesson = await self._repos.courses.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("lesson not found")
        return lesson

    async def _record_completion(
        self, student_id: UUID, lesson_id: UUID
    ) -> tuple[Lesson, LessonCompletion]:
        lesson = await self._require_lesson(lesson_id)
        await self._require_enrollment(student_id, lesson.course_id)

        completion = LessonCompletion.new(student_id=student_id, lesson_id=lesson_id)
        try:
            await self._repos.progress.add_completion(completion)
        except DuplicateRecordError:
            LESSON_COMPLETIONS.labels(result="duplicate").inc()
            raise ConflictError("lesson already completed") from None
        LESSON_COMPLETIONS.labels(result="created").inc()
        return lesson, completion

    async def _sync_completion(self, student_id: UUID, lesson_id: UUID) -> UUID | None:
        """Course id when a completion was added, None when it already existed."""
        try:
            lesson, _ = await self._record_completion(student_id, lesson_id)
        except ConflictError:
            return None
        await self._touch(student_id, lesson.course_id)
        return lesson.course_id

    def _sync_failed(
        self, kind: str, student_id: UUID, lesson_id: UUID, exc: Exception
    ) -> None:
        OFFLINE_SYNC_ITEMS.labels(kind=kind, result="failed").inc()
        if isinstance(exc, CoursehubError):
            logger.warning(
                "Offline %s rejected  student=%s lesson=%s reason=%s",
                kind,
                student_id,
                lesson_id,
                exc,
            )
        else:
            logger.error(
                "Offline %s failed  student=%s lesson=%s",
                kind,
                student_id,
                lesson_id,
                exc_info=exc,
            )

    async def _quiz_attempt_history(self, student_id: UUID) -> list[QuizAttemptEntry]:
        attempts = await self._repos.progress.attempts_for_student(student_id)
        if not attempts:
            return []
        quizzes: dict[UUID, Quiz] = {}
        for quiz_id in {a.quiz_id for a in attempts}:
            quiz = await self._repos.courses.get_quiz(quiz_id)
            if quiz is not None:
                quizzes[quiz_id] = quiz
        courses = await self._repos.courses.get_many(
            {q.course_id for q in quizzes.values()}
        )

        entries = []
        for attempt in attempts:
            quiz = quizzes.get(attempt.quiz_id)
            course = courses.get(quiz.course_id) if quiz else None
            entries.append(
                QuizAttemptEntry(
                    attempt=attempt,
                    quiz_title=quiz.title if quiz else "",
                    course_id=course.id if course else None,
                    course_title=course.title if course else "",
                    passing_score=quiz.passing_score if quiz else 0,
                )
            )
        return entries
