"""Read-side aggregators: dashboard, my courses, course detail, continue.

Every read rechecks the enrollment first, so what the student sees is
the state recomputed from their facts. Batch views process each
enrollment independently; a failing enrollment is logged and skipped,
and collections are always lists, never None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from coursehub.core.metrics import AGGREGATION_FAILURES
from coursehub.models.course import Course, Lesson, Quiz
from coursehub.models.enrollment import Enrollment, EnrollmentStatus
from coursehub.repos.store import Repos
from coursehub.services.completion_service import CompletionService, load_snapshot
from coursehub.services.errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CourseSummary:
    course_id: UUID
    title: str
    status: EnrollmentStatus
    progress: int
    total_lessons: int
    completed_lessons: int
    total_quizzes: int
    completed_quizzes: int
    passed_quizzes: int
    enrolled_at: datetime
    short_description: str = ""
    category: str = ""
    difficulty: str = ""
    instructor_name: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed: datetime | None = None
    next_lesson_id: UUID | None = None
    # Built from a failed recheck; the numbers are defaults, not facts.
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class Dashboard:
    total_courses: int = 0
    completed_courses: int = 0
    in_progress_courses: int = 0
    total_lessons: int = 0
    completed_lessons: int = 0
    overall_progress: float = 0.0
    last_accessed: datetime | None = None
    courses: list[CourseSummary] = field(default_factory=list)
    # Some part failed and was replaced by defaults.  Not safe to cache.
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class LessonView:
    lesson: Lesson
    is_completed: bool
    last_watched_seconds: int = 0


@dataclass(frozen=True, slots=True)
class QuizView:
    quiz: Quiz
    is_attempted: bool
    is_passed: bool


@dataclass(frozen=True, slots=True)
class CourseDetail:
    summary: CourseSummary
    lessons: list[LessonView] = field(default_factory=list)
    quizzes: list[QuizView] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ContinueLearning:
    course_completed: bool
    lesson: Lesson | None = None


def _mean_progress(summaries: list[CourseSummary]) -> float:
    if not summaries:
        return 0.0
    mean = Decimal(sum(s.progress for s in summaries)) / Decimal(len(summaries))
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class DashboardService:
    def __init__(self, repos: Repos, completion: CompletionService | None = None):
        self._repos = repos
        self._completion = completion or CompletionService(repos)

    async def course_summary(
        self,
        student_id: UUID,
        enrollment: Enrollment,
        course: Course | None = None,
        instructor_name: str = "",
    ) -> CourseSummary:
        if course is None:
            course = await self._repos.courses.get(enrollment.course_id)
            if course is None:
                raise NotFoundError("course not found")

        result = await self._completion.recheck(student_id, enrollment.course_id)
        current = result.enrollment or enrollment
        progress = result.progress
        completed = current.status == EnrollmentStatus.COMPLETED

        return CourseSummary(
            course_id=course.id,
            title=course.title,
            short_description=course.short_description,
            category=course.category,
            difficulty=course.difficulty,
            instructor_name=instructor_name,
            status=current.status,
            # Completed enrollments always display as 100%.
            progress=100 if completed else progress.progress,
            total_lessons=progress.total_lessons,
            completed_lessons=progress.completed_lessons,
            total_quizzes=progress.total_quizzes,
            completed_quizzes=progress.completed_quizzes,
            passed_quizzes=progress.passed_quizzes,
            enrolled_at=current.enrolled_at,
            started_at=current.started_at,
            completed_at=current.completed_at,
            last_accessed=current.last_accessed or progress.last_activity_at,
            next_lesson_id=None if completed else progress.next_lesson_id,
            degraded=result.failed,
        )

    async def my_courses(self, student_id: UUID) -> list[CourseSummary]:
        try:
            summaries, _ = await self._summaries(student_id, view="my_courses")
            return summaries
        except Exception:
            logger.exception("Course list failed  student=%s", student_id)
            return []

    async def dashboard(self, student_id: UUID) -> Dashboard:
        try:
            return await self._dashboard(student_id)
        except Exception:
            logger.exception("Dashboard failed  student=%s", student_id)
            return Dashboard(degraded=True)

    async def _dashboard(self, student_id: UUID) -> Dashboard:
        summaries, degraded = await self._summaries(student_id, view="dashboard")
        course_ids = {s.course_id for s in summaries}
        total_lessons = await self._repos.courses.count_lessons(course_ids)
        completed_lessons = await self._repos.progress.count_completed_lessons(
            student_id, course_ids
        )
        return Dashboard(
            total_courses=len(summaries),
            completed_courses=sum(
                1 for s in summaries if s.status == EnrollmentStatus.COMPLETED
            ),
            in_progress_courses=sum(
                1 for s in summaries if s.status == EnrollmentStatus.IN_PROGRESS
            ),
            total_lessons=total_lessons,
            completed_lessons=completed_lessons,
            overall_progress=_mean_progress(summaries),
            last_accessed=max(
                (s.last_accessed for s in summaries if s.last_accessed is not None),
                default=None,
            ),
            courses=summaries,
            degraded=degraded,
        )

    async def _summaries(
        self, student_id: UUID, *, view: str
    ) -> tuple[list[CourseSummary], bool]:
        """Summaries for every enrollment, plus whether any of them failed."""
        enrollments = await self._repos.enrollments.list_for_student(student_id)
        if not enrollments:
            return [], False
        courses = await self._repos.courses.get_many({e.course_id for e in enrollments})
        instructors = await self._repos.users.get_many(
            {c.created_by for c in courses.values()}
        )

        summaries = []
        degraded = False
        for enrollment in enrollments:
            course = courses.get(enrollment.course_id)
            if course is None:
                AGGREGATION_FAILURES.labels(view=view).inc()
                logger.warning(
                    "Skipping enrollment with missing course  student=%s course=%s",
                    student_id,
                    enrollment.course_id,
                )
                continue
            instructor = instructors.get(course.created_by)
            try:
                async with self._repos.savepoint():
                    summary = await self.course_summary(
                        student_id,
                        enrollment,
                        course,
                        instructor.name if instructor else "",
                    )
            except Exception:
                AGGREGATION_FAILURES.labels(view=view).inc()
                degraded = True
                logger.exception(
                    "Skipping enrollment  student=%s course=%s",
                    student_id,
                    enrollment.course_id,
                )
                continue
            degraded = degraded or summary.degraded
            summaries.append(summary)
        return summaries, degraded

    async def course_detail(self, student_id: UUID, course_id: UUID) -> CourseDetail:
        enrollment = await self._repos.enrollments.get(student_id, course_id)
        if enrollment is None:
            raise NotFoundError("not enrolled in this course")
        course = await self._repos.courses.get(course_id)
        if course is None:
            raise NotFoundError("course not found")
        instructor = await self._repos.users.get_by_id(course.created_by)

        summary = await self.course_summary(
            student_id, enrollment, course, instructor.name if instructor else ""
        )
        snapshot = await load_snapshot(self._repos, student_id, course_id)
        progress = snapshot.progress
        positions = await self._repos.progress.video_positions_for_course(
            student_id, course_id
        )
        return CourseDetail(
            summary=summary,
            lessons=[
                LessonView(
                    lesson=l,
                    is_completed=l.id in progress.completed_lesson_ids,
                    last_watched_seconds=positions.get(l.id, 0),
                )
                for l in snapshot.lessons
            ],
            quizzes=[
                QuizView(
                    quiz=q,
                    is_attempted=q.id in progress.attempted_quiz_ids,
                    is_passed=q.id in progress.passed_quiz_ids,
                )
                for q in snapshot.quizzes
            ],
        )

    async def continue_learning(
        self, student_id: UUID, course_id: UUID
    ) -> ContinueLearning:
        enrollment = await self._repos.enrollments.get(student_id, course_id)
        if enrollment is None:
            raise NotFoundError("not enrolled in this course")

        result = await self._completion.recheck(student_id, course_id)
        current = result.enrollment or enrollment
        progress = (await load_snapshot(self._repos, student_id, course_id)).progress
        if (
            current.status == EnrollmentStatus.COMPLETED
            or progress.total_lessons == 0
            or progress.next_lesson_id is None
        ):
            return ContinueLearning(course_completed=True)

        lesson = await self._repos.courses.get_lesson(progress.next_lesson_id)
        return ContinueLearning(course_completed=False, lesson=lesson)
