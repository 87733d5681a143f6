"""The student's own views: dashboard, courses, course detail, certificates,
quiz attempt history.

GET /v1/me/dashboard is read-through cached per student:

  1. Build the cache key from the student id
  2. Cache HIT  → return the stored payload
  3. Cache MISS → aggregate from the repos, store with a TTL, return
     (a degraded aggregate is returned but never stored)

Writes that change a student's progress delete the key (see progress.py
and courses.py), so the next read recomputes.
"""

from __future__ import annotations

import datetime
import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from coursehub.api.certificates import CertificateOut
from coursehub.api.dependencies import current_student_id, get_repos
from coursehub.api.errors import http_error
from coursehub.api.schemas import LessonOut
from coursehub.core.config import SETTINGS
from coursehub.repos.store import Repos
from coursehub.services.cache import cache_get, cache_set, dashboard_key
from coursehub.services.certificate_service import CertificateService
from coursehub.services.dashboard_service import CourseSummary, DashboardService
from coursehub.services.errors import CoursehubError
from coursehub.services.learning_service import LearningService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/me", tags=["me"])


class CourseSummaryOut(BaseModel):
    course_id: str
    title: str
    short_description: str
    category: str
    difficulty: str
    instructor_name: str
    status: str
    progress: int
    total_lessons: int
    completed_lessons: int
    total_quizzes: int
    completed_quizzes: int
    passed_quizzes: int
    enrolled_at: datetime.datetime
    started_at: datetime.datetime | None
    completed_at: datetime.datetime | None
    last_accessed: datetime.datetime | None
    next_lesson_id: str | None

    @classmethod
    def of(cls, s: CourseSummary) -> CourseSummaryOut:
        return cls(
            course_id=str(s.course_id),
            title=s.title,
            short_description=s.short_description,
            category=s.category,
            difficulty=s.difficulty,
            instructor_name=s.instructor_name,
            status=s.status.value,
            progress=s.progress,
            total_lessons=s.total_lessons,
            completed_lessons=s.completed_lessons,
            total_quizzes=s.total_quizzes,
            completed_quizzes=s.completed_quizzes,
            passed_quizzes=s.passed_quizzes,
            enrolled_at=s.enrolled_at,
            started_at=s.started_at,
            completed_at=s.completed_at,
            last_accessed=s.last_accessed,
            next_lesson_id=str(s.next_lesson_id) if s.next_lesson_id else None,
        )


class DashboardOut(BaseModel):
    total_courses: int
    completed_courses: int
    in_progress_courses: int
    total_lessons: int
    completed_lessons: int
    overall_progress: float
    last_accessed: datetime.datetime | None
    courses: list[CourseSummaryOut]


class LessonStateOut(LessonOut):
    is_completed: bool
    last_watched_seconds: int = 0


class QuizStateOut(BaseModel):
    id: str
    title: str
    passing_score: int
    time_limit: int
    lesson_id: str | None
    is_attempted: bool
    is_passed: bool


class CourseDetailOut(BaseModel):
    course: CourseSummaryOut
    lessons: list[LessonStateOut]
    quizzes: list[QuizStateOut]


@router.get("/dashboard", response_model=DashboardOut)
async def get_dashboard(
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> DashboardOut:
    key = dashboard_key(student_id)
    cached = await cache_get(key)
    if cached is not None:
        return DashboardOut.model_validate_json(cached)

    dashboard = await DashboardService(repos).dashboard(student_id)
    out = DashboardOut(
        total_courses=dashboard.total_courses,
        completed_courses=dashboard.completed_courses,
        in_progress_courses=dashboard.in_progress_courses,
        total_lessons=dashboard.total_lessons,
        completed_lessons=dashboard.completed_lessons,
        overall_progress=dashboard.overall_progress,
        last_accessed=dashboard.last_accessed,
        courses=[CourseSummaryOut.of(s) for s in dashboard.courses],
    )
    if dashboard.degraded:
        # Serve the partial result but let the next read recompute.
        logger.warning("Dashboard degraded, not caching  student=%s", student_id)
    else:
        await cache_set(key, out.model_dump_json(), SETTINGS.dashboard_cache_ttl)
    return out


@router.get("/courses", response_model=list[CourseSummaryOut])
async def my_courses(
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[CourseSummaryOut]:
    summaries = await DashboardService(repos).my_courses(student_id)
    return [CourseSummaryOut.of(s) for s in summaries]


@router.get("/courses/{course_id}", response_model=CourseDetailOut)
async def course_detail(
    course_id: UUID,
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> CourseDetailOut:
    try:
        detail = await DashboardService(repos).course_detail(student_id, course_id)
    except CoursehubError as e:
        raise http_error(e) from None
    return CourseDetailOut(
        course=CourseSummaryOut.of(detail.summary),
        lessons=[
            LessonStateOut(
                **LessonOut.of(v.lesson).model_dump(),
                is_completed=v.is_completed,
                last_watched_seconds=v.last_watched_seconds,
            )
            for v in detail.lessons
        ],
        quizzes=[
            QuizStateOut(
                id=str(v.quiz.id),
                title=v.quiz.title,
                passing_score=v.quiz.passing_score,
                time_limit=v.quiz.time_limit,
                lesson_id=str(v.quiz.lesson_id) if v.quiz.lesson_id else None,
                is_attempted=v.is_attempted,
                is_passed=v.is_passed,
            )
            for v in detail.quizzes
        ],
    )


@router.get("/certificates", response_model=list[CertificateOut])
async def my_certificates(
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[CertificateOut]:
    views = await CertificateService(repos).list_for_student(student_id)
    return [CertificateOut.of(v) for v in views]


class QuizAttemptHistoryOut(BaseModel):
    id: str
    quiz_id: str
    quiz_title: str
    course_id: str | None
    course_title: str
    score: int
    passed: bool
    attempted_at: datetime.datetime
    passing_score: int


@router.get("/quiz-attempts", response_model=list[QuizAttemptHistoryOut])
async def quiz_attempts(
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[QuizAttemptHistoryOut]:
    entries = await LearningService(repos).quiz_attempt_history(student_id)
    return [
        QuizAttemptHistoryOut(
            id=str(e.attempt.id),
            quiz_id=str(e.attempt.quiz_id),
            quiz_title=e.quiz_title,
            course_id=str(e.course_id) if e.course_id else None,
            course_title=e.course_title,
            score=e.attempt.score,
            passed=e.attempt.passed,
            attempted_at=e.attempt.attempted_at,
            passing_score=e.passing_score,
        )
        for e in entries
    ]
