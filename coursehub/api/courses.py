"""Course catalog, authoring and enrollment endpoints.

Authoring (create, add lesson/quiz, publish) requires the instructor or
admin role. Enrollment and course actions require the student role.
"""

from __future__ import annotations

import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import (
    current_instructor,
    current_student_id,
    get_repos,
    require_user,
)
from coursehub.api.errors import http_error
from coursehub.api.schemas import LessonOut, RecheckOut
from coursehub.models.course import Course
from coursehub.models.principal import Principal
from coursehub.repos.store import Repos
from coursehub.services.cache import invalidate_dashboard
from coursehub.services.catalog_service import CatalogService, QuestionDraft
from coursehub.services.dashboard_service import DashboardService
from coursehub.services.errors import CoursehubError
from coursehub.services.learning_service import LearningService

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class CourseIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    short_description: str = ""
    category: str = ""
    difficulty: str = ""


class CourseOut(BaseModel):
    id: str
    title: str
    short_description: str
    category: str
    difficulty: str
    created_by: str
    is_published: bool
    created_at: datetime.datetime

    @classmethod
    def of(cls, course: Course) -> CourseOut:
        return cls(
            id=str(course.id),
            title=course.title,
            short_description=course.short_description,
            category=course.category,
            difficulty=course.difficulty,
            created_by=str(course.created_by),
            is_published=course.is_published,
            created_at=course.created_at,
        )


class LessonIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    order: int
    content: str = ""
    video_url: str | None = None
    estimated_duration: int = Field(default=0, ge=0)


class QuestionIn(BaseModel):
    text: str = Field(min_length=1)
    options: list[str] = Field(min_length=1)
    correct_options: list[int] = Field(min_length=1)


class QuizIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    passing_score: int = Field(ge=0, le=100)
    time_limit: int = Field(default=0, ge=0)
    lesson_id: UUID | None = None
    questions: list[QuestionIn] = Field(default_factory=list)


class QuizCreatedOut(BaseModel):
    id: str
    course_id: str
    title: str
    passing_score: int
    time_limit: int
    lesson_id: str | None
    question_count: int


class EnrollmentOut(BaseModel):
    student_id: str
    course_id: str
    status: str
    enrolled_at: datetime.datetime


class ContinueOut(BaseModel):
    course_completed: bool
    lesson: LessonOut | None = None


# ---------------------------------------------------------------------------
# Catalog and authoring
# ---------------------------------------------------------------------------


@router.get("", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[CourseOut]:
    courses = await CatalogService(repos).list_published()
    return [CourseOut.of(c) for c in courses]


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn,
    principal: Annotated[Principal, Depends(current_instructor)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> CourseOut:
    try:
        course = await CatalogService(repos).create_course(
            principal,
            title=body.title,
            short_description=body.short_description,
            category=body.category,
            difficulty=body.difficulty,
        )
    except CoursehubError as e:
        raise http_error(e) from None
    return CourseOut.of(course)


@router.post(
    "/{course_id}/lessons",
    response_model=LessonOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_lesson(
    course_id: UUID,
    body: LessonIn,
    principal: Annotated[Principal, Depends(current_instructor)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> LessonOut:
    try:
        lesson = await CatalogService(repos).add_lesson(
            principal,
            course_id,
            title=body.title,
            order=body.order,
            content=body.content,
            video_url=body.video_url,
            estimated_duration=body.estimated_duration,
        )
    except CoursehubError as e:
        raise http_error(e) from None
    return LessonOut.of(lesson)


@router.post(
    "/{course_id}/quizzes",
    response_model=QuizCreatedOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_quiz(
    course_id: UUID,
    body: QuizIn,
    principal: Annotated[Principal, Depends(current_instructor)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> QuizCreatedOut:
    drafts = [
        QuestionDraft(
            text=q.text,
            options=tuple(q.options),
            correct_options=frozenset(q.correct_options),
        )
        for q in body.questions
    ]
    try:
        quiz, questions = await CatalogService(repos).add_quiz(
            principal,
            course_id,
            title=body.title,
            passing_score=body.passing_score,
            questions=drafts,
            time_limit=body.time_limit,
            lesson_id=body.lesson_id,
        )
    except CoursehubError as e:
        raise http_error(e) from None
    return QuizCreatedOut(
        id=str(quiz.id),
        course_id=str(quiz.course_id),
        title=quiz.title,
        passing_score=quiz.passing_score,
        time_limit=quiz.time_limit,
        lesson_id=str(quiz.lesson_id) if quiz.lesson_id else None,
        question_count=len(questions),
    )


@router.post("/{course_id}/publish", response_model=CourseOut)
async def publish_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(current_instructor)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> CourseOut:
    try:
        course = await CatalogService(repos).publish(principal, course_id)
    except CoursehubError as e:
        raise http_error(e) from None
    return CourseOut.of(course)


# ---------------------------------------------------------------------------
# Student actions
# ---------------------------------------------------------------------------


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: UUID,
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> EnrollmentOut:
    try:
        enrollment = await LearningService(repos).enroll(student_id, course_id)
    except CoursehubError as e:
        raise http_error(e) from None
    await invalidate_dashboard(student_id)
    return EnrollmentOut(
        student_id=str(enrollment.student_id),
        course_id=str(enrollment.course_id),
        status=enrollment.status.value,
        enrolled_at=enrollment.enrolled_at,
    )


@router.post("/{course_id}/start", response_model=RecheckOut)
async def start_course(
    course_id: UUID,
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> RecheckOut:
    try:
        result = await LearningService(repos).start_course(student_id, course_id)
    except CoursehubError as e:
        raise http_error(e) from None
    await invalidate_dashboard(student_id)
    return RecheckOut.of(result)


@router.get("/{course_id}/continue", response_model=ContinueOut)
async def continue_learning(
    course_id: UUID,
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> ContinueOut:
    try:
        target = await DashboardService(repos).continue_learning(student_id, course_id)
    except CoursehubError as e:
        raise http_error(e) from None
    return ContinueOut(
        course_completed=target.course_completed,
        lesson=LessonOut.of(target.lesson) if target.lesson else None,
    )
