"""Response models shared by more than one router."""

from __future__ import annotations

import datetime

from pydantic import BaseModel

from coursehub.models.course import Lesson
from coursehub.models.progress import CourseProgress
from coursehub.services.completion_service import RecheckResult


class LessonOut(BaseModel):
    id: str
    course_id: str
    title: str
    order: int
    content: str
    video_url: str | None
    estimated_duration: int

    @classmethod
    def of(cls, lesson: Lesson) -> LessonOut:
        return cls(
            id=str(lesson.id),
            course_id=str(lesson.course_id),
            title=lesson.title,
            order=lesson.order,
            content=lesson.content,
            video_url=lesson.video_url,
            estimated_duration=lesson.estimated_duration,
        )


class ProgressOut(BaseModel):
    progress: int
    total_lessons: int
    completed_lessons: int
    total_quizzes: int
    completed_quizzes: int
    passed_quizzes: int
    next_lesson_id: str | None

    @classmethod
    def of(cls, progress: CourseProgress) -> ProgressOut:
        return cls(
            progress=progress.progress,
            total_lessons=progress.total_lessons,
            completed_lessons=progress.completed_lessons,
            total_quizzes=progress.total_quizzes,
            completed_quizzes=progress.completed_quizzes,
            passed_quizzes=progress.passed_quizzes,
            next_lesson_id=(
                str(progress.next_lesson_id) if progress.next_lesson_id else None
            ),
        )


class RecheckOut(BaseModel):
    status: str | None
    progress: ProgressOut
    course_completed: bool
    just_completed: bool
    started_at: datetime.datetime | None = None
    completed_at: datetime.datetime | None = None
    certificate_code: str | None = None

    @classmethod
    def of(cls, result: RecheckResult) -> RecheckOut:
        enrollment = result.enrollment
        return cls(
            status=enrollment.status.value if enrollment else None,
            progress=ProgressOut.of(result.progress),
            course_completed=(
                enrollment is not None and enrollment.completed_at is not None
            ),
            just_completed=result.just_completed,
            started_at=enrollment.started_at if enrollment else None,
            completed_at=enrollment.completed_at if enrollment else None,
            certificate_code=(
                result.certificate.verification_code if result.certificate else None
            ),
        )
