"""Lesson completion, video position, offline sync and quiz attempt endpoints.

Both writes follow the same sequence:
  Client -> POST (lesson complete | quiz attempt)
  -> insert fact (unique per student+lesson for completions)
  -> touch enrollment.last_accessed
  -> recheck enrollment status (may issue a certificate)
  -> invalidate the student's dashboard cache

Offline sync replays a batch of the same writes and rechecks each
affected course once at the end.
"""

from __future__ import annotations

import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import current_student_id, get_repos
from coursehub.api.errors import http_error
from coursehub.api.schemas import RecheckOut
from coursehub.repos.store import Repos
from coursehub.services.cache import invalidate_dashboard
from coursehub.services.errors import CoursehubError
from coursehub.services.learning_service import LearningService, VideoPositionIn

router = APIRouter(prefix="/v1", tags=["progress"])


class LessonCompletionOut(BaseModel):
    lesson_id: str
    completed_at: datetime.datetime
    enrollment: RecheckOut


class VideoProgressIn(BaseModel):
    last_watched_seconds: int


class VideoProgressOut(BaseModel):
    lesson_id: str
    last_watched_seconds: int
    last_updated_at: datetime.datetime


class OfflineProgressItemIn(BaseModel):
    lesson_id: UUID
    last_watched_seconds: int


class OfflineSyncIn(BaseModel):
    progress_updates: list[OfflineProgressItemIn] = Field(default_factory=list)
    completed_lesson_ids: list[UUID] = Field(default_factory=list)


class OfflineSyncOut(BaseModel):
    synced_progress_count: int
    synced_completion_count: int
    failed_lesson_ids: list[str]


class QuestionOut(BaseModel):
    id: str
    text: str
    position: int
    options: list[str]


class QuizOut(BaseModel):
    id: str
    course_id: str
    title: str
    passing_score: int
    time_limit: int
    questions: list[QuestionOut]


class AnswerIn(BaseModel):
    question_id: UUID
    selected_options: list[int] = Field(default_factory=list)


class QuizAttemptIn(BaseModel):
    answers: list[AnswerIn] = Field(default_factory=list)


class QuizAttemptOut(BaseModel):
    id: str
    quiz_id: str
    score: int
    passed: bool
    correct_answers: int
    total_questions: int
    attempted_at: datetime.datetime
    enrollment: RecheckOut


@router.post("/lessons/{lesson_id}/complete", response_model=LessonCompletionOut)
async def complete_lesson(
    lesson_id: UUID,
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> LessonCompletionOut:
    try:
        result = await LearningService(repos).complete_lesson(student_id, lesson_id)
    except CoursehubError as e:
        raise http_error(e) from None
    await invalidate_dashboard(student_id)
    return LessonCompletionOut(
        lesson_id=str(result.completion.lesson_id),
        completed_at=result.completion.completed_at,
        enrollment=RecheckOut.of(result.recheck),
    )


@router.post("/lessons/{lesson_id}/video-progress", response_model=VideoProgressOut)
async def save_video_progress(
    lesson_id: UUID,
    body: VideoProgressIn,
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> VideoProgressOut:
    try:
        position = await LearningService(repos).save_video_progress(
            student_id, lesson_id, body.last_watched_seconds
        )
    except CoursehubError as e:
        raise http_error(e) from None
    await invalidate_dashboard(student_id)
    return VideoProgressOut(
        lesson_id=str(position.lesson_id),
        last_watched_seconds=position.last_watched_seconds,
        last_updated_at=position.last_updated_at,
    )


@router.post("/lessons/offline-progress/sync", response_model=OfflineSyncOut)
async def sync_offline_progress(
    body: OfflineSyncIn,
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> OfflineSyncOut:
    """Per-item failures are reported in the body, never as an error status."""
    result = await LearningService(repos).sync_offline_progress(
        student_id,
        [
            VideoPositionIn(
                lesson_id=u.lesson_id, last_watched_seconds=u.last_watched_seconds
            )
            for u in body.progress_updates
        ],
        body.completed_lesson_ids,
    )
    await invalidate_dashboard(student_id)
    return OfflineSyncOut(
        synced_progress_count=result.synced_progress_count,
        synced_completion_count=result.synced_completion_count,
        failed_lesson_ids=[str(i) for i in result.failed_lesson_ids],
    )


@router.get("/quizzes/{quiz_id}", response_model=QuizOut)
async def get_quiz(
    quiz_id: UUID,
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> QuizOut:
    """Quiz with its questions.  Correct answers are never included."""
    try:
        view = await LearningService(repos).quiz_for_attempt(student_id, quiz_id)
    except CoursehubError as e:
        raise http_error(e) from None
    return QuizOut(
        id=str(view.quiz.id),
        course_id=str(view.quiz.course_id),
        title=view.quiz.title,
        passing_score=view.quiz.passing_score,
        time_limit=view.quiz.time_limit,
        questions=[
            QuestionOut(
                id=str(q.id), text=q.text, position=q.position, options=list(q.options)
            )
            for q in view.questions
        ],
    )


@router.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=QuizAttemptOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_quiz_attempt(
    quiz_id: UUID,
    body: QuizAttemptIn,
    student_id: Annotated[UUID, Depends(current_student_id)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> QuizAttemptOut:
    answers = {a.question_id: frozenset(a.selected_options) for a in body.answers}
    try:
        result = await LearningService(repos).submit_quiz_attempt(
            student_id, quiz_id, answers
        )
    except CoursehubError as e:
        raise http_error(e) from None
    await invalidate_dashboard(student_id)
    return QuizAttemptOut(
        id=str(result.attempt.id),
        quiz_id=str(result.attempt.quiz_id),
        score=result.attempt.score,
        passed=result.attempt.passed,
        correct_answers=result.correct_answers,
        total_questions=result.total_questions,
        attempted_at=result.attempt.attempted_at,
        enrollment=RecheckOut.of(result.recheck),
    )
