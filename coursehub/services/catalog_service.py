"""Course authoring and the public catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from coursehub.models.course import Course, Lesson, Question, Quiz
from coursehub.models.principal import Principal
from coursehub.repos.store import Repos
from coursehub.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QuestionDraft:
    text: str
    options: tuple[str, ...]
    correct_options: frozenset[int]


class CatalogService:
    def __init__(self, repos: Repos) -> None:
        self._repos = repos

    async def list_published(self) -> list[Course]:
        return await self._repos.courses.list_published()

    async def create_course(
        self,
        author: Principal,
        *,
        title: str,
        short_description: str = "",
        category: str = "",
        difficulty: str = "",
    ) -> Course:
        title = title.strip()
        if not title:
            raise ValidationError("title must be non-empty")
        course = Course.new(
            title=title,
            created_by=UUID(author.user_id),
            short_description=short_description,
            category=category,
            difficulty=difficulty,
        )
        await self._repos.courses.add(course)
        logger.info("Created course id=%s by=%s", course.id, author.user_id)
        return course

    async def add_lesson(
        self,
        author: Principal,
        course_id: UUID,
        *,
        title: str,
        order: int,
        content: str = "",
        video_url: str | None = None,
        estimated_duration: int = 0,
    ) -> Lesson:
        await self._owned_course(author, course_id)
        title = title.strip()
        if not title:
            raise ValidationError("title must be non-empty")
        if estimated_duration < 0:
            raise ValidationError("estimated_duration must be >= 0")
        lesson = Lesson.new(
            course_id=course_id,
            title=title,
            order=order,
            content=content,
            video_url=video_url,
            estimated_duration=estimated_duration,
        )
        await self._repos.courses.add_lesson(lesson)
        logger.info("Added lesson id=%s course=%s", lesson.id, course_id)
        return lesson

    async def add_quiz(
        self,
        author: Principal,
        course_id: UUID,
        *,
        title: str,
        passing_score: int,
        questions: list[QuestionDraft],
        time_limit: int = 0,
        lesson_id: UUID | None = None,
    ) -> tuple[Quiz, list[Question]]:
        await self._owned_course(author, course_id)
        title = title.strip()
        if not title:
            raise ValidationError("title must be non-empty")
        if not 0 <= passing_score <= 100:
            raise ValidationError("passing_score must be between 0 and 100")
        if time_limit < 0:
            raise ValidationError("time_limit must be >= 0")
        if lesson_id is not None:
            lesson = await self._repos.courses.get_lesson(lesson_id)
            if lesson is None or lesson.course_id != course_id:
                raise ValidationError("lesson_id does not belong to this course")

        quiz = Quiz.new(
            course_id=course_id,
            title=title,
            passing_score=passing_score,
            time_limit=time_limit,
            lesson_id=lesson_id,
        )
        built = []
        for position, draft in enumerate(questions):
            if not draft.options:
                raise ValidationError(f"question {position} has no options")
            if not draft.correct_options:
                raise ValidationError(f"question {position} has no correct option")
            if any(i < 0 or i >= len(draft.options) for i in draft.correct_options):
                raise ValidationError(
                    f"question {position} has a correct option outside its options"
                )
            built.append(
                Question.new(
                    quiz_id=quiz.id,
                    text=draft.text,
                    position=position,
                    options=draft.options,
                    correct_options=draft.correct_options,
                )
            )
        await self._repos.courses.add_quiz(quiz, built)
        logger.info(
            "Added quiz id=%s course=%s questions=%d", quiz.id, course_id, len(built)
        )
        return quiz, built

    async def publish(self, author: Principal, course_id: UUID) -> Course:
        await self._owned_course(author, course_id)
        course = await self._repos.courses.set_published(course_id, True)
        if course is None:
            raise NotFoundError("course not found")
        logger.info("Published course id=%s", course_id)
        return course

    async def _owned_course(self, author: Principal, course_id: UUID) -> Course:
        """Instructors may edit only their own courses; admins may edit any."""
        course = await self._repos.courses.get(course_id)
        if course is None:
            raise NotFoundError("course not found")
        if not author.is_platform_admin() and str(course.created_by) != author.user_id:
            logger.warning(
                "Rejected edit of course=%s by non-owner=%s", course_id, author.user_id
            )
            raise NotFoundError("course not found")
        return course
