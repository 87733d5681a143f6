"""PostgreSQL implementation of CourseRepo (courses, lessons, quizzes)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import CourseRow, LessonRow, QuestionRow, QuizRow
from coursehub.models.course import Course, Lesson, Question, Quiz


class PgCourseRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- courses ---

    async def get(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        return _row_to_course(row) if row is not None else None

    async def get_many(self, course_ids: set[UUID]) -> dict[UUID, Course]:
        if not course_ids:
            return {}
        stmt = select(CourseRow).where(CourseRow.id.in_(course_ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        return {row.id: _row_to_course(row) for row in rows}

    async def list_published(self) -> list[Course]:
        stmt = (
            select(CourseRow)
            .where(CourseRow.is_published.is_(True))
            .order_by(CourseRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def add(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                title=course.title,
                short_description=course.short_description,
                category=course.category,
                difficulty=course.difficulty,
                created_by=course.created_by,
                is_published=course.is_published,
                created_at=course.created_at,
            )
        )
        await self._session.flush()

    async def set_published(self, course_id: UUID, is_published: bool) -> Course | None:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(is_published=is_published)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        row = await self._session.get(CourseRow, course_id, populate_existing=True)
        return _row_to_course(row) if row is not None else None

    # --- lessons ---

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        return _row_to_lesson(row) if row is not None else None

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.course_id == course_id)
            .order_by(LessonRow.order, LessonRow.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def count_lessons(self, course_ids: set[UUID]) -> int:
        if not course_ids:
            return 0
        stmt = select(func.count()).where(LessonRow.course_id.in_(course_ids))
        return (await self._session.execute(stmt)).scalar_one()

    async def add_lesson(self, lesson: Lesson) -> None:
        self._session.add(
            LessonRow(
                id=lesson.id,
                course_id=lesson.course_id,
                title=lesson.title,
                content=lesson.content,
                video_url=lesson.video_url,
                order=lesson.order,
                estimated_duration=lesson.estimated_duration,
                created_at=lesson.created_at,
            )
        )
        await self._session.flush()

    # --- quizzes ---

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        row = await self._session.get(QuizRow, quiz_id)
        return _row_to_quiz(row) if row is not None else None

    async def list_quizzes(self, course_id: UUID) -> list[Quiz]:
        stmt = select(QuizRow).where(QuizRow.course_id == course_id).order_by(QuizRow.id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_quiz(r) for r in rows]

    async def add_quiz(self, quiz: Quiz, questions: list[Question]) -> None:
        self._session.add(
            QuizRow(
                id=quiz.id,
                course_id=quiz.course_id,
                lesson_id=quiz.lesson_id,
                title=quiz.title,
                passing_score=quiz.passing_score,
                time_limit=quiz.time_limit,
            )
        )
        # Parent row must exist before the questions' FK check.
        await self._session.flush()
        self._session.add_all(
            QuestionRow(
                id=q.id,
                quiz_id=q.quiz_id,
                text=q.text,
                position=q.position,
                options=list(q.options),
                correct_options=sorted(q.correct_options),
            )
            for q in questions
        )
        await self._session.flush()

    async def list_questions(self, quiz_id: UUID) -> list[Question]:
        stmt = (
            select(QuestionRow)
            .where(QuestionRow.quiz_id == quiz_id)
            .order_by(QuestionRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Question(
                id=r.id,
                quiz_id=r.quiz_id,
                text=r.text,
                position=r.position,
                options=tuple(r.options),
                correct_options=frozenset(r.correct_options),
            )
            for r in rows
        ]


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        created_by=row.created_by,
        short_description=row.short_description or "",
        category=row.category or "",
        difficulty=row.difficulty or "",
        is_published=row.is_published,
        created_at=row.created_at,
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        order=row.order,
        content=row.content or "",
        video_url=row.video_url,
        estimated_duration=row.estimated_duration,
        created_at=row.created_at,
    )


def _row_to_quiz(row: QuizRow) -> Quiz:
    return Quiz(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        passing_score=row.passing_score,
        time_limit=row.time_limit,
        lesson_id=row.lesson_id,
    )
