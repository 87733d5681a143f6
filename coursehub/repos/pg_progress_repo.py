"""PostgreSQL implementation of ProgressRepo.

Video positions are an upsert whose update only fires when the new
position is further along, so concurrent saves never move it backwards.

Completions and attempts are scoped to a course by joining through
lessons/quizzes. If the joined query fails (for example a schema still
being migrated) the repo logs and falls back to two simple queries:
fetch the course's lesson ids, then filter completions by them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import (
    LessonCompletionRow,
    LessonRow,
    LessonVideoProgressRow,
    QuizAttemptRow,
    QuizRow,
)
from coursehub.models.progress import (
    LessonCompletion,
    LessonVideoProgress,
    QuizAttempt,
)
from coursehub.repos.errors import DuplicateRecordError

logger = logging.getLogger(__name__)


class PgProgressRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- lesson completions ---

    async def add_completion(self, completion: LessonCompletion) -> None:
        row = LessonCompletionRow(
            id=completion.id,
            student_id=completion.student_id,
            lesson_id=completion.lesson_id,
            completed_at=completion.completed_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateRecordError("lesson already completed") from None

    async def completions_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonCompletion]:
        try:
            async with self._session.begin_nested():
                rows = await self._completions_joined(student_id, course_id)
        except SQLAlchemyError:
            logger.warning(
                "Joined completion query failed, using two-step lookup",
                extra={"student_id": str(student_id), "course_id": str(course_id)},
            )
            rows = await self._completions_two_step(student_id, course_id)
        return [_row_to_completion(r) for r in rows]

    async def _completions_joined(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonCompletionRow]:
        stmt = (
            select(LessonCompletionRow)
            .join(LessonRow, LessonRow.id == LessonCompletionRow.lesson_id)
            .where(
                LessonCompletionRow.student_id == student_id,
                LessonRow.course_id == course_id,
            )
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def _completions_two_step(
        self, student_id: UUID, course_id: UUID
    ) -> list[LessonCompletionRow]:
        lesson_ids = (
            (
                await self._session.execute(
                    select(LessonRow.id).where(LessonRow.course_id == course_id)
                )
            )
            .scalars()
            .all()
        )
        if not lesson_ids:
            return []
        stmt = select(LessonCompletionRow).where(
            LessonCompletionRow.student_id == student_id,
            LessonCompletionRow.lesson_id.in_(lesson_ids),
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def count_completed_lessons(
        self, student_id: UUID, course_ids: set[UUID]
    ) -> int:
        if not course_ids:
            return 0
        stmt = (
            select(func.count())
            .select_from(LessonCompletionRow)
            .join(LessonRow, LessonRow.id == LessonCompletionRow.lesson_id)
            .where(
                LessonCompletionRow.student_id == student_id,
                LessonRow.course_id.in_(course_ids),
            )
        )
        return (await self._session.execute(stmt)).scalar_one()

    # --- quiz attempts ---

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        self._session.add(
            QuizAttemptRow(
                id=attempt.id,
                student_id=attempt.student_id,
                quiz_id=attempt.quiz_id,
                score=attempt.score,
                passed=attempt.passed,
                attempted_at=attempt.attempted_at,
            )
        )
        await self._session.flush()

    async def attempts_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .join(QuizRow, QuizRow.id == QuizAttemptRow.quiz_id)
            .where(
                QuizAttemptRow.student_id == student_id,
                QuizRow.course_id == course_id,
            )
            .order_by(QuizAttemptRow.attempted_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    async def attempts_for_student(self, student_id: UUID) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .where(QuizAttemptRow.student_id == student_id)
            .order_by(QuizAttemptRow.attempted_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    # --- video positions ---

    async def record_video_position(
        self, student_id: UUID, lesson_id: UUID, seconds: int, at: datetime
    ) -> LessonVideoProgress:
        insert = pg_insert(LessonVideoProgressRow).values(
            student_id=student_id,
            lesson_id=lesson_id,
            last_watched_seconds=seconds,
            last_updated_at=at,
        )
        stmt = insert.on_conflict_do_update(
            index_elements=["student_id", "lesson_id"],
            set_={
                "last_watched_seconds": insert.excluded.last_watched_seconds,
                "last_updated_at": insert.excluded.last_updated_at,
            },
            where=insert.excluded.last_watched_seconds
            > LessonVideoProgressRow.last_watched_seconds,
        ).returning(
            LessonVideoProgressRow.last_watched_seconds,
            LessonVideoProgressRow.last_updated_at,
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            # Not further along: the stored position stands.
            row = (
                await self._session.execute(
                    select(
                        LessonVideoProgressRow.last_watched_seconds,
                        LessonVideoProgressRow.last_updated_at,
                    ).where(
                        LessonVideoProgressRow.student_id == student_id,
                        LessonVideoProgressRow.lesson_id == lesson_id,
                    )
                )
            ).one()
        return LessonVideoProgress(
            student_id=student_id,
            lesson_id=lesson_id,
            last_watched_seconds=row.last_watched_seconds,
            last_updated_at=row.last_updated_at,
        )

    async def video_positions_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> dict[UUID, int]:
        stmt = (
            select(
                LessonVideoProgressRow.lesson_id,
                LessonVideoProgressRow.last_watched_seconds,
            )
            .join(LessonRow, LessonRow.id == LessonVideoProgressRow.lesson_id)
            .where(
                LessonVideoProgressRow.student_id == student_id,
                LessonRow.course_id == course_id,
            )
        )
        rows = (await self._session.execute(stmt)).all()
        return {r.lesson_id: r.last_watched_seconds for r in rows}


def _row_to_completion(row: LessonCompletionRow) -> LessonCompletion:
    return LessonCompletion(
        id=row.id,
        student_id=row.student_id,
        lesson_id=row.lesson_id,
        completed_at=row.completed_at,
    )


def _row_to_attempt(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        student_id=row.student_id,
        quiz_id=row.quiz_id,
        score=row.score,
        passed=row.passed,
        attempted_at=row.attempted_at,
    )
