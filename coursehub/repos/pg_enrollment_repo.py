"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import EnrollmentRow
from coursehub.models.enrollment import Enrollment, EnrollmentStatus
from coursehub.repos.errors import DuplicateRecordError


class PgEnrollmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def get_for_update(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        """Read the row with FOR UPDATE so read/decide/write is one unit.

        Concurrent rechecks for the same enrollment serialize on the row
        lock until the request transaction commits.
        """
        stmt = (
            select(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == student_id,
                EnrollmentRow.course_id == course_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def list_for_student(self, student_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.student_id == student_id)
            .order_by(EnrollmentRow.enrolled_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def add(self, enrollment: Enrollment) -> None:
        row = EnrollmentRow(
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            status=enrollment.status.value,
            enrolled_at=enrollment.enrolled_at,
            started_at=enrollment.started_at,
            completed_at=enrollment.completed_at,
            last_accessed=enrollment.last_accessed,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateRecordError("already enrolled") from None

    async def save(self, enrollment: Enrollment) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == enrollment.student_id,
                EnrollmentRow.course_id == enrollment.course_id,
            )
            .values(
                status=enrollment.status.value,
                started_at=enrollment.started_at,
                completed_at=enrollment.completed_at,
                last_accessed=enrollment.last_accessed,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("enrollment not found")

    async def touch(self, student_id: UUID, course_id: UUID, at: datetime) -> None:
        """Update last_accessed only, leaving status columns to the recheck."""
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == student_id,
                EnrollmentRow.course_id == course_id,
            )
            .values(last_accessed=at)
        )
        await self._session.execute(stmt)


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        student_id=row.student_id,
        course_id=row.course_id,
        status=EnrollmentStatus(row.status),
        enrolled_at=row.enrolled_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
        last_accessed=row.last_accessed,
    )
