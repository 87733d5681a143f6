"""PostgreSQL implementation of CertificateRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import CertificateRow
from coursehub.models.certificate import Certificate
from coursehub.repos.errors import DuplicateRecordError


class PgCertificateRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: UUID, course_id: UUID) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.student_id == student_id,
            CertificateRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_certificate(row) if row is not None else None

    async def get_by_code(self, verification_code: str) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.verification_code == verification_code
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_certificate(row) if row is not None else None

    async def list_for_student(self, student_id: UUID) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.student_id == student_id)
            .order_by(CertificateRow.generated_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]

    async def add(self, certificate: Certificate) -> None:
        row = CertificateRow(
            id=certificate.id,
            student_id=certificate.student_id,
            course_id=certificate.course_id,
            verification_code=certificate.verification_code,
            generated_at=certificate.generated_at,
        )
        # SAVEPOINT keeps the request transaction usable after a lost race.
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateRecordError("certificate already issued") from None


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        verification_code=row.verification_code,
        generated_at=row.generated_at,
    )
