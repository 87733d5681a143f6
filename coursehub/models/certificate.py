from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from coursehub.models.clock import utcnow


@dataclass(frozen=True, slots=True)
class Certificate:
    """Issued course certificate.  At most one per (student, course)."""

    id: UUID
    student_id: UUID
    course_id: UUID
    verification_code: str
    generated_at: datetime

    @staticmethod
    def new(
        *,
        student_id: UUID,
        course_id: UUID,
        verification_code: str,
        generated_at: datetime | None = None,
    ) -> Certificate:
        return Certificate(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            verification_code=verification_code,
            generated_at=generated_at or utcnow(),
        )
