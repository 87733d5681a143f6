from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from coursehub.models.clock import utcnow


class EnrollmentStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Enrollment:
    """One (student, course) relationship.

    ``completed_at`` is set if and only if ``status`` is COMPLETED.
    Status only moves through the completion state machine or the
    explicit "start course" action.
    """

    student_id: UUID
    course_id: UUID
    status: EnrollmentStatus = EnrollmentStatus.NOT_STARTED
    enrolled_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed: datetime | None = None

    @staticmethod
    def new(*, student_id: UUID, course_id: UUID) -> Enrollment:
        return Enrollment(student_id=student_id, course_id=course_id)
