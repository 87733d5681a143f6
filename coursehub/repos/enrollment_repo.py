from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from coursehub.models.enrollment import Enrollment
from coursehub.repos.errors import DuplicateRecordError


class EnrollmentRepo(Protocol):
    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None: ...
    async def get_for_update(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...
    async def list_for_student(self, student_id: UUID) -> list[Enrollment]: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def save(self, enrollment: Enrollment) -> None: ...
    async def touch(self, student_id: UUID, course_id: UUID, at: datetime) -> None: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Enrollment] = {}

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        return self._store.get((student_id, course_id))

    async def get_for_update(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        # Single-threaded event loop: no row lock needed.
        return self._store.get((student_id, course_id))

    async def list_for_student(self, student_id: UUID) -> list[Enrollment]:
        rows = [e for (sid, _), e in self._store.items() if sid == student_id]
        return sorted(rows, key=lambda e: e.enrolled_at)

    async def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key in self._store:
            raise DuplicateRecordError("already enrolled")
        self._store[key] = enrollment

    async def save(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key not in self._store:
            raise KeyError("enrollment not found")
        self._store[key] = enrollment

    async def touch(self, student_id: UUID, course_id: UUID, at: datetime) -> None:
        key = (student_id, course_id)
        current = self._store.get(key)
        if current is not None:
            self._store[key] = replace(current, last_accessed=at)
