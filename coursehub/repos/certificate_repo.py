from __future__ import annotations

from typing import Protocol
from uuid import UUID

from coursehub.models.certificate import Certificate
from coursehub.repos.errors import DuplicateRecordError


class CertificateRepo(Protocol):
    async def get(self, student_id: UUID, course_id: UUID) -> Certificate | None: ...
    async def get_by_code(self, verification_code: str) -> Certificate | None: ...
    async def list_for_student(self, student_id: UUID) -> list[Certificate]: ...
    async def add(self, certificate: Certificate) -> None: ...


class InMemoryCertificateRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Certificate] = {}

    async def get(self, student_id: UUID, course_id: UUID) -> Certificate | None:
        return self._store.get((student_id, course_id))

    async def get_by_code(self, verification_code: str) -> Certificate | None:
        for cert in self._store.values():
            if cert.verification_code == verification_code:
                return cert
        return None

    async def list_for_student(self, student_id: UUID) -> list[Certificate]:
        certs = [c for (sid, _), c in self._store.items() if sid == student_id]
        return sorted(certs, key=lambda c: c.generated_at, reverse=True)

    async def add(self, certificate: Certificate) -> None:
        key = (certificate.student_id, certificate.course_id)
        if key in self._store:
            raise DuplicateRecordError("certificate already issued")
        if any(
            c.verification_code == certificate.verification_code
            for c in self._store.values()
        ):
            raise DuplicateRecordError("verification code collision")
        self._store[key] = certificate
