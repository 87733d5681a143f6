"""Certificate issuance guard, listing and public verification.

``ensure_certificate`` is idempotent: an existing certificate is returned
as-is, and losing an insert race to a concurrent request (the store's
unique constraint fires) is read back as "already issued". A collision
on the random verification code is retried with a fresh code.

It must only be called from the transition into COMPLETED
(see completion_service), never from a read path.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from coursehub.core.metrics import CERTIFICATES_ISSUED
from coursehub.models.certificate import Certificate
from coursehub.models.clock import utcnow
from coursehub.repos.errors import DuplicateRecordError
from coursehub.repos.store import Repos
from coursehub.services.errors import NotFoundError

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 3


def make_verification_code(
    student_id: UUID, course_id: UUID, *, now: datetime
) -> str:
    """CERT-YYYYMMDD-<course8>-<student8>-<RANDOM8>, upper-case hex."""
    return "-".join(
        (
            "CERT",
            now.strftime("%Y%m%d"),
            course_id.hex[:8].upper(),
            student_id.hex[:8].upper(),
            secrets.token_hex(4).upper(),
        )
    )


@dataclass(frozen=True, slots=True)
class CertificateView:
    certificate: Certificate
    course_title: str
    student_name: str
    instructor_name: str


class CertificateService:
    def __init__(self, repos: Repos) -> None:
        self._repos = repos

    async def ensure_certificate(
        self, student_id: UUID, course_id: UUID
    ) -> Certificate | None:
        existing = await self._repos.certificates.get(student_id, course_id)
        if existing is not None:
            return existing

        student = await self._repos.users.get_by_id(student_id)
        course = await self._repos.courses.get(course_id)
        if student is None or course is None:
            logger.warning(
                "Certificate skipped, missing student or course  student=%s course=%s",
                student_id,
                course_id,
            )
            return None

        now = utcnow()
        for _ in range(MAX_CODE_ATTEMPTS):
            cert = Certificate.new(
                student_id=student_id,
                course_id=course_id,
                verification_code=make_verification_code(
                    student_id, course_id, now=now
                ),
                generated_at=now,
            )
            try:
                await self._repos.certificates.add(cert)
            except DuplicateRecordError:
                existing = await self._repos.certificates.get(student_id, course_id)
                if existing is not None:
                    logger.info(
                        "Certificate already issued concurrently  student=%s course=%s",
                        student_id,
                        course_id,
                    )
                    return existing
                # The code, not the (student, course) pair, collided.
                logger.warning(
                    "Verification code collision, retrying  student=%s course=%s",
                    student_id,
                    course_id,
                )
                continue

            CERTIFICATES_ISSUED.inc()
            logger.info(
                "Certificate issued  student=%s course=%s code=%s",
                student_id,
                course_id,
                cert.verification_code,
            )
            return cert

        logger.error(
            "Certificate not issued after %d code collisions  student=%s course=%s",
            MAX_CODE_ATTEMPTS,
            student_id,
            course_id,
        )
        return None

    async def list_for_student(self, student_id: UUID) -> list[CertificateView]:
        certs = await self._repos.certificates.list_for_student(student_id)
        return await self._views(certs)

    async def verify(self, verification_code: str) -> CertificateView:
        cert = await self._repos.certificates.get_by_code(verification_code)
        if cert is None:
            raise NotFoundError("certificate not found")
        (view,) = await self._views([cert])
        return view

    async def _views(self, certs: list[Certificate]) -> list[CertificateView]:
        if not certs:
            return []
        courses = await self._repos.courses.get_many({c.course_id for c in certs})
        user_ids = {c.student_id for c in certs}
        user_ids |= {c.created_by for c in courses.values()}
        users = await self._repos.users.get_many(user_ids)

        views = []
        for cert in certs:
            course = courses.get(cert.course_id)
            student = users.get(cert.student_id)
            instructor = users.get(course.created_by) if course else None
            views.append(
                CertificateView(
                    certificate=cert,
                    course_title=course.title if course else "",
                    student_name=student.name if student else "",
                    instructor_name=instructor.name if instructor else "",
                )
            )
        return views
