"""Public certificate verification.

Anyone holding a verification code (an employer, say) can confirm the
certificate is genuine. Matching is by exact string.
"""

from __future__ import annotations

import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from coursehub.api.dependencies import get_repos
from coursehub.api.errors import http_error
from coursehub.repos.store import Repos
from coursehub.services.certificate_service import CertificateService, CertificateView
from coursehub.services.errors import CoursehubError

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


class CertificateOut(BaseModel):
    id: str
    course_id: str
    course_title: str
    student_name: str
    instructor_name: str
    verification_code: str
    generated_at: datetime.datetime

    @classmethod
    def of(cls, view: CertificateView) -> CertificateOut:
        cert = view.certificate
        return cls(
            id=str(cert.id),
            course_id=str(cert.course_id),
            course_title=view.course_title,
            student_name=view.student_name,
            instructor_name=view.instructor_name,
            verification_code=cert.verification_code,
            generated_at=cert.generated_at,
        )


@router.get("/verify/{verification_code}", response_model=CertificateOut)
async def verify_certificate(
    verification_code: str,
    repos: Annotated[Repos, Depends(get_repos)],
) -> CertificateOut:
    try:
        view = await CertificateService(repos).verify(verification_code)
    except CoursehubError as e:
        raise http_error(e) from None
    return CertificateOut.of(view)
