"""Repository bundle.

Services take a ``Repos`` instead of five separate arguments. Without a
DATABASE_URL the process-wide in-memory bundle is used (dev and tests);
with one, a bundle of PostgreSQL repos is built per request session.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.repos.certificate_repo import CertificateRepo, InMemoryCertificateRepo
from coursehub.repos.course_repo import CourseRepo, InMemoryCourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from coursehub.repos.pg_certificate_repo import PgCertificateRepo
from coursehub.repos.pg_course_repo import PgCourseRepo
from coursehub.repos.pg_enrollment_repo import PgEnrollmentRepo
from coursehub.repos.pg_progress_repo import PgProgressRepo
from coursehub.repos.pg_user_repo import PgUserRepo
from coursehub.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from coursehub.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass(frozen=True, slots=True)
class Repos:
    users: UserRepo
    courses: CourseRepo
    enrollments: EnrollmentRepo
    progress: ProgressRepo
    certificates: CertificateRepo
    session: AsyncSession | None = None

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Isolate a unit of work that may fail without failing the request.

        On PostgreSQL this is a SAVEPOINT: an error inside rolls back only
        the nested work and leaves the request transaction usable. The
        in-memory stores have no transaction to protect.
        """
        if self.session is None:
            yield
            return
        async with self.session.begin_nested():
            yield


def new_in_memory_repos() -> Repos:
    courses = InMemoryCourseRepo()
    return Repos(
        users=InMemoryUserRepo(),
        courses=courses,
        enrollments=InMemoryEnrollmentRepo(),
        progress=InMemoryProgressRepo(courses),
        certificates=InMemoryCertificateRepo(),
    )


def pg_repos(session: AsyncSession) -> Repos:
    return Repos(
        users=PgUserRepo(session),
        courses=PgCourseRepo(session),
        enrollments=PgEnrollmentRepo(session),
        progress=PgProgressRepo(session),
        certificates=PgCertificateRepo(session),
        session=session,
    )


# Module-level singleton used when no database is configured
memory_repos = new_in_memory_repos()


def reset_memory_repos() -> None:
    """Replace the in-memory bundle with empty stores (tests)."""
    global memory_repos
    memory_repos = new_in_memory_repos()
