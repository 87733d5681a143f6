"""Enrollment completion state machine.

States: not_started → in_progress → completed, with one way back
(completed → in_progress) when a recheck finds the course no longer
complete.

A course is complete when every lesson is completed AND every quiz has
been attempted (pass or fail). A course with no lessons and no quizzes
is complete as soon as the student has started it.

``decide_transition`` is pure. ``CompletionService.recheck`` loads the
data, decides, persists, and fires certificate issuance exactly on the
edge into COMPLETED. Recheck never raises: progress display must not
fail because the computation did.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import UUID

from coursehub.core.metrics import ENROLLMENT_TRANSITIONS, PROGRESS_RECHECKS
from coursehub.models.certificate import Certificate
from coursehub.models.clock import utcnow
from coursehub.models.course import Lesson, Quiz
from coursehub.models.enrollment import Enrollment, EnrollmentStatus
from coursehub.models.progress import CourseProgress
from coursehub.repos.store import Repos
from coursehub.services.certificate_service import CertificateService
from coursehub.services.errors import InvalidStateError, NotFoundError
from coursehub.services.progress_calculator import calculate_progress

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Transition:
    enrollment: Enrollment
    changed: bool = False
    just_completed: bool = False


@dataclass(frozen=True, slots=True)
class RecheckResult:
    enrollment: Enrollment | None = None
    progress: CourseProgress = field(default_factory=CourseProgress)
    transitioned: bool = False
    just_completed: bool = False
    certificate: Certificate | None = None
    failed: bool = False


@dataclass(frozen=True, slots=True)
class CourseSnapshot:
    lessons: tuple[Lesson, ...]
    quizzes: tuple[Quiz, ...]
    progress: CourseProgress


def is_course_complete(status: EnrollmentStatus, progress: CourseProgress) -> bool:
    if progress.total_lessons == 0 and progress.total_quizzes == 0:
        return status != EnrollmentStatus.NOT_STARTED
    all_lessons = progress.completed_lessons >= progress.total_lessons
    all_quizzes = progress.completed_quizzes >= progress.total_quizzes
    return all_lessons and all_quizzes


def decide_transition(
    enrollment: Enrollment, progress: CourseProgress, *, now: datetime
) -> Transition:
    status = enrollment.status
    complete = is_course_complete(status, progress)

    if complete and status != EnrollmentStatus.COMPLETED:
        updated = replace(
            enrollment,
            status=EnrollmentStatus.COMPLETED,
            started_at=enrollment.started_at or now,
            completed_at=now,
            last_accessed=now,
        )
        return Transition(updated, changed=True, just_completed=True)

    if not complete and status == EnrollmentStatus.COMPLETED:
        # Reachable when a later attempt changes what the course requires.
        updated = replace(
            enrollment, status=EnrollmentStatus.IN_PROGRESS, completed_at=None
        )
        return Transition(updated, changed=True)

    if (
        not complete
        and status == EnrollmentStatus.NOT_STARTED
        and (progress.completed_lessons > 0 or progress.passed_quizzes > 0)
    ):
        updated = replace(
            enrollment,
            status=EnrollmentStatus.IN_PROGRESS,
            started_at=enrollment.started_at or now,
        )
        return Transition(updated, changed=True)

    return Transition(enrollment)


async def load_snapshot(
    repos: Repos, student_id: UUID, course_id: UUID
) -> CourseSnapshot:
    lessons = await repos.courses.list_lessons(course_id)
    quizzes = await repos.courses.list_quizzes(course_id)
    completions = await repos.progress.completions_for_course(student_id, course_id)
    attempts = await repos.progress.attempts_for_course(student_id, course_id)
    return CourseSnapshot(
        lessons=tuple(lessons),
        quizzes=tuple(quizzes),
        progress=calculate_progress(lessons, completions, quizzes, attempts),
    )


class CompletionService:
    def __init__(self, repos: Repos, certificates: CertificateService | None = None):
        self._repos = repos
        self._certificates = certificates or CertificateService(repos)

    async def recheck(self, student_id: UUID, course_id: UUID) -> RecheckResult:
        try:
            async with self._repos.savepoint():
                return await self._recheck(student_id, course_id)
        except Exception:
            PROGRESS_RECHECKS.labels(outcome="failed").inc()
            logger.exception(
                "Progress recheck failed  student=%s course=%s",
                student_id,
                course_id,
                extra={"student_id": str(student_id), "course_id": str(course_id)},
            )
            return RecheckResult(failed=True)

    async def _recheck(self, student_id: UUID, course_id: UUID) -> RecheckResult:
        enrollment = await self._repos.enrollments.get_for_update(
            student_id, course_id
        )
        if enrollment is None:
            PROGRESS_RECHECKS.labels(outcome="no_enrollment").inc()
            return RecheckResult()

        snapshot = await load_snapshot(self._repos, student_id, course_id)
        transition = decide_transition(enrollment, snapshot.progress, now=utcnow())

        if not transition.changed:
            PROGRESS_RECHECKS.labels(outcome="unchanged").inc()
            return RecheckResult(enrollment=enrollment, progress=snapshot.progress)

        updated = transition.enrollment
        await self._repos.enrollments.save(updated)
        PROGRESS_RECHECKS.labels(outcome="transitioned").inc()
        ENROLLMENT_TRANSITIONS.labels(to_status=updated.status.value).inc()
        logger.info(
            "Enrollment transitioned  student=%s course=%s %s -> %s",
            student_id,
            course_id,
            enrollment.status.value,
            updated.status.value,
            extra={"student_id": str(student_id), "course_id": str(course_id)},
        )

        certificate = None
        if transition.just_completed:
            certificate = await self._certificates.ensure_certificate(
                student_id, course_id
            )

        return RecheckResult(
            enrollment=updated,
            progress=snapshot.progress,
            transitioned=True,
            just_completed=transition.just_completed,
            certificate=certificate,
        )

    async def start_course(self, student_id: UUID, course_id: UUID) -> Enrollment:
        """Explicit start: NOT_STARTED → IN_PROGRESS, no completion check."""
        enrollment = await self._repos.enrollments.get_for_update(
            student_id, course_id
        )
        if enrollment is None:
            raise NotFoundError("not enrolled in this course")
        if enrollment.status != EnrollmentStatus.NOT_STARTED:
            raise InvalidStateError(f"course already {enrollment.status.value}")

        now = utcnow()
        updated = replace(
            enrollment,
            status=EnrollmentStatus.IN_PROGRESS,
            started_at=now,
            last_accessed=now,
        )
        await self._repos.enrollments.save(updated)
        ENROLLMENT_TRANSITIONS.labels(to_status=updated.status.value).inc()
        logger.info("Course started  student=%s course=%s", student_id, course_id)
        return updated
