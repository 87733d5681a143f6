"""Read-side aggregators: dashboard totals, partial failures, detail views."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import UTC, datetime

import pytest

from coursehub.models.enrollment import EnrollmentStatus
from coursehub.repos.store import Repos
from coursehub.services.dashboard_service import Dashboard, DashboardService
from coursehub.services.errors import NotFoundError
from coursehub.services.learning_service import LearningService
from tests.conftest import run, seed_course


def test_dashboard_for_student_without_enrollments_is_empty(
    repos: Repos, student
) -> None:
    dashboard = run(DashboardService(repos).dashboard(student.id))
    assert dashboard == Dashboard()
    assert dashboard.courses == []


def test_dashboard_aggregates_across_courses(repos: Repos, student, instructor) -> None:
    done = seed_course(instructor, lessons=2, title="Done")
    half = seed_course(instructor, lessons=4, title="Half")
    untouched = seed_course(instructor, lessons=1, title="Untouched")
    learning = LearningService(repos)
    for course in (done, half, untouched):
        run(learning.enroll(student.id, course.id))
    for lesson in done.lessons:
        run(learning.complete_lesson(student.id, lesson.id))
    for lesson in half.lessons[:2]:
        run(learning.complete_lesson(student.id, lesson.id))

    dashboard = run(DashboardService(repos).dashboard(student.id))

    assert dashboard.total_courses == 3
    assert dashboard.completed_courses == 1
    assert dashboard.in_progress_courses == 1
    assert dashboard.total_lessons == 7
    assert dashboard.completed_lessons == 4
    assert dashboard.overall_progress == 50.0  # (100 + 50 + 0) / 3
    assert dashboard.last_accessed is not None
    by_title = {s.title: s for s in dashboard.courses}
    assert by_title["Done"].next_lesson_id is None
    assert by_title["Half"].next_lesson_id == half.lessons[2].id
    assert by_title["Untouched"].status == EnrollmentStatus.NOT_STARTED
    assert by_title["Done"].instructor_name == "Ada Lovelace"


def test_overall_progress_rounds_to_two_decimals(
    repos: Repos, student, instructor
) -> None:
    started = seed_course(instructor, lessons=3)
    idle_a = seed_course(instructor, lessons=1)
    idle_b = seed_course(instructor, lessons=1)
    learning = LearningService(repos)
    for course in (started, idle_a, idle_b):
        run(learning.enroll(student.id, course.id))
    run(learning.complete_lesson(student.id, started.lessons[0].id))

    dashboard = run(DashboardService(repos).dashboard(student.id))

    assert dashboard.overall_progress == 11.0  # (33 + 0 + 0) / 3


def test_completed_enrollment_displays_100(repos: Repos, student, instructor) -> None:
    """Failing the only quiz still completes the course (it was attempted);
    the computed percentage is 0 but a completed course shows 100."""
    course = seed_course(instructor, quizzes=1)
    learning = LearningService(repos)
    run(learning.enroll(student.id, course.id))
    quiz = course.quizzes[0]
    (question,) = course.questions[quiz.id]
    result = run(learning.submit_quiz_attempt(student.id, quiz.id, {question.id: {1}}))
    assert result.recheck.progress.progress == 0

    (summary,) = run(DashboardService(repos).my_courses(student.id))

    assert summary.status == EnrollmentStatus.COMPLETED
    assert summary.progress == 100
    assert summary.passed_quizzes == 0
    assert summary.next_lesson_id is None


def test_last_accessed_falls_back_to_latest_activity(
    repos: Repos, student, instructor
) -> None:
    course = seed_course(instructor, lessons=2)
    learning = LearningService(repos)
    enrollment = run(learning.enroll(student.id, course.id))
    run(learning.complete_lesson(student.id, course.lessons[0].id))
    # Clear last_accessed so the summary must derive it from the facts.
    stored = run(repos.enrollments.get(student.id, course.id))
    run(repos.enrollments.save(replace(stored, last_accessed=None)))
    completion = run(repos.progress.completions_for_course(student.id, course.id))[0]

    summary = run(DashboardService(repos).course_summary(student.id, enrollment))

    assert summary.last_accessed == completion.completed_at


def test_failing_enrollment_is_skipped(
    repos: Repos, student, instructor, monkeypatch: pytest.MonkeyPatch, caplog
) -> None:
    good = seed_course(instructor, lessons=1, title="Good")
    bad = seed_course(instructor, lessons=1, title="Bad")
    learning = LearningService(repos)
    run(learning.enroll(student.id, good.id))
    run(learning.enroll(student.id, bad.id))

    service = DashboardService(repos)
    real_summary = service.course_summary

    async def _summary(student_id, enrollment, *args, **kwargs):
        if enrollment.course_id == bad.id:
            raise RuntimeError("corrupt row")
        return await real_summary(student_id, enrollment, *args, **kwargs)

    monkeypatch.setattr(service, "course_summary", _summary)
    with caplog.at_level(logging.ERROR):
        courses = run(service.my_courses(student.id))

    assert [c.title for c in courses] == ["Good"]
    assert "Skipping enrollment" in caplog.text


def test_dashboard_degrades_to_empty_on_unexpected_failure(
    repos: Repos, student, instructor, monkeypatch: pytest.MonkeyPatch
) -> None:
    course = seed_course(instructor, lessons=1)
    run(LearningService(repos).enroll(student.id, course.id))

    async def _boom(*_args, **_kwargs):
        raise RuntimeError("database down")

    monkeypatch.setattr(repos.enrollments, "list_for_student", _boom)

    dashboard = run(DashboardService(repos).dashboard(student.id))
    assert dashboard == Dashboard(degraded=True)
    assert dashboard.courses == []
    assert run(DashboardService(repos).my_courses(student.id)) == []


def test_course_detail_marks_completed_lessons_and_quizzes(
    repos: Repos, student, instructor
) -> None:
    course = seed_course(instructor, lessons=2, quizzes=2, passing_score=100)
    learning = LearningService(repos)
    run(learning.enroll(student.id, course.id))
    run(learning.complete_lesson(student.id, course.lessons[1].id))
    passed_quiz, failed_quiz = course.quizzes
    (q1,) = course.questions[passed_quiz.id]
    (q2,) = course.questions[failed_quiz.id]
    run(learning.submit_quiz_attempt(student.id, passed_quiz.id, {q1.id: {0}}))
    run(learning.submit_quiz_attempt(student.id, failed_quiz.id, {q2.id: {1}}))

    detail = run(DashboardService(repos).course_detail(student.id, course.id))

    assert [v.is_completed for v in detail.lessons] == [False, True]
    quizzes = {v.quiz.id: v for v in detail.quizzes}
    assert quizzes[passed_quiz.id].is_passed
    assert quizzes[failed_quiz.id].is_attempted
    assert not quizzes[failed_quiz.id].is_passed
    assert detail.summary.next_lesson_id == course.lessons[0].id


def test_course_detail_requires_enrollment(repos: Repos, student, instructor) -> None:
    course = seed_course(instructor, lessons=1)
    with pytest.raises(NotFoundError):
        run(DashboardService(repos).course_detail(student.id, course.id))


def test_continue_learning_returns_next_lesson(
    repos: Repos, student, instructor
) -> None:
    course = seed_course(instructor, lessons=3)
    learning = LearningService(repos)
    run(learning.enroll(student.id, course.id))
    run(learning.complete_lesson(student.id, course.lessons[0].id))

    target = run(DashboardService(repos).continue_learning(student.id, course.id))

    assert not target.course_completed
    assert target.lesson == course.lessons[1]


def test_continue_learning_on_course_without_lessons_is_completed(
    repos: Repos, student, instructor
) -> None:
    course = seed_course(instructor, quizzes=1)
    run(LearningService(repos).enroll(student.id, course.id))

    target = run(DashboardService(repos).continue_learning(student.id, course.id))

    assert target.course_completed
    assert target.lesson is None


def test_continue_learning_requires_enrollment(
    repos: Repos, student, instructor
) -> None:
    course = seed_course(instructor, lessons=1)
    with pytest.raises(NotFoundError):
        run(DashboardService(repos).continue_learning(student.id, course.id))


def test_recheck_during_read_repairs_stale_status(
    repos: Repos, student, instructor
) -> None:
    """A completed status the facts do not support is recomputed on read."""
    course = seed_course(instructor, lessons=1)
    learning = LearningService(repos)
    run(learning.enroll(student.id, course.id))
    stored = run(repos.enrollments.get(student.id, course.id))
    stale = replace(
        stored, status=EnrollmentStatus.COMPLETED, completed_at=datetime.now(UTC)
    )
    run(repos.enrollments.save(stale))

    (summary,) = run(DashboardService(repos).my_courses(student.id))

    assert summary.status == EnrollmentStatus.IN_PROGRESS
    assert summary.completed_at is None


# ---------------------------------------------------------------------------
# Failure isolation under a transactional store
# ---------------------------------------------------------------------------


class _TransactionalSession:
    """Stands in for an AsyncSession with PostgreSQL's failure rule.

    An error raised outside any savepoint aborts the whole transaction,
    after which every statement fails. Inside a savepoint the error only
    rolls the savepoint back.
    """

    def __init__(self) -> None:
        self.depth = 0
        self.aborted = False

    @asynccontextmanager
    async def begin_nested(self):
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1

    def fail(self) -> None:
        if self.depth == 0:
            self.aborted = True
        raise RuntimeError("statement failed")

    def check(self) -> None:
        if self.aborted:
            raise RuntimeError("current transaction is aborted")


def _transactional(repos: Repos, monkeypatch: pytest.MonkeyPatch, bad_course_id):
    session = _TransactionalSession()
    attempts = repos.progress.attempts_for_course
    get_for_update = repos.enrollments.get_for_update
    count_lessons = repos.courses.count_lessons

    async def _attempts(student_id, course_id):
        session.check()
        if course_id == bad_course_id:
            session.fail()
        return await attempts(student_id, course_id)

    async def _get_for_update(student_id, course_id):
        session.check()
        return await get_for_update(student_id, course_id)

    async def _count_lessons(course_ids):
        session.check()
        return await count_lessons(course_ids)

    monkeypatch.setattr(repos.progress, "attempts_for_course", _attempts)
    monkeypatch.setattr(repos.enrollments, "get_for_update", _get_for_update)
    monkeypatch.setattr(repos.courses, "count_lessons", _count_lessons)
    return replace(repos, session=session), session


def test_one_failing_enrollment_leaves_the_others_intact(
    repos: Repos, student, instructor, monkeypatch: pytest.MonkeyPatch
) -> None:
    bad = seed_course(instructor, lessons=2, title="Bad")
    good = seed_course(instructor, lessons=2, title="Good")
    learning = LearningService(repos)
    run(learning.enroll(student.id, bad.id))
    run(learning.enroll(student.id, good.id))
    run(learning.complete_lesson(student.id, good.lessons[0].id))

    isolated, session = _transactional(repos, monkeypatch, bad.id)
    dashboard = run(DashboardService(isolated).dashboard(student.id))

    assert session.aborted is False
    assert dashboard.degraded is True
    assert dashboard.total_courses == 2
    assert dashboard.total_lessons == 4
    by_title = {s.title: s for s in dashboard.courses}
    assert by_title["Good"].progress == 50
    assert by_title["Good"].status == EnrollmentStatus.IN_PROGRESS
    assert by_title["Good"].degraded is False
    assert by_title["Bad"].degraded is True


def test_healthy_dashboard_is_not_degraded(repos: Repos, student, instructor) -> None:
    course = seed_course(instructor, lessons=1)
    run(LearningService(repos).enroll(student.id, course.id))

    assert run(DashboardService(repos).dashboard(student.id)).degraded is False
