"""Tests for lesson completion and quiz attempt endpoints."""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import SeededCourse, auth, seed_course


def _enroll(client: TestClient, headers: dict, course: SeededCourse) -> None:
    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=headers)
    assert resp.status_code == 201


def _answer(course: SeededCourse, quiz_index: int, option: int) -> dict:
    quiz = course.quizzes[quiz_index]
    question = course.questions[quiz.id][0]
    return {
        "answers": [
            {"question_id": str(question.id), "selected_options": [option]}
        ]
    }


# ---- lesson completion ----


def test_complete_lesson_updates_progress(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=2)
    headers = auth(student)
    _enroll(client, headers, course)

    resp = client.post(f"/v1/lessons/{course.lessons[0].id}/complete", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["lesson_id"] == str(course.lessons[0].id)
    enrollment = body["enrollment"]
    assert enrollment["status"] == "in_progress"
    assert enrollment["progress"]["progress"] == 50
    assert enrollment["progress"]["next_lesson_id"] == str(course.lessons[1].id)
    assert enrollment["course_completed"] is False


def test_completing_last_lesson_completes_course(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=2)
    headers = auth(student)
    _enroll(client, headers, course)

    client.post(f"/v1/lessons/{course.lessons[0].id}/complete", headers=headers)
    body = client.post(
        f"/v1/lessons/{course.lessons[1].id}/complete", headers=headers
    ).json()

    enrollment = body["enrollment"]
    assert enrollment["status"] == "completed"
    assert enrollment["just_completed"] is True
    assert enrollment["completed_at"] is not None
    assert enrollment["certificate_code"].startswith("CERT-")
    assert enrollment["progress"]["progress"] == 100


def test_completing_lesson_twice_is_409(client: TestClient, student, instructor) -> None:
    course = seed_course(instructor, lessons=2)
    headers = auth(student)
    _enroll(client, headers, course)
    url = f"/v1/lessons/{course.lessons[0].id}/complete"

    client.post(url, headers=headers)
    resp = client.post(url, headers=headers)

    assert resp.status_code == 409


def test_complete_lesson_without_enrollment_is_403(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=1)
    resp = client.post(
        f"/v1/lessons/{course.lessons[0].id}/complete", headers=auth(student)
    )
    assert resp.status_code == 403


def test_complete_unknown_lesson_is_404(client: TestClient, student) -> None:
    resp = client.post(f"/v1/lessons/{uuid4()}/complete", headers=auth(student))
    assert resp.status_code == 404


# ---- quizzes ----


def test_get_quiz_hides_correct_answers(client: TestClient, student, instructor) -> None:
    course = seed_course(instructor, lessons=1, quizzes=1)
    headers = auth(student)
    _enroll(client, headers, course)

    resp = client.get(f"/v1/quizzes/{course.quizzes[0].id}", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert len(body["questions"]) == 1
    assert body["questions"][0]["options"] == ["a", "b"]
    assert "correct_options" not in body["questions"][0]


def test_get_quiz_without_enrollment_is_403(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, quizzes=1)
    resp = client.get(f"/v1/quizzes/{course.quizzes[0].id}", headers=auth(student))
    assert resp.status_code == 403


def test_passing_attempt(client: TestClient, student, instructor) -> None:
    course = seed_course(instructor, lessons=1, quizzes=1)
    headers = auth(student)
    _enroll(client, headers, course)

    resp = client.post(
        f"/v1/quizzes/{course.quizzes[0].id}/attempts",
        json=_answer(course, 0, 0),
        headers=headers,
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["score"] == 100
    assert body["passed"] is True
    assert body["correct_answers"] == 1
    assert body["total_questions"] == 1
    # 0.2 weight for the one passed quiz, no lessons yet
    assert body["enrollment"]["progress"]["progress"] == 20
    assert body["enrollment"]["status"] == "in_progress"


def test_failing_attempt_is_recorded(client: TestClient, student, instructor) -> None:
    course = seed_course(instructor, lessons=1, quizzes=1)
    headers = auth(student)
    _enroll(client, headers, course)

    body = client.post(
        f"/v1/quizzes/{course.quizzes[0].id}/attempts",
        json=_answer(course, 0, 1),
        headers=headers,
    ).json()

    assert body["score"] == 0
    assert body["passed"] is False
    assert body["enrollment"]["progress"]["completed_quizzes"] == 1
    assert body["enrollment"]["progress"]["passed_quizzes"] == 0


def test_empty_submission_scores_zero(client: TestClient, student, instructor) -> None:
    course = seed_course(instructor, quizzes=1)
    headers = auth(student)
    _enroll(client, headers, course)

    body = client.post(
        f"/v1/quizzes/{course.quizzes[0].id}/attempts", json={}, headers=headers
    ).json()

    assert body["score"] == 0
    assert body["passed"] is False


def test_all_lessons_done_but_quiz_unattempted_stays_in_progress(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=1, quizzes=1)
    headers = auth(student)
    _enroll(client, headers, course)

    body = client.post(
        f"/v1/lessons/{course.lessons[0].id}/complete", headers=headers
    ).json()

    assert body["enrollment"]["status"] == "in_progress"
    assert body["enrollment"]["progress"]["progress"] == 100
    assert body["enrollment"]["course_completed"] is False


def test_failed_attempt_on_last_quiz_still_completes_course(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=1, quizzes=1)
    headers = auth(student)
    _enroll(client, headers, course)
    client.post(f"/v1/lessons/{course.lessons[0].id}/complete", headers=headers)

    body = client.post(
        f"/v1/quizzes/{course.quizzes[0].id}/attempts",
        json=_answer(course, 0, 1),
        headers=headers,
    ).json()

    assert body["passed"] is False
    assert body["enrollment"]["status"] == "completed"
    assert body["enrollment"]["just_completed"] is True
    assert body["enrollment"]["certificate_code"] is not None


def test_attempt_on_unknown_quiz_is_404(client: TestClient, student) -> None:
    resp = client.post(f"/v1/quizzes/{uuid4()}/attempts", json={}, headers=auth(student))
    assert resp.status_code == 404


def test_attempt_requires_authentication(client: TestClient) -> None:
    resp = client.post(f"/v1/quizzes/{uuid4()}/attempts", json={})
    assert resp.status_code == 401


# ---- video progress ----


def test_save_video_progress_is_forward_only(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=1)
    headers = auth(student)
    _enroll(client, headers, course)
    url = f"/v1/lessons/{course.lessons[0].id}/video-progress"

    first = client.post(url, json={"last_watched_seconds": 90}, headers=headers)
    back = client.post(url, json={"last_watched_seconds": 15}, headers=headers)

    assert first.status_code == 200
    assert first.json()["last_watched_seconds"] == 90
    assert back.status_code == 200
    assert back.json()["last_watched_seconds"] == 90

    detail = client.get(f"/v1/me/courses/{course.id}", headers=headers).json()
    assert detail["lessons"][0]["last_watched_seconds"] == 90
    assert detail["course"]["last_accessed"] is not None


def test_save_video_progress_rejects_negative_seconds(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=1)
    headers = auth(student)
    _enroll(client, headers, course)

    resp = client.post(
        f"/v1/lessons/{course.lessons[0].id}/video-progress",
        json={"last_watched_seconds": -1},
        headers=headers,
    )
    assert resp.status_code == 422


def test_save_video_progress_status_codes(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=1)
    headers = auth(student)
    body = {"last_watched_seconds": 5}

    not_enrolled = client.post(
        f"/v1/lessons/{course.lessons[0].id}/video-progress", json=body, headers=headers
    )
    unknown = client.post(
        f"/v1/lessons/{uuid4()}/video-progress", json=body, headers=headers
    )

    assert not_enrolled.status_code == 403
    assert unknown.status_code == 404


# ---- offline sync ----


def test_offline_sync_reports_counts_and_failures(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=2)
    headers = auth(student)
    _enroll(client, headers, course)
    client.post(f"/v1/lessons/{course.lessons[0].id}/complete", headers=headers)
    missing = str(uuid4())

    resp = client.post(
        "/v1/lessons/offline-progress/sync",
        json={
            "progress_updates": [
                {"lesson_id": str(course.lessons[1].id), "last_watched_seconds": 30},
                {"lesson_id": missing, "last_watched_seconds": 30},
            ],
            "completed_lesson_ids": [
                str(course.lessons[0].id),
                str(course.lessons[1].id),
            ],
        },
        headers=headers,
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "synced_progress_count": 1,
        "synced_completion_count": 2,
        "failed_lesson_ids": [missing],
    }
    [summary] = client.get("/v1/me/courses", headers=headers).json()
    assert summary["status"] == "completed"
    assert summary["progress"] == 100


def test_offline_sync_with_empty_body_is_a_noop(client: TestClient, student) -> None:
    resp = client.post("/v1/lessons/offline-progress/sync", json={}, headers=auth(student))
    assert resp.status_code == 200
    assert resp.json() == {
        "synced_progress_count": 0,
        "synced_completion_count": 0,
        "failed_lesson_ids": [],
    }


def test_offline_sync_invalidates_dashboard(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=2)
    headers = auth(student)
    _enroll(client, headers, course)
    assert client.get("/v1/me/dashboard", headers=headers).json()["completed_lessons"] == 0

    client.post(
        "/v1/lessons/offline-progress/sync",
        json={"completed_lesson_ids": [str(course.lessons[0].id)]},
        headers=headers,
    )

    assert client.get("/v1/me/dashboard", headers=headers).json()["completed_lessons"] == 1
