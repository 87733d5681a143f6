from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import auth, seed_course


def _earn_certificate(client: TestClient, student, instructor) -> str:
    course = seed_course(instructor, lessons=1, title="Networking")
    headers = auth(student)
    client.post(f"/v1/courses/{course.id}/enroll", headers=headers)
    body = client.post(
        f"/v1/lessons/{course.lessons[0].id}/complete", headers=headers
    ).json()
    return body["enrollment"]["certificate_code"]


def test_verify_is_public(client: TestClient, student, instructor) -> None:
    code = _earn_certificate(client, student, instructor)

    resp = client.get(f"/v1/certificates/verify/{code}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["verification_code"] == code
    assert body["course_title"] == "Networking"
    assert body["student_name"] == "Sam Student"


def test_verify_unknown_code_is_404(client: TestClient) -> None:
    resp = client.get("/v1/certificates/verify/CERT-20240101-AAAAAAAA-BBBBBBBB-CCCCCCCC")
    assert resp.status_code == 404


def test_verify_is_case_sensitive(client: TestClient, student, instructor) -> None:
    code = _earn_certificate(client, student, instructor)
    resp = client.get(f"/v1/certificates/verify/{code.lower()}")
    assert resp.status_code == 404
