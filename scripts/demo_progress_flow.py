"""Demo: author a course, then take it as a student, using FastAPI TestClient.

Runs against the in-memory repositories (leave DATABASE_URL unset):
    python scripts/demo_progress_flow.py
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from coursehub.main import app
from coursehub.models.user import User
from coursehub.repos import store
from coursehub.services.token_service import create_access_token


def _bearer(user: User) -> dict[str, str]:
    token = create_access_token(sub=str(user.id), roles=list(user.roles))
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    client = TestClient(app)

    # ── Seed data ───────────────────────────────────────────────────
    instructor = User.new(
        email="ada@example.com", name="Ada Instructor", roles=("instructor",)
    )
    student = User.new(email="sam@example.com", name="Sam Student", roles=("student",))
    asyncio.run(store.memory_repos.users.add(instructor))
    asyncio.run(store.memory_repos.users.add(student))
    teach = _bearer(instructor)
    learn = _bearer(student)

    # ── Step 1: author and publish a course ─────────────────────────
    r = client.post("/v1/courses", json={"title": "Intro to Python"}, headers=teach)
    course_id = r.json()["id"]
    print(f"1. POST /v1/courses                 → {r.status_code}")

    lesson_ids = []
    for order, title in enumerate(["Variables", "Functions"], start=1):
        r = client.post(
            f"/v1/courses/{course_id}/lessons",
            json={"title": title, "order": order},
            headers=teach,
        )
        lesson_ids.append(r.json()["id"])
    r = client.post(
        f"/v1/courses/{course_id}/quizzes",
        json={
            "title": "Checkpoint",
            "passing_score": 50,
            "questions": [
                {"text": "2 + 2?", "options": ["3", "4"], "correct_options": [1]}
            ],
        },
        headers=teach,
    )
    quiz_id = r.json()["id"]
    client.post(f"/v1/courses/{course_id}/publish", headers=teach)
    print("2. lessons + quiz added, course published")

    # ── Step 2: enroll and work through it ──────────────────────────
    r = client.post(f"/v1/courses/{course_id}/enroll", headers=learn)
    print(f"3. POST enroll                      → {r.status_code}")

    r = client.post(f"/v1/lessons/{lesson_ids[0]}/complete", headers=learn)
    progress = r.json()["enrollment"]["progress"]["progress"]
    print(f"4. complete lesson 1                → {r.status_code}  progress={progress}")

    r = client.post(f"/v1/lessons/{lesson_ids[0]}/complete", headers=learn)
    print(f"5. complete lesson 1 again          → {r.status_code}  (conflict)")

    quiz = client.get(f"/v1/quizzes/{quiz_id}", headers=learn).json()
    answers = [{"question_id": quiz["questions"][0]["id"], "selected_options": [1]}]
    r = client.post(
        f"/v1/quizzes/{quiz_id}/attempts", json={"answers": answers}, headers=learn
    )
    print(f"6. quiz attempt                     → score={r.json()['score']}")

    r = client.post(f"/v1/lessons/{lesson_ids[1]}/complete", headers=learn)
    body = r.json()["enrollment"]
    print(
        f"7. complete lesson 2                → status={body['status']}"
        f"  certificate={body['certificate_code']}"
    )

    # ── Step 3: read side ───────────────────────────────────────────
    dash = client.get("/v1/me/dashboard", headers=learn).json()
    print(
        f"8. GET /v1/me/dashboard             → completed={dash['completed_courses']}"
        f"  overall={dash['overall_progress']}"
    )
    code = body["certificate_code"]
    r = client.get(f"/v1/certificates/verify/{code}")
    print(f"9. GET verify certificate           → {r.status_code}  {r.json()['course_title']}")


if __name__ == "__main__":
    main()
