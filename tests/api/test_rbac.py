"""Table-driven RBAC tests.

Each row describes: endpoint, method, role(s), expected HTTP status.
This ensures the Principal + require_role/require_any_role guards
behave correctly across all protected endpoints.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from coursehub.services import token_service
from tests.conftest import mint_token


# Helper: build auth header (or empty dict for unauthenticated)
def _auth(token: str | None) -> dict[str, str]:
    if token is None:
        return {}
    return {"Authorization": f"Bearer {token}"}


# ---- Table-driven access-control tests ----

_RBAC_CASES = [
    # (endpoint, method, role, expected_status)
    # GET /v1/courses: any authenticated user
    ("/v1/courses", "GET", "student", 200),
    ("/v1/courses", "GET", "instructor", 200),
    ("/v1/courses", "GET", None, 401),
    # POST /v1/courses: instructor or admin
    ("/v1/courses", "POST", "instructor", 201),
    ("/v1/courses", "POST", "admin", 201),
    ("/v1/courses", "POST", "student", 403),
    ("/v1/courses", "POST", None, 401),
    # /v1/me/*: student only
    ("/v1/me/dashboard", "GET", "student", 200),
    ("/v1/me/dashboard", "GET", "instructor", 403),
    ("/v1/me/dashboard", "GET", None, 401),
    ("/v1/me/courses", "GET", "student", 200),
    ("/v1/me/courses", "GET", "admin", 403),
    ("/v1/me/certificates", "GET", "student", 200),
    ("/v1/me/certificates", "GET", None, 401),
    # Certificate verification is public
    ("/v1/certificates/verify/CERT-UNKNOWN", "GET", None, 404),
    ("/v1/certificates/verify/CERT-UNKNOWN", "GET", "student", 404),
]


def _case_id(case: tuple) -> str:
    endpoint, method, role, expected = case
    role_label = role or "anon"
    return f"{method} {endpoint} [{role_label}] -> {expected}"


@pytest.mark.parametrize(
    "endpoint,method,role,expected",
    _RBAC_CASES,
    ids=[_case_id(c) for c in _RBAC_CASES],
)
def test_rbac(
    client: TestClient,
    endpoint: str,
    method: str,
    role: str | None,
    expected: int,
) -> None:
    token = mint_token(roles=[role]) if role else None
    headers = _auth(token)

    if method == "GET":
        resp = client.get(endpoint, headers=headers)
    elif method == "POST":
        resp = client.post(endpoint, json={"title": "RBAC course"}, headers=headers)
    else:
        pytest.fail(f"Unsupported method: {method}")

    assert resp.status_code == expected, (
        f"{method} {endpoint} role={role}: expected {expected}, got {resp.status_code}"
    )


def test_expired_token_is_401(client: TestClient) -> None:
    token = token_service.create_access_token(
        sub="00000000-0000-0000-0000-000000000001",
        roles=["student"],
        ttl=timedelta(seconds=-1),
    )
    resp = client.get("/v1/me/dashboard", headers=_auth(token))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_garbage_token_is_401(client: TestClient) -> None:
    resp = client.get("/v1/me/dashboard", headers=_auth("not-a-jwt"))
    assert resp.status_code == 401
