"""Tests for Prometheus metrics middleware and the progress counters.

prometheus-client uses a global default registry and counters cannot be
reset between tests, so every test asserts on DELTAS: read the value,
perform the action, read again.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import auth, seed_course


def _get_sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample's current value from the global registry."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before >= 1


def test_endpoint_label_is_route_template(
    client: TestClient, student, instructor
) -> None:
    """Per-course URLs collapse into one series per route."""
    course = seed_course(instructor, lessons=1)
    labels = {
        "method": "POST",
        "endpoint": "/v1/courses/{course_id}/enroll",
        "status_code": "201",
    }
    before = _get_sample("http_requests_total", labels)

    client.post(f"/v1/courses/{course.id}/enroll", headers=auth(student))

    assert _get_sample("http_requests_total", labels) - before == 1
    raw = {**labels, "endpoint": f"/v1/courses/{course.id}/enroll"}
    assert _get_sample("http_requests_total", raw) == 0


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "progress_rechecks_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_completion_counts_transition_and_certificate(
    client: TestClient, student, instructor
) -> None:
    course = seed_course(instructor, lessons=1)
    headers = auth(student)
    client.post(f"/v1/courses/{course.id}/enroll", headers=headers)
    completed = {"to_status": "completed"}
    transitions_before = _get_sample("enrollment_transitions_total", completed)
    certs_before = _get_sample("certificates_issued_total")

    client.post(f"/v1/lessons/{course.lessons[0].id}/complete", headers=headers)

    assert _get_sample("enrollment_transitions_total", completed) - transitions_before == 1
    assert _get_sample("certificates_issued_total") - certs_before == 1


def test_dashboard_cache_hit_and_miss_are_counted(client: TestClient, student) -> None:
    headers = auth(student)
    hits = {"operation": "hit"}
    misses = {"operation": "miss"}
    hits_before = _get_sample("cache_operations_total", hits)
    misses_before = _get_sample("cache_operations_total", misses)

    client.get("/v1/me/dashboard", headers=headers)
    client.get("/v1/me/dashboard", headers=headers)

    assert _get_sample("cache_operations_total", misses) - misses_before == 1
    assert _get_sample("cache_operations_total", hits) - hits_before == 1


def test_offline_sync_items_are_counted(client: TestClient, student, instructor) -> None:
    course = seed_course(instructor, lessons=1)
    headers = auth(student)
    client.post(f"/v1/courses/{course.id}/enroll", headers=headers)
    synced = {"kind": "completion", "result": "synced"}
    failed = {"kind": "video", "result": "failed"}
    synced_before = _get_sample("offline_sync_items_total", synced)
    failed_before = _get_sample("offline_sync_items_total", failed)

    client.post(
        "/v1/lessons/offline-progress/sync",
        json={
            "progress_updates": [
                {"lesson_id": str(course.lessons[0].id), "last_watched_seconds": -1}
            ],
            "completed_lesson_ids": [str(course.lessons[0].id)],
        },
        headers=headers,
    )

    assert _get_sample("offline_sync_items_total", synced) - synced_before == 1
    assert _get_sample("offline_sync_items_total", failed) - failed_before == 1
