"""Application metrics using the Prometheus client library.

All metrics are defined here, one inventory of everything the
service measures.  Other modules import specific metrics and increment
or observe them at the point of action.

Progress metrics worth alerting on:
  progress_rechecks_total{outcome="failed"}: the recheck swallowed an
    error and served defaults.  Any sustained rate means dashboards are
    showing zeros to real students.
  certificates_issued_total should track completions; a flat line
    while enrollment_transitions_total{to_status="completed"} grows
    means issuance is being skipped (missing user/course rows).
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress workflow metrics
# ---------------------------------------------------------------------------

PROGRESS_RECHECKS = Counter(
    "progress_rechecks_total",
    "Completion rechecks by outcome",
    ["outcome"],  # unchanged|transitioned|no_enrollment|failed
)

ENROLLMENT_TRANSITIONS = Counter(
    "enrollment_transitions_total",
    "Enrollment status transitions by target status",
    ["to_status"],  # in_progress|completed
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificates created by the issuance guard",
)

LESSON_COMPLETIONS = Counter(
    "lesson_completions_total",
    "Lesson completion submissions by result",
    ["result"],  # created|duplicate
)

QUIZ_ATTEMPTS = Counter(
    "quiz_attempts_total",
    "Quiz attempts by result",
    ["result"],  # passed|failed
)

OFFLINE_SYNC_ITEMS = Counter(
    "offline_sync_items_total",
    "Offline sync items by kind and result",
    ["kind", "result"],  # video|completion, synced|failed
)

AGGREGATION_FAILURES = Counter(
    "dashboard_aggregation_failures_total",
    "Per-enrollment failures skipped while building dashboards",
    ["view"],  # dashboard|my_courses
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # hit|miss|error
)
