"""Prometheus metric definitions for the CareCheck backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info

# ── Application info ────────────────────────────────────────────────
app_info = Info("carecheck", "CareCheck application metadata")

# ── HTTP metrics ────────────────────────────────────────────────────
http_requests_total = Counter(
    "http_requests_total",
    "HTTP requests served",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently being served",
    ["method"],
)

# ── Database pool metrics ───────────────────────────────────────────
db_pool_size = Gauge("db_pool_size", "Current number of connections in the pool")
db_pool_checked_in = Gauge("db_pool_checked_in", "Connections currently idle in the pool")
db_pool_checked_out = Gauge("db_pool_checked_out", "Connections currently in use")
db_pool_overflow = Gauge("db_pool_overflow", "Current overflow connections beyond pool_size")

# ── Background task metrics ─────────────────────────────────────────
bg_task_runs_total = Counter(
    "bg_task_runs_total",
    "Total background task executions",
    ["task_name", "status"],
)

bg_task_last_success = Gauge(
    "bg_task_last_success_timestamp",
    "Timestamp of last successful background task run",
    ["task_name"],
)

# ── Survey engine metrics ───────────────────────────────────────────
assignments_created_total = Counter(
    "survey_assignments_created_total",
    "Assignments created, by origin",
    ["origin"],  # dispatch | manual
)

schedule_failures_total = Counter(
    "survey_schedule_failures_total",
    "Schedules whose dispatch raised an error during a tick",
)

deliveries_total = Counter(
    "survey_deliveries_total",
    "Reminder delivery attempts",
    ["channel", "outcome"],  # channel: sms | email; outcome: sent | failed | skipped
)

submissions_total = Counter(
    "survey_submissions_total",
    "Response submissions, by outcome",
    ["outcome"],
)
