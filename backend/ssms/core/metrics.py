"""Prometheus metric definitions for the SSMS backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info

# ── Application info ────────────────────────────────────────────────
app_info = Info("ssms", "SSMS application metadata")

# ── HTTP request metrics ────────────────────────────────────────────
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method"],
)

# ── Gateway decisions ───────────────────────────────────────────────
# outcome is "ok" or one of the error codes (permission-denied, not-found, ...)
operations_total = Counter(
    "ssms_operations_total",
    "Operations passed through the gateway",
    ["operation", "outcome"],
)

# ── Invitations ─────────────────────────────────────────────────────
# result is "redeemed", "soft_fail" or "rejected"
invite_redemptions_total = Counter(
    "ssms_invite_redemptions_total",
    "Invite redemption attempts",
    ["result"],
)

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
