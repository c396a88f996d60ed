"""Prometheus metrics for Vault Secret Sync."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_cycles_total = Counter(
    "vault_secret_sync_reconcile_cycles_total",
    "Total number of reconciliation cycles",
    ["result"],
)

reconcile_cycle_duration_seconds = Histogram(
    "vault_secret_sync_reconcile_cycle_duration_seconds",
    "Duration of reconciliation cycles in seconds",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

mapping_scan_errors_total = Counter(
    "vault_secret_sync_mapping_scan_errors_total",
    "Total number of mappings whose scan was aborted",
    ["stage"],
)

# Task metrics
tasks_total = Counter(
    "vault_secret_sync_tasks_total",
    "Total number of executed sync tasks",
    ["kind", "result"],
)

task_duration_seconds = Histogram(
    "vault_secret_sync_task_duration_seconds",
    "Duration of sync tasks in seconds",
    ["kind"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

tasks_enqueued_total = Counter(
    "vault_secret_sync_tasks_enqueued_total",
    "Total number of tasks enqueued",
    ["kind", "source"],
)

queue_depth = Gauge(
    "vault_secret_sync_queue_depth",
    "Number of tasks waiting in the task queue",
)

queue_dropped_total = Counter(
    "vault_secret_sync_queue_dropped_total",
    "Total number of queued tasks dropped on overflow",
    ["kind", "source"],
)

# Drift and remediation metrics
duplicates_deleted_total = Counter(
    "vault_secret_sync_duplicates_deleted_total",
    "Total number of misplaced duplicate secrets deleted",
)

ownership_conflicts_total = Counter(
    "vault_secret_sync_ownership_conflicts_total",
    "Total number of writes abandoned due to ownership conflicts",
)

drift_detected_total = Counter(
    "vault_secret_sync_drift_detected_total",
    "Total number of drift detections",
    ["reason"],
)

deletion_events_total = Counter(
    "vault_secret_sync_deletion_events_total",
    "Total number of deletion events received",
    ["result"],
)

# API call metrics
api_call_total = Counter(
    "vault_secret_sync_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "vault_secret_sync_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "vault_secret_sync_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)

watch_errors_total = Counter(
    "vault_secret_sync_watch_errors_total",
    "Total number of watch stream errors",
)
