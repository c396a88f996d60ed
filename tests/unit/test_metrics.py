"""Tests for Prometheus metrics."""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from vault_secret_sync import metrics


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    @pytest.mark.parametrize(
        ("metric", "name"),
        [
            (metrics.reconcile_cycles_total, "vault_secret_sync_reconcile_cycles"),
            (metrics.reconcile_cycle_duration_seconds, "vault_secret_sync_reconcile_cycle_duration_seconds"),
            (metrics.tasks_total, "vault_secret_sync_tasks"),
            (metrics.queue_depth, "vault_secret_sync_queue_depth"),
            (metrics.queue_dropped_total, "vault_secret_sync_queue_dropped"),
            (metrics.duplicates_deleted_total, "vault_secret_sync_duplicates_deleted"),
            (metrics.ownership_conflicts_total, "vault_secret_sync_ownership_conflicts"),
            (metrics.drift_detected_total, "vault_secret_sync_drift_detected"),
            (metrics.api_call_total, "vault_secret_sync_api_call"),
            (metrics.watch_errors_total, "vault_secret_sync_watch_errors"),
        ],
    )
    def test_metric_names(self, metric, name):
        """Test metric names (counters don't include "_total" in _name)."""
        assert metric._name == name


class TestMetricsRecording:
    """Test that metrics record values in the default registry."""

    def test_tasks_total_increments(self):
        """Test labelled counter increments."""
        labels = {"kind": "update", "result": "noop"}
        before = REGISTRY.get_sample_value("vault_secret_sync_tasks_total", labels) or 0.0

        metrics.tasks_total.labels(**labels).inc()

        assert REGISTRY.get_sample_value("vault_secret_sync_tasks_total", labels) == before + 1

    def test_queue_depth_gauge(self):
        """Test gauge set."""
        metrics.queue_depth.set(7)

        assert REGISTRY.get_sample_value("vault_secret_sync_queue_depth") == 7
