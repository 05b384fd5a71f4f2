"""Unit tests for in-process latency metrics."""

from __future__ import annotations

import pytest

from haikuagent.observability import latency_metrics_snapshot
from haikuagent.observability import measure
from haikuagent.observability import record_latency


class TestLatencyMetrics:
    def test_record_aggregates(self):
        record_latency(operation="prompt.complete", duration_ms=10.0)
        record_latency(operation="prompt.complete", duration_ms=30.0, ok=False)

        stats = latency_metrics_snapshot()["prompt.complete"]
        assert stats == {
            "count": 2,
            "failures": 1,
            "total_ms": 40.0,
            "avg_ms": 20.0,
            "min_ms": 10.0,
            "max_ms": 30.0,
            "last_ms": 30.0,
        }

    def test_negative_durations_clamped(self):
        record_latency(operation="op", duration_ms=-5.0)
        assert latency_metrics_snapshot()["op"]["min_ms"] == 0.0

    def test_measure_counts_failures(self):
        with measure("prompt.store"):
            pass
        with pytest.raises(RuntimeError):
            with measure("prompt.store"):
                raise RuntimeError("boom")

        stats = latency_metrics_snapshot()["prompt.store"]
        assert stats["count"] == 2
        assert stats["failures"] == 1

    def test_snapshot_starts_empty(self):
        assert latency_metrics_snapshot() == {}
