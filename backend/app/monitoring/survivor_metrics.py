"""
backend/app/monitoring/survivor_metrics.py

Purpose:
    Prometheus metrics for snapshot builds, the pool cache and the status
    audit.

Dependencies:
    - prometheus_client
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter

from prometheus_client import Counter, Gauge, Histogram

METRIC_SNAPSHOT_BUILDS = Counter(
    "survivor_snapshot_builds_total",
    "Pool snapshot builds by outcome.",
    ["outcome"],
)
METRIC_SNAPSHOT_LATENCY = Histogram(
    "survivor_snapshot_build_seconds",
    "Latency of one full pool snapshot build.",
)
METRIC_SNAPSHOT_ERRORS = Gauge(
    "survivor_snapshot_participant_errors",
    "Participants reported as errors in the latest snapshot.",
    ["pool_id"],
)
METRIC_CACHE_REQUESTS = Counter(
    "survivor_cache_requests_total",
    "Snapshot cache lookups by result (hit, rebuilt, stale).",
    ["result"],
)
METRIC_AUDIT_FIXES = Counter(
    "survivor_audit_fixes_total",
    "Status corrections by pattern type and outcome.",
    ["pattern", "outcome"],
)


@contextmanager
def observe_latency(metric):
    start = perf_counter()
    try:
        yield
    finally:
        metric.observe(perf_counter() - start)
