"""Prometheus metrics for rhythm timeline analysis and playback tracking.

Metrics:
    rhythm_analyses_total              Counter by outcome (success/cache_hit/failure)
    rhythm_analysis_seconds            Histogram of wall-clock analysis time
    rhythm_stale_results_total         Analysis results discarded for a superseded song
    rhythm_transitions_total           Counter by command and outcome (accepted/rejected)
    rhythm_timeline_cache_hits_total   Timeline cache hits (in-memory)
    rhythm_timeline_cache_misses_total Timeline cache misses (in-memory)

All metrics live on a private registry so importing this module never
touches the prometheus_client default registry.

Usage::

    from infrastructure.metrics import LatencyTimer, record_analysis

    with LatencyTimer() as t:
        timeline = compute_timeline(samples)
    record_analysis(outcome="success", latency_seconds=t.elapsed)
"""

from __future__ import annotations

import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

_REGISTRY = CollectorRegistry()

analyses_total = Counter(
    "rhythm_analyses_total",
    "Timeline analyses by outcome",
    ["outcome"],
    registry=_REGISTRY,
)

analysis_seconds = Histogram(
    "rhythm_analysis_seconds",
    "Wall-clock time to compute one timeline",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=_REGISTRY,
)

stale_results_total = Counter(
    "rhythm_stale_results_total",
    "Analysis results discarded because the slot moved on to another song",
    registry=_REGISTRY,
)

transitions_total = Counter(
    "rhythm_transitions_total",
    "Playback commands by outcome",
    ["command", "outcome"],
    registry=_REGISTRY,
)

timeline_cache_hits_total = Counter(
    "rhythm_timeline_cache_hits_total",
    "Timeline cache hits (in-memory)",
    registry=_REGISTRY,
)

timeline_cache_misses_total = Counter(
    "rhythm_timeline_cache_misses_total",
    "Timeline cache misses (in-memory)",
    registry=_REGISTRY,
)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def record_analysis(*, outcome: str, latency_seconds: float | None = None) -> None:
    """Record a finished analysis.

    Args:
        outcome: One of "success", "cache_hit", "failure".
        latency_seconds: Wall-clock compute time; omitted for cache hits.
    """
    analyses_total.labels(outcome=outcome).inc()
    if latency_seconds is not None:
        analysis_seconds.observe(latency_seconds)


def record_stale_result() -> None:
    """Increment the discarded-stale-result counter."""
    stale_results_total.inc()


def record_transition(command: str, accepted: bool) -> None:
    """Count a playback command.

    Args:
        command: Command name, e.g. "play" or "insert".
        accepted: Whether the state machine accepted it.
    """
    transitions_total.labels(command=command, outcome="accepted" if accepted else "rejected").inc()


def record_cache_hit() -> None:
    """Increment timeline cache hit counter."""
    timeline_cache_hits_total.inc()


def record_cache_miss() -> None:
    """Increment timeline cache miss counter."""
    timeline_cache_misses_total.inc()


def get_sample_value(name: str, labels: dict[str, str] | None = None) -> float:
    """Current value of a sample on the private registry (0.0 if never observed)."""
    value = _REGISTRY.get_sample_value(name, labels or {})
    return 0.0 if value is None else value


def get_metrics_response() -> tuple[bytes, str]:
    """Generate Prometheus text exposition format.

    Returns:
        Tuple of (body_bytes, content_type_string).
    """
    return generate_latest(_REGISTRY), CONTENT_TYPE_LATEST


class LatencyTimer:
    """Context manager for measuring latency.

    Usage::

        with LatencyTimer() as t:
            timeline = compute_timeline(samples)
        record_analysis(outcome="success", latency_seconds=t.elapsed)
    """

    def __init__(self) -> None:
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> LatencyTimer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *_: object) -> None:
        self.elapsed = time.perf_counter() - self._start
