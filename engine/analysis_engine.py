"""
engine/analysis_engine.py — Asynchronous timeline computation.

AnalysisEngine runs the pure pipeline off the tick thread:

    submit(slot, song_id, samples)
        │
        ├─ TimelineCache.get(source_key)     [infrastructure/cache.py]
        │       ↓ miss
        ├─ load samples (if given a loader)  [external audio source]
        │       ↓
        ├─ compute_timeline()                [core/analysis/pipeline.py]
        │       ↓
        └─ TimelineCache.put(source_key)

The future behind every AnalysisTask resolves to an AnalysisResult; worker
exceptions are converted to failure results and never escape. The engine
does not know about slots beyond echoing them back: identity validation
happens on the tick thread when the tracker installs the result.

Usage:
    with AnalysisEngine(cache=TimelineCache()) as engine:
        task = engine.submit((0, 64, 0), song_id, samples, source_key="song.ogg")
        result = task.result(timeout=30.0)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from types import TracebackType

from core.analysis.pipeline import compute_timeline
from core.analysis.spectral import ProgressCallback
from core.analysis.timeline import FrequencyTimeline
from core.analysis.types import SampleBuffer
from core.config import DEFAULT_CONFIG, AnalysisConfig
from core.playback.types import SlotKey, SongIdentity
from infrastructure.cache import TimelineCache
from infrastructure.metrics import (
    LatencyTimer,
    record_analysis,
    record_cache_hit,
    record_cache_miss,
)

logger = logging.getLogger(__name__)

SampleLoader = Callable[[], SampleBuffer | None]
"""Deferred audio source, called on the worker thread."""


class AnalysisError(Exception):
    """Raised when a timeline cannot be computed.

    Args:
        message: What went wrong.
        source_key: Audio source being analyzed, if known.
    """

    def __init__(self, message: str, source_key: str | None = None) -> None:
        self.source_key = source_key
        super().__init__(message if source_key is None else f"{message} (source={source_key!r})")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of one analysis request. Exactly one of timeline/error is set."""

    slot: SlotKey
    song_id: SongIdentity
    timeline: FrequencyTimeline | None = None
    error: str | None = None
    elapsed_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return self.timeline is not None


@dataclass(frozen=True, eq=False)
class AnalysisTask:
    """Handle to a submitted analysis."""

    slot: SlotKey
    song_id: SongIdentity
    future: Future[AnalysisResult]

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: float | None = None) -> AnalysisResult:
        """Wait for the result. A timeout becomes a failure result."""
        try:
            return self.future.result(timeout=timeout)
        except FutureTimeoutError:
            return AnalysisResult(
                slot=self.slot,
                song_id=self.song_id,
                error=f"analysis timed out after {timeout:.1f}s",
            )


# ---------------------------------------------------------------------------
# AnalysisEngine
# ---------------------------------------------------------------------------


class AnalysisEngine:
    """Runs timeline analysis on a worker pool with an optional cache in front.

    Args:
        config: Analysis parameters applied to every request.
        cache: Timeline cache consulted by source key. None disables caching.
        executor: Executor to run work on. When omitted the engine owns a
            ThreadPoolExecutor of ``max_workers`` threads and shuts it down
            in shutdown().
        max_workers: Pool size for the owned executor.
    """

    def __init__(
        self,
        config: AnalysisConfig = DEFAULT_CONFIG,
        cache: TimelineCache | None = None,
        executor: Executor | None = None,
        max_workers: int = 2,
    ) -> None:
        self.config = config
        self._cache = cache
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="rhythm-analysis"
        )

    # ------------------------------------------------------------------
    # Synchronous
    # ------------------------------------------------------------------

    def analyze(
        self,
        samples: SampleBuffer | SampleLoader,
        *,
        source_key: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> FrequencyTimeline:
        """Compute (or fetch from cache) the timeline for ``samples``.

        Raises:
            AnalysisError: If the audio is unavailable or shorter than one
                analysis window. Silent results are returned but not cached.
        """
        if source_key is not None and self._cache is not None:
            cached = self._cache.get(source_key, self.config)
            if cached is not None:
                record_cache_hit()
                record_analysis(outcome="cache_hit")
                if on_progress is not None:
                    on_progress(1.0)
                return cached
            record_cache_miss()

        buffer = samples() if callable(samples) else samples
        if buffer is None:
            record_analysis(outcome="failure")
            raise AnalysisError("audio source unavailable", source_key)

        try:
            with LatencyTimer() as timer:
                timeline = compute_timeline(buffer, self.config, on_progress)
        except ValueError as exc:
            record_analysis(outcome="failure")
            raise AnalysisError(str(exc), source_key) from exc

        record_analysis(outcome="success", latency_seconds=timer.elapsed)
        logger.info(
            "Analysis finished: %d ticks in %.3fs (source=%r)",
            timeline.duration_ticks,
            timer.elapsed,
            source_key,
        )
        if source_key is not None and self._cache is not None:
            self._cache.put(source_key, self.config, timeline)
        return timeline

    # ------------------------------------------------------------------
    # Asynchronous
    # ------------------------------------------------------------------

    def submit(
        self,
        slot: SlotKey,
        song_id: SongIdentity,
        samples: SampleBuffer | SampleLoader,
        *,
        source_key: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AnalysisTask:
        """Queue analysis for ``song_id`` in ``slot``. Returns immediately."""
        future = self._executor.submit(
            self._run, slot, song_id, samples, source_key, on_progress
        )
        logger.debug("Submitted analysis for slot %s song %d", slot, song_id)
        return AnalysisTask(slot=slot, song_id=song_id, future=future)

    def _run(
        self,
        slot: SlotKey,
        song_id: SongIdentity,
        samples: SampleBuffer | SampleLoader,
        source_key: str | None,
        on_progress: ProgressCallback | None,
    ) -> AnalysisResult:
        with LatencyTimer() as timer:
            try:
                timeline = self.analyze(samples, source_key=source_key, on_progress=on_progress)
            except AnalysisError as exc:
                logger.warning("Analysis failed for slot %s song %d: %s", slot, song_id, exc)
                error = str(exc)
                timeline = None
            except Exception as exc:
                logger.exception("Unexpected analysis error for slot %s song %d", slot, song_id)
                record_analysis(outcome="failure")
                error = f"{type(exc).__name__}: {exc}"
                timeline = None
            else:
                error = None

        return AnalysisResult(
            slot=slot,
            song_id=song_id,
            timeline=timeline,
            error=error,
            elapsed_sec=timer.elapsed,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self, wait: bool = True) -> None:
        """Stop the owned worker pool. Injected executors are left running."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> AnalysisEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()
