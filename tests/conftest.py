"""
Shared fixtures for the test suite.

Centralizes synthetic signals and executor doubles so individual test
files don't need to repeat threading boilerplate.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Executor, Future
from typing import Any

import numpy as np
import pytest

from core.analysis.types import SampleBuffer
from engine.analysis_engine import AnalysisEngine
from engine.store import SlotStore
from infrastructure.cache import TimelineCache

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SR = 22050
"""Sample rate for engine-level tests: long enough windows, cheap FFTs."""

SLOT: tuple[int, int, int] = (10, 64, -3)
"""Default fixture position."""


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


def sine(freq_hz: float, amplitude: float = 0.5, sr: int = SR, n: int = SR) -> np.ndarray:
    """Generate a mono sine wave."""
    t = np.linspace(0, n / sr, n, endpoint=False)
    return (amplitude * np.sin(2.0 * np.pi * freq_hz * t)).astype(np.float64)


def pulsed_bass(seconds: float = 2.0, sr: int = SR, period_sec: float = 0.25) -> SampleBuffer:
    """A 100 Hz tone gated on for the first half of every period, plus faint noise.

    The gating gives every band a clear onset pattern, so the resulting
    timeline always has BASS content.
    """
    n = int(seconds * sr)
    t = np.arange(n) / sr
    gate = ((t % period_sec) < period_sec / 2).astype(np.float64)
    rng = np.random.default_rng(7)
    samples = 0.6 * gate * np.sin(2.0 * np.pi * 100.0 * t) + 0.01 * rng.standard_normal(n)
    return SampleBuffer(np.clip(samples, -1.0, 1.0), sr)


# ---------------------------------------------------------------------------
# Executor doubles
# ---------------------------------------------------------------------------


class InlineExecutor(Executor):
    """Runs work immediately on the submitting thread."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class ManualExecutor(Executor):
    """Queues work until the test calls run(); lets tests pick completion order."""

    def __init__(self) -> None:
        self.queued: list[tuple[Future, Callable[[], Any]]] = []

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        self.queued.append((future, lambda: fn(*args, **kwargs)))
        return future

    def run(self, index: int = 0) -> None:
        """Complete the queued job at ``index``."""
        future, job = self.queued.pop(index)
        future.set_result(job())

    def run_all(self) -> None:
        while self.queued:
            self.run(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> SlotStore:
    return SlotStore()


@pytest.fixture
def cache() -> TimelineCache:
    return TimelineCache(max_size=8, ttl_seconds=60.0)


@pytest.fixture
def inline_engine(cache: TimelineCache) -> AnalysisEngine:
    """Engine whose tasks are already complete when submit() returns."""
    return AnalysisEngine(cache=cache, executor=InlineExecutor())


@pytest.fixture
def manual_executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def manual_engine(manual_executor: ManualExecutor) -> AnalysisEngine:
    """Engine whose tasks stay pending until the test runs them."""
    return AnalysisEngine(executor=manual_executor)


@pytest.fixture
def bass_buffer() -> SampleBuffer:
    return pulsed_bass()
