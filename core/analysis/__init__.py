"""
core/analysis — Audio-reactive frequency analysis.

Turns a mono sample buffer into a tick-indexed, 12-channel intensity
timeline. All functions are pure: numpy arrays in, frozen values out.
No file I/O and no threads in this package (async execution lives in
engine/analysis_engine.py).

Public API:
    Types:     SampleBuffer, SpectralFrames, EnergyStatistics, FrequencyChannel
    Spectral:  analyze
    Onsets:    detect_onsets, compute_statistics
    Timeline:  FrequencyTimeline, build_timeline
    Pipeline:  compute_timeline
"""

from core.analysis.onsets import compute_statistics, detect_onsets
from core.analysis.pipeline import compute_timeline
from core.analysis.spectral import analyze
from core.analysis.timeline import FrequencyTimeline, build_timeline
from core.analysis.types import (
    BAND_CUTOFFS_HZ,
    N_BANDS,
    STORED_CHANNELS,
    EnergyStatistics,
    FrequencyChannel,
    SampleBuffer,
    SpectralFrames,
)

__all__ = [
    "BAND_CUTOFFS_HZ",
    "N_BANDS",
    "STORED_CHANNELS",
    "EnergyStatistics",
    "FrequencyChannel",
    "FrequencyTimeline",
    "SampleBuffer",
    "SpectralFrames",
    "analyze",
    "build_timeline",
    "compute_statistics",
    "compute_timeline",
    "detect_onsets",
]
