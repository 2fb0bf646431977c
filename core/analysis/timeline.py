"""
core/analysis/timeline.py — Tick-indexed per-channel intensity timeline.

FrequencyTimeline is the immutable product of analysis that lamps and
particle emitters sample during playback. build_timeline() turns spectral
frames into one: frames are bucketed into host ticks, each band's tick
series is run through onset detection, then min–max normalized to [0, 1].

Design:
    - Timelines are never edited. A slot swaps its placeholder for a fully
      built timeline in one assignment.
    - Out-of-range ticks read as 0.0 for every channel, so consumers never
      need to bounds-check.
    - ALL is computed on read as the mean of the 12 stored channels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from core.analysis.onsets import detect_onsets
from core.analysis.types import N_BANDS, FrequencyChannel, SpectralFrames
from core.config import DEFAULT_CONFIG, TICKS_PER_SECOND, AnalysisConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EPS = 1e-10
_CONTENT_PROBE_TICKS = 100  # ticks of BASS inspected by has_content()
_CONTENT_MIN_SUM = 0.001


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class FrequencyTimeline:
    """Immutable per-channel intensity in [0, 1], indexed by tick offset from song start."""

    channels: np.ndarray
    """Read-only float32 array of shape (12, duration_ticks)."""

    is_loading: bool = False
    """True only for the placeholder installed while analysis runs."""

    def __post_init__(self) -> None:
        data = np.array(self.channels, dtype=np.float32)
        if data.ndim != 2 or data.shape[0] != N_BANDS:
            raise ValueError(f"channels must have shape ({N_BANDS}, n), got {data.shape}")
        if not np.all(np.isfinite(data)):
            raise ValueError("channels contain NaN or Inf")
        data.setflags(write=False)
        object.__setattr__(self, "channels", data)

    @classmethod
    def loading(cls) -> FrequencyTimeline:
        """Zero-length placeholder shown while a song is being analyzed."""
        return cls(np.zeros((N_BANDS, 0), dtype=np.float32), is_loading=True)

    @property
    def duration_ticks(self) -> int:
        return int(self.channels.shape[1])

    def duration_sec(self, ticks_per_second: int = TICKS_PER_SECOND) -> float:
        return self.duration_ticks / ticks_per_second

    def intensity(self, channel: FrequencyChannel, tick: int) -> float:
        """Intensity of ``channel`` at ``tick``; 0.0 outside [0, duration_ticks)."""
        if tick < 0 or tick >= self.duration_ticks:
            return 0.0
        if channel is FrequencyChannel.ALL:
            return float(np.mean(self.channels[:, tick]))
        return float(self.channels[channel.channel_id, tick])

    def channel_values(self, channel: FrequencyChannel) -> np.ndarray:
        """Whole series for one channel, shape (duration_ticks,)."""
        if channel is FrequencyChannel.ALL:
            values = self.channels.mean(axis=0)
            values.setflags(write=False)
            return values
        return self.channels[channel.channel_id]

    def is_lit(self, channel: FrequencyChannel, tick: int) -> bool:
        """True when the intensity exceeds the channel's lamp threshold."""
        return self.intensity(channel, tick) > channel.lamp_threshold

    def emits_particles(self, channel: FrequencyChannel, tick: int) -> bool:
        """True when the intensity exceeds the channel's particle threshold."""
        return self.intensity(channel, tick) > channel.particle_threshold

    def has_content(self) -> bool:
        """False for empty or silent timelines, which are treated as corrupt."""
        if self.duration_ticks == 0:
            return False
        probe = self.channels[FrequencyChannel.BASS.channel_id, :_CONTENT_PROBE_TICKS]
        return float(np.sum(np.abs(probe))) > _CONTENT_MIN_SUM


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _tick_count(sample_count: int, sample_rate: int, ticks_per_second: int) -> int:
    """ceil(sample_count · tps / sr) in integer arithmetic."""
    return -(-sample_count * ticks_per_second // sample_rate)


def _bucket_frames(
    frames: SpectralFrames, n_ticks: int, config: AnalysisConfig
) -> tuple[np.ndarray, np.ndarray]:
    """Reduce frames into (n_ticks, 12) per-tick dB values.

    Returns:
        (values, filled) where ``filled`` marks ticks that received a frame.
    """
    tick_of_frame = np.floor(frames.frame_centers_sec() * config.ticks_per_second).astype(np.int64)
    tick_of_frame = np.clip(tick_of_frame, 0, n_ticks - 1)
    counts = np.bincount(tick_of_frame, minlength=n_ticks)

    if config.reducer == "max":
        values = np.full((n_ticks, N_BANDS), -np.inf)
        np.maximum.at(values, tick_of_frame, frames.decibels)
    else:
        values = np.zeros((n_ticks, N_BANDS))
        np.add.at(values, tick_of_frame, frames.decibels)
        values /= np.maximum(counts, 1)[:, None]

    return values, counts > 0


def _fill_gaps(values: np.ndarray, filled: np.ndarray) -> np.ndarray:
    """Carry each tick's last filled value forward; leading gaps take the first."""
    positions = np.where(filled, np.arange(filled.size), -1)
    positions = np.maximum.accumulate(positions)
    positions[positions < 0] = int(np.argmax(filled))
    return values[positions]


def _normalize(series: np.ndarray) -> np.ndarray:
    """Min–max normalize to [0, 1]; constant series become all zeros."""
    lo = float(np.min(series))
    span = float(np.max(series)) - lo
    if span <= _EPS:
        return np.zeros_like(series)
    return (series - lo) / span


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_timeline(
    frames: SpectralFrames,
    sample_count: int,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> FrequencyTimeline:
    """Build a timeline from spectral frames.

    Args:
        frames:       Output of the spectral analyzer.
        sample_count: Length of the analyzed buffer in samples; sets the
                      timeline length to ceil(sample_count · tps / sr).
        config:       Tick rate and per-tick reducer.

    Raises:
        ValueError: If there are no frames or sample_count is not positive.
    """
    if len(frames) == 0:
        raise ValueError("Cannot build a timeline from zero spectral frames")
    if sample_count <= 0:
        raise ValueError(f"sample_count must be positive, got {sample_count}")

    n_ticks = _tick_count(sample_count, frames.sample_rate, config.ticks_per_second)
    values, filled = _bucket_frames(frames, n_ticks, config)
    per_tick = _fill_gaps(values, filled)

    channels = np.empty((N_BANDS, n_ticks), dtype=np.float64)
    for band in range(N_BANDS):
        channels[band] = _normalize(detect_onsets(per_tick[:, band]))

    logger.debug(
        "Built timeline: %d frames -> %d ticks (%d filled, reducer=%s)",
        len(frames),
        n_ticks,
        int(np.count_nonzero(filled)),
        config.reducer,
    )
    return FrequencyTimeline(channels)
