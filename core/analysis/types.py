"""
core/analysis/types.py — Value types shared by the frequency analysis pipeline.

Design:
    - No I/O, no side effects, no state.
    - numpy arrays held by these types are marked read-only at construction,
      so instances can be handed between threads without copying.
    - FrequencyChannel is the single source of truth for band ordering,
      cutoffs and lamp thresholds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

N_BANDS: int = 12
"""Number of stored frequency channels (ALL is computed on read)."""

_PCM16_SCALE = 32768.0
_PARTICLE_MARGIN = 0.05


# ---------------------------------------------------------------------------
# Frequency channels
# ---------------------------------------------------------------------------


class FrequencyChannel(Enum):
    """The 12 stored frequency bands plus the computed ALL channel.

    Each member carries (id, serialized name, display name, upper cutoff in Hz,
    lamp threshold). TOP has no upper cutoff; it takes every bin above ULTRA.
    """

    SUB_BASS = (0, "sub_bass", "Sub Bass", 40.0, 0.20)
    DEEP_BASS = (1, "deep_bass", "Deep Bass", 80.0, 0.18)
    BASS = (2, "bass", "Bass", 150.0, 0.15)
    LOW_MIDS = (3, "low_mids", "Low Mids", 300.0, 0.12)
    MID_LOWS = (4, "mid_lows", "Mid Lows", 500.0, 0.10)
    MIDS = (5, "mids", "Mids", 800.0, 0.08)
    MID_HIGHS = (6, "mid_highs", "Mid Highs", 1200.0, 0.06)
    HIGH_MIDS = (7, "high_mids", "High Mids", 2000.0, 0.05)
    HIGHS = (8, "highs", "Highs", 4000.0, 0.04)
    VERY_HIGHS = (9, "very_highs", "Very Highs", 8000.0, 0.03)
    ULTRA = (10, "ultra", "Ultra", 12000.0, 0.02)
    TOP = (11, "top", "Top", None, 0.01)
    ALL = (12, "all", "All", None, 0.10)

    def __init__(
        self,
        channel_id: int,
        serialized_name: str,
        display_name: str,
        cutoff_hz: float | None,
        lamp_threshold: float,
    ) -> None:
        self.channel_id = channel_id
        self.serialized_name = serialized_name
        self.display_name = display_name
        self.cutoff_hz = cutoff_hz
        self.lamp_threshold = lamp_threshold

    @property
    def particle_threshold(self) -> float:
        """Intensity above which the channel emits particles."""
        return self.lamp_threshold + _PARTICLE_MARGIN

    @property
    def is_stored(self) -> bool:
        """True for the 12 bands held in a timeline; False for ALL."""
        return self.channel_id < N_BANDS

    @classmethod
    def from_id(cls, channel_id: int) -> FrequencyChannel:
        """Look up a channel by numeric id. Unknown ids map to ALL."""
        for channel in cls:
            if channel.channel_id == channel_id:
                return channel
        return cls.ALL

    @classmethod
    def from_name(cls, name: str) -> FrequencyChannel:
        """Look up a channel by serialized name. Unknown names map to ALL."""
        for channel in cls:
            if channel.serialized_name == name:
                return channel
        return cls.ALL

    def cycle(self) -> FrequencyChannel:
        """Return the next channel in id order, wrapping ALL back to SUB_BASS."""
        members = list(type(self))
        return members[(members.index(self) + 1) % len(members)]


STORED_CHANNELS: tuple[FrequencyChannel, ...] = tuple(c for c in FrequencyChannel if c.is_stored)
"""The 12 stored channels in band order."""

BAND_CUTOFFS_HZ: tuple[float, ...] = tuple(
    c.cutoff_hz for c in STORED_CHANNELS if c.cutoff_hz is not None
)
"""Upper cutoffs of bands 0–10. Bins above the last cutoff fall into TOP."""


# ---------------------------------------------------------------------------
# Sample buffer
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """Immutable mono PCM samples in [-1, 1] with their sample rate.

    Raises:
        ValueError: If samples are not 1-D, empty, non-finite, or the sample
            rate is not positive.
    """

    samples: np.ndarray
    """Read-only float64 array of shape (n,)."""

    sample_rate: int
    """Samples per second."""

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        data = np.array(self.samples, dtype=np.float64)
        if data.ndim != 1:
            raise ValueError(f"samples must be 1-D, got shape {data.shape}")
        if data.size == 0:
            raise ValueError("samples must not be empty")
        if not np.all(np.isfinite(data)):
            raise ValueError("samples contain NaN or Inf")
        data.setflags(write=False)
        object.__setattr__(self, "samples", data)

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_sec(self) -> float:
        """Length of the buffer in seconds."""
        return len(self) / self.sample_rate

    @classmethod
    def from_pcm16(
        cls,
        data: bytes,
        sample_rate: int,
        channels: int = 1,
        *,
        big_endian: bool = False,
    ) -> SampleBuffer:
        """Build a mono buffer from interleaved signed 16-bit PCM bytes.

        Channels are averaged and the result scaled by 1/32768. A trailing
        partial frame is dropped.

        Args:
            data:        Raw PCM bytes.
            sample_rate: Sample rate in Hz.
            channels:    Interleaved channel count.
            big_endian:  Byte order of each sample.

        Raises:
            ValueError: If channels < 1 or the data holds no complete frame.
        """
        if channels < 1:
            raise ValueError(f"channels must be at least 1, got {channels}")
        frame_bytes = 2 * channels
        n_frames = len(data) // frame_bytes
        if n_frames == 0:
            raise ValueError("PCM data holds no complete frame")

        dtype = np.dtype(">i2" if big_endian else "<i2")
        pcm = np.frombuffer(data[: n_frames * frame_bytes], dtype=dtype)
        mono = pcm.reshape(n_frames, channels).astype(np.float64).mean(axis=1)
        return cls(samples=mono / _PCM16_SCALE, sample_rate=sample_rate)


# ---------------------------------------------------------------------------
# Spectral frames
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class SpectralFrames:
    """All windowed-FFT results for one buffer, one row of 12 band dB values per frame."""

    decibels: np.ndarray
    """Read-only array of shape (n_frames, 12)."""

    window_size: int
    hop_size: int
    sample_rate: int

    def __post_init__(self) -> None:
        data = np.array(self.decibels, dtype=np.float64)
        if data.ndim != 2 or data.shape[1] != N_BANDS:
            raise ValueError(f"decibels must have shape (n, {N_BANDS}), got {data.shape}")
        data.setflags(write=False)
        object.__setattr__(self, "decibels", data)

    def __len__(self) -> int:
        return int(self.decibels.shape[0])

    def __getitem__(self, index: int) -> np.ndarray:
        return self.decibels[index]

    def frame_center_sec(self, index: int) -> float:
        """Time of the centre of frame ``index`` in seconds."""
        return (index * self.hop_size + self.window_size / 2) / self.sample_rate

    def frame_centers_sec(self) -> np.ndarray:
        """Centre times of every frame, shape (n_frames,)."""
        idx = np.arange(len(self), dtype=np.float64)
        return (idx * self.hop_size + self.window_size / 2) / self.sample_rate


# ---------------------------------------------------------------------------
# Energy statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnergyStatistics:
    """Summary statistics of one energy series, computed once per detection run."""

    mean: float
    min: float
    max: float
    range: float
    """max - min."""

    std: float
    """Population standard deviation."""

    def __post_init__(self) -> None:
        for name in ("mean", "min", "max", "range", "std"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite")
