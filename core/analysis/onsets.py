"""
core/analysis/onsets.py — Multi-scale onset strength for a dB energy series.

Four layered passes over one band's per-tick energy:

    1. Statistics — mean, min, max, range and standard deviation of the
       series, which set the adaptive threshold the rise pass gates on.
    2. Multi-scale local rise — compares each value with the mean of the
       preceding 1, 2, 3, 5 and 8 values; fast scales catch snares and hats,
       slow scales catch kicks and drops.
    3. Spectral flux — absolute first difference plus its acceleration.
    4. Phase coherence — inflection points with a significant left slope.

Passes 2 to 4 are summed into the onset strength.

Design:
    - Pure function: np.ndarray → np.ndarray of the same length.
    - Output is unnormalized onset strength (≥ 0 for finite input).
    - All passes are vectorized; the longest look-back is 8 values, so the
      local means are built from shifted copies instead of a python loop.
"""

from __future__ import annotations

import logging

import numpy as np

from core.analysis.types import EnergyStatistics

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SCALE_WINDOWS: tuple[int, ...] = (1, 2, 3, 5, 8)
SCALE_WEIGHTS: tuple[float, ...] = (0.35, 0.30, 0.20, 0.10, 0.05)

_THRESHOLD_FLOOR = 0.2
_RANGE_FACTOR = 0.02
_STD_FACTOR = 0.15
_RELATIVE_THRESHOLD = 0.03
_PEAK_RELATIVE_THRESHOLD = 0.02
_RELATIVE_GAIN = 15.0
_PEAK_BONUS = 1.2

_FLUX_WEIGHT = 0.25
_ACCELERATION_WEIGHT = 0.15

_PHASE_WEIGHT = 0.1
_PHASE_MIN_SLOPE = 0.5

_SILENCE_DB = -80.0  # local means at or below this carry no relative rise


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def compute_statistics(energy: np.ndarray) -> EnergyStatistics:
    """Mean, min, max, range and population std of an energy series.

    Raises:
        ValueError: If ``energy`` is empty.
    """
    x = np.asarray(energy, dtype=np.float64)
    if x.size == 0:
        raise ValueError("Cannot compute statistics of an empty series")
    lo = float(np.min(x))
    hi = float(np.max(x))
    return EnergyStatistics(
        mean=float(np.mean(x)),
        min=lo,
        max=hi,
        range=hi - lo,
        std=float(np.std(x)),
    )


def adaptive_threshold(stats: EnergyStatistics) -> float:
    """Absolute-rise threshold: ``max(0.2, min(range·0.02, std·0.15))``."""
    return max(_THRESHOLD_FLOOR, min(stats.range * _RANGE_FACTOR, stats.std * _STD_FACTOR))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _local_means(x: np.ndarray, window: int, fallback: float) -> np.ndarray:
    """Mean of the up-to-``window`` values preceding each index.

    Index 0 has no predecessors and takes ``fallback``.
    """
    sums = np.zeros_like(x)
    counts = np.zeros_like(x)
    for k in range(1, window + 1):
        if k >= x.size:
            break
        sums[k:] += x[:-k]
        counts[k:] += 1.0
    return np.where(counts > 0, sums / np.maximum(counts, 1.0), fallback)


def _peak_mask(x: np.ndarray) -> np.ndarray:
    """True where a value is ≥ both neighbours. Missing neighbours are ignored."""
    peak = np.ones(x.size, dtype=bool)
    peak[1:] &= x[1:] >= x[:-1]
    peak[:-1] &= x[:-1] >= x[1:]
    return peak


def _multi_scale_rise(x: np.ndarray, stats: EnergyStatistics) -> np.ndarray:
    threshold = adaptive_threshold(stats)
    peak = _peak_mask(x)
    bonus = np.where(peak, _PEAK_BONUS, 1.0)
    out = np.zeros_like(x)

    for window, weight in zip(SCALE_WINDOWS, SCALE_WEIGHTS):
        local = _local_means(x, window, stats.mean)
        rise = x - local
        relative = np.where(local <= _SILENCE_DB, 0.0, rise / (np.abs(local) + 1.0))
        fires = (
            (rise > threshold)
            | (relative > _RELATIVE_THRESHOLD)
            | (peak & (relative > _PEAK_RELATIVE_THRESHOLD))
        )
        strength = np.maximum(rise, relative * _RELATIVE_GAIN) * weight * bonus
        out += np.where(fires, strength, 0.0)

    return out


def _spectral_flux(x: np.ndarray) -> np.ndarray:
    out = np.zeros_like(x)
    if x.size < 2:
        return out
    flux = np.abs(np.diff(x))
    out[1:] += _FLUX_WEIGHT * flux
    out[2:] += _ACCELERATION_WEIGHT * np.abs(np.diff(flux))
    return out


def _phase_coherence(x: np.ndarray) -> np.ndarray:
    out = np.zeros_like(x)
    n = x.size
    if n < 5:
        return out
    i = np.arange(2, n - 2)
    left = x[i] - x[i - 1]
    right = x[i + 1] - x[i]
    hit = (left * right < 0) & (np.abs(left) > _PHASE_MIN_SLOPE)
    out[i] = np.where(hit, _PHASE_WEIGHT * np.abs(left), 0.0)
    return out


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_onsets(energy: np.ndarray) -> np.ndarray:
    """Onset strength per value of a dB energy series.

    Args:
        energy: 1-D per-tick energy in dB.

    Returns:
        float64 array of the same length; empty input gives an empty array.
        Constant input gives all zeros.
    """
    x = np.asarray(energy, dtype=np.float64).ravel()
    if x.size == 0:
        return np.zeros(0, dtype=np.float64)

    stats = compute_statistics(x)
    logger.debug(
        "Onset detection: mean=%.2f dB range=%.2f dB std=%.2f dB",
        stats.mean,
        stats.range,
        stats.std,
    )

    return _multi_scale_rise(x, stats) + _spectral_flux(x) + _phase_coherence(x)
