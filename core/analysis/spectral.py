"""
core/analysis/spectral.py — Windowed FFT band-energy analysis.

Slides a Hann-windowed FFT over a mono buffer and reduces each window to
12 band energies in dB.

Design:
    - Pure function: (SampleBuffer, AnalysisConfig) → SpectralFrames.
    - scipy and numpy are treated as pure computation libraries (no I/O).
    - Windows are gathered as strided views and transformed in blocks so
      peak memory stays bounded for long songs.
    - The bin → band assignment is a one-hot matrix built once per call;
      band power for a block is a single matrix product.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import fft as scipy_fft

from core.analysis.types import BAND_CUTOFFS_HZ, N_BANDS, SampleBuffer, SpectralFrames
from core.config import DEFAULT_CONFIG, AnalysisConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EPS = 1e-10  # small value to prevent log(0)

ProgressCallback = Callable[[float], None]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def hann_window(size: int) -> np.ndarray:
    """Symmetric Hann window ``0.5 * (1 - cos(2πi / (N - 1)))``."""
    return np.hanning(size)


def band_index_for_frequency(frequency_hz: float) -> int:
    """Return the band a frequency belongs to: the first cutoff it does not exceed."""
    return int(np.searchsorted(BAND_CUTOFFS_HZ, frequency_hz, side="left"))


def _band_matrix(window_size: int, sample_rate: int) -> np.ndarray:
    """One-hot (N/2, 12) matrix mapping FFT bins to bands.

    Bin k sits at ``k * sr / N`` Hz. Bins exactly on a cutoff belong to the
    lower band.
    """
    n_bins = window_size // 2
    freqs = np.arange(n_bins, dtype=np.float64) * sample_rate / window_size
    band_of_bin = np.searchsorted(np.asarray(BAND_CUTOFFS_HZ), freqs, side="left")
    matrix = np.zeros((n_bins, N_BANDS), dtype=np.float64)
    matrix[np.arange(n_bins), band_of_bin] = 1.0
    return matrix


def _frame_count(n_samples: int, window_size: int, hop_size: int) -> int:
    if n_samples < window_size:
        return 0
    return (n_samples - window_size) // hop_size + 1


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def analyze(
    buffer: SampleBuffer,
    config: AnalysisConfig = DEFAULT_CONFIG,
    on_progress: ProgressCallback | None = None,
) -> SpectralFrames:
    """Compute per-frame band energies for a mono buffer.

    A window is taken at every ``hop_size`` offset while a full window fits;
    the trailing partial window is dropped. Buffers shorter than one window
    yield zero frames.

    Args:
        buffer:      Mono samples and sample rate.
        config:      Window, hop and block sizes.
        on_progress: Optional callback receiving the completed fraction in
                     (0, 1] after each block.

    Returns:
        SpectralFrames of shape (n_frames, 12). Bands with no bins below
        Nyquist report -100 dB; silence reports -100 dB everywhere.
    """
    n = config.window_size
    hop = config.hop_size
    samples = buffer.samples
    n_frames = _frame_count(len(samples), n, hop)

    out = np.empty((n_frames, N_BANDS), dtype=np.float64)
    if n_frames == 0:
        logger.debug("Buffer of %d samples is shorter than one window (%d)", len(samples), n)
        if on_progress is not None:
            on_progress(1.0)
        return SpectralFrames(out, window_size=n, hop_size=hop, sample_rate=buffer.sample_rate)

    window = hann_window(n)
    bands = _band_matrix(n, buffer.sample_rate)
    frames_view = sliding_window_view(samples, n)[::hop]

    for start in range(0, n_frames, config.block_frames):
        stop = min(start + config.block_frames, n_frames)
        spectrum = scipy_fft.rfft(frames_view[start:stop] * window, axis=1)
        power = spectrum.real[:, : n // 2] ** 2 + spectrum.imag[:, : n // 2] ** 2
        out[start:stop] = 10.0 * np.log10(power @ bands + _EPS)
        if on_progress is not None:
            on_progress(stop / n_frames)

    return SpectralFrames(out, window_size=n, hop_size=hop, sample_rate=buffer.sample_rate)
