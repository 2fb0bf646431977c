"""
tests/test_spectral.py — Tests for core/analysis/spectral.py.

Signal conventions:
    - Pure sines placed 20 Hz (at 8 kHz) or 200 Hz (at 44.1 kHz) away from a
      band cutoff, i.e. ≥ 5 FFT bins clear of the Hann main lobe edge.
    - Band power is recovered from dB as 10 ** (dB / 10).
"""

from __future__ import annotations

import numpy as np
import pytest

from conftest import sine
from core.analysis.spectral import analyze, band_index_for_frequency, hann_window
from core.analysis.types import N_BANDS, SampleBuffer
from core.config import AnalysisConfig

N_SAMPLES = 4096

# (frequency Hz, expected band index)
LOW_RATE_CASES = [
    (20.0, 0),
    (60.0, 1),
    (100.0, 2),
    (130.0, 2),
    (170.0, 3),
    (280.0, 3),
    (320.0, 4),
    (480.0, 4),
    (520.0, 5),
    (780.0, 5),
    (820.0, 6),
    (1180.0, 6),
    (1220.0, 7),
    (1980.0, 7),
    (2020.0, 8),
]

HIGH_RATE_CASES = [
    (3800.0, 8),
    (4200.0, 9),
    (7800.0, 9),
    (8200.0, 10),
    (11800.0, 10),
    (12200.0, 11),
    (16000.0, 11),
]


def _band_power(frames_db: np.ndarray) -> np.ndarray:
    return np.power(10.0, frames_db / 10.0)


class TestBandAssignment:
    def test_cutoff_belongs_to_lower_band(self) -> None:
        assert band_index_for_frequency(40.0) == 0
        assert band_index_for_frequency(40.01) == 1

    def test_dc_is_sub_bass(self) -> None:
        assert band_index_for_frequency(0.0) == 0

    def test_last_cutoff(self) -> None:
        assert band_index_for_frequency(12000.0) == 10
        assert band_index_for_frequency(12000.5) == 11

    def test_everything_above_goes_to_top(self) -> None:
        assert band_index_for_frequency(22050.0) == 11


class TestHannWindow:
    def test_symmetric_with_zero_endpoints(self) -> None:
        w = hann_window(2048)
        assert w[0] == pytest.approx(0.0)
        assert w[-1] == pytest.approx(0.0)
        np.testing.assert_allclose(w, w[::-1])

    def test_matches_formula(self) -> None:
        n = 64
        i = np.arange(n)
        expected = 0.5 * (1.0 - np.cos(2.0 * np.pi * i / (n - 1)))
        np.testing.assert_allclose(hann_window(n), expected, atol=1e-12)


class TestFraming:
    @pytest.mark.parametrize(
        "n_samples, expected",
        [(2047, 0), (2048, 1), (2048 + 109, 1), (2048 + 110, 2), (4096, 19)],
    )
    def test_frame_count(self, n_samples: int, expected: int) -> None:
        frames = analyze(SampleBuffer(np.zeros(n_samples), 44100))
        assert len(frames) == expected
        assert frames.decibels.shape == (expected, N_BANDS)

    def test_metadata_carried(self) -> None:
        frames = analyze(SampleBuffer(np.zeros(4096), 8000))
        assert frames.window_size == 2048
        assert frames.hop_size == 110
        assert frames.sample_rate == 8000

    def test_frame_center(self) -> None:
        frames = analyze(SampleBuffer(np.zeros(4096), 8000))
        assert frames.frame_center_sec(0) == pytest.approx(1024 / 8000)
        assert frames.frame_center_sec(3) == pytest.approx((330 + 1024) / 8000)
        np.testing.assert_allclose(
            frames.frame_centers_sec()[:4], [frames.frame_center_sec(i) for i in range(4)]
        )

    def test_output_is_read_only(self) -> None:
        frames = analyze(SampleBuffer(np.zeros(4096), 8000))
        with pytest.raises(ValueError):
            frames.decibels[0, 0] = 1.0


class TestSilence:
    def test_all_zero_input_is_minus_100_db(self) -> None:
        frames = analyze(SampleBuffer(np.zeros(N_SAMPLES), 44100))
        assert np.all(np.isfinite(frames.decibels))
        np.testing.assert_allclose(frames.decibels, -100.0)

    def test_bands_above_nyquist_are_minus_100_db(self) -> None:
        frames = analyze(SampleBuffer(sine(1000.0, sr=8000, n=N_SAMPLES), 8000))
        # 4 kHz Nyquist: VERY_HIGHS, ULTRA and TOP receive no bins
        np.testing.assert_allclose(frames.decibels[:, 9:], -100.0)


class TestBandSeparation:
    @pytest.mark.parametrize("freq, band", LOW_RATE_CASES)
    def test_sine_near_cutoff_low_rate(self, freq: float, band: int) -> None:
        frames = analyze(SampleBuffer(sine(freq, sr=8000, n=N_SAMPLES), 8000))
        power = _band_power(frames.decibels)
        share = power[:, band] / power.sum(axis=1)
        assert np.all(share > 0.9), f"{freq} Hz: min share {share.min():.3f} in band {band}"

    @pytest.mark.parametrize("freq, band", HIGH_RATE_CASES)
    def test_sine_near_cutoff_high_rate(self, freq: float, band: int) -> None:
        frames = analyze(SampleBuffer(sine(freq, sr=44100, n=N_SAMPLES), 44100))
        power = _band_power(frames.decibels)
        share = power[:, band] / power.sum(axis=1)
        assert np.all(share > 0.9), f"{freq} Hz: min share {share.min():.3f} in band {band}"


class TestAgainstReference:
    def test_matches_direct_computation(self) -> None:
        rng = np.random.default_rng(3)
        samples = 0.3 * rng.standard_normal(2048 + 110 * 2)
        sr = 44100
        frames = analyze(SampleBuffer(samples, sr))

        w = hann_window(2048)
        freqs = np.arange(1024) * sr / 2048
        for j in range(len(frames)):
            spectrum = np.fft.rfft(samples[j * 110 : j * 110 + 2048] * w)[:1024]
            power = np.abs(spectrum) ** 2
            expected = np.zeros(N_BANDS)
            for k in range(1024):
                expected[band_index_for_frequency(freqs[k])] += power[k]
            np.testing.assert_allclose(
                frames[j], 10.0 * np.log10(expected + 1e-10), rtol=1e-9, atol=1e-9
            )


class TestBlocksAndProgress:
    def test_block_size_does_not_change_result(self) -> None:
        buf = SampleBuffer(sine(440.0, sr=8000, n=N_SAMPLES), 8000)
        whole = analyze(buf, AnalysisConfig(block_frames=1000))
        blocked = analyze(buf, AnalysisConfig(block_frames=3))
        np.testing.assert_allclose(whole.decibels, blocked.decibels)

    def test_progress_reported_per_block(self) -> None:
        seen: list[float] = []
        buf = SampleBuffer(np.zeros(N_SAMPLES), 8000)
        analyze(buf, AnalysisConfig(block_frames=4), seen.append)
        # 19 frames in blocks of 4 → 5 callbacks
        assert len(seen) == 5
        assert seen == sorted(seen)
        assert seen[-1] == pytest.approx(1.0)

    def test_progress_on_short_buffer(self) -> None:
        seen: list[float] = []
        analyze(SampleBuffer(np.zeros(100), 8000), on_progress=seen.append)
        assert seen == [1.0]
