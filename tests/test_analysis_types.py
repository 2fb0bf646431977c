"""Tests for core/analysis/types.py — channels, sample buffers and value types."""

from __future__ import annotations

import numpy as np
import pytest

from core.analysis.types import (
    BAND_CUTOFFS_HZ,
    N_BANDS,
    STORED_CHANNELS,
    EnergyStatistics,
    FrequencyChannel,
    SampleBuffer,
    SpectralFrames,
)


class TestFrequencyChannel:
    def test_twelve_stored_channels_plus_all(self) -> None:
        assert len(FrequencyChannel) == 13
        assert len(STORED_CHANNELS) == N_BANDS == 12
        assert FrequencyChannel.ALL not in STORED_CHANNELS

    def test_ids_are_band_order(self) -> None:
        assert [c.channel_id for c in FrequencyChannel] == list(range(13))

    def test_serialized_names(self) -> None:
        assert FrequencyChannel.SUB_BASS.serialized_name == "sub_bass"
        assert FrequencyChannel.HIGH_MIDS.serialized_name == "high_mids"
        assert FrequencyChannel.ALL.serialized_name == "all"
        assert FrequencyChannel.VERY_HIGHS.display_name == "Very Highs"

    def test_cutoffs(self) -> None:
        assert BAND_CUTOFFS_HZ == (
            40.0, 80.0, 150.0, 300.0, 500.0, 800.0, 1200.0, 2000.0, 4000.0, 8000.0, 12000.0
        )
        assert FrequencyChannel.TOP.cutoff_hz is None

    @pytest.mark.parametrize(
        "channel, lamp",
        [
            (FrequencyChannel.SUB_BASS, 0.20),
            (FrequencyChannel.DEEP_BASS, 0.18),
            (FrequencyChannel.BASS, 0.15),
            (FrequencyChannel.LOW_MIDS, 0.12),
            (FrequencyChannel.MID_LOWS, 0.10),
            (FrequencyChannel.MIDS, 0.08),
            (FrequencyChannel.MID_HIGHS, 0.06),
            (FrequencyChannel.HIGH_MIDS, 0.05),
            (FrequencyChannel.HIGHS, 0.04),
            (FrequencyChannel.VERY_HIGHS, 0.03),
            (FrequencyChannel.ULTRA, 0.02),
            (FrequencyChannel.TOP, 0.01),
            (FrequencyChannel.ALL, 0.10),
        ],
    )
    def test_thresholds(self, channel: FrequencyChannel, lamp: float) -> None:
        assert channel.lamp_threshold == pytest.approx(lamp)
        assert channel.particle_threshold == pytest.approx(lamp + 0.05)

    def test_from_id(self) -> None:
        assert FrequencyChannel.from_id(2) is FrequencyChannel.BASS
        assert FrequencyChannel.from_id(12) is FrequencyChannel.ALL

    @pytest.mark.parametrize("bad_id", [-1, 13, 99])
    def test_from_id_unknown_maps_to_all(self, bad_id: int) -> None:
        assert FrequencyChannel.from_id(bad_id) is FrequencyChannel.ALL

    def test_from_name(self) -> None:
        assert FrequencyChannel.from_name("ultra") is FrequencyChannel.ULTRA
        assert FrequencyChannel.from_name("nope") is FrequencyChannel.ALL

    def test_cycle(self) -> None:
        assert FrequencyChannel.SUB_BASS.cycle() is FrequencyChannel.DEEP_BASS
        assert FrequencyChannel.TOP.cycle() is FrequencyChannel.ALL
        assert FrequencyChannel.ALL.cycle() is FrequencyChannel.SUB_BASS


class TestSampleBuffer:
    def test_stores_read_only_float64(self) -> None:
        buf = SampleBuffer(np.array([0, 1, -1], dtype=np.int32), 8000)
        assert buf.samples.dtype == np.float64
        with pytest.raises(ValueError):
            buf.samples[0] = 0.5

    def test_copy_isolated_from_caller(self) -> None:
        raw = np.zeros(4)
        buf = SampleBuffer(raw, 8000)
        raw[0] = 1.0
        assert buf.samples[0] == 0.0

    def test_len_and_duration(self) -> None:
        buf = SampleBuffer(np.zeros(22050), 44100)
        assert len(buf) == 22050
        assert buf.duration_sec == pytest.approx(0.5)

    def test_empty_raises(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            SampleBuffer(np.array([]), 44100)

    def test_2d_raises(self) -> None:
        with pytest.raises(ValueError, match="1-D"):
            SampleBuffer(np.zeros((2, 10)), 44100)

    def test_nan_raises(self) -> None:
        with pytest.raises(ValueError, match="NaN or Inf"):
            SampleBuffer(np.array([0.0, np.nan]), 44100)

    def test_bad_rate_raises(self) -> None:
        with pytest.raises(ValueError, match="sample_rate must be positive"):
            SampleBuffer(np.zeros(10), 0)


class TestFromPcm16:
    def test_stereo_little_endian_averaged(self) -> None:
        pcm = np.array([16384, -16384, 32767, 32767], dtype="<i2").tobytes()
        buf = SampleBuffer.from_pcm16(pcm, 44100, channels=2)
        np.testing.assert_allclose(buf.samples, [0.0, 32767 / 32768])

    def test_mono_big_endian(self) -> None:
        pcm = np.array([-32768, 16384], dtype=">i2").tobytes()
        buf = SampleBuffer.from_pcm16(pcm, 8000, big_endian=True)
        np.testing.assert_allclose(buf.samples, [-1.0, 0.5])

    def test_trailing_partial_frame_dropped(self) -> None:
        pcm = np.array([100, 200, 300], dtype="<i2").tobytes()
        buf = SampleBuffer.from_pcm16(pcm, 8000, channels=2)
        assert len(buf) == 1
        assert buf.samples[0] == pytest.approx(150 / 32768)

    def test_no_complete_frame_raises(self) -> None:
        with pytest.raises(ValueError, match="no complete frame"):
            SampleBuffer.from_pcm16(b"\x01", 8000)

    def test_zero_channels_raises(self) -> None:
        with pytest.raises(ValueError, match="channels must be at least 1"):
            SampleBuffer.from_pcm16(b"\x00\x00", 8000, channels=0)


class TestValueTypes:
    def test_spectral_frames_shape_checked(self) -> None:
        with pytest.raises(ValueError, match="shape"):
            SpectralFrames(np.zeros((3, 5)), window_size=2048, hop_size=110, sample_rate=44100)

    def test_energy_statistics_rejects_nan(self) -> None:
        with pytest.raises(ValueError, match="std must be finite"):
            EnergyStatistics(mean=0.0, min=0.0, max=0.0, range=0.0, std=float("nan"))
