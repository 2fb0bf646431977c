"""
Configuration dataclasses for the frequency analysis pipeline.

These immutable config objects decouple parameter passing from function signatures,
making it easier to define standard configurations and reuse them across the
analyzer, the timeline builder and the analysis engine.
"""

from dataclasses import dataclass

TICKS_PER_SECOND: int = 20
"""Host tick rate. One tick = 50 ms of playback."""

WINDOW_SIZE: int = 2048
"""FFT window length in samples."""

HOP_SIZE: int = 110
"""Stride between consecutive FFT windows (~2.5 ms at 44.1 kHz)."""

# Allowlist of per-tick consolidation reducers.
VALID_REDUCERS: frozenset[str] = frozenset({"max", "mean"})


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Configuration for spectral analysis and timeline construction.

    Immutable configuration object that can be reused across multiple
    compute_timeline() calls.

    Attributes:
        window_size: FFT window length in samples. Defaults to 2048, which
            gives ~21.5 Hz bin spacing at 44.1 kHz.
        hop_size: Samples between consecutive windows. Defaults to 110,
            roughly 20 frames per 50 ms tick at 44.1 kHz.
        ticks_per_second: Host tick rate used to bucket frames into ticks.
        reducer: How frames inside one tick are combined. "max" keeps short
            transients; "mean" reproduces the legacy averaging behaviour.
        block_frames: Frames transformed per FFT batch. Bounds peak memory
            to roughly block_frames * window_size floats.

    Example:
        >>> config = AnalysisConfig(hop_size=220)
        >>> timeline = compute_timeline(samples, config=config)
    """

    window_size: int = WINDOW_SIZE
    hop_size: int = HOP_SIZE
    ticks_per_second: int = TICKS_PER_SECOND
    reducer: str = "max"
    block_frames: int = 512

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.window_size < 2:
            raise ValueError(f"window_size must be at least 2, got {self.window_size}")
        if self.hop_size < 1:
            raise ValueError(f"hop_size must be positive, got {self.hop_size}")
        if self.ticks_per_second <= 0:
            raise ValueError(f"ticks_per_second must be positive, got {self.ticks_per_second}")
        if self.reducer not in VALID_REDUCERS:
            raise ValueError(
                f"Unknown reducer {self.reducer!r}, valid options: {sorted(VALID_REDUCERS)}"
            )
        if self.block_frames < 1:
            raise ValueError(f"block_frames must be positive, got {self.block_frames}")


# Pre-defined configurations

DEFAULT_CONFIG = AnalysisConfig()
"""Default configuration: 2048 window, 110 hop, 20 ticks/s, peak-preserving reducer."""

LEGACY_MEAN_CONFIG = AnalysisConfig(reducer="mean")
"""Averages frames within a tick, matching timelines produced by older deployments."""
