"""
core/analysis/pipeline.py — Samples in, timeline out.

Chains the spectral analyzer and the timeline builder. Pure and
synchronous; threading, caching and identity checks belong to the engine.
"""

from __future__ import annotations

from core.analysis.spectral import ProgressCallback, analyze
from core.analysis.timeline import FrequencyTimeline, build_timeline
from core.analysis.types import SampleBuffer
from core.config import DEFAULT_CONFIG, AnalysisConfig

# Share of reported progress taken by the FFT pass; the rest is the build step.
_SPECTRAL_SHARE = 0.9


def compute_timeline(
    buffer: SampleBuffer,
    config: AnalysisConfig = DEFAULT_CONFIG,
    on_progress: ProgressCallback | None = None,
) -> FrequencyTimeline:
    """Analyze ``buffer`` and build its frequency timeline.

    Args:
        buffer:      Mono samples.
        config:      Analysis parameters.
        on_progress: Optional callback receiving monotonically increasing
                     fractions in [0, 1]; the last call reports 1.0.

    Raises:
        ValueError: If the buffer is shorter than one analysis window.
    """
    spectral_progress = None
    if on_progress is not None:
        report = on_progress

        def spectral_progress(fraction: float) -> None:
            report(fraction * _SPECTRAL_SHARE)

    frames = analyze(buffer, config, spectral_progress)
    if len(frames) == 0:
        raise ValueError(
            f"Buffer of {len(buffer)} samples is shorter than one "
            f"{config.window_size}-sample analysis window"
        )

    timeline = build_timeline(frames, len(buffer), config)
    if on_progress is not None:
        on_progress(1.0)
    return timeline
