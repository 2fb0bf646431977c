"""
core/playback/types.py — Playback state, song identity and the per-slot record.

Design:
    - PlaybackRecord is a frozen value. Every change produces a new record
      via dataclasses.replace(); readers never observe a half-applied update.
    - SongIdentity exists only to detect stale analysis results. It carries
      no meaning beyond equality.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import ClassVar

from core.analysis.timeline import FrequencyTimeline

SlotKey = tuple[int, int, int]
"""Fixture position (x, y, z) that hosts one playback slot."""

SongIdentity = int
"""Opaque token minted on every insert."""

_ID_SPREAD = 1000


class PlaybackState(Enum):
    """Lifecycle of a slot: EMPTY → LOADING → READY → PLAYING ⇄ STOPPED."""

    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    STOPPED = "stopped"

    @property
    def can_play(self) -> bool:
        return self in (PlaybackState.READY, PlaybackState.STOPPED)

    @property
    def is_playing(self) -> bool:
        return self is PlaybackState.PLAYING

    @property
    def has_disc(self) -> bool:
        """True whenever a song occupies the slot, loaded or not."""
        return self is not PlaybackState.EMPTY

    @property
    def has_timeline(self) -> bool:
        """True in states where a finished timeline is expected."""
        return self in (PlaybackState.READY, PlaybackState.PLAYING, PlaybackState.STOPPED)


def mint_song_id(slot: SlotKey, start_tick: int, current: SongIdentity | None = None) -> SongIdentity:
    """Mint ``start_tick * 1000 + abs(hash(slot) % 1000)``.

    If the minted value does not exceed ``current`` (two inserts in the same
    tick, or a clock that went backwards), ``current + 1`` is returned so a
    superseding insert always gets a distinct token.
    """
    minted = start_tick * _ID_SPREAD + abs(hash(slot) % _ID_SPREAD)
    if current is not None and minted <= current:
        return current + 1
    return minted


@dataclass(frozen=True)
class PlaybackRecord:
    """Everything known about one slot. Replaced whole, never edited."""

    EMPTY: ClassVar[PlaybackRecord]

    state: PlaybackState = PlaybackState.EMPTY

    song_id: SongIdentity | None = None
    """Identity of the song currently in the slot."""

    loading_progress: float = 0.0
    """Analysis progress in [0, 1]; never decreases for one song."""

    paused_at_tick: int | None = None
    """Offset into the song at which playback was paused (STOPPED only)."""

    start_tick: int | None = None
    """Host tick corresponding to song offset 0 (PLAYING only)."""

    loop: bool = False
    source_key: str | None = None
    """Identifies the audio source; also the timeline cache key."""

    title: str | None = None
    autoplay: bool = False
    """Start playing as soon as loading completes."""

    timeline: FrequencyTimeline | None = None
    revision: int = 0
    """Store-wide revision stamped on every accepted change."""

    @property
    def duration_ticks(self) -> int | None:
        if self.timeline is None or self.timeline.is_loading:
            return None
        return self.timeline.duration_ticks

    def evolve(self, **changes: object) -> PlaybackRecord:
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)  # type: ignore[arg-type]


PlaybackRecord.EMPTY = PlaybackRecord()
