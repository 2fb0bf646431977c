"""
core/playback/machine.py — Pure playback state transitions.

State machine::

    EMPTY ──insert──→ LOADING ──complete_loading──→ READY ──play──→ PLAYING
      ↑                  │                                   ↑        │
      │                  └──fail_loading(drop)──→ EMPTY      │   pause/stop
      │                                                      │        ↓
      └──────────────remove (any non-EMPTY)───────────── STOPPED ←────┘

Every function takes the current record and returns a Transition. A
rejected transition carries the input record unchanged, so callers can
always install ``transition.record``.

Paused and stopped share the STOPPED state: a hard stop is a pause at
offset 0.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from core.analysis.timeline import FrequencyTimeline
from core.playback.types import PlaybackRecord, PlaybackState, SongIdentity

logger = logging.getLogger(__name__)


class Transition(NamedTuple):
    """Outcome of a transition function."""

    accepted: bool
    record: PlaybackRecord


def _reject(record: PlaybackRecord, command: str, reason: str) -> Transition:
    logger.debug("Rejected %s in state %s: %s", command, record.state.value, reason)
    return Transition(False, record)


def _matches(record: PlaybackRecord, song_id: SongIdentity) -> bool:
    return record.state.has_disc and record.song_id == song_id


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def insert(
    record: PlaybackRecord,
    song_id: SongIdentity,
    *,
    source_key: str | None = None,
    title: str | None = None,
    loop: bool = False,
    autoplay: bool = False,
) -> Transition:
    """Start loading a new song. Legal from any state; supersedes whatever was there."""
    return Transition(
        True,
        PlaybackRecord(
            state=PlaybackState.LOADING,
            song_id=song_id,
            loading_progress=0.0,
            loop=loop,
            source_key=source_key,
            title=title,
            autoplay=autoplay,
            timeline=FrequencyTimeline.loading(),
            revision=record.revision,
        ),
    )


def complete_loading(
    record: PlaybackRecord, song_id: SongIdentity, timeline: FrequencyTimeline
) -> Transition:
    """Install a finished timeline if ``song_id`` still owns the slot.

    LOADING moves to READY. In other non-empty states the timeline is
    installed without a state change.
    """
    if not _matches(record, song_id):
        return _reject(record, "complete_loading", f"stale song id {song_id}")
    if timeline.is_loading:
        return _reject(record, "complete_loading", "placeholder timeline")

    state = PlaybackState.READY if record.state is PlaybackState.LOADING else record.state
    return Transition(
        True,
        record.evolve(state=state, timeline=timeline, loading_progress=1.0),
    )


def fail_loading(record: PlaybackRecord, song_id: SongIdentity, *, drop: bool = False) -> Transition:
    """Analysis failed for ``song_id``. The slot stays as it is, or empties when ``drop``."""
    if not _matches(record, song_id):
        return _reject(record, "fail_loading", f"stale song id {song_id}")
    if drop:
        return Transition(True, PlaybackRecord(revision=record.revision))
    return Transition(True, record)


def update_progress(record: PlaybackRecord, song_id: SongIdentity, progress: float) -> Transition:
    """Raise loading progress, clamped to [0, 1]. Progress never decreases."""
    if not _matches(record, song_id):
        return _reject(record, "update_progress", f"stale song id {song_id}")
    clamped = min(1.0, max(0.0, progress))
    if clamped <= record.loading_progress:
        return Transition(True, record)
    return Transition(True, record.evolve(loading_progress=clamped))


def remove(record: PlaybackRecord) -> Transition:
    """Eject the song. Legal from any non-EMPTY state."""
    if not record.state.has_disc:
        return _reject(record, "remove", "slot is empty")
    return Transition(True, PlaybackRecord(revision=record.revision))


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


def play(record: PlaybackRecord, now_tick: int) -> Transition:
    """Start or resume playback. Only from READY or STOPPED."""
    if not record.state.can_play:
        return _reject(record, "play", "not ready")
    paused = record.paused_at_tick or 0
    return Transition(
        True,
        record.evolve(
            state=PlaybackState.PLAYING,
            start_tick=now_tick - paused,
            paused_at_tick=None,
        ),
    )


def pause(record: PlaybackRecord, now_tick: int) -> Transition:
    """Freeze playback at the current offset. Only from PLAYING."""
    if not record.state.is_playing:
        return _reject(record, "pause", "not playing")
    return Transition(
        True,
        record.evolve(
            state=PlaybackState.STOPPED,
            paused_at_tick=tick_offset(record, now_tick),
            start_tick=None,
        ),
    )


def stop(record: PlaybackRecord, now_tick: int) -> Transition:
    """Stop playback and rewind to the start. Only from PLAYING."""
    if not record.state.is_playing:
        return _reject(record, "stop", "not playing")
    return Transition(
        True,
        record.evolve(state=PlaybackState.STOPPED, paused_at_tick=0, start_tick=None),
    )


def set_loop(record: PlaybackRecord, loop: bool) -> Transition:
    """Toggle looping. Legal in any non-EMPTY state."""
    if not record.state.has_disc:
        return _reject(record, "set_loop", "slot is empty")
    if record.loop == loop:
        return Transition(True, record)
    return Transition(True, record.evolve(loop=loop))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def tick_offset(record: PlaybackRecord, now_tick: int) -> int | None:
    """Current offset into the song in ticks.

    PLAYING: ticks since the start tick, wrapped modulo the duration when
    looping over a known timeline. STOPPED: the paused offset. Otherwise None.
    """
    if record.state is PlaybackState.PLAYING and record.start_tick is not None:
        offset = now_tick - record.start_tick
        duration = record.duration_ticks
        if record.loop and duration:
            return offset % duration
        return offset
    if record.state is PlaybackState.STOPPED:
        return record.paused_at_tick or 0
    return None
