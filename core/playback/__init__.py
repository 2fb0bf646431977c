"""
core/playback — Playback identity, records and the pure state machine.

Nothing here holds state between calls; the engine layer owns the slot
store and applies these transitions under its lock.

Public API:
    Types:     PlaybackState, PlaybackRecord, SlotKey, SongIdentity, mint_song_id
    Machine:   Transition, insert, complete_loading, fail_loading,
               update_progress, remove, play, pause, stop, set_loop, tick_offset
    Messages:  PlaybackSnapshot
"""

from core.playback.machine import (
    Transition,
    complete_loading,
    fail_loading,
    insert,
    pause,
    play,
    remove,
    set_loop,
    stop,
    tick_offset,
    update_progress,
)
from core.playback.messages import PlaybackSnapshot
from core.playback.types import (
    PlaybackRecord,
    PlaybackState,
    SlotKey,
    SongIdentity,
    mint_song_id,
)

__all__ = [
    "PlaybackRecord",
    "PlaybackSnapshot",
    "PlaybackState",
    "SlotKey",
    "SongIdentity",
    "Transition",
    "complete_loading",
    "fail_loading",
    "insert",
    "mint_song_id",
    "pause",
    "play",
    "remove",
    "set_loop",
    "stop",
    "tick_offset",
    "update_progress",
]
