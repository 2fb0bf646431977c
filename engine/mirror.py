"""
engine/mirror.py — Presentation-side copy of playback state.

The mirror never decides transport state; it follows PlaybackSnapshots
published by the authoritative tracker. It does compute its own timelines:
when a snapshot names a song it has not seen, it loads the audio through
the injected audio source and runs analysis locally.

Ordering:
    Each slot keeps the highest snapshot revision applied so far. Snapshots
    at or below that watermark are duplicates or arrived out of order and
    are ignored, which makes apply() idempotent.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from core.analysis.types import SampleBuffer
from core.playback import machine
from core.playback.machine import Transition
from core.playback.messages import PlaybackSnapshot
from core.playback.types import PlaybackRecord, PlaybackState, SlotKey
from engine.analysis_engine import AnalysisEngine
from engine.store import SlotStore
from engine.tracker import SlotTracker

logger = logging.getLogger(__name__)

AudioSource = Callable[[str | None], SampleBuffer | None]
"""Loads the samples for a source key; None when unavailable."""


def _follow(record: PlaybackRecord, snapshot: PlaybackSnapshot) -> Transition:
    """Overwrite transport fields from ``snapshot``, keeping the local timeline."""
    return Transition(
        True,
        record.evolve(
            state=snapshot.state,
            start_tick=snapshot.start_tick,
            paused_at_tick=snapshot.paused_at_tick,
            loop=snapshot.loop,
            title=snapshot.title,
            source_key=snapshot.source_key,
        ),
    )


class PlaybackMirror(SlotTracker):
    """Follows an authoritative tracker through snapshots.

    Args:
        store: Slot store owned by this mirror (never shared with the tracker).
        engine: Analysis engine for local timeline computation.
        audio_source: Loads samples for a source key on the worker thread.
        drop_on_failure: Empty the slot when local analysis fails.
    """

    def __init__(
        self,
        store: SlotStore,
        engine: AnalysisEngine,
        audio_source: AudioSource,
        *,
        drop_on_failure: bool = False,
    ) -> None:
        super().__init__(store, engine, drop_on_failure=drop_on_failure)
        self._audio_source = audio_source
        self._watermarks: dict[SlotKey, int] = {}
        self._watermark_lock = threading.Lock()

    def _advance_watermark(self, slot: SlotKey, revision: int) -> bool:
        with self._watermark_lock:
            if revision <= self._watermarks.get(slot, -1):
                return False
            self._watermarks[slot] = revision
            return True

    def apply(self, snapshot: PlaybackSnapshot) -> bool:
        """Apply one snapshot from the authoritative tracker.

        Returns:
            True if the snapshot changed local state, False if it was ignored.
        """
        slot = snapshot.slot
        if snapshot.song_id is None and snapshot.state is not PlaybackState.EMPTY:
            logger.warning(
                "Ignoring %s snapshot rev %d for slot %s without a song id",
                snapshot.state.value,
                snapshot.revision,
                slot,
            )
            return False
        if not self._advance_watermark(slot, snapshot.revision):
            logger.debug(
                "Ignoring snapshot rev %d for slot %s (already applied)", snapshot.revision, slot
            )
            return False

        if snapshot.state is PlaybackState.EMPTY:
            self._apply(slot, "remove", machine.remove)
            return True

        song_id = snapshot.song_id
        assert song_id is not None  # checked above
        current = self._store.get(slot)

        if current.song_id != song_id or not current.state.has_disc:

            def _recreate(r: PlaybackRecord) -> Transition:
                inserted = machine.insert(
                    r,
                    song_id,
                    source_key=snapshot.source_key,
                    title=snapshot.title,
                    loop=snapshot.loop,
                )
                return _follow(inserted.record, snapshot)

            self._apply(slot, "insert", _recreate)
            source_key = snapshot.source_key
            self._start_analysis(
                slot, song_id, lambda: self._audio_source(source_key), source_key
            )
            logger.info("Mirroring song %d in slot %s (source=%r)", song_id, slot, source_key)
            return True

        self._apply(slot, "follow", lambda r: _follow(r, snapshot))
        return True

    def watermark(self, slot: SlotKey) -> int | None:
        """Highest snapshot revision applied for ``slot``."""
        with self._watermark_lock:
            return self._watermarks.get(slot)
