"""
engine/tracker.py — Authoritative playback tracker.

Owns the playback clock for every slot. Commands arrive on the tick
thread, are applied through the pure state machine against the SlotStore,
and every accepted change is published as a PlaybackSnapshot for mirrors.

Analysis results arrive on worker threads but are only installed from
process_completed(), which the host calls once per tick. A result whose
song id no longer owns its slot is stale and discarded.

Usage:
    tracker = PlaybackTracker(SlotStore(), engine, publish=transport.send)
    song_id = tracker.insert(slot, now_tick, samples, source_key="song.ogg")
    ...
    tracker.process_completed(now_tick)          # every tick
    level = tracker.intensity(slot, FrequencyChannel.BASS, now_tick)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from core.analysis.timeline import FrequencyTimeline
from core.analysis.types import FrequencyChannel, SampleBuffer
from core.playback import machine
from core.playback.machine import Transition
from core.playback.messages import PlaybackSnapshot
from core.playback.types import PlaybackRecord, PlaybackState, SlotKey, SongIdentity
from engine.analysis_engine import AnalysisEngine, AnalysisResult, AnalysisTask, SampleLoader
from engine.store import SlotStore, Updater
from infrastructure.metrics import record_stale_result, record_transition

logger = logging.getLogger(__name__)

Publisher = Callable[[PlaybackSnapshot], None]


class SlotTracker:
    """Shared result handling and queries for the tracker and the mirror.

    Args:
        store: Slot store owned by this tracker.
        engine: Analysis engine that computes timelines.
        drop_on_failure: Empty the slot when analysis fails instead of
            leaving it LOADING.
    """

    def __init__(
        self,
        store: SlotStore,
        engine: AnalysisEngine,
        *,
        drop_on_failure: bool = False,
    ) -> None:
        self._store = store
        self._engine = engine
        self._drop_on_failure = drop_on_failure
        self._pending: list[AnalysisTask] = []
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _apply(self, slot: SlotKey, command: str, fn: Updater) -> Transition:
        transition = self._store.update(slot, fn)
        record_transition(command, transition.accepted)
        if transition.accepted:
            logger.debug(
                "Slot %s: %s -> %s (rev %d)",
                slot,
                command,
                transition.record.state.value,
                transition.record.revision,
            )
        return transition

    def _start_analysis(
        self,
        slot: SlotKey,
        song_id: SongIdentity,
        samples: SampleBuffer | SampleLoader,
        source_key: str | None,
    ) -> AnalysisTask:
        def on_progress(fraction: float) -> None:
            self._store.update(slot, lambda r: machine.update_progress(r, song_id, fraction))

        task = self._engine.submit(
            slot, song_id, samples, source_key=source_key, on_progress=on_progress
        )
        with self._pending_lock:
            self._pending.append(task)
        return task

    def _on_transition(self, slot: SlotKey, transition: Transition) -> None:
        """Hook run after every accepted change. No-op by default."""

    def _on_loaded(self, slot: SlotKey, record: PlaybackRecord, now_tick: int | None) -> None:
        """Hook run after a timeline is installed. No-op by default."""

    # ------------------------------------------------------------------
    # Analysis results
    # ------------------------------------------------------------------

    def deliver(self, result: AnalysisResult, now_tick: int | None = None) -> bool:
        """Install a finished analysis if its song still owns the slot.

        Returns:
            True if the result was applied, False if it was stale.
        """
        slot, song_id = result.slot, result.song_id
        if result.timeline is not None:
            timeline = result.timeline
            transition = self._apply(
                slot,
                "complete_loading",
                lambda r: machine.complete_loading(r, song_id, timeline),
            )
        else:
            transition = self._apply(
                slot,
                "fail_loading",
                lambda r: machine.fail_loading(r, song_id, drop=self._drop_on_failure),
            )

        if not transition.accepted:
            logger.debug("Discarding stale analysis for slot %s song %d", slot, song_id)
            record_stale_result()
            return False

        if result.timeline is None:
            logger.warning(
                "Analysis failed for slot %s song %d: %s", slot, song_id, result.error
            )
        self._on_transition(slot, transition)
        if result.timeline is not None:
            self._on_loaded(slot, transition.record, now_tick)
        return True

    def process_completed(self, now_tick: int | None = None) -> int:
        """Install every finished analysis. Call from the tick thread.

        Returns:
            Number of results that were applied (stale ones excluded).
        """
        with self._pending_lock:
            finished = [task for task in self._pending if task.done()]
            self._pending = [task for task in self._pending if task not in finished]
        applied = 0
        for task in finished:
            if self.deliver(task.result(), now_tick):
                applied += 1
        return applied

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def record(self, slot: SlotKey) -> PlaybackRecord:
        return self._store.get(slot)

    def state(self, slot: SlotKey) -> PlaybackState:
        return self._store.get(slot).state

    def timeline(self, slot: SlotKey) -> FrequencyTimeline | None:
        return self._store.get(slot).timeline

    def tick_offset(self, slot: SlotKey, now_tick: int) -> int | None:
        return machine.tick_offset(self._store.get(slot), now_tick)

    def intensity(self, slot: SlotKey, channel: FrequencyChannel, now_tick: int) -> float:
        """Intensity of ``channel`` for the song playing in ``slot``; 0.0 unless PLAYING."""
        record = self._store.get(slot)
        if not record.state.is_playing or record.timeline is None:
            return 0.0
        offset = machine.tick_offset(record, now_tick)
        if offset is None:
            return 0.0
        return record.timeline.intensity(channel, offset)


class PlaybackTracker(SlotTracker):
    """Authoritative tracker: accepts commands and publishes snapshots.

    Args:
        store: Slot store owned by this tracker.
        engine: Analysis engine that computes timelines.
        publish: Called with a PlaybackSnapshot after every accepted change.
        drop_on_failure: Empty the slot when analysis fails.
    """

    def __init__(
        self,
        store: SlotStore,
        engine: AnalysisEngine,
        publish: Publisher | None = None,
        *,
        drop_on_failure: bool = False,
    ) -> None:
        super().__init__(store, engine, drop_on_failure=drop_on_failure)
        self._publish = publish

    def _on_transition(self, slot: SlotKey, transition: Transition) -> None:
        if self._publish is not None:
            self._publish(PlaybackSnapshot.from_record(slot, transition.record))

    def _on_loaded(self, slot: SlotKey, record: PlaybackRecord, now_tick: int | None) -> None:
        if record.autoplay and now_tick is not None:
            self.play(slot, now_tick)

    def _command(self, slot: SlotKey, command: str, fn: Updater) -> bool:
        transition = self._apply(slot, command, fn)
        if transition.accepted:
            self._on_transition(slot, transition)
        return transition.accepted

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def insert(
        self,
        slot: SlotKey,
        now_tick: int,
        samples: SampleBuffer | SampleLoader,
        *,
        source_key: str | None = None,
        title: str | None = None,
        loop: bool = False,
        autoplay: bool = False,
    ) -> SongIdentity:
        """Insert a song and start analyzing it. Supersedes any song in the slot.

        Returns:
            The new song's identity.
        """
        song_id = self._store.mint_song_id(slot, now_tick)
        transition = self._apply(
            slot,
            "insert",
            lambda r: machine.insert(
                r, song_id, source_key=source_key, title=title, loop=loop, autoplay=autoplay
            ),
        )
        self._on_transition(slot, transition)
        self._start_analysis(slot, song_id, samples, source_key)
        logger.info("Inserted song %d into slot %s (source=%r)", song_id, slot, source_key)
        return song_id

    def play(self, slot: SlotKey, now_tick: int) -> bool:
        return self._command(slot, "play", lambda r: machine.play(r, now_tick))

    def pause(self, slot: SlotKey, now_tick: int) -> bool:
        return self._command(slot, "pause", lambda r: machine.pause(r, now_tick))

    def stop(self, slot: SlotKey, now_tick: int) -> bool:
        return self._command(slot, "stop", lambda r: machine.stop(r, now_tick))

    def remove(self, slot: SlotKey) -> bool:
        return self._command(slot, "remove", machine.remove)

    def set_loop(self, slot: SlotKey, loop: bool) -> bool:
        return self._command(slot, "set_loop", lambda r: machine.set_loop(r, loop))

    def update_progress(self, slot: SlotKey, song_id: SongIdentity, progress: float) -> bool:
        """Report loading progress for ``song_id``. Not published."""
        transition = self._store.update(
            slot, lambda r: machine.update_progress(r, song_id, progress)
        )
        return transition.accepted
