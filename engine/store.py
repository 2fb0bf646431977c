"""
engine/store.py — Thread-safe slot → PlaybackRecord map.

Records are frozen; the store swaps whole records under one lock, so a
reader on any thread sees either the old record or the new one, never a
mix. Every accepted change is stamped with a store-wide revision that
only ever increases, which the mirror uses to order snapshots.

The store also remembers the last song id minted for each slot, including
slots that have since been emptied, so an insert after a remove never
reuses the identity of a song whose analysis may still be in flight.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from core.playback.machine import Transition
from core.playback.types import PlaybackRecord, SlotKey, SongIdentity, mint_song_id

Updater = Callable[[PlaybackRecord], Transition]


class SlotStore:
    """Mutex-guarded map of slot records. One instance per process, injected."""

    def __init__(self) -> None:
        self._records: dict[SlotKey, PlaybackRecord] = {}
        self._last_minted: dict[SlotKey, SongIdentity] = {}
        self._revision = 0
        self._lock = threading.Lock()

    def get(self, slot: SlotKey) -> PlaybackRecord:
        """Current record for ``slot``; PlaybackRecord.EMPTY if unknown."""
        with self._lock:
            return self._records.get(slot, PlaybackRecord.EMPTY)

    def update(self, slot: SlotKey, fn: Updater) -> Transition:
        """Apply ``fn`` to the current record and install the result atomically.

        ``fn`` runs under the store lock and must not block. Accepted
        transitions get the next revision; EMPTY results drop the slot.

        Returns:
            The transition, with the record as stored.
        """
        with self._lock:
            current = self._records.get(slot, PlaybackRecord.EMPTY)
            transition = fn(current)
            if not transition.accepted or transition.record is current:
                return transition

            self._revision += 1
            record = transition.record.evolve(revision=self._revision)
            if record.state.has_disc:
                self._records[slot] = record
            else:
                self._records.pop(slot, None)
            return Transition(True, record)

    def mint_song_id(self, slot: SlotKey, start_tick: int) -> SongIdentity:
        """Mint a song id for ``slot`` that no earlier insert there has used."""
        with self._lock:
            held = self._records.get(slot, PlaybackRecord.EMPTY).song_id
            seen = [sid for sid in (self._last_minted.get(slot), held) if sid is not None]
            song_id = mint_song_id(slot, start_tick, max(seen, default=None))
            self._last_minted[slot] = song_id
            return song_id

    def slots(self) -> list[SlotKey]:
        """Slots that currently hold a song."""
        with self._lock:
            return list(self._records)

    @property
    def revision(self) -> int:
        with self._lock:
            return self._revision

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
