"""Tests for core/playback/messages.py — PlaybackSnapshot wire schema."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.playback import machine
from core.playback.messages import PlaybackSnapshot
from core.playback.types import PlaybackRecord, PlaybackState

SLOT = (4, 70, -12)


class TestPlaybackSnapshot:
    def test_from_record(self) -> None:
        record = machine.insert(PlaybackRecord.EMPTY, 77, source_key="x.ogg", title="X").record
        record = record.evolve(revision=9)
        snap = PlaybackSnapshot.from_record(SLOT, record)
        assert snap.slot == SLOT
        assert snap.state is PlaybackState.LOADING
        assert snap.song_id == 77
        assert snap.source_key == "x.ogg"
        assert snap.title == "X"
        assert snap.revision == 9

    def test_json_round_trip_preserves_types(self) -> None:
        snap = PlaybackSnapshot(
            slot=SLOT,
            state=PlaybackState.PLAYING,
            song_id=5,
            start_tick=1050,
            loop=True,
            revision=3,
        )
        restored = PlaybackSnapshot.model_validate_json(snap.model_dump_json())
        assert restored == snap
        assert isinstance(restored.slot, tuple)
        assert restored.state is PlaybackState.PLAYING

    def test_state_serialized_by_value(self) -> None:
        snap = PlaybackSnapshot(slot=SLOT, state=PlaybackState.STOPPED, song_id=1, revision=0)
        assert '"state":"stopped"' in snap.model_dump_json()

    def test_frozen(self) -> None:
        snap = PlaybackSnapshot(slot=SLOT, state=PlaybackState.EMPTY, revision=1)
        with pytest.raises(ValidationError):
            snap.revision = 2  # type: ignore[misc]

    def test_empty_needs_no_song(self) -> None:
        snap = PlaybackSnapshot(slot=SLOT, state=PlaybackState.EMPTY, song_id=None, revision=1)
        assert snap.song_id is None

    def test_non_empty_requires_song(self) -> None:
        with pytest.raises(ValidationError, match="song_id is required"):
            PlaybackSnapshot(slot=SLOT, state=PlaybackState.READY, song_id=None, revision=1)

    def test_omitted_song_rejected(self) -> None:
        with pytest.raises(ValidationError, match="song_id is required"):
            PlaybackSnapshot(slot=SLOT, state=PlaybackState.PLAYING, revision=3)

    def test_omitted_song_rejected_from_json(self) -> None:
        with pytest.raises(ValidationError, match="song_id is required"):
            PlaybackSnapshot.model_validate_json(
                '{"slot": [10, 64, -3], "state": "playing", "revision": 4}'
            )

    def test_negative_revision_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PlaybackSnapshot(slot=SLOT, state=PlaybackState.EMPTY, revision=-1)

    def test_slot_must_have_three_coordinates(self) -> None:
        with pytest.raises(ValidationError):
            PlaybackSnapshot(slot=(1, 2), state=PlaybackState.EMPTY, revision=0)  # type: ignore[arg-type]
