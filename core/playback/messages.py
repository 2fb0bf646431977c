"""
Pydantic schema for playback transition messages.

The authoritative tracker publishes one PlaybackSnapshot after every
accepted transition. Snapshots carry the full target record rather than a
delta, so applying the same snapshot twice, or an older one after a newer
one, is harmless.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.playback.types import PlaybackRecord, PlaybackState, SlotKey


class PlaybackSnapshot(BaseModel):
    """Full playback state of one slot at one revision."""

    model_config = ConfigDict(frozen=True)

    slot: SlotKey = Field(..., description="Fixture position (x, y, z).")
    state: PlaybackState = Field(..., description="Target playback state.")
    song_id: int | None = Field(
        default=None, description="Song identity; a new value means a new song."
    )
    start_tick: int | None = Field(
        default=None, description="Host tick of song offset 0 while PLAYING."
    )
    paused_at_tick: int | None = Field(
        default=None, ge=0, description="Paused song offset while STOPPED."
    )
    loop: bool = Field(default=False, description="Wrap the offset at the end of the song.")
    source_key: str | None = Field(
        default=None, description="Audio source the receiver loads and analyzes locally."
    )
    title: str | None = Field(default=None, description="Display title.")
    revision: int = Field(..., ge=0, description="Monotonic revision; older snapshots are ignored.")

    @model_validator(mode="after")
    def song_id_required_unless_empty(self) -> PlaybackSnapshot:
        """A non-EMPTY snapshot must name its song, whether or not the field was sent."""
        if self.song_id is None and self.state is not PlaybackState.EMPTY:
            raise ValueError("song_id is required for non-empty states")
        return self

    @classmethod
    def from_record(cls, slot: SlotKey, record: PlaybackRecord) -> PlaybackSnapshot:
        """Snapshot ``record`` as it stands for ``slot``."""
        return cls(
            slot=slot,
            state=record.state,
            song_id=record.song_id,
            start_tick=record.start_tick,
            paused_at_tick=record.paused_at_tick,
            loop=record.loop,
            source_key=record.source_key,
            title=record.title,
            revision=record.revision,
        )
