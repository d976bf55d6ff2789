"""
Playback state for Melodify

The controller's position model plus the pure functions that resolve it
against the collection and compute the next/previous track.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Sequence

from melodify.domain.library.models import Playlist, Track


class RepeatMode(str, Enum):
    OFF = "OFF"  # stop at end
    ONE = "ONE"  # loop current track
    ALL = "ALL"  # loop entire playlist

    def cycle(self) -> "RepeatMode":
        """OFF -> ALL -> ONE -> OFF."""
        return {
            RepeatMode.OFF: RepeatMode.ALL,
            RepeatMode.ALL: RepeatMode.ONE,
            RepeatMode.ONE: RepeatMode.OFF,
        }[self]


class PlaybackStatus(str, Enum):
    IDLE = "idle"  # no active playlist, or it no longer resolves
    READY = "ready"  # current track resolved, paused/stopped
    PLAYING = "playing"


@dataclass(frozen=True)
class PlaybackPosition:
    """Read-only snapshot of the playback position.

    active_track_index is only meaningful when active_playlist_id resolves
    to a playlist with a track at that index; see resolve().
    """

    active_playlist_id: Optional[str] = None
    active_track_index: int = 0
    is_playing: bool = False
    volume: float = 0.8
    shuffle_enabled: bool = False
    repeat_mode: RepeatMode = RepeatMode.OFF
    progress_seconds: float = 0.0


class PlaylistLookup(Protocol):
    def find_playlist(self, playlist_id: Optional[str]) -> Optional[Playlist]: ...


def resolve_playlist(position: PlaybackPosition, collection: PlaylistLookup) -> Optional[Playlist]:
    if position.active_playlist_id is None:
        return None
    return collection.find_playlist(position.active_playlist_id)


def resolve(position: PlaybackPosition, collection: PlaylistLookup) -> Optional[Track]:
    """Current track for position, or None on any lookup miss."""
    playlist = resolve_playlist(position, collection)
    if playlist is None:
        return None
    if 0 <= position.active_track_index < len(playlist.tracks):
        return playlist.tracks[position.active_track_index]
    return None


def derive_status(position: PlaybackPosition, collection: PlaylistLookup) -> PlaybackStatus:
    if resolve(position, collection) is None:
        return PlaybackStatus.IDLE
    return PlaybackStatus.PLAYING if position.is_playing else PlaybackStatus.READY


def shuffle_order(count: int, start: int, rng: random.Random) -> list[int]:
    """Random permutation of range(count) that begins with start."""
    rest = [i for i in range(count) if i != start]
    rng.shuffle(rest)
    if 0 <= start < count:
        return [start] + rest
    return rest


def _step(
    current: int,
    count: int,
    step: int,
    repeat_mode: RepeatMode,
    order: Optional[Sequence[int]],
) -> Optional[int]:
    if count <= 0:
        return None
    if order is None or len(order) != count:
        order = range(count)
        pos = current
    else:
        try:
            pos = list(order).index(current)
        except ValueError:
            pos = -1 if step > 0 else count

    candidate = pos + step
    if 0 <= candidate < count:
        return order[candidate]
    if repeat_mode is RepeatMode.ALL:
        return order[0] if step > 0 else order[count - 1]
    return None


def next_index(
    current: int,
    count: int,
    repeat_mode: RepeatMode,
    order: Optional[Sequence[int]] = None,
) -> Optional[int]:
    """Index after current, wrapping under repeat ALL; None on overflow."""
    return _step(current, count, 1, repeat_mode, order)


def previous_index(
    current: int,
    count: int,
    repeat_mode: RepeatMode,
    order: Optional[Sequence[int]] = None,
) -> Optional[int]:
    """Index before current, wrapping under repeat ALL; None on underflow."""
    return _step(current, count, -1, repeat_mode, order)
