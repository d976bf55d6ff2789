"""
Playback session controller for Melodify

Owns the single playback position and reconciles three inputs into it:
user intents (play/next/previous/seek/...), transport telemetry
(progress/duration/ended/error) and collection mutations reported by the
session. All methods are synchronous and expected to run on one event loop.
"""

import random
from dataclasses import replace
from typing import Any, Optional, Protocol

from loguru import logger

from melodify.core.config import Config
from melodify.domain.library.metadata import round_seconds
from melodify.domain.library.models import Playlist, Track
from melodify.exceptions import InvalidSelectionError

from .scheduler import Scheduler, TimerHandle
from .state import (
    PlaybackPosition,
    PlaybackStatus,
    RepeatMode,
    derive_status,
    next_index,
    previous_index,
    resolve,
    resolve_playlist,
    shuffle_order,
)
from .transport import Transport

# Defaults; overridable through [playback] config
RETRY_DELAY_SECONDS = 1.5
MAX_CONSECUTIVE_ERRORS = 5
DURATION_TOLERANCE_SECONDS = 1.0


class Collection(Protocol):
    def find_playlist(self, playlist_id: Optional[str]) -> Optional[Playlist]: ...

    def update_track_duration(self, playlist_id: str, track_id: str, seconds: float) -> None: ...


class PlaybackController:
    """State machine deciding which track plays and how failures are recovered.

    Failure counter rules:
    - incremented by every transport error
    - reset by manual play/next/previous, by a breaker trip, when a retry
      finds nothing left to play, and when the transport reports progress
      on the current track
    - more than max_consecutive_errors in a row stops playback

    At most one delayed retry is pending at any time. Manual transitions and
    removal of the active playlist/track cancel it; when it does fire it
    re-resolves the playlist before acting.
    """

    def __init__(
        self,
        collection: Collection,
        transport: Transport,
        scheduler: Scheduler,
        *,
        volume: float = 0.8,
        repeat_mode: RepeatMode = RepeatMode.OFF,
        shuffle: bool = False,
        retry_delay: float = RETRY_DELAY_SECONDS,
        max_consecutive_errors: int = MAX_CONSECUTIVE_ERRORS,
        duration_tolerance: float = DURATION_TOLERANCE_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        self._collection = collection
        self._transport = transport
        self._scheduler = scheduler
        self._retry_delay = retry_delay
        self._max_consecutive_errors = max_consecutive_errors
        self._duration_tolerance = duration_tolerance
        self._rng = rng or random.Random()

        self._position = PlaybackPosition(
            volume=volume,
            repeat_mode=repeat_mode,
            shuffle_enabled=shuffle,
        )
        self._failure_count = 0
        self._pending_retry: Optional[TimerHandle] = None
        self._shuffle_order: Optional[list[int]] = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        collection: Collection,
        transport: Transport,
        scheduler: Scheduler,
    ) -> "PlaybackController":
        return cls(
            collection,
            transport,
            scheduler,
            volume=config.player.volume,
            repeat_mode=RepeatMode(config.playback.repeat_mode),
            shuffle=config.playback.shuffle,
            retry_delay=config.playback.retry_delay_seconds,
            max_consecutive_errors=config.playback.max_consecutive_errors,
            duration_tolerance=config.playback.duration_tolerance_seconds,
        )

    # Read side

    def snapshot(self) -> PlaybackPosition:
        return self._position

    @property
    def status(self) -> PlaybackStatus:
        return derive_status(self._position, self._collection)

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @scheduler.setter
    def scheduler(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler

    @property
    def has_pending_retry(self) -> bool:
        return self._pending_retry is not None

    def current_playlist(self) -> Optional[Playlist]:
        return resolve_playlist(self._position, self._collection)

    def current_track(self) -> Optional[Track]:
        return resolve(self._position, self._collection)

    # Internal helpers

    def _update(self, **changes: Any) -> None:
        self._position = replace(self._position, **changes)

    def _reset_failures(self) -> None:
        self._failure_count = 0

    def _cancel_retry(self) -> None:
        if self._pending_retry is not None:
            self._pending_retry.cancel()
            self._pending_retry = None
            logger.debug("Cancelled pending retry")

    def _order_for(self, playlist: Playlist) -> Optional[list[int]]:
        if not self._position.shuffle_enabled:
            return None
        count = len(playlist.tracks)
        if self._shuffle_order is None or len(self._shuffle_order) != count:
            self._shuffle_order = shuffle_order(
                count, self._position.active_track_index, self._rng
            )
        return self._shuffle_order

    def _load(self, track: Track, playing: bool = True) -> None:
        self._transport.set_locator(track.url)
        self._transport.set_playing(playing)

    def _stop(self) -> None:
        self._update(is_playing=False)
        self._transport.set_playing(False)

    def _move_to(self, playlist: Playlist, index: int) -> None:
        track = playlist.tracks[index]
        self._update(active_track_index=index, progress_seconds=0.0, is_playing=True)
        logger.debug(f"Now playing {playlist.id}[{index}]: {track.title}")
        if not track.url.strip():
            # Nothing the transport could load; silence the old track and
            # treat it as a transport error.
            self._transport.set_locator(None)
            self.on_error(f"track {track.id} has no locator")
            return
        self._load(track)

    def _advance(self) -> None:
        playlist = self.current_playlist()
        if playlist is None or not playlist.tracks:
            self._stop()
            return

        target = next_index(
            self._position.active_track_index,
            len(playlist.tracks),
            self._position.repeat_mode,
            self._order_for(playlist),
        )
        if target is None:
            logger.debug("End of playlist reached")
            self._stop()
            return
        self._move_to(playlist, target)

    # User intents

    def play(self, playlist_id: str, index: int) -> None:
        """Start playing track index of playlist_id.

        Raises:
            InvalidSelectionError: playlist/index does not resolve to a
                playable track; the position is left untouched
        """
        playlist = self._collection.find_playlist(playlist_id)
        if playlist is None:
            reason = "playlist not found"
        elif not 0 <= index < len(playlist.tracks):
            reason = "no track at index"
        elif not playlist.tracks[index].url.strip():
            reason = "track has no locator"
        else:
            reason = None

        if reason is not None:
            logger.warning(f"Invalid selection {playlist_id}[{index}]: {reason}")
            raise InvalidSelectionError(playlist_id, index, reason)

        self._reset_failures()
        self._cancel_retry()
        self._update(
            active_playlist_id=playlist_id,
            active_track_index=index,
            progress_seconds=0.0,
            is_playing=True,
        )
        self._shuffle_order = None
        self._order_for(playlist)

        track = playlist.tracks[index]
        logger.info(f"Play {playlist_id}[{index}]: {track.title}")
        self._load(track)

    def toggle_play_pause(self) -> None:
        if self.current_track() is None:
            logger.debug("toggle_play_pause ignored: no current track")
            return
        playing = not self._position.is_playing
        self._update(is_playing=playing)
        self._transport.set_playing(playing)

    def next(self) -> None:
        self._reset_failures()
        self._cancel_retry()
        self._advance()

    def previous(self) -> None:
        self._reset_failures()
        self._cancel_retry()

        playlist = self.current_playlist()
        if playlist is None or not playlist.tracks:
            self._stop()
            return

        target = previous_index(
            self._position.active_track_index,
            len(playlist.tracks),
            self._position.repeat_mode,
            self._order_for(playlist),
        )
        if target is None:
            # Near the start of a non-repeating list "previous" rewinds.
            self._update(progress_seconds=0.0)
            self._transport.seek_to(0)
            return
        self._move_to(playlist, target)

    def seek(self, seconds: float) -> None:
        if self.current_track() is None:
            logger.debug("seek ignored: no current track")
            return
        seconds = max(0.0, float(seconds))
        self._transport.seek_to(seconds)
        self._update(progress_seconds=seconds)

    def set_volume(self, volume: float) -> None:
        if not 0.0 <= volume <= 1.0:
            raise ValueError(f"Volume must be between 0 and 1, got {volume}")
        self._update(volume=float(volume))
        self._transport.set_volume(float(volume))

    def toggle_shuffle(self) -> None:
        self._update(shuffle_enabled=not self._position.shuffle_enabled)
        self._shuffle_order = None
        playlist = self.current_playlist()
        if playlist is not None:
            self._order_for(playlist)
        logger.debug(f"Shuffle {'on' if self._position.shuffle_enabled else 'off'}")

    def cycle_repeat_mode(self) -> None:
        self._update(repeat_mode=self._position.repeat_mode.cycle())
        logger.debug(f"Repeat mode {self._position.repeat_mode.value}")

    # Transport signals

    def on_progress(self, seconds: float) -> None:
        if self.current_track() is None:
            return
        self._update(progress_seconds=float(seconds))
        if seconds > 0 and self._failure_count:
            logger.debug("Transport is playing again, clearing failure streak")
            self._reset_failures()

    def on_duration(self, seconds: float) -> None:
        if seconds <= 0:
            return
        track = self.current_track()
        if track is None:
            return
        rounded = round_seconds(seconds)
        if rounded == track.duration:
            return
        if track.duration == 0 or abs(track.duration - seconds) > self._duration_tolerance:
            self._collection.update_track_duration(
                self._position.active_playlist_id, track.id, rounded
            )

    def on_ended(self) -> None:
        if self._position.repeat_mode is RepeatMode.ONE and self.current_track() is not None:
            self._update(progress_seconds=0.0, is_playing=True)
            self._transport.seek_to(0)
            self._transport.set_playing(True)
            return
        self.next()

    def on_error(self, error: Any) -> None:
        self._failure_count += 1
        logger.warning(f"Playback error ({self._failure_count} in a row): {error}")

        if self._failure_count > self._max_consecutive_errors:
            logger.error("Too many track errors. Playback stopped.")
            self._cancel_retry()
            self._stop()
            self._reset_failures()
            return

        self._cancel_retry()
        self._pending_retry = self._scheduler.call_later(self._retry_delay, self._retry)

    def _retry(self) -> None:
        self._pending_retry = None
        playlist = self.current_playlist()
        if playlist is None or not playlist.tracks:
            logger.debug("Retry found nothing to play")
            self._stop()
            self._reset_failures()
            return
        self._advance()

    # Collection mutations

    def handle_playlist_removed(self, playlist_id: str) -> None:
        if self._position.active_playlist_id != playlist_id:
            return
        self._cancel_retry()
        self._shuffle_order = None
        self._update(active_playlist_id=None, is_playing=False, progress_seconds=0.0)
        self._transport.set_locator(None)
        logger.info(f"Active playlist {playlist_id} removed, playback stopped")

    def handle_track_removed(self, playlist_id: str, track_id: str, index: Optional[int]) -> None:
        """React to a track leaving playlist_id; index is where it used to be."""
        if index is None or self._position.active_playlist_id != playlist_id:
            return

        self._shuffle_order = None
        active = self._position.active_track_index
        if index < active:
            # Keep pointing at the same track.
            self._update(active_track_index=active - 1)
            return
        if index > active:
            return

        self._cancel_retry()
        playlist = self.current_playlist()
        if playlist is None or not playlist.tracks:
            self.handle_playlist_removed(playlist_id)
            return

        new_index = min(index, len(playlist.tracks) - 1)
        self._update(active_track_index=new_index, progress_seconds=0.0)
        logger.info(f"Current track {track_id} removed, moved to index {new_index}")
        self._load(playlist.tracks[new_index], playing=self._position.is_playing)
