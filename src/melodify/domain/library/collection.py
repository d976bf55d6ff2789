"""
Playlist collection for Melodify.

An ordered list of playlists, each an ordered list of tracks. All mutations
go through CollectionStore; every successful mutation is persisted as one
JSON blob in the key/value table.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from melodify.core import database
from melodify.exceptions import PlaylistImportError, PlaylistNotFoundError

from .metadata import normalize_locator, read_file_metadata, round_seconds
from .models import Playlist, Track

STORAGE_KEY = "melodify_playlists"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def default_playlists() -> list[Playlist]:
    """Seed collection used when nothing has been stored yet."""
    now = _now_iso()
    return [
        Playlist(
            id="p1",
            name="Lo-Fi Chill Beats",
            description="Relaxing lo-fi hip hop to study and relax to.",
            tracks=(
                Track(
                    id="s1",
                    title="Midnight Coffee",
                    artist="Chill Master",
                    album="Night Owl",
                    url="https://www.soundhelix.com/examples/mp3/SoundHelix-Song-1.mp3",
                    duration=372,
                    date_added=now,
                ),
                Track(
                    id="s2",
                    title="Study Flow",
                    artist="Lofi Girl",
                    album="Concentration",
                    url="https://www.soundhelix.com/examples/mp3/SoundHelix-Song-2.mp3",
                    duration=425,
                    date_added=now,
                ),
            ),
        ),
        Playlist(
            id="p2",
            name="Synthwave Dreams",
            description="Electric atmosphere for long drives.",
            tracks=(
                Track(
                    id="s3",
                    title="Neon Skyline",
                    artist="Retro Runner",
                    album="Arcade City",
                    url="https://www.soundhelix.com/examples/mp3/SoundHelix-Song-3.mp3",
                    duration=312,
                    date_added=now,
                ),
            ),
        ),
    ]


def decode_playlists(raw: str) -> list[Playlist]:
    """Decode the stored JSON blob. Raises ValueError/KeyError on bad data."""
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("stored collection is not a list")
    return [Playlist.from_dict(item) for item in data]


def encode_playlists(playlists: list[Playlist]) -> str:
    return json.dumps([p.to_dict() for p in playlists], ensure_ascii=False)


class CollectionStore:
    """Owner of playlists and tracks.

    The playback controller only reads through find_playlist() and writes
    through update_track_duration(); everything else is for the view layer.
    """

    def __init__(self, playlists: Optional[list[Playlist]] = None, persist: bool = True):
        self._playlists: list[Playlist] = list(playlists) if playlists is not None else []
        self._persist = persist

    @classmethod
    def load(cls) -> "CollectionStore":
        """Read the collection from storage, falling back to the seed playlists."""
        database.init_database()
        raw = database.read_value(STORAGE_KEY)
        if raw is None:
            return cls(default_playlists())
        try:
            return cls(decode_playlists(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Stored collection is unreadable, using defaults: {e}")
            return cls(default_playlists())

    def save(self) -> None:
        if not self._persist:
            return
        database.write_value(STORAGE_KEY, encode_playlists(self._playlists))

    # Reads

    def playlists(self) -> list[Playlist]:
        return list(self._playlists)

    def find_playlist(self, playlist_id: Optional[str]) -> Optional[Playlist]:
        if playlist_id is None:
            return None
        for playlist in self._playlists:
            if playlist.id == playlist_id:
                return playlist
        return None

    def get_playlist(self, playlist_id: str) -> Playlist:
        """Like find_playlist() but raises PlaylistNotFoundError on a miss."""
        playlist = self.find_playlist(playlist_id)
        if playlist is None:
            raise PlaylistNotFoundError(playlist_id)
        return playlist

    # Mutations

    def _replace_playlist(self, updated: Playlist) -> None:
        self._playlists = [updated if p.id == updated.id else p for p in self._playlists]

    def add_playlist(self, name: str, description: str = "") -> Playlist:
        if not name.strip():
            raise ValueError("Playlist name must not be empty")
        playlist = Playlist(id=_new_id("p"), name=name.strip(), description=description)
        self._playlists.append(playlist)
        self.save()
        logger.info(f"Added playlist {playlist.id} ({playlist.name})")
        return playlist

    def remove_playlist(self, playlist_id: str) -> Playlist:
        playlist = self.get_playlist(playlist_id)
        self._playlists = [p for p in self._playlists if p.id != playlist_id]
        self.save()
        logger.info(f"Removed playlist {playlist_id}")
        return playlist

    def add_track(
        self,
        playlist_id: str,
        title: str,
        url: str,
        artist: str = "",
        album: str = "",
        duration: int = 0,
    ) -> Track:
        """Append a track. Raises ValueError for a missing title or bad locator."""
        if not title.strip() or not url.strip():
            raise ValueError("Please provide both URL and title")
        locator = normalize_locator(url)
        if locator is None:
            raise ValueError(f"Invalid URL format: {url}")

        playlist = self.get_playlist(playlist_id)
        track = Track(
            id=_new_id("s"),
            title=title.strip(),
            url=locator,
            artist=artist,
            album=album,
            duration=duration,
            date_added=_now_iso(),
        )
        self._replace_playlist(playlist._replace(tracks=playlist.tracks + (track,)))
        self.save()
        logger.info(f"Added track {track.id} to {playlist_id}: {track.title}")
        return track

    def add_local_file(self, playlist_id: str, path: str) -> Track:
        """Append a local audio file, taking title/artist/album/duration from its tags."""
        info = read_file_metadata(path)
        return self.add_track(
            playlist_id,
            title=info["title"],
            url=path,
            artist=info["artist"],
            album=info["album"],
            duration=info["duration"],
        )

    def remove_track(self, playlist_id: str, track_id: str) -> Optional[int]:
        """Remove a track and return the index it occupied (None if absent)."""
        playlist = self.get_playlist(playlist_id)
        index = playlist.find_track(track_id)
        if index is None:
            return None
        tracks = playlist.tracks[:index] + playlist.tracks[index + 1:]
        self._replace_playlist(playlist._replace(tracks=tracks))
        self.save()
        logger.info(f"Removed track {track_id} from {playlist_id} (index {index})")
        return index

    def move_track(self, from_playlist_id: str, track_id: str, to_playlist_id: str) -> Optional[int]:
        """Move a track to the end of another playlist.

        Returns the index the track had in the source playlist, or None when
        nothing moved (same playlist or unknown track).
        """
        if from_playlist_id == to_playlist_id:
            return None
        source = self.get_playlist(from_playlist_id)
        target = self.get_playlist(to_playlist_id)
        index = source.find_track(track_id)
        if index is None:
            return None

        track = source.tracks[index]
        self._replace_playlist(
            source._replace(tracks=source.tracks[:index] + source.tracks[index + 1:])
        )
        self._replace_playlist(target._replace(tracks=target.tracks + (track,)))
        self.save()
        logger.info(f"Moved track {track_id} from {from_playlist_id} to {to_playlist_id}")
        return index

    def update_track_duration(self, playlist_id: str, track_id: str, seconds: float) -> None:
        """Store a measured duration (rounded to whole seconds)."""
        playlist = self.find_playlist(playlist_id)
        if playlist is None:
            logger.debug(f"Duration update for missing playlist {playlist_id}")
            return
        index = playlist.find_track(track_id)
        if index is None:
            logger.debug(f"Duration update for missing track {track_id}")
            return

        tracks = list(playlist.tracks)
        tracks[index] = tracks[index]._replace(duration=round_seconds(seconds))
        self._replace_playlist(playlist._replace(tracks=tuple(tracks)))
        self.save()
        logger.debug(f"Track {track_id} duration -> {tracks[index].duration}s")

    # Import / export

    def export_playlist(self, playlist_id: str) -> str:
        return json.dumps(self.get_playlist(playlist_id).to_dict(), ensure_ascii=False, indent=2)

    def import_playlist(self, text: str) -> Playlist:
        """Add a playlist from exported JSON under a fresh id."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PlaylistImportError(f"Invalid playlist file: {e}") from e

        if not isinstance(data, dict) or not data.get("name") or not isinstance(data.get("songs"), list):
            raise PlaylistImportError("Invalid playlist file: a name and a list of songs are required")

        try:
            playlist = Playlist.from_dict({**data, "id": _new_id("p")})
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PlaylistImportError(f"Invalid playlist file: {e}") from e

        self._playlists.append(playlist)
        self.save()
        logger.info(f"Imported playlist {playlist.id} ({playlist.name}, {playlist.track_count} tracks)")
        return playlist
