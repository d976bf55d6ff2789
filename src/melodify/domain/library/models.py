"""
Music library domain models.

Contains data structures for representing tracks and playlists.
"""

from typing import Any, NamedTuple


class Track(NamedTuple):
    """Represents a playable track.

    Immutable apart from duration, which the collection rewrites (via
    ``_replace``) once the transport has measured it.
    """

    id: str
    title: str
    url: str  # Playable locator (http(s) URL, file URL or local path)
    artist: str = ""
    album: str = ""
    cover_url: str = ""
    duration: int = 0  # in seconds, 0 = unknown / not yet measured
    date_added: str = ""  # ISO-8601

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "coverUrl": self.cover_url,
            "url": self.url,
            "duration": self.duration,
            "dateAdded": self.date_added,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            url=str(data.get("url") or ""),
            artist=str(data.get("artist") or ""),
            album=str(data.get("album") or ""),
            cover_url=str(data.get("coverUrl") or ""),
            duration=int(data.get("duration") or 0),
            date_added=str(data.get("dateAdded") or ""),
        )


class Playlist(NamedTuple):
    """An ordered list of tracks. Track order is playback order."""

    id: str
    name: str
    description: str = ""
    cover_url: str = ""
    tracks: tuple[Track, ...] = ()

    @property
    def track_count(self) -> int:
        return len(self.tracks)

    def find_track(self, track_id: str) -> int | None:
        """Return the index of track_id, or None if it is not in the playlist."""
        for i, track in enumerate(self.tracks):
            if track.id == track_id:
                return i
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "coverUrl": self.cover_url,
            "songs": [track.to_dict() for track in self.tracks],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Playlist":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            description=str(data.get("description") or ""),
            cover_url=str(data.get("coverUrl") or ""),
            tracks=tuple(Track.from_dict(song) for song in data.get("songs", [])),
        )
