"""
Track metadata helpers.

Reads tags from local audio files with Mutagen, normalises user-supplied
locators and formats track information for display.
"""

from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError

from .models import Track

PLAYABLE_SCHEMES = ("http", "https", "file")


def get_tag_value(audio_file: Any, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
        except (KeyError, ValueError):
            # Vorbis raises ValueError for non-existent keys
            continue
        if value:
            if isinstance(value, list):
                return str(value[0])
            return str(value)
    return None


def split_artist_title(stem: str) -> tuple[str, str]:
    """Parse an "Artist - Title" filename stem into (artist, title)."""
    if " - " in stem:
        artist, title = stem.split(" - ", 1)
        return artist.strip(), title.strip()
    return "", stem


def read_file_metadata(local_path: str) -> dict[str, Any]:
    """Read title/artist/album/duration from an audio file.

    Falls back to the filename when the file has no readable tags.
    Duration is rounded to whole seconds; 0 when unknown.
    """
    path = Path(local_path)
    artist, title = split_artist_title(path.stem)
    info: dict[str, Any] = {"title": title, "artist": artist, "album": "", "duration": 0}

    try:
        audio_file = MutagenFile(local_path)
    except (MutagenError, OSError) as e:
        logger.warning(f"Could not read metadata from {local_path}: {e}")
        return info

    if audio_file is None:
        return info

    # ID3 (MP3), MP4, and Vorbis/Opus tags
    info["title"] = get_tag_value(audio_file, ["TIT2", "\xa9nam", "TITLE", "title"]) or title
    info["artist"] = get_tag_value(audio_file, ["TPE1", "\xa9ART", "ARTIST", "artist"]) or artist
    info["album"] = get_tag_value(audio_file, ["TALB", "\xa9alb", "ALBUM", "album"]) or ""

    length = getattr(getattr(audio_file, "info", None), "length", None)
    if length:
        info["duration"] = round_seconds(length)

    return info


def round_seconds(seconds: float) -> int:
    """Round half up to whole seconds (2.5 -> 3)."""
    return int(seconds + 0.5) if seconds >= 0 else -int(-seconds + 0.5)


def normalize_locator(raw: str) -> Optional[str]:
    """Normalise a user-supplied locator, or return None if it is not playable.

    - youtu.be short links are expanded to youtube.com/watch URLs
    - existing local files are accepted as absolute paths
    - scheme-less input gets https:// prepended
    - only http, https and file schemes are accepted
    """
    normalized = raw.strip()
    if not normalized:
        return None

    if "youtu.be/" in normalized:
        video_id = normalized.split("youtu.be/", 1)[1].split("?")[0].split("&")[0]
        if video_id:
            normalized = f"https://www.youtube.com/watch?v={video_id}"

    local = Path(normalized).expanduser()
    if "://" not in normalized and local.exists():
        return str(local.resolve())

    parts = urlsplit(normalized)
    if not parts.scheme:
        parts = urlsplit(f"https://{normalized}")
        normalized = f"https://{normalized}"

    if parts.scheme not in PLAYABLE_SCHEMES:
        return None
    if parts.scheme != "file" and (not parts.netloc or " " in parts.netloc):
        return None
    return normalized


def format_duration(seconds: float) -> str:
    """Format seconds as M:SS, "-:--" when unknown."""
    if not seconds or seconds < 0:
        return "-:--"
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"


def get_display_name(track: Track) -> str:
    """Get a display-friendly name for the track."""
    if track.artist and track.title:
        return f"{track.artist} - {track.title}"
    return track.title or track.url or "<Unknown Track>"
