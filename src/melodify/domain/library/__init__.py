"""Library domain - playlists, tracks and their persistence.

This domain handles:
- Track and playlist data models
- Metadata extraction from local audio files
- The playlist collection (mutations, persistence, import/export)
"""

from .collection import CollectionStore, default_playlists
from .metadata import format_duration, get_display_name, normalize_locator, read_file_metadata
from .models import Playlist, Track

__all__ = [
    "CollectionStore",
    "Playlist",
    "Track",
    "default_playlists",
    "format_duration",
    "get_display_name",
    "normalize_locator",
    "read_file_metadata",
]
