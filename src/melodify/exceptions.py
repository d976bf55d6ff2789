"""Melodify exceptions for error handling."""


class MelodifyError(Exception):
    """Base exception for Melodify operations."""

    pass


class InvalidSelectionError(MelodifyError):
    """Raised when a playlist/index does not resolve to a playable track."""

    def __init__(self, playlist_id: str, index: int, reason: str):
        self.playlist_id = playlist_id
        self.index = index
        self.reason = reason
        super().__init__(f"Invalid selection {playlist_id}[{index}]: {reason}")


class PlaylistNotFoundError(MelodifyError):
    """Raised when a collection mutation names a playlist that does not exist."""

    def __init__(self, playlist_id: str):
        self.playlist_id = playlist_id
        super().__init__(f"Playlist not found: {playlist_id}")


class PlaylistImportError(MelodifyError):
    """Raised when an imported playlist file is malformed."""

    pass
