"""Tests for locator normalisation, tag reading and display helpers."""

from unittest.mock import Mock, patch

import pytest

from melodify.domain.library.metadata import (
    format_duration,
    get_display_name,
    get_tag_value,
    normalize_locator,
    read_file_metadata,
    round_seconds,
    split_artist_title,
)
from melodify.domain.library.models import Playlist, Track


class FakeAudio(dict):
    """dict-backed stand-in for a mutagen FileType."""

    def __init__(self, tags, length=None):
        super().__init__(tags)
        self.info = Mock(length=length)


class TestNormalizeLocator:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("https://example.com/a.mp3", "https://example.com/a.mp3"),
            ("http://example.com/a.mp3", "http://example.com/a.mp3"),
            ("  example.com/a.mp3  ", "https://example.com/a.mp3"),
            ("https://youtu.be/abc123?t=5", "https://www.youtube.com/watch?v=abc123"),
            ("file:///music/a.flac", "file:///music/a.flac"),
        ],
    )
    def test_accepts(self, raw, expected):
        assert normalize_locator(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["", "   ", "ftp://example.com/a.mp3", "javascript:alert(1)", "not a url"],
    )
    def test_rejects(self, raw):
        assert normalize_locator(raw) is None

    def test_existing_local_file(self, tmp_path):
        audio = tmp_path / "a.mp3"
        audio.write_bytes(b"\x00")
        assert normalize_locator(str(audio)) == str(audio.resolve())


class TestRoundSeconds:
    @pytest.mark.parametrize(
        "seconds,expected",
        [(2.5, 3), (2.4, 2), (183.5, 184), (0.0, 0), (-2.5, -3)],
    )
    def test_rounds_half_up(self, seconds, expected):
        assert round_seconds(seconds) == expected


class TestFormatting:
    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "-:--"), (-1, "-:--"), (5, "0:05"), (65, "1:05"), (372, "6:12")],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_display_name_with_artist(self):
        track = Track(id="t", title="Song", url="https://example.com", artist="Band")
        assert get_display_name(track) == "Band - Song"

    def test_display_name_title_only(self):
        track = Track(id="t", title="Song", url="https://example.com")
        assert get_display_name(track) == "Song"

    def test_split_artist_title(self):
        assert split_artist_title("Band - Song - Remix") == ("Band", "Song - Remix")
        assert split_artist_title("Song") == ("", "Song")


class TestReadFileMetadata:
    def test_reads_tags(self):
        audio = FakeAudio({"TIT2": ["Song"], "TPE1": ["Band"], "TALB": ["LP"]}, length=215.6)

        with patch("melodify.domain.library.metadata.MutagenFile", return_value=audio):
            info = read_file_metadata("/music/whatever.mp3")

        assert info == {"title": "Song", "artist": "Band", "album": "LP", "duration": 216}

    def test_vorbis_style_tags(self):
        audio = FakeAudio({"title": ["Song"], "artist": ["Band"]}, length=None)

        with patch("melodify.domain.library.metadata.MutagenFile", return_value=audio):
            info = read_file_metadata("/music/whatever.ogg")

        assert info["title"] == "Song"
        assert info["artist"] == "Band"
        assert info["duration"] == 0

    def test_unrecognised_file_falls_back_to_filename(self, tmp_path):
        path = tmp_path / "Band - Song.xyz"
        path.write_text("not audio")

        info = read_file_metadata(str(path))

        assert info == {"title": "Song", "artist": "Band", "album": "", "duration": 0}

    def test_missing_file_falls_back_to_filename(self, tmp_path):
        info = read_file_metadata(str(tmp_path / "Lonely.mp3"))
        assert info["title"] == "Lonely"
        assert info["artist"] == ""

    def test_get_tag_value_skips_bad_keys(self):
        audio = Mock()
        audio.get.side_effect = [ValueError("no such key"), "Found"]
        assert get_tag_value(audio, ["BAD", "GOOD"]) == "Found"


class TestModels:
    def test_track_round_trip_keys(self):
        data = {
            "id": "s1",
            "title": "Song",
            "artist": "Band",
            "album": "LP",
            "coverUrl": "https://example.com/c.jpg",
            "url": "https://example.com/a.mp3",
            "duration": 120,
            "dateAdded": "2024-01-01T00:00:00+00:00",
        }
        assert Track.from_dict(data).to_dict() == data

    def test_track_defaults_for_missing_fields(self):
        track = Track.from_dict({"id": 7, "title": "Song"})
        assert track.id == "7"
        assert track.url == ""
        assert track.duration == 0

    def test_playlist_find_track(self):
        playlist = Playlist(
            id="p",
            name="P",
            tracks=(Track(id="a", title="A", url="u"), Track(id="b", title="B", url="u")),
        )
        assert playlist.find_track("b") == 1
        assert playlist.find_track("c") is None
        assert playlist.track_count == 2
