"""Shared fixtures: in-memory collection, recording transport, manual scheduler."""

import random
from unittest.mock import patch

import pytest

from melodify.core import database
from melodify.core.config import PlayerConfig
from melodify.domain.library.collection import CollectionStore
from melodify.domain.library.models import Playlist, Track
from melodify.domain.playback.controller import PlaybackController
from melodify.domain.playback.transport import MpvTransport


def make_track(track_id: str, url: str | None = None, duration: int = 0) -> Track:
    """Create a track with a predictable locator."""
    if url is None:
        url = f"https://example.com/{track_id}.mp3"
    return Track(id=track_id, title=f"Track {track_id}", url=url, duration=duration)


class FakeTransport:
    """Transport that records every command it receives."""

    def __init__(self):
        self.calls = []

    def set_locator(self, url):
        self.calls.append(("set_locator", url))

    def set_playing(self, playing):
        self.calls.append(("set_playing", playing))

    def set_volume(self, volume):
        self.calls.append(("set_volume", volume))

    def seek_to(self, seconds):
        self.calls.append(("seek_to", seconds))

    @property
    def locators(self):
        return [arg for name, arg in self.calls if name == "set_locator"]

    def clear(self):
        self.calls.clear()


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose timers only fire when the test says so."""

    def __init__(self):
        self.timers = []

    def call_later(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_next(self):
        timer = self.pending[0]
        timer.fired = True
        timer.callback()


@pytest.fixture
def playlists():
    """Three-track playlist, one-track playlist, an empty one and one with a broken track."""
    return [
        Playlist(
            id="pa",
            name="Alpha",
            tracks=(make_track("a1"), make_track("a2", duration=200), make_track("a3")),
        ),
        Playlist(id="pb", name="Beta", tracks=(make_track("b1"),)),
        Playlist(id="pe", name="Empty"),
        Playlist(
            id="px",
            name="Broken",
            tracks=(make_track("x1", url=""), make_track("x2")),
        ),
    ]


@pytest.fixture
def store(playlists):
    """In-memory collection (never touches the database)."""
    return CollectionStore(playlists, persist=False)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def controller(store, transport, scheduler):
    return PlaybackController(store, transport, scheduler, rng=random.Random(7))


@pytest.fixture
def temp_db(tmp_path):
    """Point the key/value store at a temporary database file."""
    database.set_database_path(tmp_path / "melodify.db")
    database.init_database()
    yield tmp_path / "melodify.db"
    database.set_database_path(None)


class FakeMpv:
    """Stands in for the mpv IPC request: answers get_property, records commands."""

    def __init__(self):
        self.props = {
            "idle-active": False,
            "eof-reached": False,
            "time-pos": None,
            "duration": None,
        }
        self.commands = []
        self.refuse_load = False

    def __call__(self, socket_path, command):
        if command[0] == "get_property":
            return {"error": "success", "data": self.props.get(command[1])}
        self.commands.append(command)
        if command[0] == "loadfile" and self.refuse_load:
            return {"error": "loading failed"}
        return {"error": "success"}


@pytest.fixture
def mpv():
    fake = FakeMpv()
    with patch("melodify.domain.playback.transport._ipc_request", side_effect=fake), patch.object(
        MpvTransport, "is_running", return_value=True
    ):
        yield fake


@pytest.fixture
def mpv_transport(mpv):
    """MpvTransport talking to FakeMpv; its IPC worker is shut down afterwards."""
    transport = MpvTransport(PlayerConfig())
    yield transport
    transport.stop()
