"""
Playback transports for Melodify.

A transport wraps the actual media player. It accepts commands
(set_locator, set_playing, set_volume, seek_to) and reports progress,
duration, end-of-track and errors to a TransportSink.

MpvTransport drives mpv over JSON IPC from a worker thread and is polled
by the session;
NullTransport is used when mpv is not installed.
"""

import json
import os
import socket
import subprocess
import tempfile
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional, Protocol

from loguru import logger

from melodify.core.config import PlayerConfig

# Seconds mpv may stay idle after loadfile before the load counts as failed
LOAD_GRACE_SECONDS = 3.0

POLLED_PROPERTIES = ("idle-active", "eof-reached", "time-pos", "duration")


class Transport(Protocol):
    def set_locator(self, url: Optional[str]) -> None: ...

    def set_playing(self, playing: bool) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def seek_to(self, seconds: float) -> None: ...


class TransportSink(Protocol):
    def on_progress(self, seconds: float) -> None: ...

    def on_duration(self, seconds: float) -> None: ...

    def on_ended(self) -> None: ...

    def on_error(self, error: Any) -> None: ...


class PolledTransport(Protocol):
    def submit_query(self) -> Future: ...

    def report(self, status: dict[str, Any], sink: TransportSink) -> None: ...


class NullTransport:
    """Accepts every command and never reports anything."""

    def set_locator(self, url: Optional[str]) -> None:
        logger.debug(f"NullTransport: locator={url}")

    def set_playing(self, playing: bool) -> None:
        pass

    def set_volume(self, volume: float) -> None:
        pass

    def seek_to(self, seconds: float) -> None:
        pass


def check_mpv_available(mpv_path: str = "mpv") -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            [mpv_path, "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def _ipc_request(socket_path: Optional[str], command: list[Any]) -> Optional[dict[str, Any]]:
    """Send one JSON IPC command to mpv and return the decoded reply."""
    if not socket_path or not os.path.exists(socket_path):
        return None

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(2.0)
            sock.connect(socket_path)
            sock.sendall((json.dumps({"command": command}) + "\n").encode("utf-8"))
            response = sock.recv(4096).decode("utf-8").strip()
    except OSError:
        return None

    # mpv may interleave event lines with the reply; take the first reply line.
    for line in response.splitlines():
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if "error" in data:
            return data
    return None


class MpvTransport:
    """mpv process controlled through its JSON IPC socket.

    Every IPC round-trip runs on a single worker thread, so callers on the
    event loop never wait on the socket and commands reach mpv in the order
    they were issued. Status is fetched with submit_query() and turned into
    signals by report(), which must run on the caller's thread.
    """

    def __init__(self, config: PlayerConfig):
        self._config = config
        self._process: Optional[subprocess.Popen] = None
        self._socket_path: Optional[str] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mpv-ipc")

        self._locator: Optional[str] = None
        self._playing = False
        # Bumped by every set_locator(); reports from older loads are dropped.
        self._generation = 0
        self._refused_generation: Optional[int] = None
        self._load_started_at = 0.0
        self._seen_active = False
        self._ended_reported = False
        self._last_position: Optional[float] = None
        self._last_duration: Optional[float] = None

    # Lifecycle

    def start(self) -> bool:
        """Start mpv with JSON IPC. Returns False if mpv could not be started.

        Blocks while waiting for the socket; call it from a worker thread when
        an event loop is running.
        """
        if self._config.mpv_socket_path:
            socket_path = self._config.mpv_socket_path
        else:
            socket_path = str(Path(tempfile.gettempdir()) / f"melodify-mpv-{os.getpid()}")

        logger.info(f"Starting mpv with socket: {socket_path}")

        if os.path.exists(socket_path):
            os.unlink(socket_path)

        cmd = [
            self._config.mpv_path,
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={socket_path}",
            f"--volume={round(self._config.volume * 100)}",
            "--keep-open=yes",
            "--load-scripts=no",
        ]
        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error(f"Failed to start mpv: {e}")
            return False

        timeout = 5.0
        start_time = time.time()
        while not os.path.exists(socket_path):
            if time.time() - start_time > timeout:
                logger.error(f"mpv socket creation timeout after {timeout}s")
                self._process.kill()
                self._process = None
                return False
            time.sleep(0.1)

        self._socket_path = socket_path
        if self._get_property("idle-active") is None:
            logger.error("mpv socket connection test failed")
            self.stop()
            return False

        logger.info("mpv started successfully")
        return True

    def stop(self) -> None:
        """Stop the mpv process, its IPC worker and clean up the socket."""
        self._executor.shutdown(wait=False, cancel_futures=True)

        if self._process:
            try:
                self._process.kill()
                self._process.wait(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.debug(f"mpv already gone: {e}")
            self._process = None

        if self._socket_path and os.path.exists(self._socket_path):
            try:
                os.unlink(self._socket_path)
            except OSError as e:
                logger.debug(f"Could not remove mpv socket: {e}")
        self._socket_path = None

    def is_running(self) -> bool:
        if not self._process or self._process.poll() is not None:
            return False
        return bool(self._socket_path and os.path.exists(self._socket_path))

    def flush(self) -> None:
        """Block until every command issued so far has been sent."""
        self._executor.submit(lambda: None).result()

    # IPC helpers (worker thread)

    def _command(self, *args: Any) -> bool:
        reply = _ipc_request(self._socket_path, list(args))
        return reply is not None and reply.get("error") == "success"

    def _get_property(self, name: str) -> Any:
        reply = _ipc_request(self._socket_path, ["get_property", name])
        if reply and reply.get("error") == "success":
            return reply.get("data")
        return None

    def _send(self, *args: Any) -> None:
        self._executor.submit(self._command, *args)

    def _load(self, url: str, paused: bool, generation: int) -> None:
        if not self._command("loadfile", url, "replace"):
            logger.warning(f"mpv refused to load {url}")
            self._refused_generation = generation
        self._command("set_property", "pause", paused)

    def _query(self, generation: int) -> dict[str, Any]:
        status: dict[str, Any] = {"generation": generation, "running": self.is_running()}
        if status["running"]:
            for name in POLLED_PROPERTIES:
                status[name] = self._get_property(name)
        return status

    # Transport commands

    def set_locator(self, url: Optional[str]) -> None:
        self._generation += 1
        self._locator = url
        self._ended_reported = False
        self._last_position = None
        self._last_duration = None
        self._seen_active = False

        if not url:
            self._send("stop")
            return

        self._load_started_at = time.monotonic()
        self._executor.submit(self._load, url, not self._playing, self._generation)

    def set_playing(self, playing: bool) -> None:
        self._playing = playing
        if self._locator:
            self._send("set_property", "pause", not playing)

    def set_volume(self, volume: float) -> None:
        volume = max(0.0, min(1.0, volume))
        self._send("set_property", "volume", round(volume * 100))

    def seek_to(self, seconds: float) -> None:
        self._ended_reported = False
        self._send("seek", max(0.0, seconds), "absolute")

    # Signal polling

    def submit_query(self) -> Future:
        """Queue a status query behind pending commands; resolves to a status dict."""
        return self._executor.submit(self._query, self._generation)

    def report(self, status: dict[str, Any], sink: TransportSink) -> None:
        """Forward any new telemetry in status to sink."""
        if not self._locator or status["generation"] != self._generation:
            return

        if not status["running"]:
            self._locator = None
            sink.on_error("mpv process is not running")
            return

        idle = status["idle-active"]
        eof = status["eof-reached"]
        position = status["time-pos"]
        duration = status["duration"]

        if idle is False:
            self._seen_active = True

        # With --keep-open a finished file stays loaded with eof-reached set;
        # going idle without it means the file failed to load or play.
        refused = self._refused_generation == self._generation
        load_expired = time.monotonic() - self._load_started_at > LOAD_GRACE_SECONDS
        if refused or (idle is True and not eof and (self._seen_active or load_expired)):
            locator = self._locator
            self._locator = None
            sink.on_error(f"failed to play {locator}")
            return

        if duration is not None and duration > 0 and duration != self._last_duration:
            self._last_duration = duration
            sink.on_duration(float(duration))

        if position is not None and position != self._last_position:
            self._last_position = position
            sink.on_progress(float(position))

        if eof is True and not self._ended_reported:
            self._ended_reported = True
            sink.on_ended()

    def poll(self, sink: TransportSink) -> None:
        """Query mpv and report to sink, blocking until the query completes."""
        self.report(self.submit_query().result(), sink)
