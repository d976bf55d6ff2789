"""
Playback session event loop for Melodify.

User intents, transport signals and collection mutations are all put on one
asyncio queue and applied in arrival order by a single consumer, so the
controller never sees two handlers at once.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional

from loguru import logger

from melodify.domain.library.collection import CollectionStore
from melodify.domain.playback.controller import PlaybackController
from melodify.domain.playback.scheduler import Scheduler, TimerHandle
from melodify.domain.playback.state import PlaybackPosition
from melodify.exceptions import MelodifyError

INTENTS = frozenset({
    "play",
    "toggle_play_pause",
    "next",
    "previous",
    "seek",
    "set_volume",
    "toggle_shuffle",
    "cycle_repeat_mode",
})

SIGNALS = frozenset({"on_progress", "on_duration", "on_ended", "on_error"})

MUTATIONS = frozenset({
    "add_playlist",
    "remove_playlist",
    "add_track",
    "remove_track",
    "move_track",
    "import_playlist",
})

_QUIT = "quit"
_DEFERRED = "deferred"
_REPORT = "report"


@dataclass(frozen=True)
class Event:
    name: str
    args: tuple = ()


class _QueuedTimer:
    def __init__(self):
        self.cancelled = False
        self.handle: Optional[TimerHandle] = None

    def cancel(self) -> None:
        self.cancelled = True
        if self.handle is not None:
            self.handle.cancel()


class _QueuedScheduler:
    """Wraps a scheduler so that due callbacks are queued as session events."""

    def __init__(self, inner: Scheduler, queue: "asyncio.Queue[Event]"):
        self._inner = inner
        self._queue = queue

    def call_later(self, delay: float, callback: Callable[[], None]) -> _QueuedTimer:
        timer = _QueuedTimer()
        timer.handle = self._inner.call_later(
            delay, lambda: self._queue.put_nowait(Event(_DEFERRED, (timer, callback)))
        )
        return timer


class Session:
    """Serialises everything that touches the controller onto one queue.

    Also acts as the transport's signal sink: on_progress()/on_duration()/
    on_ended()/on_error() enqueue instead of calling the controller directly.
    A polled transport is queried off the loop and its status is queued with
    report(), so telemetry from a track that was replaced in the meantime is
    discarded when the status is applied.
    """

    def __init__(
        self,
        controller: PlaybackController,
        collection: CollectionStore,
        transport: Any = None,
        poll_interval: float = 0.25,
    ):
        self.controller = controller
        self.collection = collection
        self._transport = transport
        self._poll_interval = poll_interval
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._listeners: list[Callable[[PlaybackPosition], None]] = []
        self._rejections: list[Callable[[Event, Exception], None]] = []
        # Deferred callbacks (the error retry) go through the queue too.
        controller.scheduler = _QueuedScheduler(controller.scheduler, self._queue)

    # Producers

    def submit(self, name: str, *args: Any) -> None:
        if name not in INTENTS | SIGNALS | MUTATIONS and name != _QUIT:
            raise ValueError(f"Unknown session event: {name}")
        self._queue.put_nowait(Event(name, args))

    def quit(self) -> None:
        self._queue.put_nowait(Event(_QUIT))

    def on_progress(self, seconds: float) -> None:
        self.submit("on_progress", seconds)

    def on_duration(self, seconds: float) -> None:
        self.submit("on_duration", seconds)

    def on_ended(self) -> None:
        self.submit("on_ended")

    def on_error(self, error: Any) -> None:
        self.submit("on_error", error)

    def report(self, status: dict[str, Any]) -> None:
        """Queue a transport status; it is turned into signals when applied."""
        self._queue.put_nowait(Event(_REPORT, (status,)))

    # Observers

    def subscribe(self, listener: Callable[[PlaybackPosition], None]) -> None:
        """Call listener with a fresh snapshot after every applied event."""
        self._listeners.append(listener)

    def on_rejected(self, callback: Callable[[Event, Exception], None]) -> None:
        """Call callback when an event is rejected (invalid selection, bad input)."""
        self._rejections.append(callback)

    # Consumer

    def dispatch(self, event: Event) -> None:
        """Apply one event synchronously."""
        if event.name == _DEFERRED:
            timer, callback = event.args
            if not timer.cancelled:
                callback()
        elif event.name == _REPORT:
            (status,) = event.args
            self._transport.report(status, self.controller)
        elif event.name in INTENTS or event.name in SIGNALS:
            getattr(self.controller, event.name)(*event.args)
        elif event.name == "remove_playlist":
            (playlist_id,) = event.args
            self.collection.remove_playlist(playlist_id)
            self.controller.handle_playlist_removed(playlist_id)
        elif event.name == "remove_track":
            playlist_id, track_id = event.args
            index = self.collection.remove_track(playlist_id, track_id)
            self.controller.handle_track_removed(playlist_id, track_id, index)
        elif event.name == "move_track":
            from_id, track_id, to_id = event.args
            index = self.collection.move_track(from_id, track_id, to_id)
            self.controller.handle_track_removed(from_id, track_id, index)
        else:
            getattr(self.collection, event.name)(*event.args)

    def _apply(self, event: Event) -> None:
        try:
            self.dispatch(event)
        except (MelodifyError, ValueError) as e:
            logger.warning(f"Rejected {event.name}{event.args}: {e}")
            for callback in self._rejections:
                callback(event, e)
            return

        snapshot = self.controller.snapshot()
        for listener in self._listeners:
            listener(snapshot)

    async def _poll_transport(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            status = await asyncio.wrap_future(self._transport.submit_query())
            self.report(status)

    async def run(self) -> None:
        """Consume events until quit() is called."""
        poller: Optional[asyncio.Task] = None
        if self._transport is not None and hasattr(self._transport, "submit_query"):
            poller = asyncio.create_task(self._poll_transport())

        logger.info("Playback session started")
        try:
            while True:
                event = await self._queue.get()
                if event.name == _QUIT:
                    break
                self._apply(event)
        finally:
            if poller is not None:
                poller.cancel()
            logger.info("Playback session ended")

    def drain(self) -> None:
        """Apply every event queued so far without blocking for more."""
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event.name == _QUIT:
                continue
            self._apply(event)
