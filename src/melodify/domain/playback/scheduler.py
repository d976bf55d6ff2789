"""
Deferred callbacks for the playback controller.

The only suspension point in a playback session is the error-recovery
delay. Schedulers return a handle with cancel() so a manual transition can
invalidate a retry that is still pending.
"""

import asyncio
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Runs callbacks on an asyncio event loop via loop.call_later().

    Callbacks execute on the loop thread, so they never overlap with the
    session's event handlers.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)
