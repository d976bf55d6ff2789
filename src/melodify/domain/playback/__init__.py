"""Playback domain - session controller, sequencing and transports.

This domain handles:
- The playback position model and pure sequencing functions
- The session controller (intents, transport signals, error recovery)
- Deferred retries (asyncio scheduler)
- Transports (mpv JSON IPC, null)
"""

from .controller import PlaybackController
from .scheduler import AsyncioScheduler, Scheduler, TimerHandle
from .state import (
    PlaybackPosition,
    PlaybackStatus,
    RepeatMode,
    derive_status,
    next_index,
    previous_index,
    resolve,
    shuffle_order,
)
from .transport import (
    MpvTransport,
    NullTransport,
    Transport,
    TransportSink,
    check_mpv_available,
)

__all__ = [
    # Controller
    "PlaybackController",
    # Scheduler
    "AsyncioScheduler",
    "Scheduler",
    "TimerHandle",
    # State
    "PlaybackPosition",
    "PlaybackStatus",
    "RepeatMode",
    "derive_status",
    "next_index",
    "previous_index",
    "resolve",
    "shuffle_order",
    # Transport
    "MpvTransport",
    "NullTransport",
    "Transport",
    "TransportSink",
    "check_mpv_available",
]
