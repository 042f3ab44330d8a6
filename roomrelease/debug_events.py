"""Debug event broadcaster for real-time tracing of the release core.

The countdown controller, release check and executor emit events
(transitions, ticks, outcomes) to a broadcaster. Every connected
subscriber gets its own asyncio.Queue, drained by the /ws/events
WebSocket.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TypedDict

log = logging.getLogger("roomrelease.debug_events")

EVENT_LOG_SIZE = 500


class DebugEvent(TypedDict):
    type: str          # transition | tick | check | outcome | response | error
    timestamp: float
    state: str
    data: dict


class DebugBroadcaster:
    """Event broadcaster using one asyncio.Queue per subscriber."""

    def __init__(self, maxsize: int = 200) -> None:
        self._maxsize = maxsize
        self._subscribers: list[asyncio.Queue[DebugEvent]] = []
        self._event_log: deque[DebugEvent] = deque(maxlen=EVENT_LOG_SIZE)

    def subscribe(self) -> asyncio.Queue[DebugEvent]:
        """Create a new subscriber queue and return it."""
        q: asyncio.Queue[DebugEvent] = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(q)
        log.info("Debug subscriber added (total: %d)", len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[DebugEvent]) -> None:
        """Remove a subscriber queue."""
        try:
            self._subscribers.remove(q)
        except ValueError:
            pass
        log.info("Debug subscriber removed (total: %d)", len(self._subscribers))

    def emit(self, event_type: str, state: str, data: dict) -> None:
        """Broadcast an event to all subscribers and append to event log."""
        event: DebugEvent = {
            "type": event_type,
            "timestamp": time.time(),
            "state": state,
            "data": data,
        }
        self._event_log.append(event)

        for q in self._subscribers:
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                # Drop oldest event to make room
                try:
                    q.get_nowait()
                    q.put_nowait(event)
                except (asyncio.QueueEmpty, asyncio.QueueFull):
                    pass

    @property
    def event_log(self) -> list[DebugEvent]:
        """Recent event history, oldest first."""
        return list(self._event_log)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
