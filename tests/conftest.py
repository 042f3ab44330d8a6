"""Shared fakes for the room release tests.

FakeRoom stands in for the endpoint (call status, bookings and UI) and
records every call it receives. ManualTimer replaces the repeating timer
so tests decide exactly when a tick fires.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from roomrelease.config import Settings
from roomrelease.countdown import CountdownController
from roomrelease.debug_events import DebugBroadcaster
from roomrelease.device.base import BookingService, DeviceStatus, UISink
from roomrelease.models.booking import BookingDetails
from roomrelease.release import ReleaseExecutor

FEEDBACK_ID = "room_release_confirm"


class FakeRoom(DeviceStatus, BookingService, UISink):
    def __init__(self, active_calls=0, current_id="B1", bookings=None):
        self.active_calls = active_calls
        self.current_id = current_id
        if bookings is None:
            bookings = {
                "B1": BookingDetails(
                    title="Weekly sync",
                    start_time="2026-10-18T09:00:00Z",
                    end_time="2026-10-18T10:00:00Z",
                    meeting_id="M1",
                ),
                "B2": BookingDetails(title="Design review", meeting_id="M2"),
            }
        self.bookings = bookings
        self.calls: list[tuple] = []
        self.prompts: list[str] = []
        self.fail: dict[str, Exception] = {}

    def _enter(self, name, *args):
        self.calls.append((name, *args))
        exc = self.fail.get(name)
        if exc is not None:
            raise exc

    def count(self, name) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    async def get_active_call_count(self):
        self._enter("active_calls")
        return self.active_calls

    async def get_current_id(self):
        self._enter("current_id")
        return self.current_id

    async def get_details(self, booking_id):
        self._enter("details", booking_id)
        return self.bookings.get(booking_id)

    async def respond_decline(self, meeting_id):
        self._enter("decline", meeting_id)

    async def delete(self, meeting_id):
        self._enter("delete", meeting_id)
        for booking_id, details in list(self.bookings.items()):
            if details.meeting_id == meeting_id:
                del self.bookings[booking_id]
                if self.current_id == booking_id:
                    self.current_id = ""

    async def show_confirm_prompt(self, title, text, feedback_id, options):
        self._enter("prompt", feedback_id)
        self.prompts.append(text)

    async def clear_prompt(self, feedback_id):
        self._enter("clear_prompt", feedback_id)

    async def close_panel(self):
        self._enter("close_panel")

    async def show_success_alert(self, title, text, duration_seconds):
        self._enter("alert", title, text, duration_seconds)


class ManualTimer:
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    @property
    def active(self):
        return self.started and not self.cancelled

    async def fire(self, times=1):
        for _ in range(times):
            if not self.active:
                return
            await self.callback()


class TimerBank:
    """Timer factory that remembers every timer it created."""

    def __init__(self):
        self.timers: list[ManualTimer] = []

    def __call__(self, interval, callback):
        timer = ManualTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> ManualTimer:
        return self.timers[-1]

    @property
    def active(self) -> list[ManualTimer]:
        return [t for t in self.timers if t.active]


@pytest.fixture
def room():
    return FakeRoom()


@pytest.fixture
def timers():
    return TimerBank()


@pytest.fixture
def broadcaster():
    return DebugBroadcaster()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        device_url="http://device.test",
        feedback_id=FEEDBACK_ID,
        settle_delay_seconds=0,
        countdown_seconds=180,
        debug=True,
    )


@pytest.fixture
def executor(room, broadcaster):
    return ReleaseExecutor(room, room, feedback_id=FEEDBACK_ID, broadcaster=broadcaster)


@pytest.fixture
def controller(room, executor, timers, broadcaster):
    return CountdownController(
        room,
        executor,
        feedback_id=FEEDBACK_ID,
        total_seconds=180,
        timer_factory=timers,
        broadcaster=broadcaster,
    )
