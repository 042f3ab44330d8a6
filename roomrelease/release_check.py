"""Release check — decides whether a call-ended signal should start a countdown."""

from __future__ import annotations

import asyncio
import logging

from roomrelease.countdown import CountdownController
from roomrelease.debug_events import DebugBroadcaster
from roomrelease.device.base import BookingService, DeviceStatus
from roomrelease.errors import TransientQueryFailure
from roomrelease.models.booking import BookingRef

log = logging.getLogger("roomrelease.release_check")


class ReleaseCheck:
    """Evaluate eligibility after a call ends.

    Live state is queried every time rather than cached, so a decision is
    always made against what the device reports right now.
    """

    def __init__(
        self,
        device: DeviceStatus,
        bookings: BookingService,
        controller: CountdownController,
        settle_delay: float = 2.0,
        broadcaster: DebugBroadcaster | None = None,
    ) -> None:
        self._device = device
        self._bookings = bookings
        self._controller = controller
        self._settle_delay = settle_delay
        self._broadcaster = broadcaster

    def _emit(self, result: str, **data: object) -> None:
        if self._broadcaster:
            self._broadcaster.emit("check", self._controller.state.value, {"result": result, **data})

    async def check_for_release(self) -> bool:
        """Run one check. Returns True if a countdown was started.

        Never raises: every failure is logged and treated as "not eligible".
        """
        # Absorb end-of-call bursts and back-to-back calls.
        if self._settle_delay > 0:
            await asyncio.sleep(self._settle_delay)
        try:
            return await self._evaluate()
        except Exception as exc:
            log.error("Release check failed: %s", exc, exc_info=True)
            self._emit("error", error=str(exc))
            return False

    async def _evaluate(self) -> bool:
        try:
            active_calls = await self._device.get_active_call_count()
        except TransientQueryFailure as exc:
            log.warning("Release check: active call count unavailable: %s", exc)
            self._emit("not_eligible", why="call count unavailable")
            return False
        if active_calls != 0:
            log.info("Release check: %d active call(s), nothing to release", active_calls)
            self._emit("not_eligible", why="active call", active_calls=active_calls)
            return False

        try:
            booking_id = await self._bookings.get_current_id()
        except TransientQueryFailure as exc:
            log.warning("Release check: current booking unavailable: %s", exc)
            self._emit("not_eligible", why="booking unavailable")
            return False
        if not booking_id:
            log.info("Release check: no current booking")
            self._emit("not_eligible", why="no booking")
            return False

        booking = await self._snapshot(booking_id)
        started = await self._controller.start_countdown(booking)
        self._emit("started" if started else "not_started", booking_id=booking_id)
        return started

    async def _snapshot(self, booking_id: str) -> BookingRef:
        """Capture the booking for display. Missing details are not fatal here."""
        try:
            details = await self._bookings.get_details(booking_id)
        except TransientQueryFailure as exc:
            log.info("Details for %s unavailable at check time: %s", booking_id, exc)
            details = None
        return BookingRef.from_details(booking_id, details)
