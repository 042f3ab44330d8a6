"""Release executor: decline and delete the booking, exactly once.

The executor re-reads the device's current booking right before acting.
Between the moment a countdown started and the moment it expires the
world may have moved on (a new meeting started, the booking was edited),
and releasing then would hit the wrong reservation.
"""

from __future__ import annotations

import logging

from roomrelease.debug_events import DebugBroadcaster
from roomrelease.device.base import BookingService, UISink
from roomrelease.errors import (
    CommandFailure,
    IncompleteBookingData,
    StaleBooking,
    TransientQueryFailure,
    best_effort,
)
from roomrelease.models.booking import BookingDetails
from roomrelease.models.outcome import ReleaseOutcome

log = logging.getLogger("roomrelease.release")

SUCCESS_TITLE = "Room released"


class ReleaseExecutor:
    """Performs the decline + delete for one booking id.

    Not re-entrant by itself: the countdown controller guarantees only one
    release runs at a time.
    """

    def __init__(
        self,
        bookings: BookingService,
        ui: UISink,
        feedback_id: str,
        success_alert_seconds: int = 5,
        broadcaster: DebugBroadcaster | None = None,
    ) -> None:
        self._bookings = bookings
        self._ui = ui
        self._feedback_id = feedback_id
        self._success_alert_seconds = success_alert_seconds
        self._broadcaster = broadcaster

    def _emit(self, outcome: ReleaseOutcome) -> None:
        if self._broadcaster:
            self._broadcaster.emit("outcome", "completing", outcome.to_dict())

    async def release(self, booking_id: str) -> ReleaseOutcome:
        outcome = await self._release(booking_id)
        self._emit(outcome)
        return outcome

    async def _release(self, booking_id: str) -> ReleaseOutcome:
        await best_effort(self._ui.clear_prompt(self._feedback_id), "prompt clear")
        await best_effort(self._ui.close_panel(), "panel close")

        try:
            details = await self._verify(booking_id)
        except StaleBooking as exc:
            log.info("Release of %s aborted: %s", booking_id, exc)
            return ReleaseOutcome.aborted_stale(booking_id)
        except IncompleteBookingData as exc:
            log.warning("Release of %s aborted: %s", booking_id, exc)
            return ReleaseOutcome.aborted_incomplete(booking_id)
        except TransientQueryFailure as exc:
            log.warning("Release of %s failed: %s", booking_id, exc)
            return ReleaseOutcome.failed(str(exc), booking_id)

        # Decline first so the organizer is notified, then delete.
        try:
            await self._bookings.respond_decline(details.meeting_id)
            await self._bookings.delete(details.meeting_id)
        except CommandFailure as exc:
            log.error("Release of %s failed: %s", booking_id, exc)
            return ReleaseOutcome.failed(str(exc), booking_id)
        except Exception as exc:
            log.error("Release of %s failed unexpectedly: %s", booking_id, exc, exc_info=True)
            return ReleaseOutcome.failed(str(exc), booking_id)

        log.info("Released booking %s (meeting %s)", booking_id, details.meeting_id)
        await best_effort(
            self._ui.show_success_alert(
                SUCCESS_TITLE,
                self._success_text(details),
                self._success_alert_seconds,
            ),
            "success alert",
        )
        return ReleaseOutcome.released(booking_id)

    async def _verify(self, booking_id: str) -> BookingDetails:
        """Confirm ``booking_id`` is still current and return its details."""
        current = await self._bookings.get_current_id()
        if current != booking_id:
            raise StaleBooking(f"current booking is {current or 'none'!r}")

        try:
            details = await self._bookings.get_details(booking_id)
        except TransientQueryFailure as exc:
            raise IncompleteBookingData(f"details unavailable: {exc}") from exc
        if details is None:
            raise IncompleteBookingData("booking details not found")
        if not details.meeting_id:
            raise IncompleteBookingData("booking has no meeting id")
        return details

    @staticmethod
    def _success_text(details: BookingDetails) -> str:
        if details.title:
            return f"{details.title} was released. The room is now available."
        return "The booking was released. The room is now available."
