"""RoomReleaseService — wires device signals to the release core.

Typical lifecycle::

    service = RoomReleaseService.from_settings(settings)

    # feedback arrives from the device
    event = parser.parse(payload)
    await service.dispatch(event)

    # on shutdown
    await service.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from roomrelease.channels.base import (
    CANCEL_CONTROL,
    RELEASE_CONTROL,
    CallEnded,
    CallStarted,
    DeviceEvent,
    PanelAction,
    PanelClosed,
    PromptCleared,
    PromptResponse,
)
from roomrelease.config import Settings
from roomrelease.countdown import CountdownController, TimerFactory, default_timer
from roomrelease.debug_events import DebugBroadcaster
from roomrelease.device.base import BookingService, DeviceStatus, UISink
from roomrelease.errors import TransientQueryFailure
from roomrelease.models.outcome import ReleaseOutcome
from roomrelease.release import ReleaseExecutor
from roomrelease.release_check import ReleaseCheck

log = logging.getLogger("roomrelease.service")


class RoomReleaseService:
    """One endpoint's release check, countdown controller and executor."""

    def __init__(
        self,
        device: DeviceStatus,
        bookings: BookingService,
        ui: UISink,
        settings: Settings,
        broadcaster: DebugBroadcaster | None = None,
        timer_factory: TimerFactory = default_timer,
    ) -> None:
        self._bookings = bookings
        self.broadcaster = broadcaster or DebugBroadcaster()
        self._pending: set[asyncio.Task[bool]] = set()
        self._closers: list[Any] = []

        self.executor = ReleaseExecutor(
            bookings,
            ui,
            feedback_id=settings.feedback_id,
            success_alert_seconds=settings.success_alert_seconds,
            broadcaster=self.broadcaster,
        )
        self.controller = CountdownController(
            ui,
            self.executor,
            feedback_id=settings.feedback_id,
            total_seconds=settings.countdown_seconds,
            tick_interval=settings.tick_interval_seconds,
            timer_factory=timer_factory,
            broadcaster=self.broadcaster,
        )
        self.release_check = ReleaseCheck(
            device,
            bookings,
            self.controller,
            settle_delay=settings.settle_delay_seconds,
            broadcaster=self.broadcaster,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RoomReleaseService":
        """Build a service talking to the device configured in ``settings``."""
        from roomrelease.device.xapi import XAPIClient

        client = XAPIClient.from_settings(settings)
        service = cls(client, client, client, settings)
        service._closers.append(client)
        return service

    # ── Device signals ────────────────────────────────────────

    def on_call_ended(self) -> asyncio.Task[bool]:
        """Schedule a release check; returns the task so callers may await it."""
        task = asyncio.get_running_loop().create_task(
            self.release_check.check_for_release(), name="release-check"
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def on_call_started(self) -> None:
        await self.controller.cancel_countdown(reason="call started")

    async def on_user_response(self, feedback_id: str, option_id: str) -> ReleaseOutcome | None:
        return await self.controller.handle_response(feedback_id, option_id)

    async def on_panel_action(self, control_id: str, booking_id: str = "") -> ReleaseOutcome | None:
        if control_id == RELEASE_CONTROL:
            return await self.release_now(booking_id)
        if control_id == CANCEL_CONTROL:
            await self.controller.cancel_countdown(reason="cancel pressed")
            return None
        log.warning("Unknown panel control %r", control_id)
        return None

    async def on_panel_closed(self) -> None:
        await self.controller.cancel_countdown(reason="panel closed")

    async def dispatch(self, event: DeviceEvent) -> ReleaseOutcome | None:
        """Route a parsed device event to its handler."""
        if isinstance(event, CallEnded):
            self.on_call_ended()
        elif isinstance(event, CallStarted):
            await self.on_call_started()
        elif isinstance(event, PromptResponse):
            return await self.on_user_response(event.feedback_id, event.option_id)
        elif isinstance(event, PromptCleared):
            # Closing the prompt is a "not now", same as answering No.
            return await self.on_user_response(event.feedback_id, "")
        elif isinstance(event, PanelAction):
            return await self.on_panel_action(event.control_id, event.booking_id)
        elif isinstance(event, PanelClosed):
            await self.on_panel_closed()
        return None

    # ── Manual control ────────────────────────────────────────

    async def release_now(self, booking_id: str = "") -> ReleaseOutcome:
        """Release ``booking_id`` (default: the counting or current booking)."""
        if not booking_id:
            booking_id = self.controller.booking_id
        if not booking_id:
            try:
                booking_id = await self._bookings.get_current_id()
            except TransientQueryFailure as exc:
                log.warning("Manual release: current booking unavailable: %s", exc)
                return ReleaseOutcome.failed(str(exc))
        if not booking_id:
            log.info("Manual release: no booking to release")
            return ReleaseOutcome.failed("no current booking")
        return await self.controller.force_complete(booking_id)

    async def cancel(self) -> bool:
        return await self.controller.cancel_countdown(reason="cancelled via api")

    def snapshot(self) -> dict[str, Any]:
        outcome = self.controller.last_outcome
        return {
            "state": self.controller.state.value,
            "booking_id": self.controller.booking_id,
            "remaining_seconds": self.controller.remaining_seconds,
            "pending_checks": len(self._pending),
            "last_outcome": outcome.to_dict() if outcome else None,
        }

    async def shutdown(self) -> None:
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        await self.controller.shutdown()
        for closer in self._closers:
            await closer.aclose()
        self._closers.clear()
        log.info("Room release service stopped")
