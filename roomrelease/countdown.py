"""Countdown/confirmation controller — the single in-flight release prompt.

States::

    IDLE ──start_countdown──▶ COUNTING ──expiry / "Yes"──▶ COMPLETING ──▶ IDLE
                                │
                                └── cancel / panel close / prompt failure ──▶ IDLE

At most one CountdownSession exists at any time. The controller owns it
and its timer; everything else goes through start_countdown,
cancel_countdown, handle_response and force_complete.

Ticks: the first tick runs immediately on start, then once per
``tick_interval``. A tick with ``remaining_seconds > 0`` renders the prompt
and decrements; a tick at 0 tears the timer down and releases.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from roomrelease.debug_events import DebugBroadcaster
from roomrelease.device.base import PromptOption, UISink
from roomrelease.errors import best_effort
from roomrelease.models.booking import BookingRef
from roomrelease.models.outcome import ReleaseOutcome
from roomrelease.release import ReleaseExecutor
from roomrelease.timer import RepeatingTimer, TickCallback

log = logging.getLogger("roomrelease.countdown")

CONFIRM_OPTION_ID = "1"
DISMISS_OPTION_ID = "2"
PROMPT_OPTIONS = [
    PromptOption(CONFIRM_OPTION_ID, "Yes"),
    PromptOption(DISMISS_OPTION_ID, "No"),
]
PROMPT_TITLE = "Release this room?"

TimerFactory = Callable[[float, TickCallback], RepeatingTimer]


class CountdownState(str, Enum):
    IDLE = "idle"
    COUNTING = "counting"
    COMPLETING = "completing"


@dataclass
class CountdownSession:
    booking: BookingRef
    remaining_seconds: int
    timer: RepeatingTimer | None = None
    prompt_dismissed: bool = False

    @property
    def booking_id(self) -> str:
        return self.booking.id


def format_remaining(seconds: int) -> str:
    """``180 → "3m 0s"``, ``45 → "45s"``."""
    minutes, secs = divmod(max(seconds, 0), 60)
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def default_timer(interval: float, callback: TickCallback) -> RepeatingTimer:
    return RepeatingTimer(interval, callback, name="release-countdown")


class CountdownController:
    """Owns the countdown session and drives it to release or cancellation."""

    def __init__(
        self,
        ui: UISink,
        executor: ReleaseExecutor,
        feedback_id: str,
        total_seconds: int = 180,
        tick_interval: float = 1.0,
        timer_factory: TimerFactory = default_timer,
        broadcaster: DebugBroadcaster | None = None,
    ) -> None:
        self._ui = ui
        self._executor = executor
        self._feedback_id = feedback_id
        self._total_seconds = total_seconds
        self._tick_interval = tick_interval
        self._timer_factory = timer_factory
        self._broadcaster = broadcaster

        self._state = CountdownState.IDLE
        self._session: CountdownSession | None = None
        self._last_outcome: ReleaseOutcome | None = None
        self._release_task: asyncio.Task[ReleaseOutcome] | None = None

    # ── Read-only view ────────────────────────────────────────

    @property
    def state(self) -> CountdownState:
        return self._state

    @property
    def booking_id(self) -> str:
        return self._session.booking_id if self._session else ""

    @property
    def remaining_seconds(self) -> int | None:
        return self._session.remaining_seconds if self._session else None

    @property
    def last_outcome(self) -> ReleaseOutcome | None:
        return self._last_outcome

    @property
    def feedback_id(self) -> str:
        return self._feedback_id

    # ── Public API ────────────────────────────────────────────

    async def start_countdown(self, booking: BookingRef | str) -> bool:
        """Start a countdown for ``booking``, superseding any active one.

        Returns True if the countdown is running after its first tick.
        Refuses (False) while a release is in flight.
        """
        if self._state is CountdownState.COMPLETING:
            log.info("Release in progress — not starting a countdown")
            return False
        if isinstance(booking, str):
            booking = BookingRef(id=booking)

        if self._session is not None:
            log.info(
                "Superseding countdown for %s with %s",
                self._session.booking_id, booking.id,
            )
            self._teardown(self._session)

        session = CountdownSession(booking=booking, remaining_seconds=self._total_seconds)
        self._session = session
        self._set_state(CountdownState.COUNTING, booking.id)

        await self._tick(session)
        if self._session is not session:
            return False

        session.timer = self._timer_factory(
            self._tick_interval, lambda: self._tick(session)
        )
        session.timer.start()
        return True

    async def cancel_countdown(self, reason: str = "cancelled", clear_prompt: bool = True) -> bool:
        """Stop the active countdown without releasing. No-op when idle."""
        session = self._session
        if session is None:
            return False
        log.info("Countdown for %s cancelled (%s)", session.booking_id, reason)
        self._teardown(session)
        self._set_state(CountdownState.IDLE, session.booking_id, reason=reason)
        if clear_prompt:
            await best_effort(self._ui.clear_prompt(self._feedback_id), "prompt clear")
        return True

    async def handle_response(self, feedback_id: str, option_id: str) -> ReleaseOutcome | None:
        """React to an answer on the confirmation prompt.

        "Yes" releases immediately. Anything else dismisses the prompt for
        the rest of this session while the countdown keeps running.
        """
        if feedback_id != self._feedback_id:
            return None
        session = self._session
        if session is None:
            log.debug("Prompt response %r with no countdown — ignored", option_id)
            return None

        if self._broadcaster:
            self._broadcaster.emit(
                "response", self._state.value,
                {"booking_id": session.booking_id, "option_id": option_id},
            )

        if option_id == CONFIRM_OPTION_ID:
            log.info("Release of %s confirmed by user", session.booking_id)
            self._teardown(session)
            return await self._complete(session.booking_id)

        log.info(
            "Prompt dismissed for %s; countdown continues at %d",
            session.booking_id, session.remaining_seconds,
        )
        session.prompt_dismissed = True
        await best_effort(self._ui.clear_prompt(self._feedback_id), "prompt clear")
        return None

    async def force_complete(self, booking_id: str) -> ReleaseOutcome:
        """Manual release: cancel any countdown, then release ``booking_id``."""
        if self._state is CountdownState.COMPLETING:
            log.warning("Manual release of %s refused: release already in progress", booking_id)
            return ReleaseOutcome.failed("release already in progress", booking_id)
        if self._session is not None:
            self._teardown(self._session)
        return await self._complete(booking_id)

    async def shutdown(self) -> None:
        """Stop the countdown and wait out any release already in flight.

        An expiring countdown releases from inside its own timer task, after
        the session is gone, so the release task is tracked separately.
        """
        if self._session is not None:
            self._teardown(self._session)
            self._set_state(CountdownState.IDLE, reason="shutdown")
        task = self._release_task
        if task is not None and not task.done():
            log.info("Waiting for in-flight release before shutdown")
            await asyncio.wait({task})

    # ── Internal ──────────────────────────────────────────────

    async def _tick(self, session: CountdownSession) -> None:
        if self._session is not session:
            return

        if session.remaining_seconds <= 0:
            self._teardown(session)
            await self._complete(session.booking_id)
            return

        if not session.prompt_dismissed:
            try:
                await self._ui.show_confirm_prompt(
                    PROMPT_TITLE,
                    self._prompt_text(session),
                    self._feedback_id,
                    PROMPT_OPTIONS,
                )
            except Exception as exc:
                # No visible prompt means no countdown.
                log.warning("Prompt display failed for %s: %s", session.booking_id, exc)
                if self._session is session:
                    self._teardown(session)
                    self._set_state(CountdownState.IDLE, session.booking_id, reason="ui failure")
                return
            if self._session is not session:
                return

        session.remaining_seconds -= 1
        if self._broadcaster:
            self._broadcaster.emit(
                "tick", self._state.value,
                {"booking_id": session.booking_id, "remaining_seconds": session.remaining_seconds},
            )

    def _prompt_text(self, session: CountdownSession) -> str:
        remaining = format_remaining(session.remaining_seconds)
        if session.booking.title:
            return (
                f"The call has ended. {session.booking.title} will be released "
                f"in {remaining}. Release the room now?"
            )
        return f"The call has ended. This room will be released in {remaining}. Release now?"

    async def _complete(self, booking_id: str) -> ReleaseOutcome:
        self._set_state(CountdownState.COMPLETING, booking_id)
        task = asyncio.get_running_loop().create_task(
            self._executor.release(booking_id), name=f"release-{booking_id}"
        )
        self._release_task = task
        try:
            outcome = await task
        except Exception as exc:
            log.error("Release of %s raised: %s", booking_id, exc, exc_info=True)
            outcome = ReleaseOutcome.failed(str(exc), booking_id)
        finally:
            self._release_task = None
            self._set_state(CountdownState.IDLE, booking_id)
        self._last_outcome = outcome
        log.info("Release of %s finished: %s", booking_id, outcome.kind.value)
        return outcome

    def _teardown(self, session: CountdownSession) -> None:
        """Cancel the session's timer and drop it if it is the live one."""
        if session.timer is not None:
            session.timer.cancel()
        if self._session is session:
            self._session = None

    def _set_state(self, new: CountdownState, booking_id: str = "", reason: str = "") -> None:
        old = self._state
        self._state = new
        if old is new:
            return
        log.info("Countdown %s → %s (booking=%s)", old.value, new.value, booking_id or "-")
        if self._broadcaster:
            data = {"from": old.value, "to": new.value, "booking_id": booking_id}
            if reason:
                data["reason"] = reason
            self._broadcaster.emit("transition", new.value, data)
