"""Tests for CountdownController — the single-session countdown state machine."""

import asyncio

import pytest

from roomrelease.countdown import CountdownController, CountdownState, format_remaining
from roomrelease.errors import UIChannelFailure
from roomrelease.models.booking import BookingRef
from roomrelease.models.outcome import OutcomeKind

from conftest import FEEDBACK_ID


class TestFormatRemaining:
    def test_minutes_and_seconds(self):
        assert format_remaining(180) == "3m 0s"
        assert format_remaining(61) == "1m 1s"
        assert format_remaining(60) == "1m 0s"

    def test_minutes_omitted_when_zero(self):
        assert format_remaining(45) == "45s"
        assert format_remaining(0) == "0s"

    def test_negative_clamped(self):
        assert format_remaining(-3) == "0s"


class TestStart:
    async def test_call_end_starts_countdown_at_full_length(self, controller, room, timers):
        started = await controller.start_countdown("B1")

        assert started is True
        assert controller.state is CountdownState.COUNTING
        assert controller.booking_id == "B1"
        assert "3m 0s" in room.prompts[0]
        # first tick already ran
        assert controller.remaining_seconds == 179
        assert timers.last.started
        assert timers.last.interval == 1.0

    async def test_prompt_mentions_booking_title(self, controller, room):
        await controller.start_countdown(BookingRef(id="B1", title="Weekly sync"))
        assert "Weekly sync" in room.prompts[0]

    async def test_prompt_display_failure_aborts_start(self, controller, room, timers):
        room.fail["prompt"] = UIChannelFailure("controller offline")

        started = await controller.start_countdown("B1")

        assert started is False
        assert controller.state is CountdownState.IDLE
        assert controller.remaining_seconds is None
        assert timers.timers == []

    async def test_new_start_supersedes_running_countdown(self, controller, timers):
        await controller.start_countdown("B1")
        await timers.last.fire(30)

        await controller.start_countdown("B2")

        assert timers.timers[0].cancelled
        assert len(timers.active) == 1
        assert controller.booking_id == "B2"
        assert controller.remaining_seconds == 179

    async def test_stale_tick_does_not_touch_new_session(self, controller, timers):
        await controller.start_countdown("B1")
        old_tick = timers.timers[0].callback
        await controller.start_countdown("B2")

        await old_tick()

        assert controller.booking_id == "B2"
        assert controller.remaining_seconds == 179


class TestTicking:
    async def test_countdown_decrements_by_one_and_completes_at_zero(self, controller, room, timers):
        await controller.start_countdown("B1")
        seen = [controller.remaining_seconds]
        for _ in range(179):
            await timers.last.fire()
            seen.append(controller.remaining_seconds)

        assert seen == list(range(179, -1, -1))
        assert controller.state is CountdownState.COUNTING
        assert room.count("decline") == 0
        assert "1s" in room.prompts[-1]
        assert len(room.prompts) == 180

        await timers.last.fire()

        assert timers.last.cancelled
        assert controller.state is CountdownState.IDLE
        assert controller.last_outcome.kind is OutcomeKind.RELEASED
        assert ("decline", "M1") in room.calls
        assert ("delete", "M1") in room.calls

    async def test_expiry_passes_through_completing(self, controller, timers, broadcaster):
        await controller.start_countdown("B1")
        await timers.last.fire(180)

        transitions = [
            (e["data"]["from"], e["data"]["to"])
            for e in broadcaster.event_log if e["type"] == "transition"
        ]
        assert transitions == [
            ("idle", "counting"),
            ("counting", "completing"),
            ("completing", "idle"),
        ]

    async def test_prompt_failure_mid_countdown_stops_session(self, controller, room, timers):
        await controller.start_countdown("B1")
        await timers.last.fire(5)
        room.fail["prompt"] = UIChannelFailure("controller offline")

        await timers.last.fire()

        assert timers.last.cancelled
        assert controller.state is CountdownState.IDLE
        assert room.count("decline") == 0


class TestUserResponse:
    async def test_no_dismisses_prompt_and_countdown_continues(self, controller, room, timers):
        await controller.start_countdown("B1")
        await timers.last.fire(134)
        assert controller.remaining_seconds == 45

        outcome = await controller.handle_response(FEEDBACK_ID, "2")

        assert outcome is None
        assert room.calls[-1] == ("clear_prompt", FEEDBACK_ID)
        assert controller.state is CountdownState.COUNTING
        shown = len(room.prompts)

        await timers.last.fire()
        assert controller.remaining_seconds == 44
        await timers.last.fire()
        assert controller.remaining_seconds == 43
        # dismissed prompt stays hidden
        assert len(room.prompts) == shown

    async def test_dismissed_countdown_still_releases_on_expiry(self, controller, room, timers):
        await controller.start_countdown("B1")
        await controller.handle_response(FEEDBACK_ID, "2")

        await timers.last.fire(180)

        assert controller.last_outcome.kind is OutcomeKind.RELEASED

    async def test_yes_releases_immediately(self, controller, room, timers):
        await controller.start_countdown("B1")
        await timers.last.fire(10)

        outcome = await controller.handle_response(FEEDBACK_ID, "1")

        assert outcome.kind is OutcomeKind.RELEASED
        assert outcome.booking_id == "B1"
        assert timers.last.cancelled
        assert controller.state is CountdownState.IDLE
        assert room.count("alert") == 1

    async def test_response_for_other_prompt_ignored(self, controller, room):
        await controller.start_countdown("B1")

        outcome = await controller.handle_response("some_other_prompt", "1")

        assert outcome is None
        assert controller.state is CountdownState.COUNTING
        assert room.count("decline") == 0

    async def test_response_without_countdown_ignored(self, controller, room):
        outcome = await controller.handle_response(FEEDBACK_ID, "1")

        assert outcome is None
        assert room.calls == []


class TestCancel:
    async def test_cancel_is_idempotent(self, controller, timers):
        assert await controller.cancel_countdown() is False

        await controller.start_countdown("B1")
        assert await controller.cancel_countdown() is True
        assert timers.last.cancelled
        assert controller.state is CountdownState.IDLE

        assert await controller.cancel_countdown() is False

    async def test_cancel_clears_prompt(self, controller, room):
        await controller.start_countdown("B1")
        await controller.cancel_countdown(reason="panel closed")
        assert room.calls[-1] == ("clear_prompt", FEEDBACK_ID)


class TestManualRelease:
    async def test_manual_release_cancels_countdown_and_releases_once(self, controller, room, timers):
        await controller.start_countdown("B1")
        await timers.last.fire(119)
        assert controller.remaining_seconds == 60

        outcome = await controller.force_complete("B1")

        assert timers.last.cancelled
        assert outcome.kind is OutcomeKind.RELEASED
        assert room.count("decline") == 1
        assert room.count("delete") == 1
        assert room.count("alert") == 1
        assert controller.state is CountdownState.IDLE

        # the cancelled timer can no longer fire
        await timers.last.fire(200)
        assert room.count("decline") == 1

    async def test_release_in_flight_blocks_second_release_and_new_countdown(self, controller, room):
        gate = asyncio.Event()
        decline = room.respond_decline

        async def slow_decline(meeting_id):
            await gate.wait()
            await decline(meeting_id)

        room.respond_decline = slow_decline

        first = asyncio.create_task(controller.force_complete("B1"))
        await asyncio.sleep(0)
        assert controller.state is CountdownState.COMPLETING

        assert await controller.start_countdown("B1") is False
        second = await controller.force_complete("B1")
        assert second.kind is OutcomeKind.FAILED
        assert "in progress" in second.reason

        gate.set()
        outcome = await first
        assert outcome.kind is OutcomeKind.RELEASED
        assert room.count("delete") == 1

    async def test_at_most_one_timer_across_mixed_operations(self, controller, timers):
        await controller.start_countdown("B1")
        assert len(timers.active) <= 1
        await controller.start_countdown("B2")
        assert len(timers.active) <= 1
        await controller.cancel_countdown()
        assert len(timers.active) == 0
        await controller.start_countdown("B1")
        assert len(timers.active) == 1
        await controller.force_complete("B1")
        assert len(timers.active) == 0
        await controller.start_countdown("B2")
        await controller.start_countdown("B2")
        assert len(timers.active) == 1


class TestShutdown:
    async def test_shutdown_waits_for_release_started_by_expiry(self, room, executor, timers):
        controller = CountdownController(
            room, executor, feedback_id=FEEDBACK_ID, total_seconds=1, timer_factory=timers
        )
        gate = asyncio.Event()
        decline = room.respond_decline

        async def slow_decline(meeting_id):
            await gate.wait()
            await decline(meeting_id)

        room.respond_decline = slow_decline

        await controller.start_countdown("B1")
        expiry = asyncio.create_task(timers.last.fire())
        while controller.state is not CountdownState.COMPLETING:
            await asyncio.sleep(0)
        assert controller.booking_id == ""

        stopping = asyncio.create_task(controller.shutdown())
        await asyncio.sleep(0)
        assert not stopping.done()

        gate.set()
        await stopping
        assert room.count("delete") == 1

        await expiry
        assert controller.last_outcome.kind is OutcomeKind.RELEASED
        assert controller.state is CountdownState.IDLE

    async def test_shutdown_when_idle(self, controller):
        await controller.shutdown()
        assert controller.state is CountdownState.IDLE
