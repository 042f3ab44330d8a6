"""Error taxonomy for the room release core.

None of these ever escape to the host process: the release check, the
countdown controller and the release executor each convert them into a
log line or a ReleaseOutcome.
"""

import logging
from typing import Any, Awaitable

log = logging.getLogger("roomrelease.errors")


class RoomReleaseError(Exception):
    """Base class for all room release errors."""


class TransientQueryFailure(RoomReleaseError):
    """A status or booking lookup failed (network, auth, malformed reply)."""


class StaleBooking(RoomReleaseError):
    """The current booking no longer matches the one being released."""


class IncompleteBookingData(RoomReleaseError):
    """Booking details are missing or lack a meeting identifier."""


class CommandFailure(RoomReleaseError):
    """A mutating booking command (decline, delete) was rejected or failed."""


class UIChannelFailure(RoomReleaseError):
    """The device refused or failed to render a UI element."""


async def best_effort(awaitable: Awaitable[Any], what: str) -> bool:
    """Await a non-critical call (UI cosmetics), logging instead of raising.

    Returns True if the call succeeded. Only for side effects that do not
    affect correctness, such as clearing a prompt or closing a panel.
    """
    try:
        await awaitable
        return True
    except Exception as exc:
        log.debug("Best-effort %s failed (non-critical): %s", what, exc)
        return False
