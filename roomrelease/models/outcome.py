"""Result of a single release attempt."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OutcomeKind(str, Enum):
    RELEASED = "released"
    ABORTED_STALE = "aborted_stale"
    ABORTED_INCOMPLETE = "aborted_incomplete"
    FAILED = "failed"


@dataclass(frozen=True)
class ReleaseOutcome:
    """What happened when the executor tried to release a booking.

    Use the constructors rather than building instances directly::

        ReleaseOutcome.released("B1")
        ReleaseOutcome.failed("decline rejected: 403")
    """

    kind: OutcomeKind
    booking_id: str = ""
    reason: str = ""

    @classmethod
    def released(cls, booking_id: str) -> "ReleaseOutcome":
        return cls(OutcomeKind.RELEASED, booking_id=booking_id)

    @classmethod
    def aborted_stale(cls, booking_id: str) -> "ReleaseOutcome":
        return cls(OutcomeKind.ABORTED_STALE, booking_id=booking_id)

    @classmethod
    def aborted_incomplete(cls, booking_id: str) -> "ReleaseOutcome":
        return cls(OutcomeKind.ABORTED_INCOMPLETE, booking_id=booking_id)

    @classmethod
    def failed(cls, reason: str, booking_id: str = "") -> "ReleaseOutcome":
        return cls(OutcomeKind.FAILED, booking_id=booking_id, reason=reason)

    @property
    def is_released(self) -> bool:
        return self.kind is OutcomeKind.RELEASED

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind.value,
            "booking_id": self.booking_id,
            "reason": self.reason,
        }
