"""Data models for the room release core."""

from .booking import BookingDetails, BookingRef
from .outcome import OutcomeKind, ReleaseOutcome

__all__ = ["BookingDetails", "BookingRef", "OutcomeKind", "ReleaseOutcome"]
