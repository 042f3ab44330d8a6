"""Pydantic models for bookings as reported by the endpoint."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BookingDetails(BaseModel):
    """Details returned by a booking lookup.

    ``meeting_id`` is the calendar-side identifier that decline and delete
    act on. It can legitimately be empty for bookings the endpoint only
    knows locally.
    """

    title: str = ""
    start_time: str = ""
    end_time: str = ""
    meeting_id: str = ""


class BookingRef(BaseModel):
    """Snapshot of the booking a countdown was started for.

    Captured once when the release check fires and never mutated. The
    executor re-reads the booking before acting, so the snapshot is only
    used for identity and display.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    meeting_id: str = ""
    title: str = ""
    start_time: str = ""
    end_time: str = ""

    @classmethod
    def from_details(cls, booking_id: str, details: BookingDetails | None) -> "BookingRef":
        if details is None:
            return cls(id=booking_id)
        return cls(
            id=booking_id,
            meeting_id=details.meeting_id,
            title=details.title,
            start_time=details.start_time,
            end_time=details.end_time,
        )
