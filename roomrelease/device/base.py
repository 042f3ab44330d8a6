"""Abstract interfaces for the endpoint the release core talks to.

The core never touches the device directly. It is handed implementations
of these ABCs (the xAPI client in production, in-memory fakes in tests).
Every method is async and may raise one of the ``roomrelease.errors``
exceptions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from roomrelease.models.booking import BookingDetails


@dataclass(frozen=True)
class PromptOption:
    """One selectable answer on a prompt. ``option_id`` is 1-based."""

    option_id: str
    label: str


class DeviceStatus(ABC):
    """Live call status of the endpoint."""

    @abstractmethod
    async def get_active_call_count(self) -> int:
        """Return the number of calls currently connected.

        Raises:
            TransientQueryFailure: the status could not be read or parsed.
        """


class BookingService(ABC):
    """The endpoint's view of its calendar bookings."""

    @abstractmethod
    async def get_current_id(self) -> str:
        """Return the id of the booking currently in effect, or ``""``."""

    @abstractmethod
    async def get_details(self, booking_id: str) -> BookingDetails | None:
        """Return details for ``booking_id``, or None if it is unknown."""

    @abstractmethod
    async def respond_decline(self, meeting_id: str) -> None:
        """Decline the meeting on behalf of the room.

        Raises:
            CommandFailure: the device or calendar backend rejected it.
        """

    @abstractmethod
    async def delete(self, meeting_id: str) -> None:
        """Remove the booking from the endpoint's calendar.

        Raises:
            CommandFailure: the device or calendar backend rejected it.
        """


class UISink(ABC):
    """Prompts, panels and alerts on the endpoint's touch controller."""

    @abstractmethod
    async def show_confirm_prompt(
        self,
        title: str,
        text: str,
        feedback_id: str,
        options: list[PromptOption],
    ) -> None:
        """Display (or replace) a prompt.

        Raises:
            UIChannelFailure: the prompt could not be shown.
        """

    @abstractmethod
    async def clear_prompt(self, feedback_id: str) -> None:
        """Remove the prompt tagged with ``feedback_id`` if displayed."""

    @abstractmethod
    async def close_panel(self) -> None:
        """Close whatever panel is open on the controller."""

    @abstractmethod
    async def show_success_alert(
        self, title: str, text: str, duration_seconds: int
    ) -> None:
        """Display a transient alert."""
