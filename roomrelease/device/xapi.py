"""xAPI client for RoomOS-style video endpoints.

Talks to the endpoint's HTTP XML API with basic auth:

  GET  /getxml?location=/Status/...   status reads
  POST /putxml                        commands, body ``<Command>...</Command>``

A command reply carries a ``status`` attribute on its result element::

  <Command><BookingsDeleteResult status="OK"/></Command>
  <Command><BookingsDeleteResult status="Error"><Reason>...</Reason></BookingsDeleteResult></Command>

One client implements all three core interfaces, since they are all served
by the same device.
"""

from __future__ import annotations

import logging
from typing import Any
from xml.etree.ElementTree import Element, ParseError, SubElement, fromstring, tostring

import httpx

from roomrelease.config import Settings
from roomrelease.device.base import BookingService, DeviceStatus, PromptOption, UISink
from roomrelease.errors import (
    CommandFailure,
    RoomReleaseError,
    TransientQueryFailure,
    UIChannelFailure,
)
from roomrelease.models.booking import BookingDetails

logger = logging.getLogger(__name__)

ACTIVE_CALLS_PATH = "/Status/SystemUnit/State/NumberOfActiveCalls"
CURRENT_BOOKING_PATH = "/Status/Bookings/Current/Id"


class XAPIClient(DeviceStatus, BookingService, UISink):
    """DeviceStatus, BookingService and UISink backed by the device xAPI."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        verify_tls: bool = False,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            auth=(username, password),
            verify=verify_tls,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "XAPIClient":
        return cls(
            base_url=settings.device_url,
            username=settings.device_username,
            password=settings.device_password,
            verify_tls=settings.device_verify_tls,
            timeout=settings.device_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _get_status(self, location: str) -> Element:
        """Read a status subtree. Raises TransientQueryFailure on any error."""
        try:
            resp = await self._client.get("/getxml", params={"location": location})
            resp.raise_for_status()
            return fromstring(resp.content)
        except httpx.HTTPError as exc:
            raise TransientQueryFailure(f"status read {location} failed: {exc}") from exc
        except ParseError as exc:
            raise TransientQueryFailure(f"status read {location} returned bad XML") from exc

    @staticmethod
    def _status_text(root: Element, location: str) -> str:
        """Text of the leaf at ``location`` under a ``<Status>`` root, or ""."""
        parts = [p for p in location.split("/") if p]
        if parts and parts[0] == "Status":
            parts = parts[1:]
        node = root.find("/".join(parts))
        if node is None or node.text is None:
            return ""
        return node.text.strip()

    @staticmethod
    def _build_command(path: list[str], args: dict[str, Any]) -> bytes:
        """Build a ``<Command>`` body. List values become ``Name.1``, ``Name.2``..."""
        root = Element("Command")
        node = root
        for name in path:
            node = SubElement(node, name)
        for key, value in args.items():
            if isinstance(value, list):
                for idx, item in enumerate(value, start=1):
                    SubElement(node, f"{key}.{idx}").text = str(item)
            else:
                SubElement(node, key).text = str(value)
        return tostring(root, encoding="utf-8")

    async def _post_command(
        self,
        path: list[str],
        args: dict[str, Any],
        error_cls: type[RoomReleaseError],
    ) -> Element:
        """Run a command and return its result element, whatever its status.

        Transport failures and bad XML are raised as ``error_cls``.
        """
        label = " ".join(path)
        body = self._build_command(path, args)
        try:
            resp = await self._client.post(
                "/putxml", content=body, headers={"Content-Type": "text/xml"}
            )
            resp.raise_for_status()
            root = fromstring(resp.content)
        except httpx.HTTPError as exc:
            raise error_cls(f"{label} failed: {exc}") from exc
        except ParseError as exc:
            raise error_cls(f"{label} returned bad XML") from exc
        return root[0] if len(root) else root

    @staticmethod
    def _is_error(result: Element) -> bool:
        return result.get("status", "OK").lower() == "error"

    async def _command(
        self,
        path: list[str],
        args: dict[str, Any],
        error_cls: type[RoomReleaseError],
    ) -> Element:
        """Like _post_command, but a ``status="Error"`` result raises too."""
        result = await self._post_command(path, args, error_cls)
        if self._is_error(result):
            reason = result.findtext(".//Reason") or "unknown"
            raise error_cls(f"{' '.join(path)} rejected: {reason.strip()}")
        return result

    # ------------------------------------------------------------------
    # DeviceStatus
    # ------------------------------------------------------------------

    async def get_active_call_count(self) -> int:
        root = await self._get_status(ACTIVE_CALLS_PATH)
        raw = self._status_text(root, ACTIVE_CALLS_PATH)
        try:
            return int(raw)
        except ValueError as exc:
            raise TransientQueryFailure(f"unparseable active call count {raw!r}") from exc

    # ------------------------------------------------------------------
    # BookingService
    # ------------------------------------------------------------------

    async def get_current_id(self) -> str:
        root = await self._get_status(CURRENT_BOOKING_PATH)
        return self._status_text(root, CURRENT_BOOKING_PATH)

    async def get_details(self, booking_id: str) -> BookingDetails | None:
        result = await self._post_command(
            ["Bookings", "Get"], {"Id": booking_id}, TransientQueryFailure
        )
        # An unknown id comes back as status="Error".
        if self._is_error(result):
            logger.info("Booking %s not found on device", booking_id)
            return None

        booking = result.find("Booking")
        if booking is None:
            return None
        return BookingDetails(
            title=(booking.findtext("Title") or "").strip(),
            start_time=(booking.findtext("Time/StartTime") or "").strip(),
            end_time=(booking.findtext("Time/EndTime") or "").strip(),
            meeting_id=(booking.findtext("MeetingId") or "").strip(),
        )

    async def respond_decline(self, meeting_id: str) -> None:
        await self._command(
            ["Bookings", "Respond"],
            {"Type": "Decline", "MeetingId": meeting_id},
            CommandFailure,
        )
        logger.info("Declined meeting %s", meeting_id)

    async def delete(self, meeting_id: str) -> None:
        await self._command(
            ["Bookings", "Delete"], {"MeetingId": meeting_id}, CommandFailure
        )
        logger.info("Deleted booking for meeting %s", meeting_id)

    # ------------------------------------------------------------------
    # UISink
    # ------------------------------------------------------------------

    async def show_confirm_prompt(
        self,
        title: str,
        text: str,
        feedback_id: str,
        options: list[PromptOption],
    ) -> None:
        await self._command(
            ["UserInterface", "Message", "Prompt", "Display"],
            {
                "Title": title,
                "Text": text,
                "FeedbackId": feedback_id,
                "Option": [opt.label for opt in options],
            },
            UIChannelFailure,
        )

    async def clear_prompt(self, feedback_id: str) -> None:
        await self._command(
            ["UserInterface", "Message", "Prompt", "Clear"],
            {"FeedbackId": feedback_id},
            UIChannelFailure,
        )

    async def close_panel(self) -> None:
        await self._command(
            ["UserInterface", "Extensions", "Panel", "Close"], {}, UIChannelFailure
        )

    async def show_success_alert(
        self, title: str, text: str, duration_seconds: int
    ) -> None:
        await self._command(
            ["UserInterface", "Message", "Alert", "Display"],
            {"Title": title, "Text": text, "Duration": duration_seconds},
            UIChannelFailure,
        )
