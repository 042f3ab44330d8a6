"""FeedbackParser — turns device HTTP feedback posts into DeviceEvents.

The endpoint is registered to post JSON feedback for the expressions
``/Event/CallDisconnect``, ``/Event/CallSuccessful`` and
``/Event/UserInterface``. Leaf values arrive wrapped, e.g.::

  {"Event": {"CallDisconnect": {"CauseType": {"Value": "LocalDisconnect"}}}}

  {"Event": {"UserInterface": {"Message": {"Prompt": {"Response": {
      "FeedbackId": {"Value": "room_release_confirm"},
      "OptionId": {"Value": "1"}}}}}}}

  {"Event": {"UserInterface": {"Extensions": {"Widget": {"Action": {
      "WidgetId": {"Value": "room_release_release"},
      "Type": {"Value": "clicked"},
      "Value": {"Value": "42"}}}}}}}

Anything else parses to None.
"""

from __future__ import annotations

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

log = logging.getLogger("roomrelease.feedback")

# A tap sends pressed, released, then clicked; only clicked counts.
_CLICK_TYPE = "clicked"


def _dig(node: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _value(node: Any, key: str) -> str:
    """Unwrap ``{"Key": {"Value": x}}`` (or a bare ``{"Key": x}``) to ``str(x)``."""
    if not isinstance(node, dict):
        return ""
    raw = node.get(key)
    if isinstance(raw, dict):
        raw = raw.get("Value")
    return "" if raw is None else str(raw)


class FeedbackParser:
    """Map device feedback payloads to DeviceEvents for one room's UI ids."""

    def __init__(self, release_widget_id: str, cancel_widget_id: str, panel_id: str) -> None:
        self._widgets = {
            release_widget_id: RELEASE_CONTROL,
            cancel_widget_id: CANCEL_CONTROL,
        }
        self._panel_id = panel_id

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeedbackParser":
        return cls(
            release_widget_id=settings.release_widget_id,
            cancel_widget_id=settings.cancel_widget_id,
            panel_id=settings.panel_id,
        )

    def parse(self, payload: dict[str, Any]) -> DeviceEvent | None:
        event = payload.get("Event") if isinstance(payload, dict) else None
        if not isinstance(event, dict):
            return None

        if "CallDisconnect" in event:
            return CallEnded()
        if "CallSuccessful" in event:
            return CallStarted()

        ui = event.get("UserInterface")
        if isinstance(ui, dict):
            return self._parse_ui(ui)

        log.debug("Ignoring feedback event(s): %s", list(event))
        return None

    def _parse_ui(self, ui: dict[str, Any]) -> DeviceEvent | None:
        prompt = _dig(ui, "Message", "Prompt")
        if isinstance(prompt, dict):
            if "Response" in prompt:
                resp = prompt["Response"]
                return PromptResponse(
                    feedback_id=_value(resp, "FeedbackId"),
                    option_id=_value(resp, "OptionId"),
                )
            if "Cleared" in prompt:
                return PromptCleared(feedback_id=_value(prompt["Cleared"], "FeedbackId"))

        action = _dig(ui, "Extensions", "Widget", "Action")
        if isinstance(action, dict):
            control = self._widgets.get(_value(action, "WidgetId"))
            if control and _value(action, "Type").lower() == _CLICK_TYPE:
                return PanelAction(control_id=control, booking_id=_value(action, "Value"))
            return None

        closed = _dig(ui, "Extensions", "Panel", "Close")
        if isinstance(closed, dict) and _value(closed, "PanelId") == self._panel_id:
            return PanelClosed(panel_id=self._panel_id)

        page_closed = _dig(ui, "Extensions", "Event", "PageClosed")
        if isinstance(page_closed, dict) and _value(page_closed, "PageId").startswith(self._panel_id):
            return PanelClosed(panel_id=self._panel_id)

        return None
