"""Typed events produced by the device signal source.

Whatever transport delivers them (HTTP feedback, a WebSocket, a test),
the service only ever sees these.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class CallEnded:
    """A call on the endpoint disconnected."""


@dataclass(frozen=True)
class CallStarted:
    """A call on the endpoint connected."""


@dataclass(frozen=True)
class PromptResponse:
    feedback_id: str
    option_id: str


@dataclass(frozen=True)
class PromptCleared:
    """The prompt was closed without choosing an option."""

    feedback_id: str


@dataclass(frozen=True)
class PanelAction:
    control_id: str  # "release" | "cancel"
    booking_id: str = ""


@dataclass(frozen=True)
class PanelClosed:
    panel_id: str


DeviceEvent = Union[CallEnded, CallStarted, PromptResponse, PromptCleared, PanelAction, PanelClosed]

RELEASE_CONTROL = "release"
CANCEL_CONTROL = "cancel"
