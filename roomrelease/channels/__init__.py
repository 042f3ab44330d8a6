"""Inbound device signals."""

from .base import (
    CallEnded,
    CallStarted,
    DeviceEvent,
    PanelAction,
    PanelClosed,
    PromptCleared,
    PromptResponse,
)
from .feedback import FeedbackParser

__all__ = [
    "CallEnded",
    "CallStarted",
    "DeviceEvent",
    "FeedbackParser",
    "PanelAction",
    "PanelClosed",
    "PromptCleared",
    "PromptResponse",
]
