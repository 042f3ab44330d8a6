"""Device, booking and UI interfaces consumed by the release core."""

from .base import BookingService, DeviceStatus, PromptOption, UISink

__all__ = ["BookingService", "DeviceStatus", "PromptOption", "UISink"]
