"""Automatic release of unused meeting-room bookings on a video endpoint."""

__version__ = "0.1.0"
