"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("roomrelease.config")


class Settings(BaseSettings):
    # Device xAPI
    device_url: str = ""
    device_username: str = "admin"
    device_password: str = ""
    device_verify_tls: bool = False
    device_timeout_seconds: float = 10.0

    # Countdown
    countdown_seconds: int = 180
    settle_delay_seconds: float = 2.0
    tick_interval_seconds: float = 1.0
    success_alert_seconds: int = 5

    # UI identifiers (must match the panel/prompt installed on the device)
    feedback_id: str = "room_release_confirm"
    panel_id: str = "room_release"
    release_widget_id: str = "room_release_release"
    cancel_widget_id: str = "room_release_cancel"

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if not self.device_url:
            raise ValueError(
                "DEVICE_URL is missing. Set it in .env to the endpoint's "
                "base URL, e.g. https://10.0.0.12"
            )

        if self.countdown_seconds <= 0:
            raise ValueError("COUNTDOWN_SECONDS must be positive.")

        if not self.device_password:
            warnings.append("DEVICE_PASSWORD not set — xAPI calls will likely be rejected.")

        if not self.device_url.startswith("https://"):
            warnings.append("DEVICE_URL is not https — credentials are sent in clear text.")

        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        return warnings


settings = Settings()
