"""FastAPI application — device feedback receiver and admin API.

Endpoints:

  GET  /health            Health check
  POST /device/feedback   HTTP feedback posted by the endpoint (JSON)
  GET  /api/status        Countdown state and last release outcome
  POST /api/release       Release a booking now (manual release)
  POST /api/cancel        Cancel the running countdown
  WS   /ws/events         Live debug events (transitions, ticks, outcomes)

Register the endpoint's feedback with e.g.::

  xCommand HttpFeedback Register FeedbackSlot: 1 Format: JSON
      ServerUrl: http://<host>:8080/device/feedback
      Expression: /Event/CallDisconnect Expression: /Event/CallSuccessful
      Expression: /Event/UserInterface
"""

from __future__ import annotations

# Load .env into os.environ early so settings and any library reading
# the environment at import time see the same values.
from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any

# Configure root logger early so all roomrelease.* loggers have a handler
# and are visible when run via `uvicorn roomrelease.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-28s %(levelname)-7s %(message)s",
)

from fastapi import APIRouter, Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from roomrelease.auth import require_admin, require_admin_ws
from roomrelease.channels.feedback import FeedbackParser
from roomrelease.config import Settings, settings as default_settings
from roomrelease.service import RoomReleaseService

log = logging.getLogger("roomrelease.app")

_START_TIME = time.time()


class ReleaseRequest(BaseModel):
    booking_id: str = ""


def create_app(
    service: RoomReleaseService | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    With no ``service`` given, one is built from settings on startup and
    shut down with the app.
    """
    cfg = settings or default_settings
    parser = FeedbackParser.from_settings(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = service is None
        if owned:
            for warning in cfg.validate_startup():
                log.warning(warning)
            app.state.service = RoomReleaseService.from_settings(cfg)
        else:
            app.state.service = service
        log.info(
            "Room release service ready (countdown=%ss, settle=%ss)",
            cfg.countdown_seconds, cfg.settle_delay_seconds,
        )
        try:
            yield
        finally:
            if owned:
                await app.state.service.shutdown()

    app = FastAPI(
        title="Room Release",
        description="Releases unused meeting-room bookings after a call ends",
        version="0.1.0",
        lifespan=lifespan,
    )
    if service is not None:
        app.state.service = service

    def _service(request: Request) -> RoomReleaseService:
        return request.app.state.service

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check — confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    # ── Device feedback ────────────────────────────────────────

    @app.post("/device/feedback")
    async def device_feedback(request: Request) -> JSONResponse:
        """Receive one feedback post from the endpoint and dispatch it."""
        try:
            payload: Any = await request.json()
        except ValueError:
            log.warning("Device feedback with invalid JSON body")
            return JSONResponse({"error": "Invalid JSON"}, status_code=400)

        event = parser.parse(payload)
        if event is None:
            return JSONResponse({"accepted": False, "event": None})

        log.info("Device event: %s", event)
        outcome = await _service(request).dispatch(event)
        body: dict[str, Any] = {"accepted": True, "event": type(event).__name__}
        if outcome is not None:
            body["outcome"] = outcome.to_dict()
        return JSONResponse(body)

    # ── Admin API ──────────────────────────────────────────────
    # Everything on this router needs the admin token; /device/feedback
    # above is registered on the app itself and stays open.

    admin = APIRouter(prefix="/api", dependencies=[Depends(require_admin)])

    @admin.get("/status")
    async def status(request: Request) -> JSONResponse:
        return JSONResponse(_service(request).snapshot())

    @admin.post("/release")
    async def release(request: Request, body: ReleaseRequest | None = None) -> JSONResponse:
        booking_id = body.booking_id if body else ""
        outcome = await _service(request).release_now(booking_id)
        log.info("Manual release via API: %s", outcome.kind.value)
        return JSONResponse(outcome.to_dict())

    @admin.post("/cancel")
    async def cancel(request: Request) -> JSONResponse:
        cancelled = await _service(request).cancel()
        return JSONResponse({"cancelled": cancelled})

    app.include_router(admin)

    # ── Debug event stream ─────────────────────────────────────

    @app.websocket("/ws/events")
    async def ws_events(websocket: WebSocket, _auth: None = Depends(require_admin_ws)) -> None:
        await websocket.accept()
        broadcaster = websocket.app.state.service.broadcaster
        q = broadcaster.subscribe()

        async def forward() -> None:
            for event in broadcaster.event_log:
                await websocket.send_json(event)
            while True:
                await websocket.send_json(await q.get())

        sender = asyncio.create_task(forward())
        try:
            # Nothing is expected from the client; reading detects disconnects.
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            sender.cancel()
            broadcaster.unsubscribe(q)

    return app


app = create_app()
