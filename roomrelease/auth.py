"""Admin access control for the room release service.

The admin surface is the ``/api`` router and the ``/ws/events`` stream. The
device feedback route sits outside it (see ``app.py``), since endpoints post
feedback without credentials.

Access is decided once, in check_admin_token(), for both transports:

  ADMIN_API_KEY set, token matches   → allowed
  ADMIN_API_KEY set, token bad/none  → BAD_TOKEN (HTTP 401, WS close 4001)
  ADMIN_API_KEY empty, DEBUG=true    → allowed
  ADMIN_API_KEY empty, DEBUG=false   → NOT_CONFIGURED (HTTP 403, WS close 4003)
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Query, WebSocketException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from roomrelease.config import settings

log = logging.getLogger("roomrelease.auth")


@dataclass(frozen=True)
class Denial:
    http_status: int
    ws_code: int
    detail: str


NOT_CONFIGURED = Denial(403, 4003, "Admin API key not configured. Set ADMIN_API_KEY.")
BAD_TOKEN = Denial(401, 4001, "Invalid or missing admin token.")

_bearer = HTTPBearer(auto_error=False)


def check_admin_token(token: str | None) -> Denial | None:
    """Return why ``token`` is refused, or None if it grants admin access."""
    key = settings.admin_api_key
    if not key:
        return None if settings.debug else NOT_CONFIGURED
    if token and secrets.compare_digest(token.encode(), key.encode()):
        return None
    return BAD_TOKEN


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> None:
    """Router dependency for the ``/api`` admin routes (Bearer header)."""
    denial = check_admin_token(credentials.credentials if credentials else None)
    if denial is None:
        return
    log.warning("Admin API request refused: %s", denial.detail)
    headers = {"WWW-Authenticate": "Bearer"} if denial is BAD_TOKEN else None
    raise HTTPException(status_code=denial.http_status, detail=denial.detail, headers=headers)


async def require_admin_ws(token: str = Query(default="")) -> None:
    """Guard for the event stream; the token comes as ``?token=``."""
    denial = check_admin_token(token or None)
    if denial is None:
        return
    log.warning("Event stream connection refused: %s", denial.detail)
    raise WebSocketException(code=denial.ws_code, reason=denial.detail)
