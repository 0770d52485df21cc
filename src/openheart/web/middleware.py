"""Middleware for browser sessions, login rate limiting and log masking."""

from __future__ import annotations

import logging
import re
import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from openheart.gates.state import BrowserSession, SessionStore, new_session_id

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{16,64}$")

# Rate limiting for failed login attempts
_failed_attempts: dict[str, list[float]] = {}
RATE_LIMIT_WINDOW = 60  # seconds
RATE_LIMIT_MAX = 10  # max failures per window


def reset_rate_limiter() -> None:
    """Reset the login rate limiter. Used in tests."""
    _failed_attempts.clear()


def client_id(request: Request) -> str:
    """Identifier for rate limiting (client IP, without the ephemeral port)."""
    if request.client:
        return request.client.host
    return "unknown"


def is_rate_limited(client: str) -> bool:
    """Check if client has too many recent login failures."""
    now = time.time()
    attempts = [
        t for t in _failed_attempts.get(client, ()) if now - t < RATE_LIMIT_WINDOW
    ]
    if attempts:
        _failed_attempts[client] = attempts
    else:
        _failed_attempts.pop(client, None)

    return len(attempts) >= RATE_LIMIT_MAX


def record_failure(client: str) -> None:
    """Record a failed login attempt and drop clients with no recent failures."""
    now = time.time()
    stale = [
        c
        for c, times in _failed_attempts.items()
        if now - times[-1] >= RATE_LIMIT_WINDOW
    ]
    for other in stale:
        del _failed_attempts[other]
    _failed_attempts.setdefault(client, []).append(now)


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """Attach a BrowserSession to every request.

    The session id lives in a cookie without Max-Age or Expires, so the
    browser drops it when the browsing session ends. Malformed ids are
    replaced with a fresh one. A well-formed id is trusted until login,
    which always issues a new id (see ``record_login``). When a handler
    regenerates the session, the new id is sent back here.
    """

    def __init__(self, app, store: SessionStore, cookie_name: str):
        super().__init__(app)
        self._store = store
        self._cookie_name = cookie_name

    async def dispatch(self, request: Request, call_next: Callable):
        raw_id = request.cookies.get(self._cookie_name)
        if raw_id and SESSION_ID_PATTERN.match(raw_id):
            session = BrowserSession(session_id=raw_id, store=self._store)
        else:
            session = BrowserSession(
                session_id=new_session_id(), store=self._store, is_new=True
            )
        request.state.session = session

        response = await call_next(request)

        if session.is_new and not getattr(request.state, "session_ended", False):
            response.set_cookie(
                self._cookie_name,
                session.session_id,
                httponly=True,
                samesite="lax",
            )
        return response


class MaskingFilter(logging.Filter):
    """Log filter that masks access tokens."""

    def filter(self, record: logging.LogRecord) -> bool:
        if hasattr(record, "msg") and isinstance(record.msg, str):
            from openheart.web.tokens import scrub_secrets

            record.msg = scrub_secrets(record.msg)
        return True


def setup_secure_logging() -> None:
    """Configure logging with token masking."""
    root_logger = logging.getLogger()
    root_logger.addFilter(MaskingFilter())

    for name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
        logging.getLogger(name).addFilter(MaskingFilter())
