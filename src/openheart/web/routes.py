"""HTML page routes."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse

from openheart.config import LOGIN_PATH, NEW_REVIEW_PATH, REVIEWS_PATH
from openheart.gates.auth import (
    AuthGate,
    AuthGateState,
    AuthRequest,
    record_login,
    record_logout,
    safe_redirect_target,
)
from openheart.gates.disclaimer import Disclaimer, DisclaimerGate
from openheart.gates.state import BrowserSession, SessionStoreError
from openheart.reviews.mock import find_review, mock_reviews
from openheart.reviews.models import RATING_SCALE, parse_submission
from openheart.web.middleware import client_id, is_rate_limited, record_failure
from openheart.web.tokens import mask_token, validate_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])

FEATURES = [
    {
        "icon": "🔒",
        "title": "Anonymous Posting",
        "text": "Write reviews without revealing your identity",
    },
    {
        "icon": "🛡️",
        "title": "Email Privacy",
        "text": "Your email is NEVER shown publicly",
    },
    {
        "icon": "🚫",
        "title": "No Tracking",
        "text": "Zero third-party analytics or cookies",
    },
]

# Status codes for the blocked submission view
AUTH_BLOCKED_STATUS = {
    AuthGateState.UNAUTHENTICATED: 401,
    AuthGateState.ERROR: 503,
}


def _session(request: Request) -> BrowserSession:
    return request.state.session


def _render(request: Request, template: str, status_code: int = 200, **context):
    return request.app.state.renderer.render(template, status_code, **context)


def _disclaimer_gate(request: Request) -> DisclaimerGate:
    return DisclaimerGate(
        _session(request), key=request.app.state.settings.disclaimer_key
    )


def _disclaimer_pending(gate: DisclaimerGate) -> bool:
    """Whether content must stay hidden. Store failures keep it hidden."""
    try:
        return gate.requires_prompt()
    except SessionStoreError as e:
        logger.error(f"Disclaimer state unavailable: {e}")
        return True


def _disclaimer_context(request: Request, next_path: str) -> dict:
    settings = request.app.state.settings
    return {
        "disclaimer": Disclaimer.for_site(settings.site_name),
        "accept_url": f"{REVIEWS_PATH}/disclaimer?next={quote(next_path, safe='/')}",
    }


async def _resolve_auth(request: Request) -> AuthGate:
    settings = request.app.state.settings
    gate = AuthGate(
        request.app.state.resolver,
        timeout=settings.auth_timeout_seconds,
        redirect_target=NEW_REVIEW_PATH,
    )
    await gate.resolve(AuthRequest(session=_session(request), headers=request.headers))
    return gate


def _render_new_review(
    request: Request,
    gate: AuthGate,
    values: dict | None = None,
    errors: dict | None = None,
    status_code: int | None = None,
):
    state = gate.state
    if status_code is None:
        status_code = AUTH_BLOCKED_STATUS.get(state, 200)
    return _render(
        request,
        "new_review.html",
        status_code,
        gate_state=state.value,
        login_url=gate.login_url,
        new_review_path=NEW_REVIEW_PATH,
        reviews_path=REVIEWS_PATH,
        rating_scale=RATING_SCALE,
        values=values or {},
        errors=errors or {},
    )


# --- Landing ---


@router.get("/")
async def home(request: Request):
    """Landing page."""
    return _render(
        request,
        "index.html",
        features=FEATURES,
        new_review_path=NEW_REVIEW_PATH,
        reviews_path=REVIEWS_PATH,
    )


# --- Listing (disclaimer gate) ---


@router.get(REVIEWS_PATH)
async def list_reviews(request: Request):
    """Review listing, hidden behind the disclaimer until acknowledged."""
    gate = _disclaimer_gate(request)
    show_disclaimer = _disclaimer_pending(gate)

    context = {
        "show_disclaimer": show_disclaimer,
        "reviews": [] if show_disclaimer else mock_reviews(),
        "login_path": LOGIN_PATH,
        "reviews_path": REVIEWS_PATH,
    }
    if show_disclaimer:
        context.update(_disclaimer_context(request, REVIEWS_PATH))
    return _render(request, "reviews.html", **context)


@router.post(f"{REVIEWS_PATH}/disclaimer")
async def accept_disclaimer(
    request: Request, next_path: Optional[str] = Query(None, alias="next")
):
    """The modal's single action: acknowledge and continue."""
    gate = _disclaimer_gate(request)
    try:
        gate.accept()
    except SessionStoreError as e:
        logger.error(f"Could not record disclaimer acceptance: {e}")
        return _render(
            request,
            "unavailable.html",
            503,
            message="We could not save your choice. Please try again shortly.",
        )
    target = safe_redirect_target(next_path, default=REVIEWS_PATH)
    return RedirectResponse(target, status_code=303)


# --- Submission (auth gate) ---


@router.get(NEW_REVIEW_PATH)
async def new_review_form(request: Request):
    """Submission form, or the authentication-required page."""
    gate = await _resolve_auth(request)
    return _render_new_review(request, gate)


@router.post(NEW_REVIEW_PATH)
async def submit_review(request: Request):
    """Validate a submitted review. Nothing is stored."""
    gate = await _resolve_auth(request)
    if not gate.allows_form:
        return _render_new_review(request, gate)

    form = await request.form()
    values = {key: str(value) for key, value in form.items()}
    submission, errors = parse_submission(values)
    if errors:
        return _render_new_review(
            request, gate, values=values, errors=errors, status_code=422
        )

    logger.info(
        f"Review draft accepted from {gate.resolution.principal}: "
        f"'{submission.title}' ({submission.rating}/5)"
    )
    return RedirectResponse(REVIEWS_PATH, status_code=303)


# --- Detail (disclaimer gate) ---


@router.get(f"{REVIEWS_PATH}/{{review_id}}")
async def review_detail(request: Request, review_id: str):
    """Single review ("Read more")."""
    review = find_review(review_id)
    if review is None:
        return _render(
            request, "not_found.html", 404, message="That review does not exist."
        )

    gate = _disclaimer_gate(request)
    show_disclaimer = _disclaimer_pending(gate)
    context = {
        "show_disclaimer": show_disclaimer,
        "review": None if show_disclaimer else review,
        "reviews_path": REVIEWS_PATH,
    }
    if show_disclaimer:
        context.update(_disclaimer_context(request, f"{REVIEWS_PATH}/{review.id}"))
    return _render(request, "review_detail.html", **context)


# --- Login ---


def _render_login(
    request: Request, redirect: str, error: str | None = None, status_code: int = 200
):
    return _render(
        request,
        "login.html",
        status_code,
        login_path=LOGIN_PATH,
        login_enabled=request.app.state.settings.login_enabled,
        redirect=redirect,
        error=error,
    )


@router.get(LOGIN_PATH)
async def login_form(request: Request, redirect: Optional[str] = Query(None)):
    """Access-token login form."""
    return _render_login(request, safe_redirect_target(redirect))


@router.post(LOGIN_PATH)
async def login(request: Request):
    """Check the access token and mark the session as logged in."""
    form = await request.form()
    redirect = safe_redirect_target(str(form.get("redirect") or ""))

    if not request.app.state.settings.login_enabled:
        return _render_login(request, redirect, status_code=403)

    client = client_id(request)
    if is_rate_limited(client):
        logger.warning(f"Rate limited login attempt from {client}")
        return _render_login(
            request,
            redirect,
            error="Too many failed attempts. Wait 60 seconds before retrying.",
            status_code=429,
        )

    provided = str(form.get("token") or "")
    try:
        expected = request.app.state.token_provider()
    except Exception as e:
        logger.error(f"Failed to get access token: {e}")
        return _render_login(
            request,
            redirect,
            error="Login is temporarily unavailable.",
            status_code=503,
        )

    if not provided or not validate_token(provided, expected):
        record_failure(client)
        logger.warning(f"Invalid login token from {client}: {mask_token(provided)}")
        return _render_login(
            request, redirect, error="Invalid access token.", status_code=401
        )

    try:
        record_login(_session(request))
    except SessionStoreError as e:
        logger.error(f"Could not record login: {e}")
        return _render_login(
            request,
            redirect,
            error="Login is temporarily unavailable.",
            status_code=503,
        )
    return RedirectResponse(redirect, status_code=303)


@router.post("/logout")
async def logout(request: Request):
    """Drop the login marker from the session."""
    try:
        record_logout(_session(request))
    except SessionStoreError as e:
        logger.error(f"Could not record logout: {e}")
    return RedirectResponse("/", status_code=303)
