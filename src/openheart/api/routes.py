"""JSON API routes mirroring the HTML views."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, Response

from openheart.api.models import (
    AuthStatusResponse,
    DisclaimerModel,
    DisclaimerStatusResponse,
    RatingLevelModel,
    RatingScaleResponse,
    ReviewListResponse,
    ReviewModel,
)
from openheart.config import NEW_REVIEW_PATH
from openheart.gates.auth import AuthGate, AuthRequest
from openheart.gates.disclaimer import Disclaimer, DisclaimerGate
from openheart.gates.state import BrowserSession, SessionStoreError
from openheart.reviews.mock import find_review, mock_reviews
from openheart.reviews.models import RATING_SCALE, Review

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["api"])


def _session(request: Request) -> BrowserSession:
    return request.state.session


def _disclaimer_gate(request: Request) -> DisclaimerGate:
    return DisclaimerGate(
        _session(request), key=request.app.state.settings.disclaimer_key
    )


def _store_unavailable(e: SessionStoreError) -> HTTPException:
    logger.error(f"Session store unavailable: {e}")
    return HTTPException(
        status_code=503,
        detail={
            "error": "E_SESSION_STORE",
            "code": "session_store_unavailable",
            "message": "Session state is temporarily unavailable.",
        },
    )


def _require_disclaimer(request: Request) -> None:
    """Raise 403 until the session has acknowledged the disclaimer."""
    try:
        pending = _disclaimer_gate(request).requires_prompt()
    except SessionStoreError as e:
        raise _store_unavailable(e) from e
    if pending:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "E_DISCLAIMER_REQUIRED",
                "code": "disclaimer_required",
                "message": "Accept the content disclaimer before viewing reviews. "
                "POST /api/v1/session/disclaimer to accept.",
            },
        )


def _review_model(review: Review) -> ReviewModel:
    return ReviewModel(**review.to_dict())


# --- Reviews ---


@router.get("/reviews", response_model=ReviewListResponse)
async def list_reviews(request: Request) -> ReviewListResponse:
    """GET /api/v1/reviews - Reviews, once the disclaimer is accepted."""
    _require_disclaimer(request)
    reviews = [_review_model(r) for r in mock_reviews()]
    return ReviewListResponse(reviews=reviews, total=len(reviews))


@router.get("/reviews/{review_id}", response_model=ReviewModel)
async def get_review(request: Request, review_id: str) -> ReviewModel:
    """GET /api/v1/reviews/{id} - Single review."""
    _require_disclaimer(request)
    review = find_review(review_id)
    if review is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "E_REVIEW_NOT_FOUND",
                "code": "not_found",
                "message": f"Review {review_id} not found.",
            },
        )
    return _review_model(review)


@router.get("/rating-scale", response_model=RatingScaleResponse)
async def rating_scale() -> RatingScaleResponse:
    """GET /api/v1/rating-scale - The five selectable ratings."""
    return RatingScaleResponse(
        levels=[
            RatingLevelModel(value=level.value, label=level.label, stars=level.stars)
            for level in RATING_SCALE
        ]
    )


# --- Session ---


def _disclaimer_status(request: Request, gate: DisclaimerGate, accepted: bool):
    disclaimer = None
    if not accepted:
        site_name = request.app.state.settings.site_name
        disclaimer = DisclaimerModel(**Disclaimer.for_site(site_name).to_dict())
    return DisclaimerStatusResponse(
        accepted=accepted, key=gate.key, disclaimer=disclaimer
    )


@router.get("/session/disclaimer", response_model=DisclaimerStatusResponse)
async def get_disclaimer(request: Request) -> DisclaimerStatusResponse:
    """GET /api/v1/session/disclaimer - Has this session accepted?"""
    gate = _disclaimer_gate(request)
    try:
        accepted = gate.is_accepted()
    except SessionStoreError as e:
        raise _store_unavailable(e) from e
    return _disclaimer_status(request, gate, accepted)


@router.post("/session/disclaimer", response_model=DisclaimerStatusResponse)
async def accept_disclaimer(request: Request) -> DisclaimerStatusResponse:
    """POST /api/v1/session/disclaimer - Acknowledge (idempotent)."""
    gate = _disclaimer_gate(request)
    try:
        gate.accept()
    except SessionStoreError as e:
        raise _store_unavailable(e) from e
    return _disclaimer_status(request, gate, True)


@router.get("/session/auth", response_model=AuthStatusResponse)
async def get_auth_status(request: Request) -> AuthStatusResponse:
    """GET /api/v1/session/auth - Resolve the auth gate for this request."""
    gate = AuthGate(
        request.app.state.resolver,
        timeout=request.app.state.settings.auth_timeout_seconds,
        redirect_target=NEW_REVIEW_PATH,
    )
    resolution = await gate.resolve(
        AuthRequest(session=_session(request), headers=request.headers)
    )
    return AuthStatusResponse(**resolution.to_dict(), login_url=gate.login_url)


@router.delete("/session", status_code=204)
async def end_session(request: Request) -> Response:
    """DELETE /api/v1/session - Clear all session state."""
    session = _session(request)
    try:
        session.clear()
    except SessionStoreError as e:
        raise _store_unavailable(e) from e
    request.state.session_ended = True
    response = Response(status_code=204)
    response.delete_cookie(request.app.state.settings.session_cookie)
    return response
