"""Pydantic models for API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ReviewModel(BaseModel):
    """A published review."""

    id: str = Field(..., description="Review identifier")
    title: str
    content: str
    rating: int = Field(..., ge=1, le=5, description="Star rating 1-5")
    product_name: Optional[str] = Field(None, description="Reviewed product")
    created_at: datetime
    author: str = Field(..., description="Author display name")


class ReviewListResponse(BaseModel):
    """Reviews visible to the session."""

    reviews: List[ReviewModel]
    total: int


class GateOptionModel(BaseModel):
    id: str
    label: str


class DisclaimerModel(BaseModel):
    """Disclaimer text and its single action."""

    title: str
    intro: str
    points: List[str]
    legal_notice: str
    options: List[GateOptionModel]


class DisclaimerStatusResponse(BaseModel):
    """Disclaimer gate state for the session."""

    accepted: bool
    key: str = Field(..., description="Session storage key")
    disclaimer: Optional[DisclaimerModel] = Field(
        None, description="Present while acknowledgement is pending"
    )


class AuthStatusResponse(BaseModel):
    """Resolved auth gate state."""

    status: str = Field(..., description="authenticated, unauthenticated or error")
    principal: Optional[str] = None
    resolver: Optional[str] = None
    reason: Optional[str] = None
    login_url: str


class RatingLevelModel(BaseModel):
    value: int
    label: str
    stars: str


class RatingScaleResponse(BaseModel):
    levels: List[RatingLevelModel]


class HealthModel(BaseModel):
    """Health check response."""

    status: str
    version: str
    session_backend: str
