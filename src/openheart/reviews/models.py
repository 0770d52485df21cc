"""Review data structures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

ANONYMOUS_AUTHOR = "Anonymous"
MAX_STARS = 5


@dataclass(frozen=True)
class RatingLevel:
    """One selectable rating."""

    value: int
    label: str

    @property
    def stars(self) -> str:
        return render_stars(self.value)

    @property
    def display(self) -> str:
        return f"{self.stars} - {self.label}"


# Best first, as presented in the form
RATING_SCALE: tuple[RatingLevel, ...] = (
    RatingLevel(5, "Excellent"),
    RatingLevel(4, "Good"),
    RatingLevel(3, "Average"),
    RatingLevel(2, "Poor"),
    RatingLevel(1, "Terrible"),
)


def render_stars(rating: int) -> str:
    """Filled stars for the rating, hollow for the rest."""
    filled = max(0, min(MAX_STARS, rating))
    return "★" * filled + "☆" * (MAX_STARS - filled)


@dataclass
class Review:
    """A published review."""

    id: str
    title: str
    content: str
    rating: int
    created_at: datetime
    product_name: str | None = None
    author_name: str | None = None

    @property
    def author_display(self) -> str:
        return self.author_name or ANONYMOUS_AUTHOR

    @property
    def stars(self) -> str:
        return render_stars(self.rating)

    def to_dict(self) -> dict:
        """Serialize for the API."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "rating": self.rating,
            "product_name": self.product_name,
            "created_at": self.created_at.isoformat(),
            "author": self.author_display,
        }


class ReviewSubmission(BaseModel):
    """A review as entered in the submission form."""

    title: str = Field(..., min_length=1, max_length=200)
    product_name: Optional[str] = Field(None, max_length=200)
    rating: int = Field(..., ge=1, le=MAX_STARS)
    content: str = Field(..., min_length=1)

    @field_validator("title", "content", mode="before")
    @classmethod
    def _strip_required(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("product_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


def parse_submission(
    data: Mapping[str, str],
) -> tuple[ReviewSubmission | None, dict[str, str]]:
    """Validate raw form fields.

    Returns:
        (submission, {}) when valid, otherwise (None, field -> message)
    """
    fields = {
        "title": data.get("title", ""),
        "product_name": data.get("product_name") or None,
        "rating": data.get("rating") or None,
        "content": data.get("content", ""),
    }
    try:
        return ReviewSubmission(**fields), {}
    except ValidationError as e:
        errors: dict[str, str] = {}
        for err in e.errors():
            field_name = str(err["loc"][0]) if err["loc"] else "form"
            errors.setdefault(field_name, _friendly_message(field_name, err))
        return None, errors


def _friendly_message(field_name: str, err: dict) -> str:
    if field_name == "rating":
        return "Select a rating from 1 to 5 stars."
    if err.get("type") in ("string_too_short", "missing"):
        return "This field is required."
    return err.get("msg", "Invalid value.")
