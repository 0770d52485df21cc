"""Placeholder review catalog.

Stands in for a review database until one exists.
"""

from __future__ import annotations

from datetime import datetime, timezone

from openheart.reviews.models import Review


def mock_reviews(now: datetime | None = None) -> list[Review]:
    """Return the sample reviews, stamped with ``now``."""
    created = now or datetime.now(timezone.utc)
    return [
        Review(
            id="1",
            title="Great Product!",
            content=(
                "This product exceeded my expectations. Highly recommended "
                "for anyone looking for quality."
            ),
            rating=5,
            product_name="Laptop Stand",
            created_at=created,
            author_name="John Doe",
        ),
        Review(
            id="2",
            title="Good but could be better",
            content=(
                "Decent quality but there are a few issues with the build "
                "quality. Still usable though."
            ),
            rating=3,
            product_name="Wireless Mouse",
            created_at=created,
            author_name="Jane Smith",
        ),
    ]


def find_review(review_id: str, now: datetime | None = None) -> Review | None:
    """Look up a sample review by id."""
    for review in mock_reviews(now):
        if review.id == review_id:
            return review
    return None
