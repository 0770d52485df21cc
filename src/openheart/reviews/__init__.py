"""Review records, rating scale, and the placeholder review catalog."""

from openheart.reviews.models import (
    ANONYMOUS_AUTHOR,
    RATING_SCALE,
    RatingLevel,
    Review,
    ReviewSubmission,
    parse_submission,
)
from openheart.reviews.mock import find_review, mock_reviews

__all__ = [
    "ANONYMOUS_AUTHOR",
    "RATING_SCALE",
    "RatingLevel",
    "Review",
    "ReviewSubmission",
    "find_review",
    "mock_reviews",
    "parse_submission",
]
