"""Tests for review records, rating scale and submission validation."""

from datetime import datetime, timezone

import pytest

from openheart.reviews.mock import find_review, mock_reviews
from openheart.reviews.models import (
    ANONYMOUS_AUTHOR,
    RATING_SCALE,
    Review,
    ReviewSubmission,
    parse_submission,
    render_stars,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestRatingScale:
    """The submission form's rating selector."""

    def test_exactly_five_levels(self):
        assert len(RATING_SCALE) == 5

    def test_values_one_through_five(self):
        assert sorted(level.value for level in RATING_SCALE) == [1, 2, 3, 4, 5]

    def test_best_first(self):
        assert [level.value for level in RATING_SCALE] == [5, 4, 3, 2, 1]

    def test_labels(self):
        labels = {level.value: level.label for level in RATING_SCALE}
        assert labels == {
            5: "Excellent",
            4: "Good",
            3: "Average",
            2: "Poor",
            1: "Terrible",
        }

    def test_star_display(self):
        three = next(level for level in RATING_SCALE if level.value == 3)
        assert three.stars == "★★★☆☆"
        assert three.display == "★★★☆☆ - Average"


class TestRenderStars:
    @pytest.mark.parametrize(
        "rating,expected",
        [(1, "★☆☆☆☆"), (5, "★★★★★"), (0, "☆☆☆☆☆"), (7, "★★★★★")],
    )
    def test_render(self, rating, expected):
        assert render_stars(rating) == expected


class TestMockReviews:
    """The placeholder catalog."""

    def test_two_reviews(self):
        reviews = mock_reviews(NOW)
        assert [(r.title, r.rating) for r in reviews] == [
            ("Great Product!", 5),
            ("Good but could be better", 3),
        ]

    def test_timestamps_use_now(self):
        assert all(r.created_at == NOW for r in mock_reviews(NOW))

    def test_find_review(self):
        review = find_review("2", NOW)
        assert review is not None
        assert review.product_name == "Wireless Mouse"
        assert review.author_display == "Jane Smith"

    def test_find_unknown_review(self):
        assert find_review("999") is None


class TestReview:
    def test_author_defaults_to_anonymous(self):
        review = Review(
            id="3", title="t", content="c", rating=4, created_at=NOW
        )
        assert review.author_display == ANONYMOUS_AUTHOR

    def test_to_dict(self):
        data = find_review("1", NOW).to_dict()
        assert data == {
            "id": "1",
            "title": "Great Product!",
            "content": (
                "This product exceeded my expectations. Highly recommended "
                "for anyone looking for quality."
            ),
            "rating": 5,
            "product_name": "Laptop Stand",
            "created_at": NOW.isoformat(),
            "author": "John Doe",
        }


class TestSubmissionValidation:
    """Validation of submitted form fields."""

    def test_valid_submission(self):
        submission, errors = parse_submission(
            {
                "title": "  Solid chair ",
                "product_name": "Desk Chair",
                "rating": "4",
                "content": "Comfortable for long days.",
            }
        )
        assert errors == {}
        assert submission == ReviewSubmission(
            title="Solid chair",
            product_name="Desk Chair",
            rating=4,
            content="Comfortable for long days.",
        )

    def test_product_name_is_optional(self):
        submission, errors = parse_submission(
            {"title": "t", "rating": "5", "content": "c"}
        )
        assert errors == {}
        assert submission.product_name is None

    def test_blank_product_name_becomes_none(self):
        submission, _ = parse_submission(
            {"title": "t", "product_name": "   ", "rating": "5", "content": "c"}
        )
        assert submission.product_name is None

    def test_required_fields(self):
        submission, errors = parse_submission({})
        assert submission is None
        assert set(errors) == {"title", "rating", "content"}
        assert errors["title"] == "This field is required."

    def test_whitespace_title_rejected(self):
        _, errors = parse_submission(
            {"title": "   ", "rating": "3", "content": "c"}
        )
        assert "title" in errors

    @pytest.mark.parametrize("rating", ["0", "6", "abc", "", "-1"])
    def test_rating_out_of_scale(self, rating):
        _, errors = parse_submission(
            {"title": "t", "rating": rating, "content": "c"}
        )
        assert errors["rating"] == "Select a rating from 1 to 5 stars."
