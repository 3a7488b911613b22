"""
Tests for period-over-period comparison.

Usage:
    pytest tests/test_period_comparator.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.reviews.period_comparator import ComparisonWindow, PeriodComparator
from src.reviews.review_models import Review


def make_review(rating: int, text: str = "", day: int = 1, month: int = 3) -> Review:
    ts = datetime(2024, month, day, 12, 0, tzinfo=timezone.utc)
    return Review(id=f"r-{month}-{day}-{rating}-{text[:8]}", rating=rating, text=text, timestamp=ts)


class TestComparisonWindow:

    def test_preceding_has_equal_length(self):
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)
        end = datetime(2024, 3, 31, tzinfo=timezone.utc)
        window = ComparisonWindow.preceding(start, end)
        assert window.previous_end == start
        assert window.previous_end - window.previous_start == end - start

    def test_split_is_half_open(self):
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)
        end = datetime(2024, 3, 11, tzinfo=timezone.utc)
        window = ComparisonWindow.preceding(start, end)
        boundary = Review(id="edge", rating=5, text="", timestamp=start)
        before = Review(id="before", rating=4, text="", timestamp=start - timedelta(days=1))
        too_late = Review(id="late", rating=3, text="", timestamp=end)

        previous, current = window.split([before, boundary, too_late])
        assert [r.id for r in previous] == ["before"]
        assert [r.id for r in current] == ["edge"]


class TestPeriodComparator:

    def setup_method(self):
        self.comparator = PeriodComparator()

    def test_empty_previous_uses_sentinel(self):
        """0 -> 5 reviews must not divide by zero."""
        current = [make_review(5, day=d) for d in range(1, 6)]
        comparison = self.comparator.compare([], current)
        assert comparison.previous_period.review_count == 0
        assert comparison.current_period.review_count == 5
        assert comparison.changes.review_count_change == 5
        assert comparison.changes.review_count_percent_change == 0.0

    def test_percent_change(self):
        previous = [make_review(4, day=d, month=2) for d in range(1, 5)]
        current = [make_review(4, day=d) for d in range(1, 7)]
        comparison = self.comparator.compare(previous, current)
        assert comparison.changes.review_count_percent_change == pytest.approx(50.0)

    def test_rating_change_is_subtraction(self):
        previous = [make_review(r, day=i + 1, month=2) for i, r in enumerate([3, 4, 2])]
        current = [make_review(r, day=i + 1) for i, r in enumerate([5, 4, 5, 4])]
        comparison = self.comparator.compare(previous, current)
        expected = comparison.current_period.avg_rating - comparison.previous_period.avg_rating
        assert abs(comparison.changes.rating_change - expected) < 1e-9
        assert comparison.changes.rating_change == pytest.approx(4.5 - 3.0)

    def test_sentiment_change(self):
        previous = [make_review(1, day=1, month=2)]
        current = [make_review(5, day=1)]
        comparison = self.comparator.compare(previous, current)
        assert comparison.changes.sentiment_change == pytest.approx(2.0)
        assert comparison.previous_period.sentiment_distribution.negative == 1
        assert comparison.current_period.sentiment_distribution.positive == 1

    def test_theme_deltas(self):
        previous = [
            make_review(1, "Slow service", day=1, month=2),
            make_review(5, "Lovely coffee", day=2, month=2),
            make_review(4, "Fair prices", day=3, month=2),
        ]
        current = [
            make_review(5, "Attentive service", day=1),
            make_review(2, "Bitter coffee", day=2),
            make_review(2, "Dirty toilet", day=3),
        ]
        changes = self.comparator.compare(previous, current).changes
        assert changes.new_themes == ["cleanliness"]
        assert set(changes.removed_themes) == {"value", "wait time"}
        assert changes.improving_themes == ["service"]
        assert changes.declining_themes == ["drinks"]

    def test_window_dates_carried_into_snapshots(self):
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)
        end = datetime(2024, 4, 1, tzinfo=timezone.utc)
        window = ComparisonWindow.preceding(start, end)
        previous, current = window.split([make_review(5, day=5)])
        comparison = self.comparator.compare(previous, current, window)
        assert comparison.current_period.start_date == start
        assert comparison.previous_period.end_date == start
        assert comparison.current_period.review_count == 1

    def test_both_empty(self):
        comparison = self.comparator.compare([], [])
        assert comparison.changes.rating_change == 0.0
        assert comparison.changes.review_count_percent_change == 0.0
        assert comparison.changes.new_themes == []

    def test_staff_changes(self):
        def staffed(rating, name, day, month=3):
            review = make_review(rating, day=day, month=month)
            return Review(id=f"{name}-{month}-{day}", rating=rating, text="", timestamp=review.timestamp, staff=(name,))

        previous = [staffed(5, "Elena", 1, month=2), staffed(5, "Marcus", 2, month=2)]
        current = [staffed(1, "Elena", 1), staffed(4, "Zoe", 2)]
        changes = self.comparator.compare(previous, current).changes
        assert changes.staff_changes == {
            "Elena": pytest.approx(-2.0),
            "Marcus": pytest.approx(-1.0),
            "Zoe": pytest.approx(0.5),
        }
