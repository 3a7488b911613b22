"""
Tests for the statistical aggregator.

- Sentiment breakdown and overall score (rating policy, text model override)
- Themes, pain points, strengths and their buckets
- Customer segments
- Temporal / seasonal buckets, monthly trends, clusters, insights
- Edge cases: empty input, failing section, idempotence

Usage:
    pytest tests/test_review_aggregator.py -v
"""

from datetime import datetime, timezone

import pytest

from src.reviews.review_aggregator import DAYS_OF_WEEK, ReviewAggregator
from src.reviews.review_models import ImpactLevel, Review, SentimentLabel
from src.reviews.review_signals import (
    ReviewSignalExtractor,
    classify_rating,
    classify_score,
    rating_score,
)


# ============================================================================
# TEST DATA
# ============================================================================

def make_review(
    rating: int,
    text: str = "",
    ts: datetime = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc),
    review_id: str = None,
) -> Review:
    """Helper to create a normalized Review."""
    return Review(id=review_id or f"r-{rating}-{ts.isoformat()}-{text[:10]}", rating=rating, text=text, timestamp=ts)


SCENARIO_A_RATINGS = [5, 5, 4, 5, 3, 2, 1, 5, 4, 5]

CAFE_REVIEWS = [
    make_review(5, "Delicious coffee and friendly staff", datetime(2024, 1, 6, 9, 0, tzinfo=timezone.utc), "c1"),
    make_review(5, "Best latte in town, the staff are so welcoming", datetime(2024, 1, 13, 9, 30, tzinfo=timezone.utc), "c2"),
    make_review(4, "Good coffee, cozy atmosphere", datetime(2024, 2, 3, 15, 0, tzinfo=timezone.utc), "c3"),
    make_review(2, "Waited 30 minutes, service was slow", datetime(2024, 2, 10, 18, 0, tzinfo=timezone.utc), "c4"),
    make_review(1, "Rude service and a dirty toilet", datetime(2024, 3, 2, 23, 0, tzinfo=timezone.utc), "c5"),
    make_review(2, "Slow service, the wait was too long", datetime(2024, 3, 9, 13, 0, tzinfo=timezone.utc), "c6"),
    make_review(3, "Coffee was ok but pricey", datetime(2024, 7, 6, 11, 0, tzinfo=timezone.utc), "c7"),
    make_review(5, "", datetime(2024, 7, 13, 10, 0, tzinfo=timezone.utc), "c8"),
]


# ============================================================================
# CLASSIFICATION POLICY
# ============================================================================

class TestClassificationPolicy:

    @pytest.mark.parametrize("rating,label", [
        (5, SentimentLabel.POSITIVE),
        (4, SentimentLabel.POSITIVE),
        (3, SentimentLabel.NEUTRAL),
        (2, SentimentLabel.NEGATIVE),
        (1, SentimentLabel.NEGATIVE),
    ])
    def test_rating_thresholds(self, rating, label):
        assert classify_rating(rating) == label

    def test_rating_score_range(self):
        assert rating_score(1) == -1.0
        assert rating_score(3) == 0.0
        assert rating_score(5) == 1.0

    def test_score_thresholds(self):
        assert classify_score(0.2) == SentimentLabel.POSITIVE
        assert classify_score(0.1) == SentimentLabel.NEUTRAL
        assert classify_score(-0.2) == SentimentLabel.NEGATIVE


# ============================================================================
# SENTIMENT
# ============================================================================

class TestSentiment:

    def setup_method(self):
        self.aggregator = ReviewAggregator()

    def test_scenario_a_breakdown(self):
        """Ratings [5,5,4,5,3,2,1,5,4,5] under the >=4 / 3 / <=2 policy."""
        reviews = [make_review(r, review_id=f"a{i}") for i, r in enumerate(SCENARIO_A_RATINGS)]
        analysis = self.aggregator.analyze(reviews)
        breakdown = analysis.sentiment.breakdown
        assert (breakdown.positive, breakdown.neutral, breakdown.negative) == (7, 1, 2)
        assert breakdown.total == len(reviews)
        assert analysis.reviews_analyzed == 10

    def test_overall_is_mean_score(self):
        reviews = [make_review(r, review_id=f"a{i}") for i, r in enumerate(SCENARIO_A_RATINGS)]
        analysis = self.aggregator.analyze(reviews)
        expected = sum((r - 3) / 2 for r in SCENARIO_A_RATINGS) / len(SCENARIO_A_RATINGS)
        assert analysis.sentiment.overall == pytest.approx(expected)
        assert -1.0 <= analysis.sentiment.overall <= 1.0

    @pytest.mark.parametrize("ratings", [[1], [5], [1, 1, 1], [5, 5, 5, 5], [1, 5, 3, 2, 4]])
    def test_overall_bounds_and_breakdown_sum(self, ratings):
        reviews = [make_review(r, review_id=f"b{i}") for i, r in enumerate(ratings)]
        analysis = self.aggregator.analyze(reviews)
        assert -1.0 <= analysis.sentiment.overall <= 1.0
        assert analysis.sentiment.breakdown.total == len(ratings)

    def test_text_model_overrides_rating(self):
        aggregator = ReviewAggregator(text_model=lambda review: -0.9)
        analysis = aggregator.analyze([make_review(5, "Great")])
        assert analysis.sentiment.breakdown.negative == 1
        assert analysis.sentiment.overall == pytest.approx(-0.9)

    def test_text_model_none_falls_back_to_rating(self):
        aggregator = ReviewAggregator(text_model=lambda review: None)
        analysis = aggregator.analyze([make_review(5, "Great")])
        assert analysis.sentiment.breakdown.positive == 1

    def test_text_model_score_is_clamped(self):
        aggregator = ReviewAggregator(text_model=lambda review: 7.5)
        analysis = aggregator.analyze([make_review(1, "Awful")])
        assert analysis.sentiment.overall == 1.0

    def test_failing_text_model_falls_back(self):
        def broken(review):
            raise RuntimeError("model offline")

        aggregator = ReviewAggregator(text_model=broken)
        analysis = aggregator.analyze([make_review(1, "Awful")])
        assert analysis.sentiment.breakdown.negative == 1


# ============================================================================
# THEMES, PAIN POINTS, STRENGTHS
# ============================================================================

class TestThemes:

    def setup_method(self):
        self.aggregator = ReviewAggregator()
        self.analysis = self.aggregator.analyze(CAFE_REVIEWS)

    def test_theme_frequency_counts_reviews(self):
        themes = {t.name: t for t in self.analysis.themes}
        # c4, c5, c6 mention service
        assert themes["service"].frequency == 3
        assert themes["drinks"].frequency == 4

    def test_theme_majority_sentiment(self):
        themes = {t.name: t for t in self.analysis.themes}
        assert themes["service"].sentiment == SentimentLabel.NEGATIVE
        assert themes["staff"].sentiment == SentimentLabel.POSITIVE

    def test_theme_tie_resolves_to_neutral(self):
        reviews = [make_review(5, "food", review_id="t1"), make_review(1, "food", review_id="t2")]
        analysis = self.aggregator.analyze(reviews)
        assert analysis.themes[0].sentiment == SentimentLabel.NEUTRAL

    def test_themes_sorted_by_frequency_then_name(self):
        keys = [(-t.frequency, t.name) for t in self.analysis.themes]
        assert keys == sorted(keys)

    def test_examples_capped_at_three(self):
        for theme in self.analysis.themes:
            assert len(theme.examples) <= 3

    def test_word_boundary_matching(self):
        """'teammate' must not match the 'team' keyword."""
        extractor = ReviewSignalExtractor()
        assert "staff" not in extractor.match_themes("My teammate liked it")
        assert "staff" in extractor.match_themes("The TEAM was great")

    def test_pain_points(self):
        pains = {p.issue: p for p in self.analysis.pain_points}
        assert "service" in pains
        assert pains["service"].frequency == 3
        # 3 of 8 reviews -> 37.5% -> high
        assert pains["service"].severity == ImpactLevel.HIGH
        assert pains["service"].suggestions

    def test_strengths(self):
        strengths = {s.aspect: s for s in self.analysis.strengths}
        assert "drinks" in strengths
        assert strengths["drinks"].mentions == 3
        assert "service" not in strengths

    def test_bucket_boundaries(self):
        # 1 negative mention of cleanliness out of 10 reviews -> 10% -> medium
        reviews = [make_review(1, "dirty tables", review_id="d0")]
        reviews += [make_review(4, "", review_id=f"n{i}") for i in range(9)]
        analysis = self.aggregator.analyze(reviews)
        pains = {p.issue: p for p in analysis.pain_points}
        assert pains["cleanliness"].severity == ImpactLevel.MEDIUM

        reviews.append(make_review(4, "", review_id="n9"))
        analysis = self.aggregator.analyze(reviews)
        pains = {p.issue: p for p in analysis.pain_points}
        assert pains["cleanliness"].severity == ImpactLevel.LOW


class TestStaffMentions:

    def make_staff_review(self, rating, staff, text="", review_id="s"):
        ts = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)
        return Review(id=review_id, rating=rating, text=text, timestamp=ts, staff=tuple(staff))

    def test_counts_and_order(self):
        reviews = [
            self.make_staff_review(5, ["Elena"], "Elena was lovely", "s1"),
            self.make_staff_review(4, ["Elena", "Marcus"], "", "s2"),
            self.make_staff_review(5, ["Zoe"], "Zoe made my day", "s3"),
        ]
        staff = ReviewAggregator().analyze(reviews).staff_mentions
        assert [(s.name, s.count) for s in staff] == [("Elena", 2), ("Marcus", 1), ("Zoe", 1)]
        assert staff[0].examples == ["Elena was lovely"]

    def test_negative_takes_priority(self):
        reviews = [
            self.make_staff_review(5, ["Marcus"], review_id="m1"),
            self.make_staff_review(5, ["Marcus"], review_id="m2"),
            self.make_staff_review(1, ["Marcus"], review_id="m3"),
            self.make_staff_review(3, ["Zoe"], review_id="z1"),
        ]
        staff = {s.name: s for s in ReviewAggregator().analyze(reviews).staff_mentions}
        assert staff["Marcus"].sentiment == SentimentLabel.NEGATIVE
        assert staff["Zoe"].sentiment == SentimentLabel.NEUTRAL

    def test_no_staff_data(self):
        assert ReviewAggregator().analyze(CAFE_REVIEWS).staff_mentions == []

    def test_summarize_staff_scores(self):
        reviews = [
            self.make_staff_review(5, ["Elena"], review_id="e1"),
            self.make_staff_review(2, ["Elena"], review_id="e2"),
        ]
        assert ReviewAggregator().summarize(reviews).staff_scores == {"Elena": pytest.approx(0.25)}


class TestSegments:

    def test_rating_cohorts(self):
        aggregator = ReviewAggregator()
        reviews = [make_review(r, review_id=f"s{i}") for i, r in enumerate(SCENARIO_A_RATINGS)]
        segments = {s.segment: s for s in aggregator.analyze(reviews).customer_segments}
        assert segments["Promoters"].percentage == 50.0
        assert segments["Satisfied"].percentage == 20.0
        assert segments["Passives"].percentage == 10.0
        assert segments["Detractors"].percentage == 20.0

    def test_percentages_sum_to_at_most_100(self):
        aggregator = ReviewAggregator()
        reviews = [make_review(r, review_id=f"p{i}") for i, r in enumerate([5, 4, 3, 1, 2, 5, 4])]
        total = sum(s.percentage for s in aggregator.analyze(reviews).customer_segments)
        assert total <= 100.5

    def test_characteristics_include_top_themes(self):
        segments = {s.segment: s for s in ReviewAggregator().analyze(CAFE_REVIEWS).customer_segments}
        assert any("service" in c for c in segments["Detractors"].characteristics)


# ============================================================================
# ENHANCED ANALYSIS
# ============================================================================

class TestEnhanced:

    def setup_method(self):
        self.enhanced = ReviewAggregator().enhance(CAFE_REVIEWS)

    def test_day_of_week_has_seven_buckets(self):
        days = self.enhanced.temporal_patterns.day_of_week
        assert [d.day for d in days] == DAYS_OF_WEEK
        assert sum(d.count for d in days) == len(CAFE_REVIEWS)
        # every sample review is on a Saturday
        counts = {d.day: d.count for d in days}
        assert counts["Saturday"] == len(CAFE_REVIEWS)
        assert counts["Monday"] == 0

    def test_time_of_day_buckets(self):
        slots = {s.time: s.count for s in self.enhanced.temporal_patterns.time_of_day}
        assert list(slots) == ["Morning", "Afternoon", "Evening", "Night"]
        assert slots == {"Morning": 4, "Afternoon": 2, "Evening": 1, "Night": 1}

    def test_seasons_emit_empty_buckets(self):
        seasons = {s.season: s for s in self.enhanced.seasonal_analysis}
        assert list(seasons) == ["Winter", "Spring", "Summer", "Fall"]
        assert seasons["Fall"].count == 0
        assert seasons["Fall"].avg_rating == 0.0
        assert seasons["Summer"].count == 2
        assert seasons["Summer"].avg_rating == 4.0

    def test_monthly_trends(self):
        periods = [m.period for m in self.enhanced.historical_trends]
        assert periods == ["2024-01", "2024-02", "2024-03", "2024-07"]
        assert self.enhanced.historical_trends[0].avg_rating == 5.0

    def test_clusters_top_five_with_keywords(self):
        clusters = self.enhanced.review_clusters
        assert 0 < len(clusters) <= 5
        by_name = {c.name: c for c in clusters}
        assert "coffee" in by_name["drinks"].keywords

    def test_insights_mention_busiest_day(self):
        assert any("Saturday" in insight for insight in self.enhanced.insights)


# ============================================================================
# EDGE CASES
# ============================================================================

class TestEdgeCases:

    def test_empty_input(self):
        """Empty set -> zero counts, empty arrays, no exception."""
        result = ReviewAggregator().aggregate([])
        analysis = result.analysis
        assert analysis.is_empty
        assert analysis.sentiment.overall == 0.0
        assert analysis.sentiment.breakdown.total == 0
        assert analysis.themes == []
        assert analysis.pain_points == []
        assert analysis.strengths == []
        assert analysis.customer_segments == []
        assert analysis.degraded_sections == []
        assert len(result.enhanced.temporal_patterns.day_of_week) == 7
        assert all(d.count == 0 for d in result.enhanced.temporal_patterns.day_of_week)
        assert result.enhanced.insights == []

    def test_idempotent(self):
        aggregator = ReviewAggregator()
        assert aggregator.aggregate(CAFE_REVIEWS) == aggregator.aggregate(CAFE_REVIEWS)

    def test_failing_section_is_degraded(self, monkeypatch):
        aggregator = ReviewAggregator()

        def explode(scored):
            raise RuntimeError("boom")

        monkeypatch.setattr(aggregator, "_segments", explode)
        result = aggregator.aggregate(CAFE_REVIEWS)
        assert result.analysis.customer_segments == []
        assert result.analysis.degraded_sections == ["customer_segments"]
        # other sections survive
        assert result.analysis.sentiment.breakdown.total == len(CAFE_REVIEWS)
        assert result.analysis.themes

    def test_summarize_metrics_only(self):
        stats = ReviewAggregator().summarize(CAFE_REVIEWS)
        assert stats.review_count == 8
        assert stats.avg_rating == pytest.approx(27 / 8)
        assert "service" in stats.theme_scores
