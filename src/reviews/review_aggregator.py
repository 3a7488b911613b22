"""
Review Aggregator
=================

Turns a normalized review set into a ReviewAnalysis (sentiment, themes,
pain points, strengths, customer segments, staff mentions) and an
EnhancedAnalysis (temporal patterns, monthly trends, clusters, seasons, insights).

Pure and deterministic: same reviews in, equal analysis out. A section
that fails is logged, replaced by its empty default and listed in
ReviewAnalysis.degraded_sections; the rest of the analysis survives.

Usage:
    aggregator = ReviewAggregator()
    result = aggregator.aggregate(reviews)
    result.analysis.sentiment.breakdown
    result.enhanced.temporal_patterns
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .review_models import (
    CustomerSegment,
    DayOfWeekBucket,
    EnhancedAnalysis,
    ImpactLevel,
    MonthlyTrend,
    PainPoint,
    Review,
    ReviewAnalysis,
    ReviewCluster,
    SeasonalBucket,
    SentimentBreakdown,
    SentimentLabel,
    SentimentSummary,
    StaffMention,
    Strength,
    TemporalPatterns,
    Theme,
    TimeOfDayBucket,
)
from .review_signals import ReviewSignalExtractor, TextSentimentModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# BUCKET DEFINITIONS
# =============================================================================

# Sunday first; datetime.weekday() is Monday=0
DAYS_OF_WEEK = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# (label, start_hour inclusive, end_hour exclusive); Night wraps midnight
TIME_OF_DAY_SLOTS = [
    ("Morning", 6, 12),
    ("Afternoon", 12, 17),
    ("Evening", 17, 22),
    ("Night", 22, 6),
]

SEASONS = ["Winter", "Spring", "Summer", "Fall"]
SEASON_BY_MONTH = {
    12: "Winter", 1: "Winter", 2: "Winter",
    3: "Spring", 4: "Spring", 5: "Spring",
    6: "Summer", 7: "Summer", 8: "Summer",
    9: "Fall", 10: "Fall", 11: "Fall",
}

# (segment, ratings) in output order
RATING_COHORTS = [
    ("Promoters", (5,)),
    ("Satisfied", (4,)),
    ("Passives", (3,)),
    ("Detractors", (1, 2)),
]

# Share of analysed reviews for severity / impact buckets
HIGH_SHARE = 0.25
MEDIUM_SHARE = 0.10

MAX_EXAMPLES = 3
EXAMPLE_LENGTH = 200
MAX_CLUSTERS = 5
MAX_SEGMENT_THEMES = 2

# Month-over-month move that earns an insight
RATING_MOVE_INSIGHT = 0.2


@dataclass(frozen=True)
class ScoredReview:
    review: Review
    label: SentimentLabel
    score: float
    themes: Dict[str, List[str]]


@dataclass(frozen=True)
class ReviewStats:
    """Metrics-only summary of one review set (used for period comparison)."""
    review_count: int
    avg_rating: float
    breakdown: SentimentBreakdown
    sentiment_score: float
    theme_scores: Dict[str, float] = field(default_factory=dict)
    staff_scores: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class AggregationResult:
    analysis: ReviewAnalysis
    enhanced: EnhancedAnalysis


def _bucket(count: int, total: int) -> ImpactLevel:
    share = count / total if total else 0.0
    if share >= HIGH_SHARE:
        return ImpactLevel.HIGH
    if share >= MEDIUM_SHARE:
        return ImpactLevel.MEDIUM
    return ImpactLevel.LOW


def _majority(labels: Sequence[SentimentLabel]) -> SentimentLabel:
    """Majority vote; a tie for first place resolves to neutral."""
    counts = Counter(labels)
    if not counts:
        return SentimentLabel.NEUTRAL
    ranked = counts.most_common()
    if len(ranked) > 1 and ranked[0][1] == ranked[1][1]:
        return SentimentLabel.NEUTRAL
    return ranked[0][0]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _snippet(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= EXAMPLE_LENGTH:
        return text
    return text[:EXAMPLE_LENGTH].rstrip() + "..."


def _time_slot(hour: int) -> str:
    for label, start, end in TIME_OF_DAY_SLOTS:
        if start < end and start <= hour < end:
            return label
    return "Night"


class ReviewAggregator:
    """Statistical aggregation over normalized reviews."""

    def __init__(
        self,
        extractor: Optional[ReviewSignalExtractor] = None,
        text_model: Optional[TextSentimentModel] = None,
    ):
        self.extractor = extractor or ReviewSignalExtractor(text_model=text_model)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def aggregate(self, reviews: Sequence[Review]) -> AggregationResult:
        scored = self._score(reviews)
        degraded: List[str] = []
        analysis = self._analyze_scored(scored, degraded)
        enhanced = self._enhance_scored(scored, degraded)
        if degraded:
            analysis = replace(analysis, degraded_sections=sorted(set(degraded)))
        logger.info(
            f"Aggregated {len(scored)} reviews: {len(analysis.themes)} themes, "
            f"{len(analysis.pain_points)} pain points, {len(analysis.strengths)} strengths"
        )
        return AggregationResult(analysis=analysis, enhanced=enhanced)

    def analyze(self, reviews: Sequence[Review]) -> ReviewAnalysis:
        return self._analyze_scored(self._score(reviews), [])

    def enhance(self, reviews: Sequence[Review]) -> EnhancedAnalysis:
        return self._enhance_scored(self._score(reviews), [])

    def summarize(self, reviews: Sequence[Review]) -> ReviewStats:
        """Count, mean rating, sentiment breakdown/score, per-theme and per-staff scores."""
        scored = self._score(reviews)
        theme_members: Dict[str, List[float]] = defaultdict(list)
        staff_members: Dict[str, List[float]] = defaultdict(list)
        for item in scored:
            for theme in item.themes:
                theme_members[theme].append(item.score)
            for name in item.review.staff:
                staff_members[name].append(item.score)

        return ReviewStats(
            review_count=len(scored),
            avg_rating=_mean([s.review.rating for s in scored]),
            breakdown=self._breakdown(scored),
            sentiment_score=_mean([s.score for s in scored]),
            theme_scores={t: _mean(v) for t, v in sorted(theme_members.items())},
            staff_scores={n: _mean(v) for n, v in sorted(staff_members.items())},
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _score(self, reviews: Sequence[Review]) -> List[ScoredReview]:
        scored = []
        for review in reviews or ():
            label, score = self.extractor.score(review)
            scored.append(ScoredReview(
                review=review,
                label=label,
                score=score,
                themes=self.extractor.match_themes(review.text),
            ))
        return scored

    def _section(
        self,
        name: str,
        compute: Callable[[], T],
        default: T,
        degraded: List[str],
    ) -> T:
        try:
            return compute()
        except Exception as e:
            logger.error(f"Aggregation section '{name}' failed, using default: {e}", exc_info=True)
            degraded.append(name)
            return default

    def _analyze_scored(self, scored: List[ScoredReview], degraded: List[str]) -> ReviewAnalysis:
        sentiment = self._section("sentiment", lambda: self._sentiment(scored), SentimentSummary(), degraded)
        themes = self._section("themes", lambda: self._themes(scored), [], degraded)
        pain_points, strengths = self._section(
            "pain_points", lambda: self._pain_points_and_strengths(scored), ([], []), degraded
        )
        segments = self._section("customer_segments", lambda: self._segments(scored), [], degraded)
        staff = self._section("staff_mentions", lambda: self._staff(scored), [], degraded)

        return ReviewAnalysis(
            sentiment=sentiment,
            themes=themes,
            pain_points=pain_points,
            strengths=strengths,
            customer_segments=segments,
            staff_mentions=staff,
            reviews_analyzed=len(scored),
            degraded_sections=list(degraded),
        )

    def _enhance_scored(self, scored: List[ScoredReview], degraded: List[str]) -> EnhancedAnalysis:
        temporal = self._section(
            "temporal_patterns", lambda: self._temporal(scored), TemporalPatterns(), degraded
        )
        monthly = self._section("historical_trends", lambda: self._monthly(scored), [], degraded)
        clusters = self._section("review_clusters", lambda: self._clusters(scored), [], degraded)
        seasons = self._section("seasonal_analysis", lambda: self._seasons(scored), [], degraded)
        insights = self._section(
            "insights", lambda: self._insights(scored, temporal, monthly, clusters, seasons), [], degraded
        )

        return EnhancedAnalysis(
            temporal_patterns=temporal,
            historical_trends=monthly,
            review_clusters=clusters,
            seasonal_analysis=seasons,
            insights=insights,
        )

    # --- sentiment -----------------------------------------------------------

    @staticmethod
    def _breakdown(scored: List[ScoredReview]) -> SentimentBreakdown:
        counts = Counter(s.label for s in scored)
        return SentimentBreakdown(
            positive=counts[SentimentLabel.POSITIVE],
            neutral=counts[SentimentLabel.NEUTRAL],
            negative=counts[SentimentLabel.NEGATIVE],
        )

    def _sentiment(self, scored: List[ScoredReview]) -> SentimentSummary:
        overall = _mean([s.score for s in scored])
        return SentimentSummary(
            overall=max(-1.0, min(1.0, overall)),
            breakdown=self._breakdown(scored),
        )

    # --- themes --------------------------------------------------------------

    @staticmethod
    def _theme_members(scored: List[ScoredReview]) -> Dict[str, List[ScoredReview]]:
        members: Dict[str, List[ScoredReview]] = defaultdict(list)
        for item in scored:
            for theme in item.themes:
                members[theme].append(item)
        return members

    def _themes(self, scored: List[ScoredReview]) -> List[Theme]:
        themes = []
        for name, members in self._theme_members(scored).items():
            examples = [_snippet(m.review.text) for m in members[:MAX_EXAMPLES]]
            themes.append(Theme(
                name=name,
                frequency=len(members),
                sentiment=_majority([m.label for m in members]),
                examples=examples,
            ))
        themes.sort(key=lambda t: (-t.frequency, t.name))
        return themes

    def _pain_points_and_strengths(
        self, scored: List[ScoredReview]
    ) -> Tuple[List[PainPoint], List[Strength]]:
        total = len(scored)
        pain_points: List[PainPoint] = []
        strengths: List[Strength] = []

        for name, members in self._theme_members(scored).items():
            labels = Counter(m.label for m in members)
            positive = labels[SentimentLabel.POSITIVE]
            negative = labels[SentimentLabel.NEGATIVE]

            if negative > positive:
                pain_points.append(PainPoint(
                    issue=name,
                    severity=_bucket(negative, total),
                    frequency=negative,
                    suggestions=self.extractor.suggestions_for(name),
                ))
            elif positive > negative:
                strengths.append(Strength(
                    aspect=name,
                    mentions=positive,
                    impact=_bucket(positive, total),
                ))

        pain_points.sort(key=lambda p: (-p.frequency, p.issue))
        strengths.sort(key=lambda s: (-s.mentions, s.aspect))
        return pain_points, strengths

    # --- segments ------------------------------------------------------------

    def _segments(self, scored: List[ScoredReview]) -> List[CustomerSegment]:
        total = len(scored)
        if not total:
            return []

        segments = []
        for segment, ratings in RATING_COHORTS:
            cohort = [s for s in scored if s.review.rating in ratings]
            if not cohort:
                continue

            theme_counts = Counter(t for s in cohort for t in s.themes)
            top = sorted(theme_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:MAX_SEGMENT_THEMES]
            characteristics = [f"Often mentions {theme}" for theme, _ in top]

            avg_words = _mean([len(s.review.text.split()) for s in cohort])
            if avg_words >= 40:
                characteristics.append("Writes detailed reviews")
            elif avg_words < 8:
                characteristics.append("Leaves short or rating-only reviews")
            else:
                characteristics.append("Writes moderate-length reviews")

            segments.append(CustomerSegment(
                segment=segment,
                percentage=round(len(cohort) / total * 100, 1),
                characteristics=characteristics,
            ))
        return segments

    # --- staff ---------------------------------------------------------------

    def _staff(self, scored: List[ScoredReview]) -> List[StaffMention]:
        members: Dict[str, List[ScoredReview]] = defaultdict(list)
        for item in scored:
            for name in item.review.staff:
                members[name].append(item)

        mentions = []
        for name, items in members.items():
            labels = {m.label for m in items}
            if SentimentLabel.NEGATIVE in labels:
                sentiment = SentimentLabel.NEGATIVE
            elif SentimentLabel.POSITIVE in labels:
                sentiment = SentimentLabel.POSITIVE
            else:
                sentiment = SentimentLabel.NEUTRAL
            mentions.append(StaffMention(
                name=name,
                count=len(items),
                sentiment=sentiment,
                examples=[_snippet(m.review.text) for m in items if m.review.text][:MAX_EXAMPLES],
            ))
        mentions.sort(key=lambda s: (-s.count, s.name))
        return mentions

    # --- enhanced ------------------------------------------------------------

    def _temporal(self, scored: List[ScoredReview]) -> TemporalPatterns:
        days = Counter()
        slots = Counter()
        for item in scored:
            ts = item.review.timestamp
            days[DAYS_OF_WEEK[(ts.weekday() + 1) % 7]] += 1
            slots[_time_slot(ts.hour)] += 1

        return TemporalPatterns(
            day_of_week=[DayOfWeekBucket(day=d, count=days[d]) for d in DAYS_OF_WEEK],
            time_of_day=[TimeOfDayBucket(time=label, count=slots[label]) for label, _, _ in TIME_OF_DAY_SLOTS],
        )

    def _monthly(self, scored: List[ScoredReview]) -> List[MonthlyTrend]:
        ratings: Dict[str, List[int]] = defaultdict(list)
        for item in scored:
            ratings[item.review.timestamp.strftime("%Y-%m")].append(item.review.rating)

        return [
            MonthlyTrend(period=period, avg_rating=round(_mean(values), 2), review_count=len(values))
            for period, values in sorted(ratings.items())
        ]

    def _clusters(self, scored: List[ScoredReview]) -> List[ReviewCluster]:
        clusters = []
        for name, members in self._theme_members(scored).items():
            keyword_counts = Counter(kw for m in members for kw in m.themes[name])
            keywords = [kw for kw, _ in sorted(keyword_counts.items(), key=lambda kv: (-kv[1], kv[0]))]
            clusters.append(ReviewCluster(
                name=name,
                keywords=keywords,
                count=len(members),
                sentiment=_majority([m.label for m in members]),
            ))
        clusters.sort(key=lambda c: (-c.count, c.name))
        return clusters[:MAX_CLUSTERS]

    def _seasons(self, scored: List[ScoredReview]) -> List[SeasonalBucket]:
        ratings: Dict[str, List[int]] = defaultdict(list)
        for item in scored:
            ratings[SEASON_BY_MONTH[item.review.timestamp.month]].append(item.review.rating)

        return [
            SeasonalBucket(season=s, count=len(ratings[s]), avg_rating=round(_mean(ratings[s]), 2))
            for s in SEASONS
        ]

    def _insights(
        self,
        scored: List[ScoredReview],
        temporal: TemporalPatterns,
        monthly: List[MonthlyTrend],
        clusters: List[ReviewCluster],
        seasons: List[SeasonalBucket],
    ) -> List[str]:
        if not scored:
            return []

        total = len(scored)
        insights = []

        if temporal.day_of_week:
            busiest = max(temporal.day_of_week, key=lambda b: b.count)
            insights.append(
                f"{busiest.day} is the busiest review day ({busiest.count / total:.0%} of reviews)"
            )
        if temporal.time_of_day:
            slot = max(temporal.time_of_day, key=lambda b: b.count)
            insights.append(f"Most reviews are posted in the {slot.time.lower()}")

        if len(monthly) >= 2:
            last, before = monthly[-1], monthly[-2]
            move = last.avg_rating - before.avg_rating
            if abs(move) >= RATING_MOVE_INSIGHT:
                direction = "up" if move > 0 else "down"
                insights.append(
                    f"Average rating moved {direction} by {abs(move):.2f} in {last.period} "
                    f"({before.avg_rating:.2f} -> {last.avg_rating:.2f})"
                )

        if clusters:
            top = clusters[0]
            insights.append(
                f"'{top.name}' is the most discussed topic ({top.count} reviews, {top.sentiment.value})"
            )

        rated = [s for s in seasons if s.count]
        if len(rated) >= 2:
            best = max(rated, key=lambda s: s.avg_rating)
            insights.append(f"{best.season} has the best average rating ({best.avg_rating:.2f})")

        return insights
