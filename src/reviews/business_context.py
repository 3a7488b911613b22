"""
Business Context Builder
========================

Assembles the BusinessContext handed to the recommendation step:
identity, headline metrics, the statistical analysis and, when a prior
period comparison is available, directional trends.

Usage:
    builder = BusinessContextBuilder()
    context = builder.build(
        BusinessInfo(name="Blue Bean", business_type="cafe"),
        reviews,
        prior=comparison,
    )
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .business_types import BusinessType, detect_business_type
from .review_aggregator import AggregationResult, ReviewAggregator
from .review_models import (
    BusinessContext,
    BusinessMetrics,
    HistoricalTrends,
    PeriodComparisonData,
    RatingTrend,
    Review,
    VolumeTrend,
)

logger = logging.getLogger(__name__)

# Relative change below this is "stable" (rating, volume); absolute for sentiment
DEFAULT_TREND_DEADBAND = 0.02


@dataclass(frozen=True)
class BusinessInfo:
    """Caller-supplied business metadata."""
    name: str
    business_type: Optional[str] = None
    response_rate: Optional[float] = None   # 0..1, overrides the owner-reply share


def months_spanned(reviews: Sequence[Review]) -> int:
    """Calendar months between first and last review, inclusive (0 if empty)."""
    if not reviews:
        return 0
    first = min(r.timestamp for r in reviews)
    last = max(r.timestamp for r in reviews)
    return (last.year - first.year) * 12 + (last.month - first.month) + 1


def _relative_change(previous: float, current: float) -> float:
    if previous == 0:
        if current == 0:
            return 0.0
        return 1.0 if current > previous else -1.0
    return (current - previous) / abs(previous)


def _direction(change: float, deadband: float):
    if change > deadband:
        return 1
    if change < -deadband:
        return -1
    return 0


def derive_trends(prior: PeriodComparisonData, deadband: float = DEFAULT_TREND_DEADBAND) -> HistoricalTrends:
    """Directional trends from a period comparison."""
    previous, current = prior.previous_period, prior.current_period

    rating_dir = _direction(_relative_change(previous.avg_rating, current.avg_rating), deadband)
    volume_dir = _direction(_relative_change(previous.review_count, current.review_count), deadband)
    sentiment_dir = _direction(prior.changes.sentiment_change, deadband)

    as_rating = {1: RatingTrend.IMPROVING, 0: RatingTrend.STABLE, -1: RatingTrend.DECLINING}
    as_volume = {1: VolumeTrend.INCREASING, 0: VolumeTrend.STABLE, -1: VolumeTrend.DECREASING}

    return HistoricalTrends(
        rating_trend=as_rating[rating_dir],
        volume_trend=as_volume[volume_dir],
        sentiment_trend=as_rating[sentiment_dir],
    )


class BusinessContextBuilder:
    """Builds a BusinessContext from business metadata and normalized reviews."""

    def __init__(
        self,
        aggregator: Optional[ReviewAggregator] = None,
        trend_deadband: float = DEFAULT_TREND_DEADBAND,
    ):
        self.aggregator = aggregator or ReviewAggregator()
        self.trend_deadband = trend_deadband

    @staticmethod
    def _clamp(rate) -> float:
        return max(0.0, min(1.0, float(rate)))

    def metrics(self, business: BusinessInfo, reviews: Sequence[Review]) -> BusinessMetrics:
        total = len(reviews)
        if not total:
            return BusinessMetrics(
                response_rate=self._clamp(business.response_rate) if business.response_rate is not None else 0.0,
            )

        if business.response_rate is not None:
            response_rate = self._clamp(business.response_rate)
        else:
            response_rate = sum(1 for r in reviews if r.has_owner_response) / total

        return BusinessMetrics(
            avg_rating=sum(r.rating for r in reviews) / total,
            total_reviews=total,
            response_rate=response_rate,
            monthly_reviews=total / months_spanned(reviews),
        )

    def build(
        self,
        business: BusinessInfo,
        reviews: Sequence[Review],
        prior: Optional[PeriodComparisonData] = None,
        aggregation: Optional[AggregationResult] = None,
    ) -> BusinessContext:
        """
        Build the context for one business.

        Args:
            business: name, optional type and response rate
            reviews: normalized reviews (referenced, not copied)
            prior: period comparison used to derive trends
            aggregation: precomputed aggregation of the same reviews

        Returns:
            BusinessContext with metrics, analysis and optional trends
        """
        if business.business_type:
            business_type = BusinessType.parse(business.business_type)
        else:
            business_type = detect_business_type(business.name, reviews)

        if aggregation is None:
            aggregation = self.aggregator.aggregate(reviews)

        trends = derive_trends(prior, self.trend_deadband) if prior is not None else None

        context = BusinessContext(
            business_name=business.name,
            business_type=business_type.value,
            metrics=self.metrics(business, reviews),
            analysis=aggregation.analysis,
            enhanced=aggregation.enhanced,
            historical_trends=trends,
            comparison=prior,
            reviews=reviews,
        )

        logger.info(
            f"Built context for '{business.name}' ({context.business_type}): "
            f"{context.metrics.total_reviews} reviews, avg {context.metrics.avg_rating:.2f}"
        )
        return context
