"""
Review Intelligence Data Models
================================

Canonical entities and derived snapshots produced by the review pipeline.
Reviews are immutable once normalized; analyses are read-only views
recomputed per request and never persisted by the engine.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


class SentimentLabel(str, Enum):
    """Per-review / per-theme sentiment classes."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class ImpactLevel(str, Enum):
    """Severity (pain points) or impact (strengths) bucket."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RatingTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class VolumeTrend(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


@dataclass(frozen=True)
class Review:
    """A single normalized review."""
    id: str
    rating: int                         # 1..5
    text: str
    timestamp: datetime                 # timezone-aware, UTC
    reviewer: Optional[str] = None
    has_owner_response: bool = False
    staff: Tuple[str, ...] = ()         # staff members named by the collector


# =============================================================================
# REVIEW ANALYSIS
# =============================================================================

@dataclass(frozen=True)
class SentimentBreakdown:
    """Review counts per sentiment class."""
    positive: int = 0
    neutral: int = 0
    negative: int = 0

    @property
    def total(self) -> int:
        return self.positive + self.neutral + self.negative


@dataclass(frozen=True)
class SentimentSummary:
    overall: float = 0.0                # mean of per-review scores, -1..+1
    breakdown: SentimentBreakdown = field(default_factory=SentimentBreakdown)


@dataclass(frozen=True)
class Theme:
    """A recurring topic extracted from review text."""
    name: str
    frequency: int                      # reviews touching the theme
    sentiment: SentimentLabel
    examples: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PainPoint:
    issue: str
    severity: ImpactLevel
    frequency: int                      # negative reviews touching the theme
    suggestions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Strength:
    aspect: str
    mentions: int                       # positive reviews touching the theme
    impact: ImpactLevel


@dataclass(frozen=True)
class StaffMention:
    """A staff member named in reviews; one negative review marks them negative."""
    name: str
    count: int
    sentiment: SentimentLabel
    examples: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CustomerSegment:
    segment: str
    percentage: float                   # 0..100, one decimal
    characteristics: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReviewAnalysis:
    """Statistical snapshot of a review set."""
    sentiment: SentimentSummary = field(default_factory=SentimentSummary)
    themes: List[Theme] = field(default_factory=list)
    pain_points: List[PainPoint] = field(default_factory=list)
    strengths: List[Strength] = field(default_factory=list)
    customer_segments: List[CustomerSegment] = field(default_factory=list)
    staff_mentions: List[StaffMention] = field(default_factory=list)
    reviews_analyzed: int = 0
    degraded_sections: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.reviews_analyzed == 0


# =============================================================================
# ENHANCED ANALYSIS (temporal, clusters, seasons)
# =============================================================================

@dataclass(frozen=True)
class DayOfWeekBucket:
    day: str
    count: int


@dataclass(frozen=True)
class TimeOfDayBucket:
    time: str
    count: int


@dataclass(frozen=True)
class TemporalPatterns:
    day_of_week: List[DayOfWeekBucket] = field(default_factory=list)
    time_of_day: List[TimeOfDayBucket] = field(default_factory=list)


@dataclass(frozen=True)
class MonthlyTrend:
    period: str                         # YYYY-MM
    avg_rating: float
    review_count: int


@dataclass(frozen=True)
class ReviewCluster:
    name: str
    keywords: List[str]
    count: int
    sentiment: SentimentLabel


@dataclass(frozen=True)
class SeasonalBucket:
    season: str
    count: int
    avg_rating: float                   # 0.0 when the bucket is empty


@dataclass(frozen=True)
class EnhancedAnalysis:
    temporal_patterns: TemporalPatterns = field(default_factory=TemporalPatterns)
    historical_trends: List[MonthlyTrend] = field(default_factory=list)
    review_clusters: List[ReviewCluster] = field(default_factory=list)
    seasonal_analysis: List[SeasonalBucket] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)


# =============================================================================
# PERIOD COMPARISON
# =============================================================================

@dataclass(frozen=True)
class PeriodSnapshot:
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    avg_rating: float
    review_count: int
    sentiment_distribution: SentimentBreakdown
    sentiment_score: float = 0.0


@dataclass(frozen=True)
class PeriodChanges:
    rating_change: float
    review_count_change: int
    review_count_percent_change: float  # 0.0 when the previous period is empty
    sentiment_change: float
    new_themes: List[str] = field(default_factory=list)
    removed_themes: List[str] = field(default_factory=list)
    improving_themes: List[str] = field(default_factory=list)
    declining_themes: List[str] = field(default_factory=list)
    staff_changes: Dict[str, float] = field(default_factory=dict)  # score delta per staff member


@dataclass(frozen=True)
class PeriodComparisonData:
    previous_period: PeriodSnapshot
    current_period: PeriodSnapshot
    changes: PeriodChanges


# =============================================================================
# BUSINESS CONTEXT
# =============================================================================

@dataclass(frozen=True)
class BusinessMetrics:
    avg_rating: float = 0.0
    total_reviews: int = 0
    response_rate: float = 0.0          # 0..1
    monthly_reviews: float = 0.0


@dataclass(frozen=True)
class HistoricalTrends:
    rating_trend: RatingTrend = RatingTrend.STABLE
    volume_trend: VolumeTrend = VolumeTrend.STABLE
    sentiment_trend: RatingTrend = RatingTrend.STABLE


@dataclass(frozen=True)
class BusinessContext:
    """Complete input bundle handed to the recommendation step."""
    business_name: str
    business_type: str
    metrics: BusinessMetrics
    analysis: ReviewAnalysis
    enhanced: EnhancedAnalysis = field(default_factory=EnhancedAnalysis)
    historical_trends: Optional[HistoricalTrends] = None
    comparison: Optional[PeriodComparisonData] = None
    reviews: Sequence[Review] = field(default_factory=tuple, repr=False, compare=False)


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


def to_dict(obj: Any) -> Dict[str, Any]:
    """JSON-ready dict for any model in this module (enums and datetimes flattened)."""
    return _serialize(asdict(obj))


def context_to_dict(context: BusinessContext, include_reviews: bool = False) -> Dict[str, Any]:
    """Serialize a BusinessContext; reviews are left out unless asked for."""
    data = {
        "business_name": context.business_name,
        "business_type": context.business_type,
        "metrics": to_dict(context.metrics),
        "analysis": to_dict(context.analysis),
        "enhanced": to_dict(context.enhanced),
        "historical_trends": to_dict(context.historical_trends) if context.historical_trends else None,
        "comparison": to_dict(context.comparison) if context.comparison else None,
    }
    if include_reviews:
        data["reviews"] = [to_dict(r) for r in context.reviews]
    return data
