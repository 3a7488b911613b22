"""
ReviewLens Review Intelligence Engine
=====================================

Deterministic aggregation of customer reviews into statistical
summaries. No LLM required for this layer.

Modules:
    review_models      — Data models (Review, ReviewAnalysis, BusinessContext, ...)
    review_normalizer  — Raw records -> validated, time-ordered Reviews
    review_signals     — Sentiment policy and theme lexicon
    review_aggregator  — Sentiment, themes, pain points, segments, temporal patterns
    period_comparator  — Period-over-period deltas
    business_types     — Business types, benchmarks, type detection
    business_context   — BusinessContext assembly and trends
"""

from .review_models import (
    Review,
    ReviewAnalysis,
    EnhancedAnalysis,
    BusinessContext,
    BusinessMetrics,
    HistoricalTrends,
    PeriodComparisonData,
    SentimentLabel,
    StaffMention,
    to_dict,
    context_to_dict,
)
from .review_normalizer import ReviewNormalizer, NormalizationResult, ValidationError
from .review_signals import ReviewSignalExtractor, THEME_LEXICON
from .review_aggregator import ReviewAggregator, AggregationResult, ReviewStats
from .period_comparator import PeriodComparator, ComparisonWindow
from .business_types import BusinessType, detect_business_type, competitive_position
from .business_context import BusinessContextBuilder, BusinessInfo
