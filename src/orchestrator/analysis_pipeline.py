"""
ReviewLens Analysis Pipeline
============================

End-to-end run for one business:
1. Normalization (raw records -> Reviews)
2. Aggregation (ReviewAnalysis + EnhancedAnalysis)
3. Period comparison (optional)
4. Business context
5. AI recommendations, one task after the other (optional)

Features:
    - Stateless (nothing persisted, config passed per run)
    - Resilient (malformed records dropped, AI failure degrades to statistics only)
    - Observable (per-stage durations in the report)

Usage:
    from src.orchestrator.analysis_pipeline import AnalysisPipeline

    pipeline = AnalysisPipeline()
    report = asyncio.run(pipeline.run(records, BusinessInfo(name="Blue Bean"), config))
    report.to_dict()
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..ai.llm_client import AIConfig, RetryPolicy
from ..ai.recommendation_assembler import RecommendationAssembler, RecommendationResult
from ..reviews.business_context import DEFAULT_TREND_DEADBAND, BusinessContextBuilder, BusinessInfo
from ..reviews.period_comparator import ComparisonWindow, PeriodComparator
from ..reviews.review_aggregator import ReviewAggregator
from ..reviews.review_models import BusinessContext, PeriodComparisonData, Review, context_to_dict
from ..reviews.review_normalizer import ReviewNormalizer

logger = logging.getLogger(__name__)


class PipelineStage(Enum):
    """Pipeline execution stages."""
    NORMALIZATION = "normalization"
    AGGREGATION = "aggregation"
    COMPARISON = "comparison"
    CONTEXT = "context"
    RECOMMENDATIONS = "recommendations"


class ReportStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    STATISTICS_ONLY = "statistics_only"


@dataclass
class AnalysisReport:
    """Complete pipeline run result."""
    run_id: str
    context: BusinessContext
    reviews_accepted: int
    reviews_dropped: int
    recommendations: List[RecommendationResult] = field(default_factory=list)
    stage_durations: Dict[PipelineStage, float] = field(default_factory=dict)

    @property
    def status(self) -> ReportStatus:
        if not self.recommendations:
            return ReportStatus.STATISTICS_ONLY
        complete = sum(1 for r in self.recommendations if r.is_complete)
        if complete == len(self.recommendations):
            return ReportStatus.COMPLETE
        if complete == 0:
            return ReportStatus.STATISTICS_ONLY
        return ReportStatus.PARTIAL

    def to_dict(self, include_reviews: bool = False) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "reviews_accepted": self.reviews_accepted,
            "reviews_dropped": self.reviews_dropped,
            "context": context_to_dict(self.context, include_reviews=include_reviews),
            "recommendations": [r.to_dict(include_analysis=False) for r in self.recommendations],
            "stage_durations": {
                stage.value: round(seconds, 4) for stage, seconds in self.stage_durations.items()
            },
        }


def window_for_last_days(reviews: Sequence[Review], days: int) -> Optional[ComparisonWindow]:
    """Last `days` up to the newest review, against the `days` before."""
    if not reviews or days <= 0:
        return None
    end = max(r.timestamp for r in reviews) + timedelta(microseconds=1)
    return ComparisonWindow.preceding(end - timedelta(days=days), end)


class AnalysisPipeline:
    """Wires the engine components together for one business per run."""

    def __init__(
        self,
        normalizer: Optional[ReviewNormalizer] = None,
        aggregator: Optional[ReviewAggregator] = None,
        assembler: Optional[RecommendationAssembler] = None,
        policy: Optional[RetryPolicy] = None,
        trend_deadband: float = DEFAULT_TREND_DEADBAND,
    ):
        self.normalizer = normalizer or ReviewNormalizer()
        self.aggregator = aggregator or ReviewAggregator()
        self.comparator = PeriodComparator(self.aggregator)
        self.builder = BusinessContextBuilder(self.aggregator, trend_deadband=trend_deadband)
        self.assembler = assembler or RecommendationAssembler(policy=policy)

    def analyze(
        self,
        records: Optional[Iterable[Any]],
        business: BusinessInfo,
        window: Optional[ComparisonWindow] = None,
        compare_days: Optional[int] = None,
    ) -> AnalysisReport:
        """Statistical part only (stages 1-4); synchronous."""
        run_id = str(uuid.uuid4())[:8]
        durations: Dict[PipelineStage, float] = {}

        started = time.monotonic()
        normalized = self.normalizer.normalize(records)
        reviews = normalized.reviews
        durations[PipelineStage.NORMALIZATION] = time.monotonic() - started

        started = time.monotonic()
        aggregation = self.aggregator.aggregate(reviews)
        durations[PipelineStage.AGGREGATION] = time.monotonic() - started

        comparison: Optional[PeriodComparisonData] = None
        if window is None and compare_days:
            window = window_for_last_days(reviews, compare_days)
        if window is not None:
            started = time.monotonic()
            previous, current = window.split(reviews)
            comparison = self.comparator.compare(previous, current, window)
            durations[PipelineStage.COMPARISON] = time.monotonic() - started

        started = time.monotonic()
        context = self.builder.build(business, reviews, prior=comparison, aggregation=aggregation)
        durations[PipelineStage.CONTEXT] = time.monotonic() - started

        logger.info(
            f"[{run_id}] Analysed {normalized.accepted} reviews for '{business.name}' "
            f"({normalized.dropped} dropped)",
            extra={"business": business.name},
        )

        return AnalysisReport(
            run_id=run_id,
            context=context,
            reviews_accepted=normalized.accepted,
            reviews_dropped=normalized.dropped,
            stage_durations=durations,
        )

    async def run(
        self,
        records: Optional[Iterable[Any]],
        business: BusinessInfo,
        config: Optional[AIConfig] = None,
        tasks: Sequence[str] = ("recommendations",),
        window: Optional[ComparisonWindow] = None,
        compare_days: Optional[int] = None,
    ) -> AnalysisReport:
        """
        Full run. Without a config the AI stage is skipped and the report
        is statistics only.

        Raises:
            TemplateError / UnknownTemplateError: bad task name
        """
        report = self.analyze(records, business, window=window, compare_days=compare_days)
        if config is None or not tasks:
            return report

        started = time.monotonic()
        for task in tasks:
            result = await self.assembler.recommend(report.context, config, task)
            report.recommendations.append(result)
        report.stage_durations[PipelineStage.RECOMMENDATIONS] = time.monotonic() - started

        logger.info(
            f"[{report.run_id}] Run finished with status {report.status.value}",
            extra={"business": business.name, "provider": config.provider.value},
        )
        return report
