"""
Period Comparator
=================

Period-over-period deltas between two review sets. Each side is
summarised independently; changes are direct subtractions.

Usage:
    window = ComparisonWindow.preceding(start, end)
    previous, current = window.split(reviews)
    comparison = PeriodComparator().compare(previous, current, window)
    comparison.changes.rating_change
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .review_aggregator import ReviewAggregator, ReviewStats
from .review_models import (
    PeriodChanges,
    PeriodComparisonData,
    PeriodSnapshot,
    Review,
)

logger = logging.getLogger(__name__)

# Theme score move (on the -1..+1 scale) that counts as improving/declining
THEME_MOVE_THRESHOLD = 0.1


@dataclass(frozen=True)
class ComparisonWindow:
    """Two half-open windows [start, end). Disjointness is not enforced."""
    previous_start: datetime
    previous_end: datetime
    current_start: datetime
    current_end: datetime

    @classmethod
    def preceding(cls, start: datetime, end: datetime) -> "ComparisonWindow":
        """Current window [start, end) and an equal-length window right before it."""
        length = end - start
        return cls(
            previous_start=start - length,
            previous_end=start,
            current_start=start,
            current_end=end,
        )

    def split(self, reviews: Sequence[Review]) -> Tuple[List[Review], List[Review]]:
        previous = [r for r in reviews if self.previous_start <= r.timestamp < self.previous_end]
        current = [r for r in reviews if self.current_start <= r.timestamp < self.current_end]
        return previous, current


def _snapshot(
    stats: ReviewStats,
    start: Optional[datetime],
    end: Optional[datetime],
) -> PeriodSnapshot:
    return PeriodSnapshot(
        start_date=start,
        end_date=end,
        avg_rating=stats.avg_rating,
        review_count=stats.review_count,
        sentiment_distribution=stats.breakdown,
        sentiment_score=stats.sentiment_score,
    )


def _staff_changes(previous: Dict[str, float], current: Dict[str, float]) -> Dict[str, float]:
    """Score delta per staff member; a side with no mentions counts as 0.0."""
    return {
        name: current.get(name, 0.0) - previous.get(name, 0.0)
        for name in sorted(set(previous) | set(current))
    }


class PeriodComparator:
    """Compares two review sets (typically two adjacent time windows)."""

    def __init__(self, aggregator: Optional[ReviewAggregator] = None):
        self.aggregator = aggregator or ReviewAggregator()

    def compare(
        self,
        previous: Sequence[Review],
        current: Sequence[Review],
        window: Optional[ComparisonWindow] = None,
    ) -> PeriodComparisonData:
        prev_stats = self.aggregator.summarize(previous)
        curr_stats = self.aggregator.summarize(current)

        previous_period = _snapshot(
            prev_stats,
            window.previous_start if window else None,
            window.previous_end if window else None,
        )
        current_period = _snapshot(
            curr_stats,
            window.current_start if window else None,
            window.current_end if window else None,
        )

        count_change = curr_stats.review_count - prev_stats.review_count
        if prev_stats.review_count == 0:
            percent_change = 0.0
        else:
            percent_change = count_change / prev_stats.review_count * 100

        prev_themes = prev_stats.theme_scores
        curr_themes = curr_stats.theme_scores
        shared = sorted(set(prev_themes) & set(curr_themes))

        changes = PeriodChanges(
            rating_change=curr_stats.avg_rating - prev_stats.avg_rating,
            review_count_change=count_change,
            review_count_percent_change=percent_change,
            sentiment_change=curr_stats.sentiment_score - prev_stats.sentiment_score,
            new_themes=sorted(set(curr_themes) - set(prev_themes)),
            removed_themes=sorted(set(prev_themes) - set(curr_themes)),
            improving_themes=[
                t for t in shared if curr_themes[t] - prev_themes[t] > THEME_MOVE_THRESHOLD
            ],
            declining_themes=[
                t for t in shared if prev_themes[t] - curr_themes[t] > THEME_MOVE_THRESHOLD
            ],
            staff_changes=_staff_changes(prev_stats.staff_scores, curr_stats.staff_scores),
        )

        logger.info(
            f"Period comparison: {prev_stats.review_count} -> {curr_stats.review_count} reviews, "
            f"rating change {changes.rating_change:+.2f}"
        )

        return PeriodComparisonData(
            previous_period=previous_period,
            current_period=current_period,
            changes=changes,
        )
