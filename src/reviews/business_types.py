"""
Business Types & Industry Benchmarks
====================================

Supported business types, their industry benchmarks and a keyword-based
detector for when the caller does not say what kind of business it is.

Usage:
    business_type = detect_business_type("Blue Bean Coffee", reviews)
    position = competitive_position(metrics, business_type)
    position.tier   # "excellent" | "good" | "average" | "needs_improvement"
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence

from .review_models import BusinessMetrics, Review

logger = logging.getLogger(__name__)


class BusinessType(str, Enum):
    CAFE = "cafe"
    BAR = "bar"
    RESTAURANT = "restaurant"
    GALLERY = "gallery"
    RETAIL = "retail"
    SERVICE = "service"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> "BusinessType":
        """Lenient lookup; unknown or empty values become OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class IndustryBenchmark:
    avg_rating: float
    monthly_reviews: float
    response_rate: float
    common_themes: List[str]
    excellent_threshold: float
    good_threshold: float
    needs_improvement_threshold: float


INDUSTRY_BENCHMARKS: Dict[BusinessType, IndustryBenchmark] = {
    BusinessType.CAFE: IndustryBenchmark(
        4.2, 150, 0.30, ["coffee", "atmosphere", "wifi", "service", "pastries"], 4.5, 4.0, 3.5,
    ),
    BusinessType.BAR: IndustryBenchmark(
        4.0, 120, 0.25, ["drinks", "atmosphere", "music", "service", "crowd"], 4.3, 3.8, 3.3,
    ),
    BusinessType.RESTAURANT: IndustryBenchmark(
        4.1, 200, 0.35, ["food", "service", "ambiance", "value", "menu"], 4.4, 3.9, 3.4,
    ),
    BusinessType.GALLERY: IndustryBenchmark(
        4.4, 80, 0.40, ["art", "exhibitions", "curation", "space", "events"], 4.6, 4.2, 3.8,
    ),
    BusinessType.RETAIL: IndustryBenchmark(
        4.0, 100, 0.20, ["selection", "prices", "service", "quality", "location"], 4.3, 3.8, 3.3,
    ),
    BusinessType.SERVICE: IndustryBenchmark(
        4.3, 90, 0.40, ["professionalism", "quality", "timeliness", "value", "communication"], 4.5, 4.0, 3.5,
    ),
    BusinessType.OTHER: IndustryBenchmark(
        4.1, 100, 0.30, ["service", "quality", "value", "experience", "location"], 4.4, 3.9, 3.4,
    ),
}

# What recommendations should focus on, per type
RECOMMENDATION_FOCUS: Dict[BusinessType, str] = {
    BusinessType.CAFE: "customer experience and beverage quality",
    BusinessType.BAR: "nightlife experience and beverage menu",
    BusinessType.RESTAURANT: "culinary experience and customer service",
    BusinessType.GALLERY: "artistic value and visitor experience",
    BusinessType.RETAIL: "inventory management and customer satisfaction",
    BusinessType.SERVICE: "service excellence and client relationships",
    BusinessType.OTHER: "general business improvement",
}


# =============================================================================
# DETECTION
# =============================================================================

DETECTION_KEYWORDS: Dict[BusinessType, List[str]] = {
    BusinessType.CAFE: ["coffee", "espresso", "latte", "cappuccino", "pastry", "bakery", "brew", "barista"],
    BusinessType.BAR: ["drinks", "cocktail", "beer", "wine", "liquor", "bartender", "happy hour", "nightlife"],
    BusinessType.RESTAURANT: ["food", "menu", "meal", "dinner", "lunch", "chef", "cuisine", "dish", "restaurant"],
    BusinessType.GALLERY: ["art", "exhibition", "artist", "painting", "sculpture", "gallery", "curator", "artwork"],
    BusinessType.RETAIL: ["shop", "store", "buy", "purchase", "merchandise", "product", "shopping", "retail"],
    BusinessType.SERVICE: ["service", "professional", "consultation", "appointment", "technician", "repair", "maintenance"],
}

NAME_MATCH_WEIGHT = 3
MIN_CONFIDENT_SCORE = 5
FOOD_FALLBACK_TERMS = ["delicious", "tasty", "flavor", "portion", "waiter", "waitress"]
FOOD_FALLBACK_MIN = 10


def detect_business_type(name: str, reviews: Sequence[Review]) -> BusinessType:
    """
    Guess the business type from its name and review texts.

    Name matches weigh 3x a review mention. A weak winner (< 5 points)
    falls back to RESTAURANT when food vocabulary dominates the reviews.
    """
    business_name = (name or "").lower()
    corpus = " ".join(r.text.lower() for r in reviews if r.text)

    scores: Dict[BusinessType, int] = {}
    for business_type, keywords in DETECTION_KEYWORDS.items():
        score = 0
        for keyword in keywords:
            if keyword in business_name:
                score += NAME_MATCH_WEIGHT
            score += corpus.count(keyword)
        scores[business_type] = score

    detected = BusinessType.OTHER
    best = 0
    for business_type, score in scores.items():
        if score > best:
            best = score
            detected = business_type

    if detected == BusinessType.OTHER or best < MIN_CONFIDENT_SCORE:
        food_mentions = sum(corpus.count(term) for term in FOOD_FALLBACK_TERMS)
        if food_mentions > FOOD_FALLBACK_MIN:
            detected = BusinessType.RESTAURANT

    logger.debug(f"Detected business type '{detected.value}' for '{name}' (score={best})")
    return detected


# =============================================================================
# COMPETITIVE POSITION
# =============================================================================

@dataclass(frozen=True)
class CompetitivePosition:
    tier: str
    rating_gap: float                   # business - benchmark
    monthly_reviews_ratio: float        # business / benchmark
    response_rate_gap: float
    summary: str


def competitive_position(metrics: BusinessMetrics, business_type) -> CompetitivePosition:
    """Place a business against its industry benchmark."""
    business_type = BusinessType.parse(business_type)
    benchmark = INDUSTRY_BENCHMARKS[business_type]

    rating = metrics.avg_rating
    if rating >= benchmark.excellent_threshold:
        tier = "excellent"
    elif rating >= benchmark.good_threshold:
        tier = "good"
    elif rating >= benchmark.needs_improvement_threshold:
        tier = "average"
    else:
        tier = "needs_improvement"

    rating_gap = round(rating - benchmark.avg_rating, 2)
    volume_ratio = round(metrics.monthly_reviews / benchmark.monthly_reviews, 2)
    response_gap = round(metrics.response_rate - benchmark.response_rate, 2)

    summary = (
        f"{tier.replace('_', ' ').capitalize()} position for a {business_type.value}: "
        f"rating {rating:.2f} vs industry {benchmark.avg_rating:.1f} ({rating_gap:+.2f}), "
        f"{metrics.monthly_reviews:.1f} reviews/month vs {benchmark.monthly_reviews:.0f}, "
        f"response rate {metrics.response_rate:.0%} vs {benchmark.response_rate:.0%}"
    )

    return CompetitivePosition(
        tier=tier,
        rating_gap=rating_gap,
        monthly_reviews_ratio=volume_ratio,
        response_rate_gap=response_gap,
        summary=summary,
    )
