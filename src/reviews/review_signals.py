"""
Review Signal Extractor (Deterministic)
========================================

Classifies review sentiment and detects hospitality/retail themes from
review text using a keyword lexicon. No LLM required: fast, explainable,
reproducible.

Usage:
    extractor = ReviewSignalExtractor()
    label = classify_rating(review.rating)
    hits = extractor.match_themes(review.text)   # {theme: [keywords]}
"""

import re
import logging
from typing import Callable, Dict, List, Optional, Tuple

from .review_models import Review, SentimentLabel

logger = logging.getLogger(__name__)


# =============================================================================
# THEME LEXICON
# =============================================================================
# Each theme maps to (keywords, suggestions).
# Keywords are matched case-insensitively on word boundaries.
# Suggestions are attached to the theme when it surfaces as a pain point.

THEME_LEXICON: Dict[str, Tuple[List[str], List[str]]] = {
    "food": (
        [
            "food", "dish", "dishes", "meal", "menu", "taste", "tasty",
            "delicious", "flavor", "flavour", "bland", "portion", "portions",
            "pizza", "burger", "pasta", "dessert", "breakfast", "brunch",
            "lunch", "dinner", "cake", "pastry", "sandwich",
        ],
        [
            "Review recipes and seasoning of the most criticised dishes",
            "Run a quality check on plates before they leave the kitchen",
        ],
    ),
    "drinks": (
        [
            "coffee", "espresso", "latte", "cappuccino", "tea", "drink",
            "drinks", "cocktail", "cocktails", "beer", "wine", "juice",
            "smoothie",
        ],
        [
            "Recalibrate the coffee machine and grinder settings",
            "Train staff on drink recipes and presentation",
        ],
    ),
    "service": (
        [
            "service", "served", "waiter", "waitress", "server", "order",
            "ordered", "attentive", "ignored", "forgot", "rude",
        ],
        [
            "Set clear service standards for greeting and order taking",
            "Add a table check a few minutes after food arrives",
        ],
    ),
    "staff": (
        [
            "staff", "team", "barista", "bartender", "employee", "employees",
            "manager", "owner", "friendly", "welcoming", "helpful", "polite",
        ],
        [
            "Hold a short customer-care training session with the team",
            "Recognise staff members who are named positively in reviews",
        ],
    ),
    "atmosphere": (
        [
            "atmosphere", "ambiance", "ambience", "vibe", "decor", "music",
            "cozy", "cosy", "noisy", "loud", "lighting", "terrace", "view",
        ],
        [
            "Adjust music volume and lighting at peak hours",
            "Refresh seating and decor in the most used areas",
        ],
    ),
    "cleanliness": (
        [
            "clean", "dirty", "hygiene", "toilet", "toilets", "bathroom",
            "restroom", "sticky", "smell", "smelly",
        ],
        [
            "Introduce an hourly cleaning checklist for tables and restrooms",
            "Assign a named owner for cleanliness on every shift",
        ],
    ),
    "value": (
        [
            "price", "prices", "pricey", "expensive", "cheap", "overpriced",
            "value", "worth", "affordable", "cost",
        ],
        [
            "Review price points against local competitors",
            "Introduce a value offer or set menu for price-sensitive guests",
        ],
    ),
    "wait time": (
        [
            "wait", "waited", "waiting", "slow", "queue", "line", "quick",
            "fast", "delay", "late", "minutes",
        ],
        [
            "Add staff coverage at the busiest time slots",
            "Streamline the order-to-serve workflow to cut waiting times",
        ],
    ),
    "location": (
        [
            "location", "parking", "located", "access", "accessible",
            "neighborhood", "neighbourhood", "central",
        ],
        [
            "Publish clear directions and parking information online",
        ],
    ),
    "quality": (
        [
            "quality", "fresh", "stale", "product", "products", "selection",
            "exhibition", "collection", "broken", "professional",
        ],
        [
            "Audit supplier quality and storage of perishable items",
            "Tighten quality control on the most criticised products",
        ],
    ),
}

# Text-model scores at or beyond these bounds are positive/negative
POSITIVE_SCORE_THRESHOLD = 0.2
NEGATIVE_SCORE_THRESHOLD = -0.2

# Returns a score in [-1, 1], or None to fall back to the rating
TextSentimentModel = Callable[[Review], Optional[float]]


def classify_rating(rating: int) -> SentimentLabel:
    """Rating policy: 4-5 positive, 3 neutral, 1-2 negative."""
    if rating >= 4:
        return SentimentLabel.POSITIVE
    if rating <= 2:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


def rating_score(rating: int) -> float:
    """Map a 1..5 rating onto the -1..+1 sentiment scale."""
    return (rating - 3) / 2


def classify_score(score: float) -> SentimentLabel:
    if score >= POSITIVE_SCORE_THRESHOLD:
        return SentimentLabel.POSITIVE
    if score <= NEGATIVE_SCORE_THRESHOLD:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


def _compile_lexicon(
    lexicon: Dict[str, Tuple[List[str], List[str]]],
) -> Dict[str, List[Tuple[str, "re.Pattern"]]]:
    compiled = {}
    for theme, (keywords, _suggestions) in lexicon.items():
        compiled[theme] = [
            (kw, re.compile(r"\b" + re.escape(kw) + r"\b", re.IGNORECASE))
            for kw in keywords
        ]
    return compiled


class ReviewSignalExtractor:
    """
    Deterministic sentiment classifier and theme matcher.

    An optional text-sentiment model can refine the rating policy; when it
    returns None (or raises) for a review the rating decides.
    """

    def __init__(
        self,
        lexicon: Optional[Dict[str, Tuple[List[str], List[str]]]] = None,
        text_model: Optional[TextSentimentModel] = None,
    ):
        self.lexicon = lexicon or THEME_LEXICON
        self.text_model = text_model
        self._patterns = _compile_lexicon(self.lexicon)

    def score(self, review: Review) -> Tuple[SentimentLabel, float]:
        """Return (label, score) for a review."""
        if self.text_model is not None:
            try:
                value = self.text_model(review)
            except Exception as e:
                logger.warning(f"Text sentiment model failed for {review.id}: {e}")
                value = None
            if value is not None:
                value = max(-1.0, min(1.0, float(value)))
                return classify_score(value), value

        return classify_rating(review.rating), rating_score(review.rating)

    def match_themes(self, text: str) -> Dict[str, List[str]]:
        """
        Themes touched by a text.

        Returns:
            {theme: [matched keywords]} in lexicon order; empty for empty text.
        """
        if not text:
            return {}

        hits: Dict[str, List[str]] = {}
        for theme, patterns in self._patterns.items():
            matched = [kw for kw, pattern in patterns if pattern.search(text)]
            if matched:
                hits[theme] = matched
        return hits

    def suggestions_for(self, theme: str) -> List[str]:
        entry = self.lexicon.get(theme)
        return list(entry[1]) if entry else []
