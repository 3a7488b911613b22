"""
Review Normalizer
=================

Converts heterogeneous review records (scraper exports, API payloads,
database rows) into canonical Review entities.

Malformed records are dropped and counted, never fatal:
    - not a mapping
    - missing / unparseable timestamp
    - rating missing, non-integral or outside [1, 5]

Usage:
    normalizer = ReviewNormalizer()
    result = normalizer.normalize(raw_records)
    result.reviews   # sorted by timestamp ascending
    result.dropped   # number of rejected records
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .review_models import Review

logger = logging.getLogger(__name__)


# Field aliases seen across collectors, checked in order.
ID_KEYS = ("id", "review_id", "reviewId", "reviewUrl")
RATING_KEYS = ("rating", "stars", "star")
TEXT_KEYS = ("text", "body", "comment", "textTranslated")
TIMESTAMP_KEYS = ("timestamp", "publishedAtDate", "published_at", "review_date", "date", "created_at")
REVIEWER_KEYS = ("reviewer", "name", "author")
OWNER_RESPONSE_KEYS = ("responseFromOwnerText", "owner_response")
STAFF_KEYS = ("staffMentioned", "staff_mentioned", "staff")

# Epoch values above this are milliseconds
_EPOCH_MS_THRESHOLD = 1e11


class ValidationError(ValueError):
    """A raw review record that cannot be normalized."""

    def __init__(self, message: str, index: Optional[int] = None, field_name: Optional[str] = None):
        self.message = message
        self.index = index
        self.field_name = field_name
        super().__init__(message)


@dataclass
class NormalizationResult:
    reviews: List[Review] = field(default_factory=list)
    dropped: int = 0
    errors: List[ValidationError] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return len(self.reviews)


def _first(record: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def _shown(value: Any) -> str:
    try:
        text = repr(value)
    except ValueError:  # int beyond the str conversion digit limit
        return f"<{type(value).__name__}>"
    return text if len(text) <= 60 else text[:57] + "..."


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a timestamp into an aware UTC datetime, or None."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        try:
            seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_rating(value: Any) -> Optional[int]:
    """Parse a star rating; only integral values in [1, 5] are accepted."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if number != number or not number.is_integer():  # NaN or fractional
        return None
    rating = int(number)
    if rating < 1 or rating > 5:
        return None
    return rating


def parse_staff(value: Any) -> Tuple[str, ...]:
    """Staff names from a comma-separated string or a list; blanks and repeats dropped."""
    if isinstance(value, str):
        names = value.split(",")
    elif isinstance(value, (list, tuple)):
        names = [v for v in value if isinstance(v, str)]
    else:
        return ()
    seen = []
    for name in (n.strip() for n in names):
        if name and name not in seen:
            seen.append(name)
    return tuple(seen)


def _stable_id(timestamp: datetime, text: str, reviewer: Optional[str]) -> str:
    digest = hashlib.sha1(
        f"{timestamp.isoformat()}|{reviewer or ''}|{text}".encode("utf-8")
    ).hexdigest()
    return f"rev_{digest[:16]}"


class ReviewNormalizer:
    """Turns loosely-typed review records into sorted Review entities."""

    def normalize_record(self, record: Any, index: Optional[int] = None) -> Review:
        """
        Normalize one record.

        Raises:
            ValidationError: if the record cannot become a valid Review
        """
        if not isinstance(record, Mapping):
            raise ValidationError(
                f"Record is not a mapping ({type(record).__name__})", index=index
            )

        raw_timestamp = _first(record, TIMESTAMP_KEYS)
        timestamp = parse_timestamp(raw_timestamp)
        if timestamp is None:
            raise ValidationError(
                f"Missing or unparseable timestamp: {_shown(raw_timestamp)}",
                index=index, field_name="timestamp",
            )

        raw_rating = _first(record, RATING_KEYS)
        rating = parse_rating(raw_rating)
        if rating is None:
            raise ValidationError(
                f"Rating must be an integer in [1, 5], got {_shown(raw_rating)}",
                index=index, field_name="rating",
            )

        text = _first(record, TEXT_KEYS)
        text = str(text).strip() if text is not None else ""

        reviewer = _first(record, REVIEWER_KEYS)
        reviewer = str(reviewer).strip() if reviewer is not None else None

        review_id = _first(record, ID_KEYS)
        review_id = str(review_id) if review_id is not None else _stable_id(timestamp, text, reviewer)

        owner_response = _first(record, OWNER_RESPONSE_KEYS)

        return Review(
            id=review_id,
            rating=rating,
            text=text,
            timestamp=timestamp,
            reviewer=reviewer or None,
            has_owner_response=bool(owner_response),
            staff=parse_staff(_first(record, STAFF_KEYS)),
        )

    def normalize(self, records: Optional[Iterable[Any]]) -> NormalizationResult:
        """Normalize a batch; invalid records are dropped and reported."""
        result = NormalizationResult()
        if not records:
            return result

        accepted: List[Review] = []
        for index, record in enumerate(records):
            try:
                accepted.append(self.normalize_record(record, index=index))
            except ValidationError as e:
                result.errors.append(e)
                logger.debug(f"Dropping review record #{index}: {e.message}")

        # sorted() is stable: ties keep input order
        result.reviews = sorted(accepted, key=lambda r: r.timestamp)
        result.dropped = len(result.errors)

        if result.dropped:
            logger.warning(
                f"Normalized {result.accepted} reviews, dropped {result.dropped} malformed records"
            )
        else:
            logger.info(f"Normalized {result.accepted} reviews")

        return result
