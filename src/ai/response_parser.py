"""
Provider response parsing: raw completion text -> AIResponse.

Models are asked for bare JSON but still wrap it in ```json fences or
add a sentence around it; both are tolerated. Anything that does not
yield a JSON object raises MalformedResponseError.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import MalformedResponseError

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

# Confidence heuristic
BASE_CONFIDENCE = 0.5
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.9
DETAILED_PAYLOAD_CHARS = 400


@dataclass(frozen=True)
class AIResponse:
    """Structured provider answer."""
    recommendations: Dict[str, Any]
    confidence: float                   # 0..1
    reasoning: Optional[str] = None
    sources: List[str] = field(default_factory=list)
    provider: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendations": self.recommendations,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "sources": list(self.sources),
            "provider": self.provider,
            "model": self.model,
        }


def extract_json(text: str) -> Dict[str, Any]:
    """Pull the JSON object out of a completion."""
    if not text or not text.strip():
        raise MalformedResponseError("Empty response from provider")

    candidates = [text.strip()]
    fenced = _FENCE_PATTERN.search(text)
    if fenced:
        candidates.insert(0, fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    logger.error(f"Unparseable provider response: {text[:300]}")
    raise MalformedResponseError("Provider response is not a JSON object")


def estimate_confidence(
    recommendations: Dict[str, Any],
    reasoning: Optional[str],
    payload_chars: int,
    truncated: bool = False,
) -> float:
    """
    Heuristic confidence when the model does not report one.

    0.5 base, +0.2 non-empty recommendations, +0.1 reasoning,
    +0.1 detailed payload, -0.2 truncated; clamped to [0.1, 0.9].
    """
    score = BASE_CONFIDENCE
    if recommendations:
        score += 0.2
    if reasoning:
        score += 0.1
    if payload_chars > DETAILED_PAYLOAD_CHARS:
        score += 0.1
    if truncated:
        score -= 0.2
    return round(max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, score)), 2)


def _reported_confidence(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number > 1.0:
        number = number / 100  # reported as a percentage
    return max(0.0, min(1.0, number))


def parse_response(
    text: str,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    truncated: bool = False,
) -> AIResponse:
    data = extract_json(text)

    recommendations = data.get("recommendations")
    if not isinstance(recommendations, dict):
        if recommendations is not None:
            recommendations = {"items": recommendations}
        else:
            recommendations = {
                k: v for k, v in data.items() if k not in ("confidence", "reasoning", "sources")
            }

    reasoning = data.get("reasoning")
    reasoning = str(reasoning) if reasoning else None

    sources = data.get("sources") or []
    if not isinstance(sources, list):
        sources = [sources]

    confidence = _reported_confidence(data.get("confidence"))
    if confidence is None:
        confidence = estimate_confidence(recommendations, reasoning, len(text), truncated)

    return AIResponse(
        recommendations=recommendations,
        confidence=confidence,
        reasoning=reasoning,
        sources=[str(s) for s in sources],
        provider=provider,
        model=model,
    )
