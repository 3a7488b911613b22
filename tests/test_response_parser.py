"""
Tests for provider response parsing and the confidence heuristic.

Usage:
    pytest tests/test_response_parser.py -v
"""

import json

import pytest

from src.ai.errors import MalformedResponseError
from src.ai.response_parser import estimate_confidence, extract_json, parse_response


PAYLOAD = {
    "recommendations": {"menu": ["Add an oat milk option"]},
    "reasoning": "Several reviews ask for plant milk",
    "confidence": 0.8,
    "sources": ["review p3"],
}


class TestExtractJson:

    def test_bare_json(self):
        assert extract_json(json.dumps(PAYLOAD)) == PAYLOAD

    def test_fenced_json(self):
        text = "Here you go:\n```json\n" + json.dumps(PAYLOAD) + "\n```"
        assert extract_json(text) == PAYLOAD

    def test_surrounding_prose(self):
        text = "Sure! " + json.dumps(PAYLOAD) + " Hope this helps."
        assert extract_json(text) == PAYLOAD

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "[1, 2, 3]", "{broken"])
    def test_malformed(self, text):
        with pytest.raises(MalformedResponseError):
            extract_json(text)


class TestEstimateConfidence:

    def test_bounds(self):
        assert estimate_confidence({}, None, 0, truncated=True) == 0.3
        assert estimate_confidence({"a": 1}, "why", 1000) == 0.9

    def test_base(self):
        assert estimate_confidence({}, None, 10) == 0.5

    def test_truncation_lowers(self):
        full = estimate_confidence({"a": 1}, "why", 100)
        cut = estimate_confidence({"a": 1}, "why", 100, truncated=True)
        assert cut < full


class TestParseResponse:

    def test_reported_confidence(self):
        response = parse_response(json.dumps(PAYLOAD), provider="openai", model="gpt-4o-mini")
        assert response.confidence == 0.8
        assert response.recommendations == PAYLOAD["recommendations"]
        assert response.reasoning == PAYLOAD["reasoning"]
        assert response.sources == ["review p3"]
        assert response.provider == "openai"

    def test_percentage_confidence(self):
        response = parse_response(json.dumps(dict(PAYLOAD, confidence=85)))
        assert response.confidence == pytest.approx(0.85)

    def test_missing_confidence_uses_heuristic(self):
        payload = {k: v for k, v in PAYLOAD.items() if k != "confidence"}
        response = parse_response(json.dumps(payload))
        assert 0.1 <= response.confidence <= 0.9

    def test_confidence_always_in_unit_range(self):
        for reported in (-3, 0, 0.5, 1, 250, "high", None, True):
            response = parse_response(json.dumps(dict(PAYLOAD, confidence=reported)))
            assert 0.0 <= response.confidence <= 1.0

    def test_list_recommendations_wrapped(self):
        response = parse_response(json.dumps({"recommendations": ["a", "b"]}))
        assert response.recommendations == {"items": ["a", "b"]}

    def test_no_recommendations_key(self):
        response = parse_response(json.dumps({"menu": ["a"], "reasoning": "r"}))
        assert response.recommendations == {"menu": ["a"]}

    def test_to_dict(self):
        data = parse_response(json.dumps(PAYLOAD), provider="claude").to_dict()
        assert data["provider"] == "claude"
        assert data["confidence"] == 0.8
