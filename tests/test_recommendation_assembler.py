"""
Tests for the recommendation assembler (render -> dispatch -> parse).

Usage:
    pytest tests/test_recommendation_assembler.py -v
"""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from src.ai.errors import AuthError, MalformedResponseError, RateLimitError, UnknownTemplateError
from src.ai.llm_client import (
    AIConfig,
    AIProviderAdapter,
    AIProviderType,
    GeminiAdapter,
    OpenAIAdapter,
    RawCompletion,
    RetryPolicy,
)
from src.ai.recommendation_assembler import RecommendationAssembler, RecommendationStatus
from src.reviews.business_context import BusinessContextBuilder, BusinessInfo
from src.reviews.review_models import Review


def make_context():
    ratings = [5, 5, 4, 5, 3, 2, 1, 5, 4, 5]
    texts = ["Great coffee", "Friendly staff", "Nice latte", "", "Ok", "Slow service",
             "Rude waiter", "Cozy", "Good cake", "Lovely"]
    reviews = [
        Review(id=f"c{i}", rating=r, text=t, timestamp=datetime(2024, 4, i + 1, 10, tzinfo=timezone.utc))
        for i, (r, t) in enumerate(zip(ratings, texts))
    ]
    return BusinessContextBuilder().build(BusinessInfo(name="Blue Bean", business_type="cafe"), reviews)


class FakeAdapter(AIProviderAdapter):
    """Answers with a fixed payload and records the prompt."""

    provider = AIProviderType.OPENAI

    def __init__(self, payload=None, errors=()):
        self.payload = payload or {"recommendations": {"menu": ["Add oat milk"]}, "confidence": 0.75}
        self.errors = list(errors)
        self.prompts = []

    async def _complete(self, config, rendered, timeout):
        self.prompts.append(rendered)
        if self.errors:
            raise self.errors.pop(0)
        return RawCompletion(text=json.dumps(self.payload), model="fake-model")


async def no_sleep(seconds):
    return None


class TestRecommendationAssembler:

    def setup_method(self):
        self.context = make_context()
        self.config = AIConfig(provider="openai", api_key="sk-test")

    def make_assembler(self, adapter, policy=None):
        return RecommendationAssembler(adapters={"openai": adapter}, policy=policy, sleep=no_sleep)

    def test_complete(self):
        adapter = FakeAdapter()
        result = asyncio.run(self.make_assembler(adapter).recommend(self.context, self.config))

        assert result.status == RecommendationStatus.COMPLETE
        assert result.is_complete
        assert result.response.recommendations == {"menu": ["Add oat milk"]}
        assert result.response.confidence == 0.75
        assert result.attempts == 1
        assert result.analysis is self.context.analysis
        assert "Blue Bean" in adapter.prompts[0].user
        assert adapter.prompts[0].task == "recommendations"

    @pytest.mark.parametrize("task", ["analysis", "marketing", "scenarios"])
    def test_other_tasks(self, task):
        adapter = FakeAdapter()
        result = asyncio.run(self.make_assembler(adapter).recommend(self.context, self.config, task))
        assert result.task == task
        assert result.is_complete

    def test_invalid_key_degrades_to_statistics(self):
        """Invalid key -> AuthError carried, statistical analysis intact."""
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        sdk_error = openai.AuthenticationError(
            "Incorrect API key provided", response=httpx.Response(401, request=request), body=None
        )
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=sdk_error)
        client.close = AsyncMock()
        adapter = OpenAIAdapter(client_factory=lambda config, timeout: client)

        result = asyncio.run(self.make_assembler(adapter).recommend(self.context, self.config))

        assert result.status == RecommendationStatus.STATISTICS_ONLY
        assert isinstance(result.error, AuthError)
        assert result.failure_reason.startswith("AuthError")
        assert result.response is None
        assert result.analysis.reviews_analyzed == 10
        assert result.analysis.sentiment.breakdown.total == 10

    def test_unexpected_gemini_body_degrades(self):
        def handler(request):
            return httpx.Response(200, json=[{"candidates": []}])

        adapter = GeminiAdapter(transport=httpx.MockTransport(handler))
        assembler = RecommendationAssembler(adapters={"gemini": adapter}, sleep=no_sleep)
        config = AIConfig(provider="gemini", api_key="g-test")

        result = asyncio.run(assembler.recommend(self.context, config))

        assert result.status == RecommendationStatus.STATISTICS_ONLY
        assert isinstance(result.error, MalformedResponseError)
        assert result.analysis.reviews_analyzed == 10

    def test_empty_key_degrades(self):
        adapter = FakeAdapter()
        config = AIConfig(provider="openai", api_key="")
        result = asyncio.run(self.make_assembler(adapter).recommend(self.context, config))
        assert isinstance(result.error, AuthError)
        assert adapter.prompts == []

    def test_rate_limit_recovered(self):
        adapter = FakeAdapter(errors=[RateLimitError("slow down")])
        assembler = self.make_assembler(adapter, RetryPolicy(max_retries=1))
        result = asyncio.run(assembler.recommend(self.context, self.config))
        assert result.is_complete
        assert result.attempts == 2

    def test_rate_limit_exhausted(self):
        adapter = FakeAdapter(errors=[RateLimitError("a"), RateLimitError("b")])
        assembler = self.make_assembler(adapter, RetryPolicy(max_retries=1))
        result = asyncio.run(assembler.recommend(self.context, self.config))
        assert result.status == RecommendationStatus.STATISTICS_ONLY
        assert isinstance(result.error, RateLimitError)
        assert result.attempts == 2

    def test_unknown_task_propagates(self):
        with pytest.raises(UnknownTemplateError):
            asyncio.run(self.make_assembler(FakeAdapter()).recommend(self.context, self.config, "haiku"))

    def test_to_dict(self):
        adapter = FakeAdapter(errors=[AuthError("bad key")])
        result = asyncio.run(self.make_assembler(adapter).recommend(self.context, self.config))
        data = result.to_dict()
        assert data["status"] == "statistics_only"
        assert data["error"] == "AuthError"
        assert data["analysis"]["reviews_analyzed"] == 10
        assert "analysis" not in result.to_dict(include_analysis=False)
