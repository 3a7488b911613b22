"""
ReviewLens Recommendation Assembler
===================================

Render -> dispatch -> parse, for one business context and one task.

Provider failures never escape: after retries the caller gets a
`statistics_only` result carrying the error and the untouched statistical
analysis, so the dashboard can still show the numbers. Template errors
are programming/configuration errors and do propagate.

Usage:
    assembler = RecommendationAssembler()
    result = await assembler.recommend(context, AIConfig("openai", key), "recommendations")
    if result.is_complete:
        result.response.recommendations
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import ProviderError
from .llm_client import AIConfig, AIProviderAdapter, RetryPolicy, dispatch, get_provider_adapter
from .prompts import PromptRegistry, build_template_values, render
from .response_parser import AIResponse
from ..reviews.review_models import BusinessContext, ReviewAnalysis, to_dict

logger = logging.getLogger(__name__)


class RecommendationStatus(str, Enum):
    COMPLETE = "complete"
    STATISTICS_ONLY = "statistics_only"


@dataclass(frozen=True)
class RecommendationResult:
    task: str
    status: RecommendationStatus
    analysis: ReviewAnalysis
    response: Optional[AIResponse] = None
    error: Optional[ProviderError] = None
    failure_reason: Optional[str] = None
    attempts: int = 0

    @property
    def is_complete(self) -> bool:
        return self.status == RecommendationStatus.COMPLETE

    def to_dict(self, include_analysis: bool = True) -> Dict[str, Any]:
        data = {
            "task": self.task,
            "status": self.status.value,
            "response": self.response.to_dict() if self.response else None,
            "error": type(self.error).__name__ if self.error else None,
            "failure_reason": self.failure_reason,
            "attempts": self.attempts,
        }
        if include_analysis:
            data["analysis"] = to_dict(self.analysis)
        return data


class RecommendationAssembler:
    """Runs one AI task for a BusinessContext and degrades gracefully."""

    def __init__(
        self,
        registry: Optional[PromptRegistry] = None,
        adapters: Optional[Dict[str, AIProviderAdapter]] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.registry = registry or PromptRegistry()
        self._adapters = dict(adapters or {})
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def _adapter_for(self, config: AIConfig) -> AIProviderAdapter:
        adapter = self._adapters.get(config.provider.value)
        if adapter is None:
            adapter = get_provider_adapter(config.provider)
        return adapter

    async def recommend(
        self,
        context: BusinessContext,
        config: AIConfig,
        task: str = "recommendations",
    ) -> RecommendationResult:
        """
        Generate AI output for one task.

        Raises:
            TemplateError / UnknownTemplateError: bad template or values
        """
        task = str(getattr(task, "value", task))
        template = self.registry.get(context.business_type, task)
        rendered = render(
            template,
            build_template_values(context),
            business_type=context.business_type,
            task=task,
        )

        adapter = self._adapter_for(config)
        log_extra = {
            "business": context.business_name,
            "provider": config.provider.value,
            "task": task,
        }
        logger.info(f"Requesting '{task}' for {context.business_name} via {config.provider.value}", extra=log_extra)

        try:
            response, attempts = await dispatch(adapter, config, rendered, self.policy, sleep=self._sleep)
        except ProviderError as e:
            logger.warning(
                f"AI step failed for {context.business_name} ({type(e).__name__}): {e.message}; "
                f"returning statistics only",
                extra=log_extra,
            )
            return RecommendationResult(
                task=task,
                status=RecommendationStatus.STATISTICS_ONLY,
                analysis=context.analysis,
                error=e,
                failure_reason=f"{type(e).__name__}: {e.message}",
                attempts=e.attempts,
            )

        return RecommendationResult(
            task=task,
            status=RecommendationStatus.COMPLETE,
            analysis=context.analysis,
            response=response,
            attempts=attempts,
        )
