"""
ReviewLens AI Module
====================

Recommendation step of the review engine:
- Prompt templates par type de business et par tâche
- Adapters LLM interchangeables (OpenAI, Claude, Gemini)
- Assemblage des recommandations avec dégradation "statistics only"
"""

from .errors import (
    TemplateError,
    UnknownTemplateError,
    ProviderError,
    AuthError,
    RateLimitError,
    ProviderTimeoutError,
    MalformedResponseError,
    ProviderUnavailableError,
)
from .prompts import PromptRegistry, PromptTemplate, PromptTask, RenderedPrompt, render, build_template_values
from .response_parser import AIResponse, parse_response, estimate_confidence
from .llm_client import (
    AIConfig,
    AIProviderType,
    AIProviderAdapter,
    OpenAIAdapter,
    ClaudeAdapter,
    GeminiAdapter,
    RetryPolicy,
    get_provider_adapter,
    dispatch,
)
from .recommendation_assembler import RecommendationAssembler, RecommendationResult, RecommendationStatus

__all__ = [
    # Errors
    "TemplateError",
    "UnknownTemplateError",
    "ProviderError",
    "AuthError",
    "RateLimitError",
    "ProviderTimeoutError",
    "MalformedResponseError",
    "ProviderUnavailableError",
    # Prompts
    "PromptRegistry",
    "PromptTemplate",
    "PromptTask",
    "RenderedPrompt",
    "render",
    "build_template_values",
    # Providers
    "AIResponse",
    "parse_response",
    "estimate_confidence",
    "AIConfig",
    "AIProviderType",
    "AIProviderAdapter",
    "OpenAIAdapter",
    "ClaudeAdapter",
    "GeminiAdapter",
    "RetryPolicy",
    "get_provider_adapter",
    "dispatch",
    # Assembler
    "RecommendationAssembler",
    "RecommendationResult",
    "RecommendationStatus",
]
