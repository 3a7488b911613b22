"""
Review Analysis API Routes
==========================

POST /api/analysis            — run the analysis pipeline on posted reviews.
GET  /api/analysis/templates  — list (business type, task) prompt templates.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..ai.errors import TemplateError
from ..ai.llm_client import AIConfig, RetryPolicy
from ..ai.prompts import PromptRegistry
from ..data.config import get_settings
from ..orchestrator.analysis_pipeline import AnalysisPipeline
from ..reviews.business_context import BusinessInfo
from .models import AnalysisRequest, AnalysisResponse, TemplateInfo, TemplatesResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analysis", tags=["Analysis"])


def get_pipeline() -> AnalysisPipeline:
    """Pipeline built from settings; overridden in tests."""
    engine = get_settings().engine
    policy = RetryPolicy(
        max_retries=engine.max_retries,
        delay_seconds=engine.retry_delay,
        timeout_seconds=engine.timeout_seconds,
    )
    return AnalysisPipeline(policy=policy, trend_deadband=engine.trend_deadband)


def get_registry() -> PromptRegistry:
    return PromptRegistry()


def _ai_config(request: AnalysisRequest) -> AIConfig:
    ai_settings = get_settings().ai
    provider = request.provider.value if request.provider else ai_settings.default_provider
    return AIConfig(
        provider=provider,
        api_key=request.apiKey or ai_settings.api_key_for(provider) or "",
        model=request.model or ai_settings.model_for(provider),
        temperature=request.temperature,
        max_tokens=request.maxTokens,
    )


@router.post("", response_model=AnalysisResponse)
async def run_analysis(
    request: AnalysisRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """
    Analyse reviews and, unless skipped, generate AI output per task.

    AI failures do not fail the request: the report comes back with
    status "statistics_only" and a failure reason per task.
    """
    business = BusinessInfo(
        name=request.businessName,
        business_type=request.businessType,
        response_rate=request.responseRate,
    )
    config = None if request.skipAi else _ai_config(request)

    try:
        report = await pipeline.run(
            request.reviews,
            business,
            config=config,
            tasks=[t.value for t in request.tasks],
            compare_days=request.compareDays,
        )
    except TemplateError as e:
        logger.error(f"Template error for {request.businessName}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)

    return report.to_dict(include_reviews=request.includeReviews)


@router.get("/templates", response_model=TemplatesResponse)
async def list_templates(registry: PromptRegistry = Depends(get_registry)):
    """List registered prompt templates and their variables."""
    templates = [
        TemplateInfo(
            business_type=business_type,
            task=task,
            variables=list(registry.get(business_type, task).variables),
        )
        for business_type, task in registry.keys()
    ]
    return TemplatesResponse(count=len(templates), templates=templates)
