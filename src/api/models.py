"""
ReviewLens API Models
=====================

Pydantic models for API request/response serialization.
Aligned with the dashboard's TypeScript types (camelCase fields,
snake_case aliases).
"""

from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Any
from enum import Enum


class ProviderName(str, Enum):
    """AI provider matching frontend."""
    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"


class TaskName(str, Enum):
    ANALYSIS = "analysis"
    RECOMMENDATIONS = "recommendations"
    MARKETING = "marketing"
    SCENARIOS = "scenarios"


class AnalysisRequest(BaseModel):
    """
    Request to analyse one business's reviews.

    The API key is optional: when omitted the server key for the provider
    is used. It is never echoed back or logged.
    """
    businessName: str = Field(alias="business_name", min_length=1)
    businessType: Optional[str] = Field(None, alias="business_type")
    responseRate: Optional[float] = Field(None, alias="response_rate", ge=0, le=1)
    reviews: List[Dict[str, Any]] = Field(default_factory=list)

    provider: Optional[ProviderName] = None
    apiKey: Optional[str] = Field(None, alias="api_key", repr=False)
    model: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0, le=2)
    maxTokens: Optional[int] = Field(None, alias="max_tokens", gt=0)

    tasks: List[TaskName] = Field(default_factory=lambda: [TaskName.RECOMMENDATIONS])
    skipAi: bool = Field(False, alias="skip_ai")
    compareDays: Optional[int] = Field(None, alias="compare_days", gt=0)
    includeReviews: bool = Field(False, alias="include_reviews")

    class Config:
        populate_by_name = True


class AIResponseModel(BaseModel):
    recommendations: Dict[str, Any]
    confidence: float
    reasoning: Optional[str] = None
    sources: List[str] = Field(default_factory=list)
    provider: Optional[str] = None
    model: Optional[str] = None


class RecommendationModel(BaseModel):
    """Result of one AI task."""
    task: str
    status: str
    response: Optional[AIResponseModel] = None
    error: Optional[str] = None
    failureReason: Optional[str] = Field(None, alias="failure_reason")
    attempts: int = 0

    class Config:
        populate_by_name = True


class AnalysisResponse(BaseModel):
    """Full analysis report."""
    runId: str = Field(alias="run_id")
    status: str
    reviewsAccepted: int = Field(alias="reviews_accepted")
    reviewsDropped: int = Field(alias="reviews_dropped")
    context: Dict[str, Any]
    recommendations: List[RecommendationModel] = Field(default_factory=list)
    stageDurations: Dict[str, float] = Field(default_factory=dict, alias="stage_durations")

    class Config:
        populate_by_name = True


class TemplateInfo(BaseModel):
    businessType: str = Field(alias="business_type")
    task: str
    variables: List[str]

    class Config:
        populate_by_name = True


class TemplatesResponse(BaseModel):
    count: int
    templates: List[TemplateInfo]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    providers: List[str]
    defaultProvider: str = Field(alias="default_provider")

    class Config:
        populate_by_name = True
