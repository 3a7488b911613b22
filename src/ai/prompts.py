"""
ReviewLens Prompt Registry
==========================

Prompt templates keyed by (business type, task), with strict `{{variable}}`
rendering: every declared variable must be supplied and no token may
survive rendering.

Usage:
    registry = PromptRegistry()
    template = registry.get("cafe", "recommendations")
    rendered = render(template, build_template_values(context))
    rendered.system, rendered.user
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import TemplateError, UnknownTemplateError
from ..reviews.business_types import RECOMMENDATION_FOCUS, BusinessType, competitive_position
from ..reviews.review_models import BusinessContext, to_dict

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

# Review digest limits
MAX_PROMPT_REVIEWS = 50
MAX_REVIEW_CHARS = 500


class PromptTask(str, Enum):
    ANALYSIS = "analysis"
    RECOMMENDATIONS = "recommendations"
    MARKETING = "marketing"
    SCENARIOS = "scenarios"


@dataclass(frozen=True)
class PromptTemplate:
    """System + user prompt pair with declared `{{variables}}`."""
    system: str
    user: str
    variables: Tuple[str, ...] = ()

    def __post_init__(self):
        present = set(TOKEN_PATTERN.findall(self.system)) | set(TOKEN_PATTERN.findall(self.user))
        missing = [v for v in self.variables if v not in present]
        if missing:
            raise TemplateError(
                f"Declared variables not used in template: {', '.join(missing)}",
                variable=missing[0],
            )


@dataclass(frozen=True)
class RenderedPrompt:
    system: str
    user: str
    business_type: Optional[str] = None
    task: Optional[str] = None


# =============================================================================
# TEMPLATES
# =============================================================================

RESPONSE_CONTRACT = """

Respond ONLY with a valid JSON object, no markdown and no text around it:
{
  "recommendations": { ... structured content for the sections above ... },
  "reasoning": "short explanation of how the reviews support these conclusions",
  "confidence": 0.0 to 1.0,
  "sources": ["review excerpts or metrics you relied on"]
}"""

_ANALYSIS_VARS = ("reviews",)
_RECOMMENDATION_VARS = ("businessName", "analysis", "metrics")


def _sections(header: str, items: List[str], footer: str = "") -> str:
    lines = [f"{i}. {item}" for i, item in enumerate(items, 1)]
    text = header + "\n" + "\n".join(lines)
    if footer:
        text += "\n\n" + footer
    return text


# (system, user, variables) per business type and task
_TEMPLATE_SOURCES: Dict[BusinessType, Dict[PromptTask, Tuple[str, str, Tuple[str, ...]]]] = {
    BusinessType.CAFE: {
        PromptTask.ANALYSIS: (
            "You are an expert cafe business analyst. Analyze customer reviews to identify specific "
            "insights about coffee quality, food offerings, atmosphere, service, and pricing.",
            "Analyze these cafe reviews and provide insights:\n\nReviews: {{reviews}}\n\n" + _sections(
                "Focus on:",
                ["Coffee quality and variety", "Food menu and quality", "Atmosphere and ambiance",
                 "Service speed and friendliness", "Pricing and value perception",
                 "Cleanliness and comfort", "WiFi and workspace suitability"],
                "Provide structured analysis with specific examples from reviews.",
            ),
            _ANALYSIS_VARS,
        ),
        PromptTask.RECOMMENDATIONS: (
            "You are a cafe business strategist. Generate specific, actionable recommendations "
            "based on customer feedback.",
            "Based on this analysis, generate personalized recommendations for {{businessName}}:\n\n"
            "Current Analysis: {{analysis}}\nBusiness Type: Cafe\nMetrics: {{metrics}}\n\n" + _sections(
                "Generate recommendations for:",
                ["Menu optimization", "Service improvements", "Atmosphere enhancements",
                 "Marketing strategies", "Customer retention", "Revenue growth opportunities"],
                "Be specific and actionable, avoiding generic advice.",
            ),
            _RECOMMENDATION_VARS,
        ),
        PromptTask.MARKETING: (
            "You are a marketing expert specializing in cafes. Create targeted marketing strategies.",
            "Create a marketing plan for {{businessName}} based on:\n\nCustomer Analysis: {{analysis}}\n"
            "Strengths: {{strengths}}\nTarget Demographics: {{demographics}}\n\n" + _sections(
                "Include:",
                ["Unique value proposition", "Target audience segments",
                 "Marketing channels (social media, local, etc.)", "Campaign ideas",
                 "Budget allocation", "Success metrics"],
            ),
            ("businessName", "analysis", "strengths", "demographics"),
        ),
        PromptTask.SCENARIOS: (
            "You are a business scenario planner. Create realistic growth scenarios for cafes.",
            "Generate business scenarios for {{businessName}}:\n\nCurrent State: {{currentMetrics}}\n"
            "Market Trends: {{trends}}\nRecommendations: {{recommendations}}\n\n" + _sections(
                "Create 3-4 scenarios with:",
                ["Scenario name and description", "Required actions", "Probability of success",
                 "Expected outcomes", "Key metrics projections"],
            ),
            ("businessName", "currentMetrics", "trends", "recommendations"),
        ),
    },
    BusinessType.BAR: {
        PromptTask.ANALYSIS: (
            "You are an expert bar business analyst. Analyze customer reviews focusing on drinks, "
            "atmosphere, entertainment, and nightlife experience.",
            "Analyze these bar reviews:\n\nReviews: {{reviews}}\n\n" + _sections(
                "Focus on:",
                ["Drink quality and variety", "Bartender skills and service", "Atmosphere and ambiance",
                 "Music and entertainment", "Crowd and clientele", "Pricing and value",
                 "Safety and comfort"],
                "Identify patterns and provide specific insights.",
            ),
            _ANALYSIS_VARS,
        ),
        PromptTask.RECOMMENDATIONS: (
            "You are a bar business consultant. Provide strategies for improving bar operations "
            "and customer experience.",
            "Generate recommendations for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Business Type: Bar\nCurrent Performance: {{metrics}}\n\n" + _sections(
                "Focus on:",
                ["Drink menu optimization", "Entertainment programming", "Atmosphere improvements",
                 "Staff training needs", "Marketing to target demographics",
                 "Revenue optimization strategies"],
            ),
            _RECOMMENDATION_VARS,
        ),
        PromptTask.MARKETING: (
            "You are a nightlife marketing specialist. Create engaging marketing strategies for bars.",
            "Develop a marketing strategy for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Target Market: {{demographics}}\nCompetitive Position: {{position}}\n\n" + _sections(
                "Include:",
                ["Brand positioning", "Event marketing ideas", "Social media strategy",
                 "Partnership opportunities", "Promotional campaigns", "Customer loyalty programs"],
            ),
            ("businessName", "analysis", "demographics", "position"),
        ),
        PromptTask.SCENARIOS: (
            "Create business growth scenarios for bars considering seasonal trends and nightlife dynamics.",
            "Generate scenarios for {{businessName}}:\n\nCurrent State: {{currentMetrics}}\n"
            "Industry Trends: {{trends}}\nOpportunities: {{opportunities}}\n\n" + _sections(
                "Develop scenarios including:",
                ["Event-driven growth", "Demographic expansion", "Service diversification",
                 "Partnership strategies"],
            ),
            ("businessName", "currentMetrics", "trends", "opportunities"),
        ),
    },
    BusinessType.RESTAURANT: {
        PromptTask.ANALYSIS: (
            "You are a restaurant industry expert. Analyze reviews for comprehensive insights on food, "
            "service, and dining experience.",
            "Analyze restaurant reviews:\n\nReviews: {{reviews}}\n\n" + _sections(
                "Examine:",
                ["Food quality and presentation", "Menu variety and dietary options",
                 "Service quality and speed", "Ambiance and cleanliness", "Value for money",
                 "Reservation and wait times", "Special occasions suitability"],
                "Provide detailed insights with examples.",
            ),
            _ANALYSIS_VARS,
        ),
        PromptTask.RECOMMENDATIONS: (
            "You are a restaurant consultant. Provide comprehensive improvement strategies.",
            "Create recommendations for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Type: Restaurant\nPerformance: {{metrics}}\n\n" + _sections(
                "Address:",
                ["Menu engineering", "Service training programs", "Kitchen efficiency",
                 "Customer experience enhancement", "Pricing optimization", "Marketing strategies"],
            ),
            _RECOMMENDATION_VARS,
        ),
        PromptTask.MARKETING: (
            "You are a restaurant marketing expert. Design effective marketing campaigns.",
            "Design marketing plan for {{businessName}}:\n\nInsights: {{analysis}}\n"
            "Strengths: {{strengths}}\nTarget Market: {{demographics}}\n\n" + _sections(
                "Create:",
                ["Brand story and positioning", "Digital marketing strategy",
                 "Local community engagement", "Seasonal promotions", "Loyalty programs",
                 "Review generation tactics"],
            ),
            ("businessName", "analysis", "strengths", "demographics"),
        ),
        PromptTask.SCENARIOS: (
            "Create realistic growth scenarios for restaurants.",
            "Develop scenarios for {{businessName}}:\n\nCurrent: {{currentMetrics}}\n"
            "Market: {{trends}}\nPotential: {{opportunities}}\n\n" + _sections(
                "Include:",
                ["Expansion scenarios", "Menu evolution paths", "Service model changes",
                 "Technology adoption"],
            ),
            ("businessName", "currentMetrics", "trends", "opportunities"),
        ),
    },
    BusinessType.GALLERY: {
        PromptTask.ANALYSIS: (
            "You are an art gallery specialist. Analyze reviews focusing on exhibitions, curation, "
            "and visitor experience.",
            "Analyze gallery reviews:\n\nReviews: {{reviews}}\n\n" + _sections(
                "Focus on:",
                ["Exhibition quality and curation", "Artist selection and diversity",
                 "Gallery space and layout", "Staff knowledge and guidance",
                 "Pricing and accessibility", "Events and programs", "Overall visitor experience"],
                "Extract specific insights about art appreciation and cultural impact.",
            ),
            _ANALYSIS_VARS,
        ),
        PromptTask.RECOMMENDATIONS: (
            "You are a gallery consultant. Provide strategies for enhancing cultural impact and "
            "visitor engagement.",
            "Generate recommendations for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Type: Art Gallery\nMetrics: {{metrics}}\n\n" + _sections(
                "Suggest improvements for:",
                ["Curatorial strategy", "Visitor engagement programs", "Artist relations",
                 "Educational initiatives", "Digital presence", "Revenue diversification"],
            ),
            _RECOMMENDATION_VARS,
        ),
        PromptTask.MARKETING: (
            "You are an arts marketing specialist. Create culturally relevant marketing strategies.",
            "Create marketing strategy for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Audience: {{demographics}}\nCultural Position: {{position}}\n\n" + _sections(
                "Develop:",
                ["Art community engagement", "Digital exhibition strategies", "Educational outreach",
                 "Membership programs", "Event marketing", "Partnership opportunities"],
            ),
            ("businessName", "analysis", "demographics", "position"),
        ),
        PromptTask.SCENARIOS: (
            "Create growth scenarios for art galleries considering cultural trends.",
            "Generate scenarios for {{businessName}}:\n\nCurrent: {{currentMetrics}}\n"
            "Art Market Trends: {{trends}}\nOpportunities: {{opportunities}}\n\n" + _sections(
                "Consider:",
                ["Digital transformation", "Community partnerships", "Educational expansion",
                 "International reach"],
            ),
            ("businessName", "currentMetrics", "trends", "opportunities"),
        ),
    },
    BusinessType.RETAIL: {
        PromptTask.ANALYSIS: (
            "You are a retail business analyst. Focus on product selection, customer service, "
            "and shopping experience.",
            "Analyze retail reviews:\n\nReviews: {{reviews}}\n\n" + _sections(
                "Examine:",
                ["Product quality and selection", "Pricing and value", "Customer service quality",
                 "Store layout and organization", "Checkout experience", "Return policy and support",
                 "Online/offline integration"],
                "Identify retail-specific patterns.",
            ),
            _ANALYSIS_VARS,
        ),
        PromptTask.RECOMMENDATIONS: (
            "You are a retail consultant. Provide strategies for improving sales and customer satisfaction.",
            "Create recommendations for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Type: Retail\nPerformance: {{metrics}}\n\n" + _sections(
                "Focus on:",
                ["Inventory optimization", "Customer service training", "Store layout improvements",
                 "Pricing strategies", "Omnichannel experience", "Loyalty programs"],
            ),
            _RECOMMENDATION_VARS,
        ),
        PromptTask.MARKETING: (
            "You are a retail marketing expert. Design customer acquisition and retention strategies.",
            "Develop marketing for {{businessName}}:\n\nInsights: {{analysis}}\n"
            "Target Customers: {{demographics}}\nCompetition: {{position}}\n\n" + _sections(
                "Include:",
                ["Product promotion strategies", "Seasonal campaigns", "Digital marketing tactics",
                 "In-store experiences", "Customer retention programs", "Community engagement"],
            ),
            ("businessName", "analysis", "demographics", "position"),
        ),
        PromptTask.SCENARIOS: (
            "Create retail growth scenarios considering market trends.",
            "Generate scenarios for {{businessName}}:\n\nCurrent: {{currentMetrics}}\n"
            "Retail Trends: {{trends}}\nOpportunities: {{opportunities}}\n\n" + _sections(
                "Consider:",
                ["E-commerce integration", "Product line expansion", "New market entry",
                 "Franchise opportunities"],
            ),
            ("businessName", "currentMetrics", "trends", "opportunities"),
        ),
    },
    BusinessType.SERVICE: {
        PromptTask.ANALYSIS: (
            "You are a service industry analyst. Focus on service quality, expertise, and customer satisfaction.",
            "Analyze service business reviews:\n\nReviews: {{reviews}}\n\n" + _sections(
                "Evaluate:",
                ["Service quality and expertise", "Professionalism and reliability",
                 "Communication and responsiveness", "Pricing transparency", "Problem resolution",
                 "Appointment/scheduling experience", "Overall value delivered"],
                "Extract service-specific insights.",
            ),
            _ANALYSIS_VARS,
        ),
        PromptTask.RECOMMENDATIONS: (
            "You are a service business consultant. Provide operational excellence strategies.",
            "Generate recommendations for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Type: Service Business\nMetrics: {{metrics}}\n\n" + _sections(
                "Improve:",
                ["Service delivery processes", "Staff training and expertise", "Customer communication",
                 "Pricing and packages", "Scheduling efficiency", "Quality assurance"],
            ),
            _RECOMMENDATION_VARS,
        ),
        PromptTask.MARKETING: (
            "You are a service marketing specialist. Create trust-building marketing strategies.",
            "Create marketing for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Target Market: {{demographics}}\nExpertise: {{strengths}}\n\n" + _sections(
                "Develop:",
                ["Trust-building content", "Referral programs", "Case studies and testimonials",
                 "Professional networking", "Digital presence optimization", "Educational marketing"],
            ),
            ("businessName", "analysis", "demographics", "strengths"),
        ),
        PromptTask.SCENARIOS: (
            "Create service business growth scenarios.",
            "Generate scenarios for {{businessName}}:\n\nCurrent: {{currentMetrics}}\n"
            "Industry Trends: {{trends}}\nGrowth Potential: {{opportunities}}\n\n" + _sections(
                "Include:",
                ["Service expansion", "Geographic growth", "Partnership models", "Digital transformation"],
            ),
            ("businessName", "currentMetrics", "trends", "opportunities"),
        ),
    },
    BusinessType.OTHER: {
        PromptTask.ANALYSIS: (
            "You are a general business analyst. Provide comprehensive review analysis.",
            "Analyze business reviews:\n\nReviews: {{reviews}}\n\n" + _sections(
                "Focus on:",
                ["Overall customer satisfaction", "Product/service quality", "Staff performance",
                 "Value proposition", "Customer experience", "Operational efficiency",
                 "Competitive advantages"],
                "Provide detailed insights.",
            ),
            _ANALYSIS_VARS,
        ),
        PromptTask.RECOMMENDATIONS: (
            "You are a business consultant. Provide general improvement strategies.",
            "Create recommendations for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Metrics: {{metrics}}\n\n" + _sections(
                "Address:",
                ["Core service improvements", "Customer experience enhancement", "Operational efficiency",
                 "Staff development", "Marketing strategies", "Growth opportunities"],
            ),
            _RECOMMENDATION_VARS,
        ),
        PromptTask.MARKETING: (
            "You are a marketing strategist. Create versatile marketing plans.",
            "Develop marketing for {{businessName}}:\n\nAnalysis: {{analysis}}\n"
            "Target Market: {{demographics}}\nStrengths: {{strengths}}\n\n" + _sections(
                "Create:",
                ["Brand positioning", "Marketing channels", "Customer acquisition",
                 "Retention strategies", "Content marketing", "Performance metrics"],
            ),
            ("businessName", "analysis", "demographics", "strengths"),
        ),
        PromptTask.SCENARIOS: (
            "Create business growth scenarios.",
            "Generate scenarios for {{businessName}}:\n\nCurrent: {{currentMetrics}}\n"
            "Trends: {{trends}}\nOpportunities: {{opportunities}}\n\n" + _sections(
                "Develop:",
                ["Growth scenarios", "Market expansion", "Service evolution", "Risk mitigation"],
            ),
            ("businessName", "currentMetrics", "trends", "opportunities"),
        ),
    },
}


def _default_templates() -> Dict[Tuple[str, str], PromptTemplate]:
    templates = {}
    for business_type, tasks in _TEMPLATE_SOURCES.items():
        for task, (system, user, variables) in tasks.items():
            templates[(business_type.value, task.value)] = PromptTemplate(
                system=system,
                user=user + RESPONSE_CONTRACT,
                variables=variables,
            )
    return templates


class PromptRegistry:
    """Read-only lookup of prompt templates by (business type, task)."""

    def __init__(self, templates: Optional[Mapping[Tuple[str, str], PromptTemplate]] = None):
        self._templates = dict(templates) if templates is not None else _default_templates()

    def get(self, business_type: str, task: str) -> PromptTemplate:
        key = (str(getattr(business_type, "value", business_type)).lower(),
               str(getattr(task, "value", task)).lower())
        template = self._templates.get(key)
        if template is None:
            raise UnknownTemplateError(key[0], key[1])
        return template

    def keys(self) -> List[Tuple[str, str]]:
        return sorted(self._templates)

    def __contains__(self, key) -> bool:
        return key in self._templates

    def __len__(self) -> int:
        return len(self._templates)


# =============================================================================
# RENDERING
# =============================================================================

def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def render(
    template: PromptTemplate,
    values: Mapping[str, Any],
    business_type: Optional[str] = None,
    task: Optional[str] = None,
) -> RenderedPrompt:
    """
    Substitute `{{name}}` tokens in a single pass.

    Raises:
        TemplateError: a declared variable is missing/None, or a token in
            the template has no value. Substituted text is never re-scanned,
            so review content containing braces is safe.
    """
    for name in template.variables:
        if values.get(name) is None:
            raise TemplateError(f"Missing value for template variable '{name}'", variable=name)

    for text in (template.system, template.user):
        for name in TOKEN_PATTERN.findall(text):
            if values.get(name) is None:
                raise TemplateError(f"Unresolved template token '{{{{{name}}}}}'", variable=name)

    def substitute(match: "re.Match") -> str:
        return _as_text(values[match.group(1)])

    return RenderedPrompt(
        system=TOKEN_PATTERN.sub(substitute, template.system),
        user=TOKEN_PATTERN.sub(substitute, template.user),
        business_type=business_type,
        task=task,
    )


# =============================================================================
# TEMPLATE VALUES
# =============================================================================

def _reviews_digest(context: BusinessContext) -> str:
    # Most recent first
    recent = sorted(context.reviews, key=lambda r: r.timestamp, reverse=True)[:MAX_PROMPT_REVIEWS]
    if not recent:
        return "No reviews available."
    lines = []
    for review in recent:
        text = " ".join(review.text.split())[:MAX_REVIEW_CHARS] or "(no text)"
        lines.append(f"- [{review.rating}/5, {review.timestamp.date().isoformat()}] {text}")
    return "\n".join(lines)


def _trends_text(context: BusinessContext) -> str:
    parts = []
    if context.historical_trends:
        t = context.historical_trends
        parts.append(
            f"Rating {t.rating_trend.value}, volume {t.volume_trend.value}, "
            f"sentiment {t.sentiment_trend.value}"
        )
    if context.enhanced.historical_trends:
        recent = context.enhanced.historical_trends[-6:]
        parts.append("Monthly: " + ", ".join(
            f"{m.period} avg {m.avg_rating:.2f} ({m.review_count})" for m in recent
        ))
    parts.extend(context.enhanced.insights)
    return "; ".join(parts) if parts else "No trend data available."


def build_template_values(context: BusinessContext) -> Dict[str, Any]:
    """Every variable any template may declare, derived from the context."""
    analysis = context.analysis
    metrics = context.metrics
    position = competitive_position(metrics, context.business_type)

    metrics_text = (
        f"Average rating {metrics.avg_rating:.2f}/5 from {metrics.total_reviews} reviews, "
        f"{metrics.monthly_reviews:.1f} reviews per month, "
        f"owner response rate {metrics.response_rate:.0%}"
    )

    strengths = [f"{s.aspect} ({s.mentions} positive mentions)" for s in analysis.strengths]
    demographics = [
        f"{s.segment}: {s.percentage}% ({'; '.join(s.characteristics)})"
        for s in analysis.customer_segments
    ]
    opportunities = [f"Fix {p.issue} ({p.frequency} negative reviews)" for p in analysis.pain_points]
    opportunities.append(
        f"Focus on {RECOMMENDATION_FOCUS[BusinessType.parse(context.business_type)]}"
    )
    suggestions = [s for p in analysis.pain_points for s in p.suggestions]

    return {
        "businessName": context.business_name,
        "businessType": context.business_type,
        "reviews": _reviews_digest(context),
        "analysis": to_dict(analysis),
        "metrics": metrics_text,
        "currentMetrics": metrics_text,
        "strengths": ", ".join(strengths) or "No clear strengths identified yet",
        "demographics": "; ".join(demographics) or "No customer segment data",
        "position": position.summary,
        "trends": _trends_text(context),
        "opportunities": "; ".join(opportunities),
        "recommendations": "; ".join(suggestions) or "No prior recommendations",
    }
