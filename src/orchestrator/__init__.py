"""
ReviewLens Orchestrator Module
==============================

Orchestration layer for the review analysis pipeline.

Components:
    - AnalysisPipeline: normalize -> aggregate -> compare -> context -> AI
    - CLI: Command-line interface
    - setup_logging: structured logging configuration

Usage:
    from src.orchestrator import AnalysisPipeline

    report = asyncio.run(AnalysisPipeline().run(records, business, config))
"""

from .analysis_pipeline import (
    AnalysisPipeline,
    AnalysisReport,
    PipelineStage,
    ReportStatus,
)
from .logging_config import setup_logging, JSONFormatter

__all__ = [
    "AnalysisPipeline",
    "AnalysisReport",
    "PipelineStage",
    "ReportStatus",
    "setup_logging",
    "JSONFormatter",
]
