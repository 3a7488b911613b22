"""
ReviewLens CLI
==============

Command-line interface for the review analysis pipeline.

Commands:
    analyze     - Analyse a JSON file of raw reviews and print the report
    templates   - List available (business type, task) prompt templates

Usage:
    python -m src.orchestrator.cli analyze reviews.json --name "Blue Bean" --type cafe
    python -m src.orchestrator.cli analyze reviews.json --name "Blue Bean" --provider claude --tasks recommendations marketing
    python -m src.orchestrator.cli analyze reviews.json --name "Blue Bean" --no-ai --compare-days 90
    python -m src.orchestrator.cli templates
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..ai.errors import TemplateError
from ..ai.llm_client import AIConfig, RetryPolicy
from ..ai.prompts import PromptRegistry, PromptTask
from ..data.config import get_settings
from ..reviews.business_context import BusinessInfo
from .analysis_pipeline import AnalysisPipeline
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def load_input(path: str) -> Tuple[List[Any], Dict[str, Any]]:
    """
    Read the input file.

    Accepts either a bare list of review records or an object
    {"business": {...}, "reviews": [...]}.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, list):
        return data, {}
    if isinstance(data, dict):
        return data.get("reviews") or [], data.get("business") or {}
    raise ValueError(f"Unsupported input format in {path}: expected a list or an object")


def build_ai_config(provider: str, model: Optional[str] = None) -> AIConfig:
    """AIConfig from environment settings; a missing key yields an AuthError downstream."""
    ai_settings = get_settings().ai
    return AIConfig(
        provider=provider,
        api_key=ai_settings.api_key_for(provider) or "",
        model=model or ai_settings.model_for(provider),
    )


def cmd_analyze(args) -> int:
    """Run the analysis pipeline on a file."""
    settings = get_settings()

    try:
        records, business_data = load_input(args.input)
    except (OSError, ValueError) as e:
        print(f"Error reading {args.input}: {e}", file=sys.stderr)
        return 2

    business = BusinessInfo(
        name=args.name or business_data.get("name") or Path(args.input).stem,
        business_type=args.type or business_data.get("type") or business_data.get("business_type"),
        response_rate=args.response_rate if args.response_rate is not None else business_data.get("response_rate"),
    )

    policy = RetryPolicy(
        max_retries=settings.engine.max_retries,
        delay_seconds=settings.engine.retry_delay,
        timeout_seconds=settings.engine.timeout_seconds,
    )
    pipeline = AnalysisPipeline(policy=policy, trend_deadband=settings.engine.trend_deadband)

    config = None
    if not args.no_ai:
        config = build_ai_config(args.provider or settings.ai.default_provider, args.model)

    try:
        report = asyncio.run(pipeline.run(
            records,
            business,
            config=config,
            tasks=args.tasks,
            compare_days=args.compare_days,
        ))
    except TemplateError as e:
        print(f"Template error: {e.message}", file=sys.stderr)
        return 2

    output = json.dumps(report.to_dict(include_reviews=args.include_reviews), indent=2, default=str)
    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"Report written to {args.output} (status: {report.status.value})")
    else:
        print(output)

    return 0


def cmd_templates(args) -> int:
    """List registered prompt templates."""
    registry = PromptRegistry()
    keys = registry.keys()

    if args.json:
        print(json.dumps([{"business_type": b, "task": t} for b, t in keys], indent=2))
        return 0

    print(f"{len(keys)} templates:")
    for business_type, task in keys:
        template = registry.get(business_type, task)
        print(f"  {business_type:<12} {task:<16} vars: {', '.join(template.variables)}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="reviewlens",
        description="ReviewLens review analysis CLI",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Analyse a JSON file of reviews")
    analyze_parser.add_argument("input", help="JSON file: list of reviews or {business, reviews}")
    analyze_parser.add_argument("--name", help="Business name")
    analyze_parser.add_argument(
        "--type",
        help="Business type (cafe, bar, restaurant, gallery, retail, service, other); detected if omitted",
    )
    analyze_parser.add_argument(
        "--response-rate",
        type=float,
        help="Owner response rate 0..1 (default: share of reviews with an owner reply)",
    )
    analyze_parser.add_argument(
        "--provider",
        choices=["openai", "claude", "gemini"],
        help="AI provider (default: AI_DEFAULT_PROVIDER)",
    )
    analyze_parser.add_argument("--model", help="Override the provider's default model")
    analyze_parser.add_argument(
        "--tasks",
        nargs="+",
        default=[PromptTask.RECOMMENDATIONS.value],
        choices=[t.value for t in PromptTask],
        help="AI tasks to run (default: recommendations)",
    )
    analyze_parser.add_argument(
        "--compare-days",
        type=int,
        help="Compare the last N days against the N days before",
    )
    analyze_parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Statistics only, skip the AI step",
    )
    analyze_parser.add_argument(
        "--include-reviews",
        action="store_true",
        help="Include normalized reviews in the report",
    )
    analyze_parser.add_argument("-o", "--output", help="Write the report to a file")

    # templates command
    templates_parser = subparsers.add_parser("templates", help="List prompt templates")
    templates_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    args = parser.parse_args(argv)

    log_settings = get_settings().logging
    setup_logging(
        level="DEBUG" if args.verbose else log_settings.level,
        json_output=log_settings.json_logs,
        log_file=log_settings.log_file,
    )

    if args.command is None:
        parser.print_help()
        return 1

    commands = {
        "analyze": cmd_analyze,
        "templates": cmd_templates,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
