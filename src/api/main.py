"""
ReviewLens FastAPI Application
==============================

REST API for the review analysis dashboard.

Endpoints:
    GET  /api/health              - Health check
    POST /api/analysis            - Analyse reviews (+ AI recommendations)
    GET  /api/analysis/templates  - Prompt templates

Usage:
    uvicorn src.api.main:app --reload --port 8000

    Or with CLI:
    python -m src.api.main
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

from .models import HealthResponse
from .analysis_routes import router as analysis_router
from ..data.config import get_settings
from ..orchestrator.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    log_settings = get_settings().logging
    setup_logging(
        level=log_settings.level,
        json_output=log_settings.json_logs,
        log_file=log_settings.log_file,
    )
    logger.info("Starting ReviewLens API...")

    yield

    logger.info("Shutting down ReviewLens API...")


# Create FastAPI app
app = FastAPI(
    title="ReviewLens API",
    description="Review intelligence - statistics and AI recommendations",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration
# In production, set CORS_ORIGINS env var (comma-separated)
_default_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
_extra_origins = os.getenv("CORS_ORIGINS", "")
if _extra_origins:
    _default_origins.extend([o.strip() for o in _extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=_default_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include analysis routes
app.include_router(analysis_router)


# ============================================================================
# HEALTH ENDPOINT
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Reports which AI providers have a server-side key configured.
    Keys themselves are never returned.
    """
    settings = get_settings()
    providers = settings.ai.available_providers()

    return HealthResponse(
        status="healthy" if providers else "degraded",
        version=settings.app_version,
        providers=providers,
        default_provider=settings.ai.default_provider,
    )


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    print("=" * 60)
    print("REVIEWLENS API SERVER")
    print("=" * 60)
    print()
    print("Starting server at http://localhost:8000")
    print()
    print("Endpoints:")
    print("  GET  /api/health              - Health check")
    print("  POST /api/analysis            - Analyse reviews")
    print("  GET  /api/analysis/templates  - Prompt templates")
    print()
    print("=" * 60)

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
