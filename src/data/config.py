"""
ReviewLens Configuration Module
===============================

Centralized configuration management using environment variables.
Supports both .env files and system environment variables.

The engine itself never reads configuration: the CLI and the API use
these settings to build a per-request AIConfig and RetryPolicy.

Environment Variables:
    OPENAI_API_KEY: OpenAI key (optional)
    ANTHROPIC_API_KEY: Anthropic key for the claude provider (optional)
    GEMINI_API_KEY: Google Generative Language key (optional)
    OPENAI_MODEL / CLAUDE_MODEL / GEMINI_MODEL: default model per provider
    AI_DEFAULT_PROVIDER: openai | claude | gemini (default: openai)

    AI_TIMEOUT_SECONDS: Per-call timeout (default: 30)
    AI_MAX_RETRIES: Retries on rate limit / timeout (default: 1)
    AI_RETRY_DELAY: Seconds between retries (default: 2.0)
    TREND_DEADBAND: Relative change treated as stable (default: 0.02)

    LOG_LEVEL: Logging level (default: INFO)
    LOG_JSON: Emit JSON logs (default: false)
    LOG_FILE: Optional log file path
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv


# Load environment variables from .env file if present
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable, treating an empty value as unset."""
    value = os.getenv(key)
    return value if value else default


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


PROVIDERS = ("openai", "claude", "gemini")


@dataclass
class AIProviderConfig:
    """Provider keys and default models."""

    openai_api_key: Optional[str] = field(default_factory=lambda: get_env("OPENAI_API_KEY"), repr=False)
    anthropic_api_key: Optional[str] = field(default_factory=lambda: get_env("ANTHROPIC_API_KEY"), repr=False)
    gemini_api_key: Optional[str] = field(default_factory=lambda: get_env("GEMINI_API_KEY"), repr=False)

    openai_model: str = field(default_factory=lambda: get_env("OPENAI_MODEL", "gpt-4o-mini"))
    claude_model: str = field(default_factory=lambda: get_env("CLAUDE_MODEL", "claude-sonnet-4-20250514"))
    gemini_model: str = field(default_factory=lambda: get_env("GEMINI_MODEL", "gemini-2.0-flash"))

    default_provider: str = field(default_factory=lambda: get_env("AI_DEFAULT_PROVIDER", "openai"))

    def __post_init__(self):
        """Validate configuration."""
        self.default_provider = self.default_provider.strip().lower()
        if self.default_provider not in PROVIDERS:
            raise ValueError(f"AI_DEFAULT_PROVIDER must be one of {', '.join(PROVIDERS)}")

    def api_key_for(self, provider: str) -> Optional[str]:
        return {
            "openai": self.openai_api_key,
            "claude": self.anthropic_api_key,
            "gemini": self.gemini_api_key,
        }.get(provider)

    def model_for(self, provider: str) -> Optional[str]:
        return {
            "openai": self.openai_model,
            "claude": self.claude_model,
            "gemini": self.gemini_model,
        }.get(provider)

    def available_providers(self) -> list:
        return [p for p in PROVIDERS if self.api_key_for(p)]


@dataclass
class EngineConfig:
    """Recommendation call bounds and trend tuning."""

    timeout_seconds: float = field(default_factory=lambda: get_env_float("AI_TIMEOUT_SECONDS", 30.0))
    max_retries: int = field(default_factory=lambda: get_env_int("AI_MAX_RETRIES", 1))
    retry_delay: float = field(default_factory=lambda: get_env_float("AI_RETRY_DELAY", 2.0))
    trend_deadband: float = field(default_factory=lambda: get_env_float("TREND_DEADBAND", 0.02))

    def __post_init__(self):
        """Validate configuration."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")
        if self.trend_deadband < 0:
            raise ValueError("trend_deadband cannot be negative")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))

    # Structured logging
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))


@dataclass
class Settings:
    """Main application settings container."""

    ai: AIProviderConfig = field(default_factory=AIProviderConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Application metadata
    app_version: str = "1.0.0"


# Global settings instance (lazy-loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance, built on first use.

    Raises:
        ValueError: If configuration is invalid
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests, reloaded environment)."""
    global _settings
    _settings = None

