"""
ReviewLens LLM Client
=====================

Provider-agnostic access to chat LLMs for the recommendation step.

Supported providers (closed set):
    - openai  (openai SDK, AsyncOpenAI)
    - claude  (anthropic SDK, AsyncAnthropic)
    - gemini  (Generative Language REST API over httpx)

Every call is bounded by RetryPolicy.timeout_seconds, vendor errors are
mapped onto the ProviderError family, and clients are closed in all
cases (including cancellation). Credentials arrive per call in AIConfig
and are never cached or logged.

Usage:
    adapter = get_provider_adapter(config.provider)
    response, attempts = await dispatch(adapter, config, rendered, RetryPolicy())
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import httpx

from .errors import (
    AuthError,
    MalformedResponseError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
)
from .prompts import RenderedPrompt
from .response_parser import AIResponse, parse_response

logger = logging.getLogger(__name__)


class AIProviderType(str, Enum):
    """Providers LLM supportés."""
    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"


DEFAULT_MODELS: Dict[AIProviderType, str] = {
    AIProviderType.OPENAI: "gpt-4o-mini",
    AIProviderType.CLAUDE: "claude-sonnet-4-20250514",
    AIProviderType.GEMINI: "gemini-2.0-flash",
}

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


@dataclass(frozen=True)
class AIConfig:
    """Per-request provider settings. The key never appears in repr."""
    provider: AIProviderType
    api_key: str = field(repr=False)
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.provider, AIProviderType):
            object.__setattr__(self, "provider", AIProviderType(str(self.provider).strip().lower()))

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS[self.provider]

    @property
    def resolved_temperature(self) -> float:
        return DEFAULT_TEMPERATURE if self.temperature is None else self.temperature

    @property
    def resolved_max_tokens(self) -> int:
        return self.max_tokens or DEFAULT_MAX_TOKENS


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 1
    delay_seconds: float = 2.0
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class RawCompletion:
    text: str
    model: str
    truncated: bool = False


def _retry_after(response: Any) -> Optional[float]:
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def map_sdk_error(sdk: Any, error: Exception, provider: str) -> ProviderError:
    """
    Map an openai/anthropic SDK exception onto the ProviderError family.

    Both SDKs expose the same exception names. APITimeoutError subclasses
    APIConnectionError, so it is checked first.
    """
    status = getattr(error, "status_code", None)
    if isinstance(error, (sdk.AuthenticationError, sdk.PermissionDeniedError)):
        return AuthError(f"{provider} rejected the API key", provider=provider, status_code=status)
    if isinstance(error, sdk.RateLimitError):
        return RateLimitError(
            f"{provider} rate limit exceeded",
            provider=provider,
            status_code=status,
            retry_after=_retry_after(getattr(error, "response", None)),
        )
    if isinstance(error, sdk.APITimeoutError):
        return ProviderTimeoutError(f"{provider} request timed out", provider=provider)
    if isinstance(error, sdk.APIConnectionError):
        return ProviderUnavailableError(f"{provider} connection failed: {error}", provider=provider)
    if isinstance(error, sdk.APIStatusError):
        return ProviderUnavailableError(
            f"{provider} returned HTTP {status}: {error}", provider=provider, status_code=status
        )
    return ProviderUnavailableError(f"{provider} call failed: {error}", provider=provider)


# =============================================================================
# ADAPTERS
# =============================================================================

class AIProviderAdapter(ABC):
    """Adapter LLM abstrait: one completion per submit, parsed into AIResponse."""

    provider: AIProviderType

    async def submit(
        self,
        config: AIConfig,
        rendered: RenderedPrompt,
        policy: Optional[RetryPolicy] = None,
    ) -> AIResponse:
        """
        Send one rendered prompt and parse the answer.

        Raises:
            AuthError: empty or rejected key (no network call for empty keys)
            RateLimitError, ProviderTimeoutError, ProviderUnavailableError,
            MalformedResponseError
        """
        policy = policy or RetryPolicy()
        name = self.provider.value

        if not config.api_key or not config.api_key.strip():
            raise AuthError(f"No API key configured for {name}", provider=name)

        started = time.monotonic()
        try:
            raw = await asyncio.wait_for(
                self._complete(config, rendered, policy.timeout_seconds),
                timeout=policy.timeout_seconds,
            )
        except ProviderError:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"{name} did not answer within {policy.timeout_seconds}s", provider=name
            ) from e
        except Exception as e:
            raise MalformedResponseError(
                f"{name} response could not be read: {type(e).__name__}: {e}", provider=name
            ) from e

        duration = time.monotonic() - started
        logger.info(
            f"{name} completion received ({raw.model}, {len(raw.text)} chars, {duration:.2f}s)",
            extra={"provider": name, "duration": round(duration, 3)},
        )
        return parse_response(raw.text, provider=name, model=raw.model, truncated=raw.truncated)

    @abstractmethod
    async def _complete(
        self,
        config: AIConfig,
        rendered: RenderedPrompt,
        timeout: float,
    ) -> RawCompletion:
        """Make the vendor call and return the raw completion text."""
        pass


class OpenAIAdapter(AIProviderAdapter):
    """OpenAI Chat Completions in JSON mode."""

    provider = AIProviderType.OPENAI

    def __init__(self, client_factory: Optional[Callable[[AIConfig, float], Any]] = None):
        self._client_factory = client_factory

    def _make_client(self, config: AIConfig, timeout: float):
        if self._client_factory is not None:
            return self._client_factory(config, timeout)
        import openai
        return openai.AsyncOpenAI(api_key=config.api_key, timeout=timeout, max_retries=0)

    async def _complete(self, config: AIConfig, rendered: RenderedPrompt, timeout: float) -> RawCompletion:
        import openai

        client = self._make_client(config, timeout)
        try:
            response = await client.chat.completions.create(
                model=config.resolved_model,
                messages=[
                    {"role": "system", "content": rendered.system},
                    {"role": "user", "content": rendered.user},
                ],
                temperature=config.resolved_temperature,
                max_tokens=config.resolved_max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            raise map_sdk_error(openai, e, self.provider.value) from e
        finally:
            await client.close()

        if not response.choices:
            raise MalformedResponseError("OpenAI returned no choices", provider=self.provider.value)
        choice = response.choices[0]
        content = choice.message.content
        if not content:
            raise MalformedResponseError("OpenAI returned an empty message", provider=self.provider.value)

        return RawCompletion(
            text=content,
            model=getattr(response, "model", None) or config.resolved_model,
            truncated=choice.finish_reason == "length",
        )


class ClaudeAdapter(AIProviderAdapter):
    """Anthropic Messages API."""

    provider = AIProviderType.CLAUDE

    def __init__(self, client_factory: Optional[Callable[[AIConfig, float], Any]] = None):
        self._client_factory = client_factory

    def _make_client(self, config: AIConfig, timeout: float):
        if self._client_factory is not None:
            return self._client_factory(config, timeout)
        import anthropic
        return anthropic.AsyncAnthropic(api_key=config.api_key, timeout=timeout, max_retries=0)

    async def _complete(self, config: AIConfig, rendered: RenderedPrompt, timeout: float) -> RawCompletion:
        import anthropic

        client = self._make_client(config, timeout)
        try:
            response = await client.messages.create(
                model=config.resolved_model,
                max_tokens=config.resolved_max_tokens,
                system=rendered.system,
                messages=[{"role": "user", "content": rendered.user}],
                temperature=config.resolved_temperature,
            )
        except anthropic.AnthropicError as e:
            raise map_sdk_error(anthropic, e, self.provider.value) from e
        finally:
            await client.close()

        text = "".join(
            getattr(block, "text", "") for block in (response.content or [])
            if getattr(block, "type", "text") == "text"
        )
        if not text:
            raise MalformedResponseError("Claude returned no text content", provider=self.provider.value)

        return RawCompletion(
            text=text,
            model=getattr(response, "model", None) or config.resolved_model,
            truncated=response.stop_reason == "max_tokens",
        )


class GeminiAdapter(AIProviderAdapter):
    """Google Generative Language API (generateContent) over httpx."""

    provider = AIProviderType.GEMINI

    def __init__(
        self,
        base_url: str = GEMINI_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    def _payload(self, config: AIConfig, rendered: RenderedPrompt) -> Dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": rendered.system}]},
            "contents": [{"role": "user", "parts": [{"text": rendered.user}]}],
            "generationConfig": {
                "temperature": config.resolved_temperature,
                "maxOutputTokens": config.resolved_max_tokens,
                "responseMimeType": "application/json",
            },
        }

    def _raise_for_status(self, response: httpx.Response) -> None:
        name = self.provider.value
        status = response.status_code
        if status < 400:
            return
        body = response.text[:300]
        if status in (401, 403) or (status == 400 and "API_KEY_INVALID" in body):
            raise AuthError(f"{name} rejected the API key", provider=name, status_code=status)
        if status == 429:
            raise RateLimitError(
                f"{name} rate limit exceeded", provider=name, status_code=status,
                retry_after=_retry_after(response),
            )
        raise ProviderUnavailableError(f"{name} returned HTTP {status}: {body}", provider=name, status_code=status)

    async def _complete(self, config: AIConfig, rendered: RenderedPrompt, timeout: float) -> RawCompletion:
        name = self.provider.value
        model = config.resolved_model
        url = f"{self.base_url}/models/{model}:generateContent"

        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    url,
                    json=self._payload(config, rendered),
                    headers={"x-goog-api-key": config.api_key},
                )
            except httpx.TimeoutException as e:
                raise ProviderTimeoutError(f"{name} request timed out", provider=name) from e
            except httpx.TransportError as e:
                raise ProviderUnavailableError(f"{name} connection failed: {e}", provider=name) from e

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"{name} returned non-JSON body", provider=name) from e

        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"{name} returned a {type(data).__name__} body, expected an object", provider=name
            )

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get("promptFeedback")
            reason = feedback.get("blockReason", "no candidates") if isinstance(feedback, dict) else "no candidates"
            raise MalformedResponseError(f"{name} returned no candidates ({reason})", provider=name)

        candidate = candidates[0]
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list) or not all(isinstance(part, dict) for part in parts):
            raise MalformedResponseError(f"{name} returned a malformed candidate", provider=name)

        text = "".join(str(part.get("text") or "") for part in parts)
        if not text:
            raise MalformedResponseError(f"{name} returned an empty candidate", provider=name)

        return RawCompletion(
            text=text,
            model=data.get("modelVersion") or model,
            truncated=candidate.get("finishReason") == "MAX_TOKENS",
        )


_ADAPTERS = {
    AIProviderType.OPENAI: OpenAIAdapter,
    AIProviderType.CLAUDE: ClaudeAdapter,
    AIProviderType.GEMINI: GeminiAdapter,
}


def get_provider_adapter(provider) -> AIProviderAdapter:
    """
    Factory pour obtenir un adapter.

    Raises:
        ValueError: unknown provider name
    """
    if not isinstance(provider, AIProviderType):
        provider = AIProviderType(str(provider).strip().lower())
    return _ADAPTERS[provider]()


# =============================================================================
# RETRY
# =============================================================================

async def dispatch(
    adapter: AIProviderAdapter,
    config: AIConfig,
    rendered: RenderedPrompt,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Tuple[AIResponse, int]:
    """
    Submit with the retry policy: only rate-limit and timeout errors are
    retried, up to policy.max_retries times with a fixed delay (or the
    provider's retry-after, capped by the timeout).

    Returns:
        (response, attempts used)

    Raises:
        ProviderError: last error, with an `attempts` attribute
    """
    policy = policy or RetryPolicy()
    total = policy.max_retries + 1
    name = adapter.provider.value

    for attempt in range(1, total + 1):
        try:
            response = await adapter.submit(config, rendered, policy)
            return response, attempt
        except ProviderError as e:
            e.attempts = attempt
            if not e.retryable or attempt >= total:
                logger.error(
                    f"{name} failed after attempt {attempt}/{total}: {e.message}",
                    extra={"provider": name, "attempt": attempt},
                )
                raise

            delay = policy.delay_seconds
            retry_after = getattr(e, "retry_after", None)
            if retry_after:
                delay = min(max(delay, retry_after), policy.timeout_seconds)

            logger.warning(
                f"{name} {type(e).__name__} (attempt {attempt}/{total}), retrying in {delay:.1f}s",
                extra={"provider": name, "attempt": attempt},
            )
            await sleep(delay)

    raise ProviderUnavailableError(f"{name} retry loop exhausted", provider=name)
