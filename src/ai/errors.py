"""
AI Layer Errors
===============

Template errors are local and fatal to the request.
Provider errors come from the network boundary; rate limits and timeouts
are retried, everything else is surfaced to the assembler.
"""

from typing import Optional


class TemplateError(Exception):
    """A prompt template is invalid or could not be fully rendered."""

    def __init__(self, message: str, template: Optional[str] = None, variable: Optional[str] = None):
        self.message = message
        self.template = template
        self.variable = variable
        super().__init__(self.message)


class UnknownTemplateError(TemplateError):
    """No template registered for a (business_type, task) pair."""

    def __init__(self, business_type: str, task: str):
        self.business_type = business_type
        self.task = task
        super().__init__(f"No prompt template for business type '{business_type}' and task '{task}'")


class ProviderError(Exception):
    """Base exception for AI provider failures."""

    retryable = False
    attempts = 1

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message
        self.provider = provider
        self.status_code = status_code
        super().__init__(self.message)


class AuthError(ProviderError):
    """Missing, invalid or unauthorised API key."""
    pass


class RateLimitError(ProviderError):
    """Provider throttled the request."""

    retryable = True

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = 429,
        retry_after: Optional[float] = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, provider=provider, status_code=status_code)


class ProviderTimeoutError(ProviderError, TimeoutError):
    """The call exceeded the policy timeout."""

    retryable = True


class MalformedResponseError(ProviderError):
    """The provider answered but the payload is not usable JSON."""
    pass


class ProviderUnavailableError(ProviderError):
    """Network failure or 5xx from the provider."""
    pass
