"""
Error types for chat completion streaming.

Errors carry enough context to be logged and surfaced without the caller
having to know which provider produced them:
- Provider and model the request targeted
- HTTP status and response body for rejected requests
- Streaming failures that end a response early
"""

from __future__ import annotations


class LLMError(Exception):
    """Base LLM error with rich context."""

    def __init__(
        self,
        message: str,
        provider: str,
        model: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class StreamingError(LLMError):
    """Streaming-specific errors."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        **kwargs,
    ):
        super().__init__(message, provider, model, **kwargs)


class EventDecodeError(StreamingError):
    """A single SSE event could not be decoded; the stream itself is healthy."""

    def __init__(self, message: str, raw_data: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data


class ProviderError(LLMError):
    """Provider-specific configuration or setup errors."""
    pass
