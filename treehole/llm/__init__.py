"""
Chat completion integration.

This package provides:
- Type-safe dataclass models for requests and provider configuration
- Incremental SSE parsing with per-event error recovery
- A streaming HTTP client (``treehole.llm.client``)
"""

from __future__ import annotations

from .exceptions import EventDecodeError, LLMError, ProviderError, StreamingError
from .models import (
    LLMMessage,
    LLMRequest,
    MessageRole,
    ProviderConfig,
    ProviderType,
)

__all__ = [
    "EventDecodeError",
    "LLMError",
    "LLMMessage",
    "LLMRequest",
    "MessageRole",
    "ProviderConfig",
    "ProviderError",
    "ProviderType",
    "StreamingError",
]
