"""
Core LLM dataclasses for chat completion requests.

This module provides the foundational dataclasses for LLM interactions:
- Provider configuration (endpoint, credentials, timeouts)
- Message structures
- Streaming request payloads
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProviderType(Enum):
    """Supported chat completion providers."""
    DEEPSEEK = "deepseek"
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GROQ = "groq"


class MessageRole(Enum):
    """OpenAI-compatible message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class LLMMessage:
    """OpenAI-compatible message structure."""
    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class LLMRequest:
    """Streaming chat completion request."""
    model: str
    messages: list[LLMMessage]
    stream: bool = True

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON body expected by ``/chat/completions``."""
        return {
            "model": self.model,
            "messages": [message.to_dict() for message in self.messages],
            "stream": self.stream,
        }


@dataclass(frozen=True)
class ProviderConfig:
    """Provider configuration."""
    provider: ProviderType
    base_url: str
    model: str
    api_key: str = field(repr=False)
    system_prompt: str = ""

    # Connection settings
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    write_timeout: float = 10.0
    pool_timeout: float = 10.0

    @property
    def completions_path(self) -> str:
        return "/chat/completions"
