"""
Streaming-specific models: raw SSE events, decoded payloads, stream chunks.
"""

from __future__ import annotations

import base64
import binascii
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StreamChunkType(Enum):
    """Types of streaming chunks."""
    CONTENT = "content"
    FINISH = "finish"
    AUDIO = "audio"
    COMPLETION = "completion"
    ERROR = "error"


class SSEEventType(Enum):
    """Server-Sent Event types."""
    CHUNK = "chunk"
    COMPLETION = "completion"
    ERROR = "error"
    HEARTBEAT = "heartbeat"


@dataclass(frozen=True)
class RawSSEChunk:
    """Raw SSE event reassembled from the HTTP response body."""
    event_type: SSEEventType
    data: str | None
    raw_data: str
    error: str | None = None
    timestamp: float = field(default_factory=time.time)


class StreamDelta(BaseModel):
    role: str | None = None
    content: str | None = None


class StreamChoice(BaseModel):
    index: int = 0
    delta: StreamDelta | None = None
    finish_reason: str | None = None


class StreamResponse(BaseModel):
    """One decoded ``data:`` payload of a chat completion stream."""
    choices: list[StreamChoice] = Field(default_factory=list)
    audio: str | None = None

    @property
    def first_choice(self) -> StreamChoice | None:
        return self.choices[0] if self.choices else None

    @property
    def content(self) -> str | None:
        choice = self.first_choice
        if choice is None or choice.delta is None:
            return None
        return choice.delta.content

    @property
    def finish_reason(self) -> str | None:
        choice = self.first_choice
        return choice.finish_reason if choice else None

    @property
    def audio_bytes(self) -> bytes | None:
        """Decoded audio payload.

        Raises:
            ValueError: If ``audio`` is not valid base64.
        """
        if not self.audio:
            return None
        try:
            return base64.b64decode(self.audio, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 audio payload: {e}") from e


@dataclass(frozen=True)
class StreamChunk:
    """Processed streaming chunk handed to the consumer."""
    chunk_type: StreamChunkType
    content: str | None = None
    accumulated_content: str = ""
    finish_reason: str | None = None
    audio: bytes | None = None
    error: str | None = None
    error_category: str | None = None
    terminal: bool = False
    timestamp: float = field(default_factory=time.time)

    @property
    def is_error(self) -> bool:
        return self.chunk_type == StreamChunkType.ERROR


@dataclass
class AccumulatorState:
    """Mutable state for chunk accumulation."""
    content_buffer: str = ""
    chunk_count: int = 0
    content_chunks: int = 0
    error_chunks: int = 0
    first_chunk_time: float | None = None
    last_chunk_time: float | None = None

    def update_timing(self, timestamp: float) -> None:
        """Update timing information for latency tracking."""
        if self.first_chunk_time is None:
            self.first_chunk_time = timestamp
        self.last_chunk_time = timestamp
        self.chunk_count += 1

    @property
    def streaming_duration(self) -> float:
        if self.first_chunk_time is None or self.last_chunk_time is None:
            return 0.0
        return self.last_chunk_time - self.first_chunk_time


@dataclass(frozen=True)
class StreamingStats:
    """Statistics for one finished stream."""
    total_chunks: int
    content_chunks: int
    error_chunks: int
    total_duration: float
    content_length: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_chunks": self.total_chunks,
            "content_chunks": self.content_chunks,
            "error_chunks": self.error_chunks,
            "total_duration": round(self.total_duration, 3),
            "content_length": self.content_length,
        }
