"""
Streaming functionality for chat completions.

- SSE reassembly across arbitrary chunk boundaries
- Payload decoding and content accumulation
- Per-event error recovery
"""

from .models import (
    RawSSEChunk,
    SSEEventType,
    StreamChunk,
    StreamChunkType,
    StreamResponse,
)
from .parser import ChunkAccumulator, SSEBuffer, StreamingParser

__all__ = [
    "ChunkAccumulator",
    "RawSSEChunk",
    "SSEBuffer",
    "SSEEventType",
    "StreamChunk",
    "StreamChunkType",
    "StreamResponse",
    "StreamingParser",
]
