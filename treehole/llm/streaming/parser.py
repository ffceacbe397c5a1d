"""
Incremental SSE parser and chunk accumulator for chat completion streams.

The parser turns an async sequence of raw body chunks into discrete SSE
events. Chunk boundaries may fall anywhere, including inside a ``data:`` line
or a multi-byte character: only bytes up to the last event delimiter are
decoded, and the unterminated tail stays buffered for the next chunk.
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator, AsyncIterable

import structlog
from pydantic import ValidationError

from ..exceptions import EventDecodeError, StreamingError
from .models import (
    AccumulatorState,
    RawSSEChunk,
    SSEEventType,
    StreamChunk,
    StreamChunkType,
    StreamingStats,
    StreamResponse,
)

logger = structlog.get_logger(__name__)

EVENT_DELIMITER = b"\n\n"
DONE_SENTINEL = "[DONE]"


class SSEBuffer:
    """Byte buffer that releases complete SSE blocks and keeps the remainder."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, data: bytes) -> list[bytes]:
        """Append ``data`` and return every block completed by it."""
        self._buffer += data
        if b"\r\n" in self._buffer:
            self._buffer = bytearray(self._buffer.replace(b"\r\n", b"\n"))

        end = self._buffer.rfind(EVENT_DELIMITER)
        if end == -1:
            return []

        complete = bytes(self._buffer[:end])
        del self._buffer[:end + len(EVENT_DELIMITER)]
        return [block for block in complete.split(EVENT_DELIMITER) if block.strip()]

    def flush(self) -> bytes:
        """Return and clear whatever is left after the last delimiter."""
        tail = bytes(self._buffer)
        self._buffer.clear()
        return tail

    @property
    def pending(self) -> int:
        return len(self._buffer)


class StreamingParser:
    """SSE parser with per-event error recovery and statistics."""

    def __init__(self, enable_recovery: bool = True):
        self.enable_recovery = enable_recovery
        self.stats = {
            'total_chunks': 0,
            'error_chunks': 0,
            'recovery_attempts': 0,
        }

    async def parse_sse_stream(
        self, chunks: AsyncIterable[bytes]
    ) -> AsyncGenerator[RawSSEChunk]:
        """
        Reassemble SSE events from raw body chunks.

        Stops after the ``[DONE]`` sentinel. At end of body a non-blank tail
        without a closing delimiter is parsed as a final event.
        """
        buffer = SSEBuffer()

        async for chunk_bytes in chunks:
            for block in buffer.feed(chunk_bytes):
                chunk = self._handle_block(block)
                if chunk is None:
                    continue
                yield chunk
                if chunk.event_type == SSEEventType.COMPLETION:
                    return

        tail = buffer.flush()
        if tail.strip():
            chunk = self._handle_block(tail)
            if chunk is not None:
                yield chunk

    def _handle_block(self, block: bytes) -> RawSSEChunk | None:
        try:
            chunk = self._parse_sse_event(block, time.time())
        except EventDecodeError as e:
            self.stats['error_chunks'] += 1
            if not self.enable_recovery:
                raise StreamingError(f"SSE parse error: {e}") from e
            self.stats['recovery_attempts'] += 1
            return RawSSEChunk(
                event_type=SSEEventType.ERROR,
                data=None,
                raw_data=e.raw_data,
                error=str(e),
            )

        if chunk is not None:
            self.stats['total_chunks'] += 1
        return chunk

    def _parse_sse_event(self, block: bytes, timestamp: float) -> RawSSEChunk | None:
        """Parse one event block; ``None`` if it carries no ``data`` field."""
        try:
            text = block.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EventDecodeError(
                f"Invalid UTF-8 in event: {e}",
                raw_data=block.decode("utf-8", errors="replace"),
            ) from e

        data_lines: list[str] = []
        for raw_line in text.strip().split("\n"):
            line = raw_line.strip()
            # Comments (":") and non-data fields are ignored
            if not line.startswith("data:"):
                continue
            value = line[5:]
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)

        if not data_lines:
            return None

        payload = "\n".join(data_lines).strip()

        if payload == DONE_SENTINEL:
            return RawSSEChunk(
                event_type=SSEEventType.COMPLETION,
                data=None,
                raw_data=payload,
                timestamp=timestamp,
            )

        if not payload:
            return RawSSEChunk(
                event_type=SSEEventType.HEARTBEAT,
                data=None,
                raw_data=payload,
                timestamp=timestamp,
            )

        return RawSSEChunk(
            event_type=SSEEventType.CHUNK,
            data=payload,
            raw_data=payload,
            timestamp=timestamp,
        )

    def get_stats(self) -> dict[str, int]:
        """Get streaming statistics for monitoring."""
        return self.stats.copy()

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        self.stats = {
            'total_chunks': 0,
            'error_chunks': 0,
            'recovery_attempts': 0,
        }


class ChunkAccumulator:
    """Decodes raw SSE events into typed stream chunks and tracks content."""

    def __init__(self):
        self.state = AccumulatorState()

    def process_chunk(self, raw_chunk: RawSSEChunk) -> StreamChunk | None:  # noqa: PLR0911
        """
        Decode one raw event.

        Heartbeats and payloads carrying nothing usable yield ``None``.
        Malformed JSON yields a non-terminal ``ERROR`` chunk.
        """
        self.state.update_timing(raw_chunk.timestamp)

        if raw_chunk.event_type == SSEEventType.COMPLETION:
            return StreamChunk(
                chunk_type=StreamChunkType.COMPLETION,
                accumulated_content=self.state.content_buffer,
            )

        if raw_chunk.event_type == SSEEventType.ERROR:
            return self._create_error_chunk(raw_chunk.error or "Unknown parse error")

        if raw_chunk.event_type == SSEEventType.HEARTBEAT or raw_chunk.data is None:
            return None

        try:
            response = StreamResponse.model_validate_json(raw_chunk.data)
        except ValidationError as e:
            return self._create_error_chunk(
                f"Malformed stream event: {e.errors()[0]['msg']}"
            )

        audio = self._decode_audio(response)
        finish_reason = response.finish_reason

        if content := response.content:
            self.state.content_buffer += content
            self.state.content_chunks += 1
            return StreamChunk(
                chunk_type=StreamChunkType.CONTENT,
                content=content,
                accumulated_content=self.state.content_buffer,
                finish_reason=finish_reason,
                audio=audio,
            )

        if audio is not None:
            return StreamChunk(
                chunk_type=StreamChunkType.AUDIO,
                accumulated_content=self.state.content_buffer,
                finish_reason=finish_reason,
                audio=audio,
            )

        if finish_reason:
            return StreamChunk(
                chunk_type=StreamChunkType.FINISH,
                accumulated_content=self.state.content_buffer,
                finish_reason=finish_reason,
            )

        return None

    def _decode_audio(self, response: StreamResponse) -> bytes | None:
        try:
            return response.audio_bytes
        except ValueError as e:
            logger.warning("Dropping undecodable audio payload", error=str(e))
            return None

    def _create_error_chunk(self, error: str) -> StreamChunk:
        self.state.error_chunks += 1
        return StreamChunk(
            chunk_type=StreamChunkType.ERROR,
            accumulated_content=self.state.content_buffer,
            error=error,
            error_category="decode_error",
        )

    def get_streaming_stats(self) -> StreamingStats:
        return StreamingStats(
            total_chunks=self.state.chunk_count,
            content_chunks=self.state.content_chunks,
            error_chunks=self.state.error_chunks,
            total_duration=self.state.streaming_duration,
            content_length=len(self.state.content_buffer),
        )

    def reset(self) -> None:
        """Reset accumulator state for new stream."""
        self.state = AccumulatorState()
