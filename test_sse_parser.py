#!/usr/bin/env python3
"""
Tests for incremental SSE reassembly and chunk accumulation.
"""

import base64
import json

import pytest

from treehole.llm.exceptions import StreamingError
from treehole.llm.streaming.models import SSEEventType, StreamChunkType
from treehole.llm.streaming.parser import ChunkAccumulator, SSEBuffer, StreamingParser


def event(content: str | None = None, **extra) -> bytes:
    """Build one ``data:`` event carrying a content delta."""
    choice: dict = {"delta": {} if content is None else {"content": content}}
    if "finish_reason" in extra:
        choice["finish_reason"] = extra.pop("finish_reason")
    payload = {"choices": [choice], **extra}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode()


DONE = b"data: [DONE]\n\n"


async def aiter_chunks(chunks):
    for chunk in chunks:
        yield chunk


async def collect(chunks, parser: StreamingParser | None = None):
    parser = parser or StreamingParser()
    accumulator = ChunkAccumulator()
    results = []
    async for raw_chunk in parser.parse_sse_stream(aiter_chunks(chunks)):
        chunk = accumulator.process_chunk(raw_chunk)
        if chunk is not None:
            results.append(chunk)
    return results


def contents(chunks) -> str:
    return "".join(c.content for c in chunks if c.chunk_type == StreamChunkType.CONTENT)


class TestSSEBuffer:
    """Test block splitting and tail retention."""

    def test_returns_nothing_until_delimiter(self):
        buffer = SSEBuffer()
        assert buffer.feed(b'data: {"choi') == []
        assert buffer.pending == len(b'data: {"choi')

    def test_keeps_trailing_fragment(self):
        buffer = SSEBuffer()
        blocks = buffer.feed(b"data: one\n\ndata: tw")
        assert blocks == [b"data: one"]
        assert buffer.feed(b"o\n\n") == [b"data: two"]
        assert buffer.pending == 0

    def test_normalizes_crlf_across_chunks(self):
        buffer = SSEBuffer()
        assert buffer.feed(b"data: one\r\n\r") == []
        assert buffer.feed(b"\n") == [b"data: one"]

    def test_flush_returns_and_clears_tail(self):
        buffer = SSEBuffer()
        buffer.feed(b"data: x\n\ndata: tail")
        assert buffer.flush() == b"data: tail"
        assert buffer.pending == 0


class TestStreamingParser:
    """Test SSE event reassembly from arbitrary chunks."""

    @pytest.mark.asyncio
    async def test_separate_chunks(self):
        chunks = await collect([event("Hi"), event(" there"), DONE])
        assert contents(chunks) == "Hi there"
        assert chunks[-1].chunk_type == StreamChunkType.COMPLETION

    @pytest.mark.asyncio
    async def test_two_events_in_one_chunk(self):
        chunks = await collect([event("Hi") + event(" there"), DONE])
        assert [c.content for c in chunks[:2]] == ["Hi", " there"]

    @pytest.mark.asyncio
    async def test_event_split_across_chunks(self):
        chunks = await collect([
            b'data: {"choi',
            b'ces":[{"delta":{"content":"Hi"}}]}\n\n',
        ])
        assert len(chunks) == 1
        assert chunks[0].chunk_type == StreamChunkType.CONTENT
        assert chunks[0].content == "Hi"

    @pytest.mark.asyncio
    async def test_every_split_point_reassembles_same_text(self):
        body = event("你好") + event(", ") + event("world 🌙") + DONE
        expected = "你好, world 🌙"

        for i in range(1, len(body)):
            chunks = await collect([body[:i], body[i:]])
            assert contents(chunks) == expected, f"split at {i}"
            assert not any(c.is_error for c in chunks), f"split at {i}"

        byte_by_byte = [body[i:i + 1] for i in range(len(body))]
        assert contents(await collect(byte_by_byte)) == expected

    @pytest.mark.asyncio
    async def test_malformed_event_does_not_stop_stream(self):
        parser = StreamingParser()
        chunks = await collect(
            [event("Hi"), b"data: {not json}\n\n", event(" there"), DONE], parser
        )
        errors = [c for c in chunks if c.is_error]
        assert contents(chunks) == "Hi there"
        assert len(errors) == 1
        assert errors[0].terminal is False
        assert errors[0].error_category == "decode_error"

    @pytest.mark.asyncio
    async def test_done_ends_without_error_or_empty_delta(self):
        chunks = await collect([event("Hi"), DONE, event("ignored")])
        assert [c.chunk_type for c in chunks] == [
            StreamChunkType.CONTENT, StreamChunkType.COMPLETION
        ]
        assert chunks[-1].content is None

    @pytest.mark.asyncio
    async def test_heartbeats_comments_and_other_fields_are_skipped(self):
        body = (
            b": keep-alive\n\n"
            b"data:\n\n"
            b"event: message\nid: 7\n\n"
            + event("ok")
        )
        chunks = await collect([body])
        assert [c.content for c in chunks] == ["ok"]

    @pytest.mark.asyncio
    async def test_non_json_keepalive_word_is_a_recoverable_error(self):
        chunks = await collect([b"data: ping\n\n", event("ok")])

        assert chunks[0].is_error
        assert not chunks[0].terminal
        assert chunks[1].content == "ok"
        assert len(chunks) == 2

    @pytest.mark.asyncio
    async def test_data_without_space_and_multiline_data(self):
        body = b'data:{"choices":[{"delta":\ndata: {"content":"x"}}]}\n\n'
        chunks = await collect([body])
        assert contents(chunks) == "x"

    @pytest.mark.asyncio
    async def test_unterminated_final_event_is_parsed_at_eof(self):
        chunks = await collect([event("a"), event("b").rstrip(b"\n")])
        assert contents(chunks) == "ab"

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_recoverable(self):
        parser = StreamingParser()
        chunks = await collect([b"data: \xff\xfe\n\n", event("after")], parser)
        assert chunks[0].is_error
        assert contents(chunks) == "after"
        assert parser.get_stats()["recovery_attempts"] == 1

    @pytest.mark.asyncio
    async def test_invalid_utf8_raises_without_recovery(self):
        parser = StreamingParser(enable_recovery=False)
        with pytest.raises(StreamingError):
            await collect([b"data: \xff\xfe\n\n"], parser)

    @pytest.mark.asyncio
    async def test_stats_count_events(self):
        parser = StreamingParser()
        await collect([event("a"), event("b"), DONE], parser)
        assert parser.get_stats()["total_chunks"] == 3
        parser.reset_stats()
        assert parser.get_stats()["total_chunks"] == 0

    @pytest.mark.asyncio
    async def test_raw_event_types(self):
        parser = StreamingParser()
        raw = [r async for r in parser.parse_sse_stream(aiter_chunks([b"data:\n\n", DONE]))]
        assert [r.event_type for r in raw] == [
            SSEEventType.HEARTBEAT, SSEEventType.COMPLETION
        ]


class TestChunkAccumulator:
    """Test decoding of payloads into stream chunks."""

    @pytest.mark.asyncio
    async def test_accumulated_content_grows(self):
        chunks = await collect([event("Hi"), event(" there")])
        assert [c.accumulated_content for c in chunks] == ["Hi", "Hi there"]

    @pytest.mark.asyncio
    async def test_finish_reason_without_content(self):
        chunks = await collect([event("Hi"), event(finish_reason="stop")])
        assert chunks[-1].chunk_type == StreamChunkType.FINISH
        assert chunks[-1].finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_audio_payload_is_decoded(self):
        audio = base64.b64encode(b"RIFF....").decode()
        chunks = await collect([event("Hi", audio=audio), event(audio=audio)])
        assert chunks[0].chunk_type == StreamChunkType.CONTENT
        assert chunks[0].audio == b"RIFF...."
        assert chunks[1].chunk_type == StreamChunkType.AUDIO

    @pytest.mark.asyncio
    async def test_invalid_audio_is_dropped_but_delta_kept(self):
        chunks = await collect([event("Hi", audio="not base64!")])
        assert len(chunks) == 1
        assert chunks[0].content == "Hi"
        assert chunks[0].audio is None

    @pytest.mark.asyncio
    async def test_role_only_and_empty_choices_produce_nothing(self):
        body = (
            b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
            b'data: {"choices":[]}\n\n'
        )
        assert await collect([body]) == []

    @pytest.mark.asyncio
    async def test_non_object_payload_is_an_error(self):
        chunks = await collect([b"data: [1, 2]\n\n"])
        assert len(chunks) == 1
        assert chunks[0].is_error

    def test_streaming_stats(self):
        accumulator = ChunkAccumulator()
        stats = accumulator.get_streaming_stats()
        assert stats.total_chunks == 0
        assert stats.content_length == 0
