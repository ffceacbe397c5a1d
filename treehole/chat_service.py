"""
Chat session for the tree hole journaling screen.

This module handles the conversation side of streaming:
- Appending user entries to the transcript before any network activity
- Driving one chat completion stream at a time
- Applying deltas to the open assistant reply strictly in arrival order
- "New conversation" resets that detach any in-flight stream

Each request runs in a producer task that pushes stream chunks onto a queue;
``send_message`` is the single consumer that touches the transcript.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable

from treehole.conversation import EmotionTag, Transcript
from treehole.llm.client import StreamingChatClient
from treehole.llm.streaming.models import StreamChunk, StreamChunkType

logger = logging.getLogger(__name__)

AudioSink = Callable[[bytes], None]

_STREAM_END = object()


class ChatSession:
    """
    Conversation orchestrator for one user.

    1. Takes the user's entry and appends it to the transcript
    2. Sends the whole transcript to the chat completion endpoint
    3. Streams the reply back, growing one assistant message
    """

    def __init__(
        self,
        llm_client: StreamingChatClient,
        *,
        audio_sink: AudioSink | None = None,
    ):
        self.llm_client = llm_client
        self.audio_sink = audio_sink
        self.transcript = Transcript()

        # Bumped on every reset; chunks from older generations are discarded.
        self._generation = 0
        self._producer: asyncio.Task | None = None
        self._send_lock = asyncio.Lock()

    @property
    def is_streaming(self) -> bool:
        return self._producer is not None and not self._producer.done()

    async def send_message(
        self, text: str, emotion_tag: EmotionTag | None = None
    ) -> AsyncGenerator[StreamChunk]:
        """
        Send a journal entry and stream the assistant's reply.

        Whitespace-only ``text`` is a no-op: nothing is sent and the
        transcript is untouched. Otherwise yields every chunk after it has
        been applied to the transcript; error chunks are yielded too, with
        ``terminal`` set when the request itself failed.
        """
        text = text.strip()
        if not text:
            logger.debug("Ignoring empty message")
            return

        lock = await self._acquire_send_lock()
        try:
            generation = self._generation
            self.transcript.add_user_message(text, emotion_tag)

            queue: asyncio.Queue = asyncio.Queue()
            producer = asyncio.create_task(
                self._pump(self.transcript.to_llm_messages(), queue)
            )
            # Runs even if the task is cancelled before its first step
            producer.add_done_callback(lambda _task: queue.put_nowait(_STREAM_END))
            self._producer = producer

            try:
                while True:
                    item = await queue.get()
                    if item is _STREAM_END:
                        break
                    if generation != self._generation:
                        logger.info("Discarding chunk from a reset conversation")
                        break
                    self._apply(item)
                    yield item

                if generation == self._generation and not producer.cancelled():
                    # Surfaces unexpected producer failures
                    await producer
            finally:
                if not producer.done():
                    producer.cancel()
                if self._producer is producer:
                    self._producer = None
                if generation == self._generation:
                    self.transcript.close_open_message()
        finally:
            lock.release()

    async def _acquire_send_lock(self) -> asyncio.Lock:
        """
        Wait for the current conversation's send lock.

        A reset swaps in a fresh lock, so a stale stream that is never
        closed only blocks the conversation it belonged to.
        """
        while True:
            lock = self._send_lock
            await lock.acquire()
            if lock is self._send_lock:
                return lock
            lock.release()

    async def _pump(self, messages, queue: asyncio.Queue) -> None:
        async for chunk in self.llm_client.stream_chat(messages):
            queue.put_nowait(chunk)

    def _apply(self, chunk: StreamChunk) -> None:
        if chunk.chunk_type == StreamChunkType.CONTENT and chunk.content:
            self.transcript.apply_delta(chunk.content)

        if chunk.finish_reason:
            self.transcript.record_finish(chunk.finish_reason)

        if chunk.audio is not None and self.audio_sink is not None:
            self.audio_sink(chunk.audio)

        if chunk.chunk_type == StreamChunkType.ERROR:
            if chunk.terminal:
                logger.error(f"Chat stream failed: {chunk.error}")
            else:
                logger.warning(f"Skipped malformed stream event: {chunk.error}")

    def start_new_conversation(self) -> None:
        """Drop the transcript and detach any in-flight stream from it."""
        self._generation += 1
        self._send_lock = asyncio.Lock()
        if self._producer is not None and not self._producer.done():
            logger.info("Cancelling in-flight stream for new conversation")
            self._producer.cancel()
        self.transcript.reset()

    async def close(self) -> None:
        self.start_new_conversation()
        await self.llm_client.close()
