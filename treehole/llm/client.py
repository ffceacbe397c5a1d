"""
Streaming chat completion client over plain HTTP.

Sends one request per call and turns the SSE response body into typed
stream chunks. Transport failures end the stream with a single terminal
error chunk; malformed events produce non-terminal error chunks and the
stream carries on.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import httpx

from treehole.logging_utils import ErrorHandler, operation_context

from .exceptions import ProviderError
from .models import LLMMessage, LLMRequest, MessageRole, ProviderConfig
from .streaming.models import StreamChunk, StreamChunkType
from .streaming.parser import ChunkAccumulator, StreamingParser


class StreamingChatClient:
    """HTTP client for streamed chat completions."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        enable_recovery: bool = True,
    ) -> None:
        self.config = config
        self.enable_recovery = enable_recovery
        self._owns_client = http_client is None
        self.client: httpx.AsyncClient = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
                pool=config.pool_timeout,
            ),
        )
        self.last_stats: dict[str, Any] = {}

    @property
    def endpoint(self) -> str:
        return self.config.base_url.rstrip("/") + self.config.completions_path

    def build_request(self, messages: list[LLMMessage]) -> LLMRequest:
        """Prefix the configured system prompt and mark the request as streaming."""
        conversation = list(messages)
        if self.config.system_prompt:
            conversation.insert(
                0, LLMMessage(role=MessageRole.SYSTEM, content=self.config.system_prompt)
            )
        return LLMRequest(model=self.config.model, messages=conversation, stream=True)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    async def stream_chat(
        self, messages: list[LLMMessage]
    ) -> AsyncGenerator[StreamChunk]:
        """
        Stream a chat completion for ``messages``.

        Yields content, finish, audio and error chunks in arrival order and
        stops after ``[DONE]`` or end of body. Never raises for transport or
        HTTP status failures; those arrive as one final chunk with
        ``terminal=True``.
        """
        payload = self.build_request(messages).to_payload()
        parser = StreamingParser(enable_recovery=self.enable_recovery)
        accumulator = ChunkAccumulator()
        context = {
            "provider": self.config.provider.value,
            "model": self.config.model,
            "message_count": len(payload["messages"]),
        }

        async with operation_context("chat_stream", context=context) as log:
            try:
                async with self.client.stream(
                    "POST", self.endpoint, json=payload, headers=self._headers()
                ) as response:
                    if not response.is_success:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise ProviderError(
                            f"Streaming API error {response.status_code}: {body}",
                            provider=self.config.provider.value,
                            model=self.config.model,
                            status_code=response.status_code,
                        )

                    async for raw_chunk in parser.parse_sse_stream(response.aiter_bytes()):
                        chunk = accumulator.process_chunk(raw_chunk)
                        if chunk is None:
                            continue
                        if chunk.is_error:
                            log.warning("Skipping malformed stream event", error=chunk.error)
                        yield chunk

            except (httpx.HTTPError, ProviderError) as e:
                yield StreamChunk(
                    chunk_type=StreamChunkType.ERROR,
                    accumulated_content=accumulator.state.content_buffer,
                    error=str(e),
                    error_category=ErrorHandler.log_error(e, "chat_stream", context),
                    terminal=True,
                )

            finally:
                self.last_stats = {
                    "parser": parser.get_stats(),
                    **accumulator.get_streaming_stats().as_dict(),
                }
                log.debug("Stream statistics", **self.last_stats)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
