"""Async client for the card feed backend."""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, Field, ValidationError

from treehole.logging_utils import log_operation

logger = logging.getLogger(__name__)


class CardServiceError(Exception):
    """The card backend could not be reached or returned an unusable body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class APICard(BaseModel):
    card_id: int
    content: str
    created_at: str
    audio_url: str | None = None
    background_music_url: str | None = None
    mood: str
    is_discussion_card: bool
    tags: list[str] = Field(default_factory=list)

    @property
    def id(self) -> int:
        return self.card_id


class CardPage(BaseModel):
    """One page of cards as returned by ``/cards`` and ``/cards/search``."""
    cards: list[APICard]
    total: int
    pages: int
    current_page: int


class CardAPIService:
    """Fetches and searches cards; keeps the last successful result."""

    def __init__(
        self,
        base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=timeout)
        self.cards: list[APICard] = []

    @log_operation("fetch_cards")
    async def fetch_cards(self) -> CardPage:
        return await self._get_page("/cards")

    @log_operation("search_cards")
    async def search_cards(self, query: str) -> CardPage:
        return await self._get_page("/cards/search", params={"q": query})

    async def _get_page(
        self, path: str, params: dict[str, str] | None = None
    ) -> CardPage:
        try:
            response = await self.client.get(self.base_url + path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CardServiceError(
                f"Card request failed with status {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise CardServiceError(f"Card request failed: {e}") from e

        try:
            page = CardPage.model_validate_json(response.content)
        except ValidationError as e:
            raise CardServiceError(f"Unexpected card response format: {e}") from e

        self.cards = page.cards
        logger.debug(f"Loaded {len(page.cards)} cards from {path}")
        return page

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
