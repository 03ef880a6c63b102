"""Embedding client over the chat provider."""

import asyncio
from typing import Optional

import structlog

from src.exceptions import EmbeddingError

from .chat_provider import ChatProvider

logger = structlog.get_logger()


class EmbeddingService:
    """Turns text into vectors, raising EmbeddingError on any failure."""

    def __init__(
        self,
        provider: ChatProvider,
        model: str,
        timeout: Optional[float] = None,
    ) -> None:
        self._provider = provider
        self._model = model
        self._timeout = timeout

    async def embed(self, text: str) -> list[float]:
        try:
            vector = await asyncio.wait_for(
                self._provider.embed(text, model=self._model),
                timeout=self._timeout,
            )
        except Exception as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        if not vector:
            raise EmbeddingError("Embedding response contained no vector")
        return vector
