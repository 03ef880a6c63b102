"""OpenAI-compatible chat and embedding provider.

Uses the openai SDK, which also speaks to Ollama, vLLM and other servers
exposing the ``/v1`` API.
"""

import time
from dataclasses import dataclass
from typing import Optional

import structlog
from openai import AsyncOpenAI

logger = structlog.get_logger()


@dataclass
class ChatResponse:
    """Response from a chat completion."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int
    duration_ms: int


class ChatProvider:
    """Thin async wrapper over chat completions and embeddings."""

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        embedding_model: Optional[str] = None,
    ) -> None:
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,  # retries are handled by GenerationService
        )
        self.model = model
        self.embedding_model = embedding_model

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
        max_tokens: int = 150,
        temperature: float = 0.8,
    ) -> ChatResponse:
        """Send chat completion request."""
        used_model = model or self.model
        start = time.monotonic()

        response = await self.client.chat.completions.create(
            model=used_model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        duration_ms = int((time.monotonic() - start) * 1000)
        choice = response.choices[0]
        usage = response.usage

        logger.debug("Chat completion", model=used_model, duration_ms=duration_ms)
        return ChatResponse(
            content=choice.message.content or "",
            model=response.model or used_model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            duration_ms=duration_ms,
        )

    async def embed(self, text: str, model: Optional[str] = None) -> list[float]:
        """Embed one text. Returns the raw vector."""
        used_model = model or self.embedding_model
        if not used_model:
            raise ValueError("No embedding model configured")

        response = await self.client.embeddings.create(model=used_model, input=text)
        if not response.data:
            return []
        return list(response.data[0].embedding)
