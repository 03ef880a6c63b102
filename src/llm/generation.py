"""Reply generation with retry, backoff and model fallback."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Optional

import structlog

from src.exceptions import AllModelsFailedError, GenerationError
from src.utils.validation import is_gibberish

from .chat_provider import ChatProvider
from .router import ModelRouter

logger = structlog.get_logger()


class GenerationService:
    """Generate a reply, falling back through the router's model chain.

    Each model gets ``max_retries`` attempts with exponential backoff
    (``retry_delay * 2**attempt``) for request errors. A gibberish reply
    moves straight on to the next model.
    """

    def __init__(
        self,
        provider: ChatProvider,
        router: ModelRouter,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        temperature: float = 0.85,
        timeout: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._router = router
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._temperature = temperature
        self._timeout = timeout
        self._sleep = sleep

    async def generate(
        self,
        messages: list[dict[str, str]],
        model: str,
        max_tokens: int = 150,
    ) -> str:
        chain = [model, *self._router.fallback_chain(model)]
        last_error: Optional[Exception] = None

        for candidate in chain:
            try:
                reply = await self._generate_with_retry(messages, candidate, max_tokens)
            except GenerationError as exc:
                last_error = exc
                logger.warning("Model failed, trying next", model=candidate, error=str(exc))
                continue

            if candidate != model:
                logger.info("Fallback model succeeded", model=candidate, primary=model)
            return reply

        raise AllModelsFailedError(chain, last_error)

    async def _generate_with_retry(
        self,
        messages: list[dict[str, str]],
        model: str,
        max_tokens: int,
    ) -> str:
        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                response = await asyncio.wait_for(
                    self._provider.chat(
                        messages=messages,
                        model=model,
                        max_tokens=max_tokens,
                        temperature=self._temperature,
                    ),
                    timeout=self._timeout,
                )
            except Exception as exc:
                last_error = exc
                if attempt < self._max_retries - 1:
                    delay = self._retry_delay * 2**attempt
                    logger.warning(
                        "Generation attempt failed, retrying",
                        model=model,
                        attempt=attempt + 1,
                        delay=delay,
                        error=str(exc),
                    )
                    await self._sleep(delay)
                continue

            text = response.content.strip()
            if is_gibberish(text):
                raise GenerationError(f"{model} returned an unusable reply")
            return text

        raise GenerationError(
            f"{model} failed after {self._max_retries} attempts: {last_error}"
        ) from last_error
