"""Interfaces the engine uses to reach inference backends.

These Protocols decouple the orchestrator from the openai SDK so tests and
alternative backends can stand in for the real endpoints.
"""

from typing import Protocol


class GenerationClient(Protocol):
    """Produces a reply for a chat transcript."""

    async def generate(
        self,
        messages: list[dict[str, str]],
        model: str,
        max_tokens: int = 150,
    ) -> str:
        """Generate a reply.

        Args:
            messages: System, history and user messages in OpenAI format.
            model: Preferred model id. Implementations may fall back to others.
            max_tokens: Upper bound on the reply length.

        Returns:
            The reply text, already validated as non-gibberish.

        Raises:
            GenerationError: If no usable reply could be produced.
        """
        ...


class EmbeddingClient(Protocol):
    """Maps text to a dense vector."""

    async def embed(self, text: str) -> list[float]:
        """Embed text.

        Raises:
            EmbeddingError: If the endpoint fails or returns no vector.
        """
        ...
