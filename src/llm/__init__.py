"""Inference clients and model routing."""

from .chat_provider import ChatProvider, ChatResponse
from .embeddings import EmbeddingService
from .generation import GenerationService
from .interface import EmbeddingClient, GenerationClient
from .router import ModelRouter, ModelSelection

__all__ = [
    "ChatProvider",
    "ChatResponse",
    "EmbeddingClient",
    "EmbeddingService",
    "GenerationClient",
    "GenerationService",
    "ModelRouter",
    "ModelSelection",
]
