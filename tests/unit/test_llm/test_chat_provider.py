"""Unit tests for chat_provider module."""
import pytest
from unittest.mock import MagicMock, AsyncMock, patch
from dataclasses import asdict

from src.llm.chat_provider import ChatResponse, ChatProvider


# Test fixtures and helpers

def create_mock_response(
    content: str = "test response",
    model: str = "gemma3:4b-it-qat",
    prompt_tokens: int = 100,
    completion_tokens: int = 50,
) -> MagicMock:
    """Create a mock OpenAI chat completion response."""
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content
    mock_response.model = model

    mock_response.usage = MagicMock()
    mock_response.usage.prompt_tokens = prompt_tokens
    mock_response.usage.completion_tokens = completion_tokens

    return mock_response


def create_mock_embedding(vector: list[float]) -> MagicMock:
    item = MagicMock()
    item.embedding = vector
    response = MagicMock()
    response.data = [item] if vector else []
    return response


@pytest.fixture
def mock_openai_client():
    """Create a mock AsyncOpenAI client."""
    with patch("src.llm.chat_provider.AsyncOpenAI") as mock_client_class:
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock()
        mock_client.embeddings.create = AsyncMock()
        mock_client_class.return_value = mock_client
        yield mock_client


# Test ChatResponse dataclass

class TestChatResponse:
    def test_dataclass_is_dataclass(self):
        """ChatResponse carries content, model and token usage."""
        response = ChatResponse(
            content="test",
            model="test-model",
            input_tokens=0,
            output_tokens=0,
            duration_ms=0,
        )
        assert asdict(response) == {
            "content": "test",
            "model": "test-model",
            "input_tokens": 0,
            "output_tokens": 0,
            "duration_ms": 0,
        }


# Test ChatProvider class

class TestChatProviderInit:
    def test_init_stores_models(self, mock_openai_client):
        provider = ChatProvider(
            model="gemma3:4b-it-qat", api_key="ollama", embedding_model="minilm"
        )
        assert provider.model == "gemma3:4b-it-qat"
        assert provider.embedding_model == "minilm"

    def test_init_disables_sdk_retries(self):
        """Retries belong to the generation service, not the SDK."""
        with patch("src.llm.chat_provider.AsyncOpenAI") as mock_client_class:
            ChatProvider(
                model="gemma3:4b-it-qat",
                api_key="ollama",
                base_url="http://localhost:11434/v1",
                timeout=25.0,
            )
            mock_client_class.assert_called_once_with(
                api_key="ollama",
                base_url="http://localhost:11434/v1",
                timeout=25.0,
                max_retries=0,
            )


class TestChatProviderChat:
    async def test_chat_successful_call(self, mock_openai_client):
        """Successful chat call returns ChatResponse."""
        mock_openai_client.chat.completions.create.return_value = create_mock_response(
            content="Hello there", prompt_tokens=150, completion_tokens=75
        )

        provider = ChatProvider(model="gemma3:4b-it-qat", api_key="ollama")
        response = await provider.chat([{"role": "user", "content": "Hi"}])

        assert response.content == "Hello there"
        assert response.model == "gemma3:4b-it-qat"
        assert response.input_tokens == 150
        assert response.output_tokens == 75
        assert response.duration_ms >= 0

    async def test_chat_model_override(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = create_mock_response(
            model="phi3:3.8b"
        )

        provider = ChatProvider(model="gemma3:4b-it-qat", api_key="ollama")
        await provider.chat(
            [{"role": "user", "content": "test"}],
            model="phi3:3.8b",
            max_tokens=42,
            temperature=0.3,
        )

        call_kwargs = mock_openai_client.chat.completions.create.call_args[1]
        assert call_kwargs["model"] == "phi3:3.8b"
        assert call_kwargs["max_tokens"] == 42
        assert call_kwargs["temperature"] == 0.3

    async def test_chat_missing_content_and_usage(self, mock_openai_client):
        mock_response = create_mock_response()
        mock_response.choices[0].message.content = None
        mock_response.usage = None
        mock_openai_client.chat.completions.create.return_value = mock_response

        provider = ChatProvider(model="gemma3:4b-it-qat", api_key="ollama")
        response = await provider.chat([{"role": "user", "content": "test"}])

        assert response.content == ""
        assert response.input_tokens == 0
        assert response.output_tokens == 0

    async def test_chat_propagates_api_errors(self, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = RuntimeError("down")

        provider = ChatProvider(model="gemma3:4b-it-qat", api_key="ollama")
        with pytest.raises(RuntimeError, match="down"):
            await provider.chat([{"role": "user", "content": "test"}])


class TestChatProviderEmbed:
    async def test_embed_returns_vector(self, mock_openai_client):
        mock_openai_client.embeddings.create.return_value = create_mock_embedding(
            [0.1, 0.2, 0.3]
        )

        provider = ChatProvider(model="m", api_key="ollama", embedding_model="minilm")
        vector = await provider.embed("hello")

        assert vector == [0.1, 0.2, 0.3]
        mock_openai_client.embeddings.create.assert_called_once_with(
            model="minilm", input="hello"
        )

    async def test_embed_empty_data(self, mock_openai_client):
        mock_openai_client.embeddings.create.return_value = create_mock_embedding([])

        provider = ChatProvider(model="m", api_key="ollama", embedding_model="minilm")
        assert await provider.embed("hello") == []

    async def test_embed_without_model_raises(self, mock_openai_client):
        provider = ChatProvider(model="m", api_key="ollama")
        with pytest.raises(ValueError):
            await provider.embed("hello")
