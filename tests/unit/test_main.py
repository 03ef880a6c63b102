"""Tests for application wiring."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.settings import Settings
from src.exceptions import ConfigurationError
from src.main import build_engine, setup_logging


@pytest.fixture
def settings():
    return Settings(storage_backend="memory", _env_file=None)


class TestBuildEngine:
    def test_requires_token_without_transport(self, settings):
        with pytest.raises(ConfigurationError, match="TELEGRAM_BOT_TOKEN"):
            build_engine(settings)

    def test_attaches_incoming_handler(self, settings):
        transport = MagicMock()
        transport.on_message = None

        engine = build_engine(settings, transport=transport)

        assert engine.transport is transport
        assert transport.on_message == engine.orchestrator.handle_incoming
        assert engine.orchestrator.memory is engine.memory
        assert engine.orchestrator.scheduler is engine.scheduler

    async def test_engine_round_trip(self, settings):
        transport = MagicMock()
        transport.send_message = AsyncMock()
        engine = build_engine(settings, transport=transport)
        await engine.memory.initialize()

        engine.memory.add_chat_message("42", "user", "hello")
        assert [m.content for m in engine.memory.get_chat_history("42")] == ["hello"]

        await engine.orchestrator.shutdown()


class TestLogging:
    @pytest.mark.parametrize("json_logs", [False, True])
    def test_setup_logging(self, json_logs):
        setup_logging(debug=True, json_logs=json_logs)
