"""Application entry point."""

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from src import __version__
from src.bot.orchestrator import MessageOrchestrator
from src.bot.scheduler import ReplyScheduler
from src.bot.transport import TelegramTransport
from src.config.settings import Settings, get_settings
from src.exceptions import ConfigurationError
from src.llm.chat_provider import ChatProvider
from src.llm.embeddings import EmbeddingService
from src.llm.generation import GenerationService
from src.llm.router import ModelRouter
from src.memory.embedding_cache import EmbeddingCache
from src.memory.manager import MemoryManager
from src.memory.summarizer import ConversationSummarizer
from src.storage.factory import create_store

logger = structlog.get_logger()


def setup_logging(debug: bool = False, json_logs: bool = False) -> None:
    """Configure structlog on top of stdlib logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@dataclass
class Engine:
    """Fully wired application components."""

    settings: Settings
    memory: MemoryManager
    orchestrator: MessageOrchestrator
    scheduler: ReplyScheduler
    transport: Any


def build_engine(settings: Settings, transport: Optional[Any] = None) -> Engine:
    """Wire storage, memory, inference and delivery for ``settings``.

    Without an explicit ``transport`` a Telegram transport is created,
    which needs ``TELEGRAM_BOT_TOKEN``.
    """
    if transport is None:
        token = settings.telegram_bot_token_str
        if not token:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN is required to run the bot")
        transport = TelegramTransport(token)

    provider = ChatProvider(
        model=settings.model_emotional,
        api_key=settings.ai_api_key_str,
        base_url=settings.ai_base_url,
        timeout=settings.ai_timeout,
        embedding_model=settings.model_embedding,
    )
    embeddings = EmbeddingService(provider, settings.model_embedding, timeout=settings.ai_timeout)
    cache = EmbeddingCache(embeddings.embed, max_size=settings.embedding_cache_size)

    memory = MemoryManager(create_store(settings), settings, embedding_cache=cache)
    router = ModelRouter(settings)
    generator = GenerationService(
        provider,
        router,
        max_retries=settings.ai_max_retries,
        retry_delay=settings.ai_retry_delay,
        temperature=settings.ai_temperature,
        timeout=settings.ai_timeout,
    )
    scheduler = ReplyScheduler(transport, settings)
    orchestrator = MessageOrchestrator(
        settings,
        memory,
        generator,
        router,
        scheduler,
        summarizer=ConversationSummarizer(provider, model=settings.model_summarization),
    )
    if hasattr(transport, "on_message"):
        transport.on_message = orchestrator.handle_incoming

    return Engine(
        settings=settings,
        memory=memory,
        orchestrator=orchestrator,
        scheduler=scheduler,
        transport=transport,
    )


async def main() -> None:
    settings = get_settings()
    setup_logging(debug=settings.debug, json_logs=settings.log_json)
    logger.info(
        "Starting companion bot",
        version=__version__,
        storage=settings.storage_backend,
        timezone=settings.timezone,
    )

    engine = build_engine(settings)
    await engine.memory.initialize()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await engine.transport.start()
    try:
        await stop.wait()
        logger.info("Shutdown signal received")
    finally:
        # Queued replies still need the transport
        await engine.orchestrator.shutdown()
        await engine.transport.stop()
        logger.info("Companion bot stopped")


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except ConfigurationError as exc:
        logger.error("Configuration error", error=str(exc))
        sys.exit(1)


if __name__ == "__main__":
    run()
