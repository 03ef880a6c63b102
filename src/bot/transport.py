"""Messaging transport: protocol plus the Telegram adapter."""

from collections.abc import Awaitable, Callable
from typing import Any, Optional, Protocol, runtime_checkable

import structlog
from telegram import Update
from telegram.constants import ChatAction
from telegram.ext import Application, ContextTypes, MessageHandler, filters

logger = structlog.get_logger()

IncomingHandler = Callable[[str, str, Optional[str], Optional[str]], Awaitable[Any]]


@runtime_checkable
class Transport(Protocol):
    """Outbound side of a chat channel."""

    async def send_message(self, sender: str, text: str) -> None: ...

    async def send_presence(self, sender: str, state: str) -> None:
        """``state`` is one of composing, paused, available."""
        ...

    async def mark_read(self, sender: str, message_id: str) -> None: ...


class TelegramTransport:
    """Long-polling Telegram bot.

    Senders are chat ids rendered as strings. Incoming text messages are
    handed to ``on_message(sender, text, message_id, quoted_text)``.
    """

    def __init__(self, token: str, on_message: Optional[IncomingHandler] = None) -> None:
        self.on_message = on_message
        self.app: Application = Application.builder().token(token).build()  # type: ignore[type-arg]
        self.app.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND, self._handle_text)
        )

    async def _handle_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        chat = update.effective_chat
        if not message or not chat or not message.text:
            return

        quoted: Optional[str] = None
        if message.reply_to_message is not None:
            quoted = message.reply_to_message.text or message.reply_to_message.caption

        if self.on_message is None:
            logger.warning("Message received before a handler was attached")
            return
        await self.on_message(str(chat.id), message.text, str(message.message_id), quoted)

    async def send_message(self, sender: str, text: str) -> None:
        await self.app.bot.send_message(chat_id=int(sender), text=text)

    async def send_presence(self, sender: str, state: str) -> None:
        # Telegram only has a typing indicator; it clears itself on send
        if state == "composing":
            await self.app.bot.send_chat_action(chat_id=int(sender), action=ChatAction.TYPING)

    async def mark_read(self, sender: str, message_id: str) -> None:
        logger.debug("Read receipts unsupported for bots", sender=sender, message_id=message_id)

    async def start(self) -> None:
        await self.app.initialize()
        await self.app.start()
        if self.app.updater is not None:
            await self.app.updater.start_polling(allowed_updates=Update.ALL_TYPES)
        logger.info("Telegram transport started")

    async def stop(self) -> None:
        if self.app.updater is not None and self.app.updater.running:
            await self.app.updater.stop()
        if self.app.running:
            await self.app.stop()
        await self.app.shutdown()
        logger.info("Telegram transport stopped")
