"""Per-sender reply queue with human-like delivery timing."""

import asyncio
import random
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import structlog

from src.config.settings import Settings

logger = structlog.get_logger()

# Multiplier applied to the base typing delay per detected emotion
EMOTION_DELAY_FACTORS: dict[str, float] = {
    "sad": 1.3,
    "flirty": 1.1,
    "happy": 0.8,
    "excited": 0.8,
}

Action = Callable[[], Awaitable[Any]]


class ReplyScheduler:
    """Serializes outbound work per sender.

    Each sender has an explicit FIFO of actions drained by a single worker
    task, so actions for one sender never overlap while different senders
    proceed concurrently. A worker exits once its queue is empty.
    """

    def __init__(
        self,
        transport: Any,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._transport = transport
        self._settings = settings
        self._sleep = sleep
        self._rng = rng
        self._queues: dict[str, deque[tuple[Action, asyncio.Future[bool]]]] = {}
        self._workers: dict[str, asyncio.Task] = {}  # type: ignore[type-arg]

    def enqueue(self, sender: str, action: Action) -> "asyncio.Future[bool]":
        """Queue ``action`` for ``sender``.

        The returned future resolves True when the action completed and
        False when it raised.
        """
        loop = asyncio.get_running_loop()
        done: asyncio.Future[bool] = loop.create_future()
        self._queues.setdefault(sender, deque()).append((action, done))

        if sender not in self._workers:
            self._workers[sender] = asyncio.create_task(
                self._drain(sender), name=f"reply-queue-{sender}"
            )
        return done

    async def _drain(self, sender: str) -> None:
        queue = self._queues[sender]
        try:
            while queue:
                action, done = queue.popleft()
                try:
                    await action()
                except asyncio.CancelledError:
                    done.cancel()
                    raise
                except Exception:
                    logger.exception("Queued action failed", sender=sender)
                    if not done.done():
                        done.set_result(False)
                else:
                    if not done.done():
                        done.set_result(True)
        finally:
            self._workers.pop(sender, None)
            if not queue:
                self._queues.pop(sender, None)

    def is_busy(self, sender: str) -> bool:
        return sender in self._workers

    def calculate_delay(self, text: str, emotion: str) -> float:
        """Typing delay in seconds for a reply of this length and mood."""
        s = self._settings
        base = s.min_reply_delay + len(text) * s.reply_delay_per_char
        jitter = self._rng() * s.reply_jitter
        factor = EMOTION_DELAY_FACTORS.get(emotion, 1.0)
        return min(s.max_reply_delay, (base + jitter) * factor)

    def schedule_reply(
        self,
        sender: str,
        text: str,
        emotion: str = "neutral",
        message_id: Optional[str] = None,
    ) -> "asyncio.Future[bool]":
        """Queue delivery of ``text`` with typing presence and a delay."""
        delay = self.calculate_delay(text, emotion)

        async def deliver() -> None:
            await self._transport.send_presence(sender, "composing")
            await self._sleep(delay)
            await self._transport.send_presence(sender, "paused")
            await self._transport.send_message(sender, text)
            if message_id is not None:
                await self._transport.mark_read(sender, message_id)
            await self._transport.send_presence(sender, "available")
            logger.info("Reply delivered", sender=sender, delay=round(delay, 2))

        return self.enqueue(sender, deliver)

    async def shutdown(self, wait: bool = True) -> None:
        """Wait for queued work, or cancel it when ``wait`` is False."""
        workers = list(self._workers.values())
        if not workers:
            return
        if not wait:
            for task in workers:
                task.cancel()
            for queue in self._queues.values():
                for _, done in queue:
                    if not done.done():
                        done.set_result(False)
        await asyncio.gather(*workers, return_exceptions=True)
