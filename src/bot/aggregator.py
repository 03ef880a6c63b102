"""Burst aggregation: coalesce rapid consecutive messages into one turn."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import structlog

from src.memory.models import utcnow

logger = structlog.get_logger()


@dataclass
class Turn:
    """One debounced burst of messages from a single sender."""

    sender: str
    text: str
    fragments: list[str] = field(default_factory=list)
    message_ids: list[str] = field(default_factory=list)
    quoted_text: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class _PendingBurst:
    fragments: list[str] = field(default_factory=list)
    message_ids: list[str] = field(default_factory=list)
    quoted_text: Optional[str] = None
    handle: Optional[asyncio.TimerHandle] = None


TurnHandler = Callable[[Turn], Awaitable[Any]]


class BurstAggregator:
    """Debounces messages per sender.

    Every ``add`` restarts the sender's timer. When it expires the pending
    fragments are joined with ``separator`` and the handler runs once, as a
    tracked task. Messages arriving while that task runs start a new burst.
    """

    def __init__(
        self,
        handler: TurnHandler,
        delay: float = 2.0,
        separator: str = " | ",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._handler = handler
        self._delay = delay
        self._separator = separator
        self._clock = clock
        self._pending: dict[str, _PendingBurst] = {}
        self._tasks: set[asyncio.Task] = set()  # type: ignore[type-arg]

    def add(
        self,
        sender: str,
        text: str,
        message_id: Optional[str] = None,
        quoted_text: Optional[str] = None,
    ) -> None:
        burst = self._pending.setdefault(sender, _PendingBurst())
        burst.fragments.append(text)
        if message_id is not None:
            burst.message_ids.append(str(message_id))
        if quoted_text:
            burst.quoted_text = quoted_text

        if burst.handle is not None:
            burst.handle.cancel()
        loop = asyncio.get_running_loop()
        burst.handle = loop.call_later(self._delay, self._fire, sender)

        logger.debug("Message buffered", sender=sender, fragments=len(burst.fragments))

    def pending(self, sender: str) -> list[str]:
        """Fragments buffered for ``sender`` that have not fired yet."""
        burst = self._pending.get(sender)
        return list(burst.fragments) if burst else []

    def cancel(self, sender: str) -> bool:
        """Drop the sender's pending burst without handling it."""
        burst = self._pending.pop(sender, None)
        if burst is None:
            return False
        if burst.handle is not None:
            burst.handle.cancel()
        return True

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def _fire(self, sender: str) -> None:
        burst = self._pending.pop(sender, None)
        if burst is None or not burst.fragments:
            return

        turn = Turn(
            sender=sender,
            text=self._separator.join(burst.fragments),
            fragments=burst.fragments,
            message_ids=burst.message_ids,
            quoted_text=burst.quoted_text,
            created_at=self._clock(),
        )
        logger.info("Burst complete", sender=sender, fragments=len(turn.fragments))

        task = asyncio.create_task(self._run(turn), name=f"turn-{sender}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, turn: Turn) -> None:
        try:
            await self._handler(turn)
        except Exception:
            logger.exception("Turn handler failed", sender=turn.sender)

    async def join(self) -> None:
        """Wait for turns that have already fired."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, wait: bool = True) -> None:
        """Cancel pending timers and optionally wait for in-flight turns."""
        for sender in list(self._pending):
            self.cancel(sender)
        if wait:
            await self.join()
