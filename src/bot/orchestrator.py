"""Message orchestrator: single entry point for every incoming message.

Incoming messages are filtered (empty, duplicate, unauthorized, trivial)
and handed to the burst aggregator. Each completed burst is processed as
one turn: classify, recall, select a model, generate, persist, then
schedule delivery. Memory is only written after a successful generation.
"""

import asyncio
from collections import defaultdict, deque
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog

from src.classifiers import (
    detect_emotion,
    detect_emotional_event,
    detect_intent,
    detect_language,
    detect_tone,
    is_trivial,
)
from src.config.settings import Settings
from src.exceptions import GenerationError
from src.llm.interface import GenerationClient
from src.llm.router import ModelRouter
from src.memory.manager import MemoryManager
from src.memory.models import utcnow
from src.memory.personality import adapt_personality, evolve_profile
from src.memory.summarizer import ConversationSummarizer
from src.utils.validation import is_valid_message

from .aggregator import BurstAggregator, Turn
from .middleware.auth import SenderAllowlist
from .prompts import PromptContext, build_messages
from .scheduler import ReplyScheduler
from .temporal import get_temporal_context

logger = structlog.get_logger()


class TurnStage(str, Enum):
    RECEIVED = "received"
    CLASSIFIED = "classified"
    RECALLED = "recalled"
    MODEL_SELECTED = "model_selected"
    GENERATED = "generated"
    PERSISTED = "persisted"
    SCHEDULED = "scheduled"
    DELIVERED = "delivered"
    DROPPED = "dropped"


@dataclass
class TurnResult:
    """Outcome of one processed turn."""

    sender: str
    text: str
    stage: TurnStage = TurnStage.RECEIVED
    stages: list[TurnStage] = field(default_factory=lambda: [TurnStage.RECEIVED])
    intent: Optional[str] = None
    emotion: Optional[str] = None
    tone: Optional[str] = None
    model: Optional[str] = None
    reply: Optional[str] = None
    follow_up: Optional[str] = None
    follow_up_event_id: Optional[str] = None
    error: Optional[str] = None

    def advance(self, stage: TurnStage) -> None:
        self.stage = stage
        self.stages.append(stage)

    @property
    def dropped(self) -> bool:
        return self.stage is TurnStage.DROPPED


class MessageOrchestrator:
    """Wires classifiers, memory, routing, generation and delivery together."""

    def __init__(
        self,
        settings: Settings,
        memory: MemoryManager,
        generator: GenerationClient,
        router: ModelRouter,
        scheduler: ReplyScheduler,
        summarizer: Optional[ConversationSummarizer] = None,
        allowlist: Optional[SenderAllowlist] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.memory = memory
        self.generator = generator
        self.router = router
        self.scheduler = scheduler
        self.summarizer = summarizer
        self.allowlist = allowlist or SenderAllowlist(settings.allowed_senders)
        self._clock = clock

        self.aggregator = BurstAggregator(
            self.process_turn,
            delay=settings.debounce_delay,
            separator=settings.burst_separator,
            clock=clock,
        )

        self._processed_order: deque[tuple[str, str]] = deque()
        self._processed_ids: set[tuple[str, str]] = set()
        self._trivial_counts: dict[str, int] = defaultdict(int)
        self._background: set[asyncio.Task] = set()  # type: ignore[type-arg]

    # --- Incoming messages ---

    def _already_processed(self, sender: str, message_id: str) -> bool:
        # Message ids are only unique within one chat
        key = (sender, message_id)
        if key in self._processed_ids:
            return True
        self._processed_order.append(key)
        self._processed_ids.add(key)
        while len(self._processed_order) > self.settings.processed_ids_limit:
            self._processed_ids.discard(self._processed_order.popleft())
        return False

    def _should_skip(self, sender: str, text: str) -> bool:
        """Skip after several trivial messages in a row (ok, hmm, haha)."""
        if not is_trivial(text):
            self._trivial_counts[sender] = 0
            return False
        self._trivial_counts[sender] += 1
        count = self._trivial_counts[sender]
        if count >= self.settings.skip_response_threshold:
            logger.debug("Skipping consecutive trivial message", sender=sender, count=count)
            return True
        return False

    async def handle_incoming(
        self,
        sender: str,
        text: str,
        message_id: Optional[str] = None,
        quoted_text: Optional[str] = None,
    ) -> bool:
        """Accept a raw message. Returns True if it was buffered for a turn."""
        text = (text or "").strip()
        if not text:
            return False

        if message_id is not None and self._already_processed(sender, str(message_id)):
            logger.debug("Duplicate message ignored", sender=sender, message_id=message_id)
            return False

        if not self.allowlist.is_allowed(sender):
            return False

        if self._should_skip(sender, text):
            return False

        language = detect_language(text)
        if self.memory.set_language(sender, language):
            logger.debug("Language preference updated", sender=sender, language=language)

        self.aggregator.add(sender, text, message_id=message_id, quoted_text=quoted_text)
        return True

    # --- Turn processing ---

    def _drop(self, result: TurnResult, reason: str, error: Optional[Exception] = None) -> TurnResult:
        result.error = str(error) if error else reason
        logger.error(
            "Turn dropped",
            sender=result.sender,
            stage=result.stage.value,
            reason=reason,
            error=str(error) if error else None,
        )
        if result.follow_up_event_id is not None and TurnStage.PERSISTED not in result.stages:
            # The callback never reached the user; offer it to the next turn
            self.memory.release_follow_up(result.sender, result.follow_up_event_id)
        result.advance(TurnStage.DROPPED)
        return result

    async def process_turn(self, turn: Turn) -> TurnResult:
        result = TurnResult(sender=turn.sender, text=turn.text)
        try:
            return await self._process(turn, result)
        except Exception as exc:
            logger.exception("Turn processing failed", sender=turn.sender, stage=result.stage.value)
            return self._drop(result, "unexpected error", exc)

    async def _process(self, turn: Turn, result: TurnResult) -> TurnResult:
        sender, text = turn.sender, turn.text
        now = self._clock()

        intent = detect_intent(text)
        emotion = detect_emotion(text)
        detected_tone = detect_tone(self.memory.get_chat_history(sender), text)
        event_match = detect_emotional_event(text, emotion)
        result.intent, result.emotion = intent, emotion
        result.advance(TurnStage.CLASSIFIED)
        logger.debug(
            "Turn classified",
            sender=sender,
            stage=result.stage.value,
            intent=intent,
            emotion=emotion,
            tone=detected_tone,
        )

        recall = await self.memory.recall(sender, text)
        if recall.follow_up is not None:
            result.follow_up_event_id = recall.follow_up.event.id
        stored_tone = self.memory.effective_tone(sender)
        tone = detected_tone if detected_tone != "neutral" else stored_tone
        drift = self.memory.calculate_mood_drift(sender)
        relationship = self.memory.resolve_relationship(sender, extra_text=text)
        profile = self.memory.get_personality(sender)
        adaptation = adapt_personality(profile, relationship, emotion, intent, text)
        temporal = get_temporal_context(now, self.settings.timezone)
        result.tone = tone
        result.advance(TurnStage.RECALLED)

        selection = self.router.select_model(intent, emotion, temporal, drift)
        result.model = selection.model
        result.advance(TurnStage.MODEL_SELECTED)

        messages = build_messages(
            PromptContext(
                text=text,
                intent=intent,
                emotion=emotion,
                tone=tone,
                language=self.memory.get_language(sender),
                temporal=temporal,
                mood_drift=drift,
                personality=adaptation,
                history=recall.history,
                long_term=recall.long_term,
                semantic=recall.semantic,
                follow_up=recall.follow_up,
                quoted_text=turn.quoted_text,
            )
        )

        try:
            reply = await self.generator.generate(
                messages, selection.model, max_tokens=self.settings.ai_max_tokens
            )
        except GenerationError as exc:
            return self._drop(result, "generation failed", exc)

        reply = (reply or "").strip().lower()
        if not is_valid_message(reply):
            return self._drop(result, "invalid reply")
        result.reply = reply
        result.advance(TurnStage.GENERATED)

        # Persist only after a usable reply exists
        self.memory.add_chat_message(sender, "user", text)
        self.memory.add_chat_message(sender, "assistant", reply)
        self.memory.decay_tone(sender, now=now)
        if detected_tone != "neutral" and detected_tone != self.memory.get_tone(sender):
            self.memory.set_tone(sender, detected_tone, now=now)
        self.memory.track_mood(sender, emotion)
        if event_match is not None:
            self.memory.record_emotional_event(sender, emotion, event_match, text)
        if recall.follow_up is not None and self.memory.mark_followed_up(
            sender, recall.follow_up.event.id
        ):
            result.follow_up = recall.follow_up.kind
        if recall.query_embedding:
            await self.memory.store_semantic_memory(
                sender,
                text,
                emotion,
                context={"intent": intent, "tone": tone, "time_of_day": temporal.time_of_day},
                embedding=recall.query_embedding,
            )
        self.memory.update_personality(
            sender,
            evolve_profile(
                profile, adaptation.traits, rate=self.settings.personality_adaptation_rate
            ),
        )
        if relationship is not self.memory.get_relationship(sender):
            self.memory.set_relationship(sender, relationship)
        result.advance(TurnStage.PERSISTED)

        message_id = turn.message_ids[-1] if turn.message_ids else None
        delivery = self.scheduler.schedule_reply(sender, reply, emotion, message_id)
        result.advance(TurnStage.SCHEDULED)
        logger.info(
            "Reply scheduled",
            sender=sender,
            stage=result.stage.value,
            model=selection.model,
            role=selection.role,
            intent=intent,
            emotion=emotion,
        )

        if await delivery:
            result.advance(TurnStage.DELIVERED)
        else:
            logger.warning("Reply delivery failed", sender=sender, stage=result.stage.value)

        self._spawn(self._compress(sender), name=f"compress-{sender}")
        if self.settings.reflection_enabled and self.summarizer is not None:
            self._spawn(
                self._reflect(sender, text, reply, emotion, intent),
                name=f"reflect-{sender}",
            )
        return result

    # --- Background work ---

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:  # type: ignore[type-arg]
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:  # type: ignore[type-arg]
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed", task=task.get_name(), error=str(exc))

    async def _compress(self, sender: str) -> None:
        if self.summarizer is None:
            return
        await self.memory.maybe_compress(sender, self.summarizer)

    async def _reflect(self, sender: str, text: str, reply: str, emotion: str, intent: str) -> None:
        quality = await self.summarizer.reflect(text, reply, emotion, intent)  # type: ignore[union-attr]
        if quality is not None:
            self.memory.record_response_quality(sender, quality)
            logger.debug("Reply reflected", sender=sender, score=quality.score)

    async def wait_idle(self) -> None:
        """Wait until in-flight turns and background work have finished."""
        while self.aggregator.in_flight or self._background:
            await self.aggregator.join()
            if self._background:
                await asyncio.gather(*list(self._background), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop accepting bursts, finish queued work and flush memory."""
        await self.aggregator.shutdown(wait=True)
        await self.scheduler.shutdown(wait=True)
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self.memory.close()
        logger.info("Orchestrator stopped")
