"""Memory manager: the single owner of per-sender conversation state.

In-memory state is authoritative. Every mutation marks what changed and
(re)arms one global debounce timer; when it fires, the changes are written
to the configured ``MemoryStore``. A failed write is logged and the affected
key is rewritten in full on the next flush.
"""

import asyncio
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ValidationError

from src.classifiers.emotion import EmotionalEventMatch
from src.config.settings import Settings
from src.exceptions import CorruptedStoreError
from src.storage.base import LIST_KINDS, SINGLETON_KINDS, MemoryKind, MemoryStore

from .embedding_cache import EmbeddingCache
from .models import (
    KIND_MODELS,
    ChatMessage,
    EmotionalEvent,
    FollowUp,
    LanguagePreference,
    LongTermSummary,
    MoodDrift,
    MoodEntry,
    PersonalityProfile,
    RecallResult,
    RelationshipState,
    ResponseQuality,
    SemanticMatch,
    SemanticMemoryEntry,
    ToneState,
    utcnow,
)
from .mood import calculate_mood_drift, tone_for_drift
from .personality import determine_relationship, is_relationship_stale
from .similarity import rank_semantic_matches, semantic_weight

logger = structlog.get_logger()

Key = tuple[str, MemoryKind]

# event type -> (min hours, max hours, follow-up kind)
FOLLOW_UP_WINDOWS: dict[str, tuple[float, float, str]] = {
    "distress": (12, 48, "check_in"),
    "celebration": (24, 72, "celebrate"),
    "vulnerability": (6, 36, "support"),
}


def _follow_up_message(event: EmotionalEvent, hours: float) -> str:
    days = int(hours // 24)
    if event.type == "distress":
        when = "yesterday" if days == 0 else f"{days} days ago"
        return (
            f"(emotional callback: user experienced {event.trigger} {when}, "
            f'when they said "{event.snippet}". check in gently: '
            f'"hey, how are you feeling about it? any better?")'
        )
    if event.type == "celebration":
        when = "yesterday" if days <= 1 else f"{days} days ago"
        return (
            f"(emotional callback: user had {event.trigger} {when}, "
            f'when they said "{event.snippet}". reference it warmly)'
        )
    return (
        f"(emotional callback: user opened up about something personal "
        f'{int(hours)} hours ago ("{event.snippet}"). show you remember and care)'
    )


class MemoryManager:
    """Owns short-term, long-term, emotional and semantic memory."""

    def __init__(
        self,
        store: MemoryStore,
        settings: Settings,
        embedding_cache: Optional[EmbeddingCache] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._settings = settings
        self._embeddings = embedding_cache
        self._clock = clock

        self._lists: dict[str, dict[MemoryKind, list[Any]]] = defaultdict(dict)
        self._singletons: dict[str, dict[MemoryKind, Any]] = defaultdict(dict)

        self._pending_appends: dict[Key, list[Any]] = defaultdict(list)
        self._dirty_lists: set[Key] = set()
        self._dirty_singletons: set[Key] = set()
        self._deleted_senders: set[str] = set()
        # Follow-up events handed to an in-flight turn, not yet marked
        self._claimed_follow_ups: dict[str, set[str]] = defaultdict(set)

        self._flush_handle: Optional[asyncio.TimerHandle] = None
        self._flush_task: Optional[asyncio.Task] = None
        self._flush_lock = asyncio.Lock()

        self._caps: dict[MemoryKind, int] = {
            MemoryKind.CHAT: settings.max_short_term_messages,
            MemoryKind.LONG_TERM: settings.max_long_term_summaries,
            MemoryKind.EMOTIONAL_EVENTS: settings.max_emotional_events,
            MemoryKind.SEMANTIC: settings.max_semantic_memories,
            MemoryKind.MOOD: settings.max_mood_history,
            MemoryKind.RESPONSE_QUALITY: settings.max_response_quality,
            MemoryKind.COMPRESSION_BACKLOG: settings.memory_compression_threshold * 2,
        }

    # --- Lifecycle ---

    async def initialize(self) -> None:
        """Open the store and load every sender's validated records."""
        try:
            await self._store.initialize()
        except CorruptedStoreError as exc:
            logger.error(
                "Memory store was corrupted, starting empty",
                error=str(exc),
                backup=exc.backup_path,
            )
            return

        try:
            senders = await self._store.list_senders()
            for sender in senders:
                await self._load_sender(sender)
        except Exception as exc:
            logger.error("Failed to load memory, starting empty", error=str(exc))
            self._lists.clear()
            self._singletons.clear()
            return

        logger.info("Memory loaded", senders=len(senders))

    async def _load_sender(self, sender: str) -> None:
        for kind in LIST_KINDS:
            raw = await self._store.get_recent(sender, kind, limit=self._caps[kind])
            records = []
            for item in raw:
                record = self._validate(sender, kind, item)
                if record is not None:
                    records.append(record)
            if records:
                self._lists[sender][kind] = records

        for kind in SINGLETON_KINDS:
            raw_value = await self._store.get_singleton(sender, kind)
            if raw_value is not None:
                value = self._validate(sender, kind, raw_value)
                if value is not None:
                    self._singletons[sender][kind] = value

    def _validate(self, sender: str, kind: MemoryKind, raw: Any) -> Optional[BaseModel]:
        try:
            return KIND_MODELS[kind].model_validate(raw)
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid memory record",
                sender=sender,
                kind=kind.value,
                errors=exc.error_count(),
            )
            return None

    def schedule_save(self) -> None:
        """(Re)arm the global debounced flush."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the next flush() or close() picks the changes up
            return

        if self._flush_handle is not None:
            self._flush_handle.cancel()
        self._flush_handle = loop.call_later(
            self._settings.memory_save_debounce, self._start_flush
        )

    def _start_flush(self) -> None:
        self._flush_handle = None
        self._flush_task = asyncio.get_running_loop().create_task(self.flush())

    @property
    def has_pending_writes(self) -> bool:
        return bool(
            self._pending_appends
            or self._dirty_lists
            or self._dirty_singletons
            or self._deleted_senders
        )

    async def flush(self) -> None:
        """Write every pending change to the store now."""
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None

        async with self._flush_lock:
            deleted, self._deleted_senders = self._deleted_senders, set()
            appends, self._pending_appends = self._pending_appends, defaultdict(list)
            rewrites, self._dirty_lists = self._dirty_lists, set()
            singletons, self._dirty_singletons = self._dirty_singletons, set()

            try:
                async with self._store.batch():
                    failures = await self._write_changes(deleted, appends, rewrites, singletons)
            except Exception as exc:
                # The grouped write failed; nothing from this flush is on disk
                failures = 1
                self._deleted_senders |= deleted
                for key in rewrites | set(appends):
                    self._mark_rewrite(key)
                self._dirty_singletons |= singletons
                logger.warning("Failed to commit memory flush", error=str(exc))

        if failures:
            logger.warning("Memory flush incomplete, will retry", failures=failures)
            self.schedule_save()
        else:
            logger.debug("Memory flushed")

    async def _write_changes(
        self,
        deleted: set[str],
        appends: dict[Key, list[Any]],
        rewrites: set[Key],
        singletons: set[Key],
    ) -> int:
        """Hand one flush worth of changes to the store; returns the failure count."""
        failures = 0

        for sender in deleted:
            try:
                await self._store.delete_sender(sender)
            except Exception as exc:
                failures += 1
                self._deleted_senders.add(sender)
                logger.warning("Failed to delete sender", sender=sender, error=str(exc))

        for key in rewrites:
            sender, kind = key
            payload = [r.model_dump(mode="json") for r in self._lists.get(sender, {}).get(kind, [])]
            try:
                await self._store.replace(sender, kind, payload)
            except Exception as exc:
                failures += 1
                self._mark_rewrite(key)
                logger.warning(
                    "Failed to persist memory",
                    sender=sender,
                    kind=kind.value,
                    error=str(exc),
                )

        for key, records in appends.items():
            if key in self._dirty_lists:
                continue
            sender, kind = key
            try:
                for record in records:
                    await self._store.append(
                        sender, kind, record.model_dump(mode="json"), self._caps[kind]
                    )
            except Exception as exc:
                failures += 1
                self._mark_rewrite(key)
                logger.warning(
                    "Failed to persist memory",
                    sender=sender,
                    kind=kind.value,
                    error=str(exc),
                )

        for key in singletons:
            sender, kind = key
            value = self._singletons.get(sender, {}).get(kind)
            if value is None:
                continue
            try:
                await self._store.set_singleton(sender, kind, value.model_dump(mode="json"))
            except Exception as exc:
                failures += 1
                self._dirty_singletons.add(key)
                logger.warning(
                    "Failed to persist memory",
                    sender=sender,
                    kind=kind.value,
                    error=str(exc),
                )

        return failures

    async def close(self) -> None:
        """Flush outstanding changes and close the store."""
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        if self._flush_task is not None and not self._flush_task.done():
            await asyncio.gather(self._flush_task, return_exceptions=True)

        await self.flush()
        if self._flush_handle is not None:
            # A failed final flush must not leave a timer behind
            self._flush_handle.cancel()
            self._flush_handle = None
        await self._store.close()

    # --- Internal write helpers ---

    def _mark_rewrite(self, key: Key) -> None:
        self._dirty_lists.add(key)
        self._pending_appends.pop(key, None)

    def _get_list(self, sender: str, kind: MemoryKind) -> list[Any]:
        return list(self._lists.get(sender, {}).get(kind, []))

    def _append(self, sender: str, kind: MemoryKind, record: BaseModel) -> list[Any]:
        """Append with FIFO eviction; returns the evicted records."""
        records = self._lists[sender].setdefault(kind, [])
        records.append(record)
        overflow = len(records) - self._caps[kind]
        evicted: list[Any] = []
        if overflow > 0:
            evicted = records[:overflow]
            del records[:overflow]

        key = (sender, kind)
        if key not in self._dirty_lists:
            self._pending_appends[key].append(record)
        self.schedule_save()
        return evicted

    def _replace(self, sender: str, kind: MemoryKind, records: list[Any]) -> None:
        self._lists[sender][kind] = list(records)
        self._mark_rewrite((sender, kind))
        self.schedule_save()

    def _get_singleton(self, sender: str, kind: MemoryKind) -> Optional[Any]:
        return self._singletons.get(sender, {}).get(kind)

    def _set_singleton(self, sender: str, kind: MemoryKind, value: BaseModel) -> None:
        self._singletons[sender][kind] = value
        self._dirty_singletons.add((sender, kind))
        self.schedule_save()

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self._clock()

    # --- Short-term chat ---

    def get_chat_history(self, sender: str, limit: Optional[int] = None) -> list[ChatMessage]:
        history = self._get_list(sender, MemoryKind.CHAT)
        if limit is not None:
            history = history[-limit:] if limit > 0 else []
        return history

    def add_chat_message(self, sender: str, role: str, content: str) -> ChatMessage:
        """Append to the ring buffer; evicted messages wait for compression."""
        message = ChatMessage(role=role, content=content)
        for old in self._append(sender, MemoryKind.CHAT, message):
            self._append(sender, MemoryKind.COMPRESSION_BACKLOG, old)
        return message

    def get_compression_backlog(self, sender: str) -> list[ChatMessage]:
        return self._get_list(sender, MemoryKind.COMPRESSION_BACKLOG)

    # --- Long-term summaries ---

    def get_long_term(self, sender: str) -> list[LongTermSummary]:
        return self._get_list(sender, MemoryKind.LONG_TERM)

    def add_long_term(
        self,
        sender: str,
        summary: str,
        timestamp: Optional[datetime] = None,
    ) -> LongTermSummary:
        entry = LongTermSummary(summary=summary, timestamp=self._now(timestamp))
        self._append(sender, MemoryKind.LONG_TERM, entry)
        return entry

    async def maybe_compress(self, sender: str, summarizer: Any) -> Optional[LongTermSummary]:
        """Fold evicted history into a long-term summary once it grows long.

        Runs when the backlog plus the live buffer exceeds the compression
        threshold. The backlog is only cleared if a summary was produced.
        """
        backlog = self.get_compression_backlog(sender)
        buffer = self.get_chat_history(sender)
        if not backlog or len(backlog) + len(buffer) <= self._settings.memory_compression_threshold:
            return None

        summary = await summarizer.summarize(backlog + buffer)
        if not summary:
            logger.warning("Compression skipped, no summary produced", sender=sender)
            return None

        entry = self.add_long_term(sender, summary)
        summarized = {id(m) for m in backlog}
        remaining = [
            m for m in self.get_compression_backlog(sender) if id(m) not in summarized
        ]
        self._replace(sender, MemoryKind.COMPRESSION_BACKLOG, remaining)
        logger.info(
            "Conversation compressed",
            sender=sender,
            messages=len(backlog) + len(buffer),
        )
        return entry

    # --- Emotional events ---

    def get_emotional_events(self, sender: str) -> list[EmotionalEvent]:
        return self._get_list(sender, MemoryKind.EMOTIONAL_EVENTS)

    def record_emotional_event(
        self,
        sender: str,
        emotion: str,
        match: EmotionalEventMatch,
        snippet: str,
        timestamp: Optional[datetime] = None,
    ) -> EmotionalEvent:
        event = EmotionalEvent(
            emotion=emotion,
            type=match.type,
            intensity=match.intensity,
            trigger=match.trigger,
            snippet=snippet[:120],
            timestamp=self._now(timestamp),
        )
        self._append(sender, MemoryKind.EMOTIONAL_EVENTS, event)
        logger.info(
            "Recorded emotional event",
            sender=sender,
            event_type=event.type,
            intensity=event.intensity,
        )
        return event

    def find_follow_up(self, sender: str, now: Optional[datetime] = None) -> Optional[FollowUp]:
        """Newest unfollowed event whose follow-up window contains ``now``."""
        current = self._now(now)
        claimed = self._claimed_follow_ups.get(sender, ())
        for event in reversed(self.get_emotional_events(sender)):
            if event.followed_up or event.id in claimed or event.type not in FOLLOW_UP_WINDOWS:
                continue
            low, high, kind = FOLLOW_UP_WINDOWS[event.type]
            hours = (current - event.timestamp).total_seconds() / 3600
            if low <= hours <= high:
                return FollowUp(
                    kind=kind,
                    message=_follow_up_message(event, hours),
                    event=event,
                )
        return None

    def claim_follow_up(self, sender: str, now: Optional[datetime] = None) -> Optional[FollowUp]:
        """Like ``find_follow_up``, but reserve the event for the caller.

        A claimed event is invisible to other turns until it is either
        marked followed up or released.
        """
        follow_up = self.find_follow_up(sender, now)
        if follow_up is not None:
            self._claimed_follow_ups[sender].add(follow_up.event.id)
        return follow_up

    def release_follow_up(self, sender: str, event_id: str) -> None:
        """Give a claimed event back, e.g. when the turn was dropped."""
        self._claimed_follow_ups.get(sender, set()).discard(event_id)

    def mark_followed_up(self, sender: str, event_id: str) -> bool:
        """Flip ``followed_up`` on an event. Returns False if already set."""
        self.release_follow_up(sender, event_id)
        events = self._lists.get(sender, {}).get(MemoryKind.EMOTIONAL_EVENTS, [])
        for index, event in enumerate(events):
            if event.id != event_id:
                continue
            if event.followed_up:
                return False
            events[index] = event.model_copy(update={"followed_up": True})
            self._mark_rewrite((sender, MemoryKind.EMOTIONAL_EVENTS))
            self.schedule_save()
            return True
        return False

    # --- Tone and language ---

    def get_tone_state(self, sender: str) -> ToneState:
        return self._get_singleton(sender, MemoryKind.TONE) or ToneState()

    def get_tone(self, sender: str) -> str:
        return self.get_tone_state(sender).tone

    def set_tone(self, sender: str, tone: str, now: Optional[datetime] = None) -> None:
        self._set_singleton(sender, MemoryKind.TONE, ToneState(tone=tone, updated_at=self._now(now)))

    def _tone_expired(self, sender: str, state: ToneState, now: datetime) -> bool:
        summaries = self.get_long_term(sender)
        reference = summaries[-1].timestamp if summaries else state.updated_at
        return now - reference > timedelta(hours=self._settings.tone_decay_hours)

    def effective_tone(self, sender: str, now: Optional[datetime] = None) -> str:
        """Stored tone as ``decay_tone`` would leave it, without writing."""
        state = self._get_singleton(sender, MemoryKind.TONE)
        if state is None or self._tone_expired(sender, state, self._now(now)):
            return "neutral"
        return state.tone

    def decay_tone(self, sender: str, now: Optional[datetime] = None) -> bool:
        """Reset a non-neutral tone after a long quiet spell.

        The quiet spell is measured from the newest long-term summary, or
        from when the tone was set if there is no summary yet.
        """
        state = self._get_singleton(sender, MemoryKind.TONE)
        if state is None or state.tone == "neutral":
            return False

        current = self._now(now)
        if not self._tone_expired(sender, state, current):
            return False

        logger.debug("Tone decayed to neutral", sender=sender, previous=state.tone)
        self.set_tone(sender, "neutral", now=current)
        return True

    def get_language(self, sender: str) -> str:
        value = self._get_singleton(sender, MemoryKind.LANGUAGE)
        return value.language if value else "mixed"

    def set_language(self, sender: str, language: str) -> bool:
        """Store the preference; returns True if it changed."""
        current = self._get_singleton(sender, MemoryKind.LANGUAGE)
        if current is not None and current.language == language:
            return False
        self._set_singleton(
            sender,
            MemoryKind.LANGUAGE,
            LanguagePreference(language=language, updated_at=self._clock()),
        )
        return True

    # --- Semantic memory ---

    async def embed(self, text: str) -> Optional[list[float]]:
        if self._embeddings is None:
            return None
        return await self._embeddings.get(text)

    async def store_semantic_memory(
        self,
        sender: str,
        text: str,
        emotion: str,
        context: Optional[dict[str, Any]] = None,
        embedding: Optional[list[float]] = None,
    ) -> Optional[SemanticMemoryEntry]:
        """Embed and remember a message. Skipped if no embedding is available."""
        vector = embedding if embedding is not None else await self.embed(text)
        if not vector:
            logger.debug("Semantic memory skipped, no embedding", sender=sender)
            return None

        entry = SemanticMemoryEntry(
            text=text,
            embedding=vector,
            emotion=emotion,
            context=context or {},
            weight=semantic_weight(emotion),
            timestamp=self._clock(),
        )
        self._append(sender, MemoryKind.SEMANTIC, entry)
        return entry

    async def search_semantic_memory(
        self,
        sender: str,
        text: str,
        embedding: Optional[list[float]] = None,
    ) -> list[SemanticMatch]:
        """Stored entries similar to ``text``, most relevant first."""
        entries = self._get_list(sender, MemoryKind.SEMANTIC)
        if not entries:
            return []

        vector = embedding if embedding is not None else await self.embed(text)
        if not vector:
            return []

        matches = rank_semantic_matches(
            vector,
            entries,
            threshold=self._settings.embedding_similarity_threshold,
            limit=self._settings.semantic_recall_limit,
        )
        if matches:
            logger.debug("Semantic matches found", sender=sender, count=len(matches))
        return matches

    async def recall(self, sender: str, text: str) -> RecallResult:
        """Gather everything a turn needs from memory.

        Nothing is written; the only side effect is claiming the follow-up
        event, which the caller must mark or release.
        """
        query_embedding = await self.embed(text)
        semantic: list[SemanticMatch] = []
        if query_embedding:
            semantic = await self.search_semantic_memory(sender, text, embedding=query_embedding)
        return RecallResult(
            history=self.get_chat_history(sender),
            long_term=self.get_long_term(sender),
            semantic=semantic,
            follow_up=self.claim_follow_up(sender),
            query_embedding=query_embedding,
        )

    # --- Mood ---

    def get_mood_history(self, sender: str) -> list[MoodEntry]:
        return self._get_list(sender, MemoryKind.MOOD)

    def record_mood(
        self,
        sender: str,
        emotion: str,
        intensity: float = 0.5,
        timestamp: Optional[datetime] = None,
    ) -> MoodEntry:
        entry = MoodEntry(emotion=emotion, intensity=intensity, timestamp=self._now(timestamp))
        self._append(sender, MemoryKind.MOOD, entry)
        return entry

    def calculate_mood_drift(self, sender: str, now: Optional[datetime] = None) -> MoodDrift:
        return calculate_mood_drift(
            self.get_mood_history(sender),
            now=self._now(now),
            window_hours=self._settings.mood_window_hours,
        )

    def track_mood(self, sender: str, emotion: str) -> MoodDrift:
        """Record a mood, then let the resulting drift steer the tone."""
        self.record_mood(sender, emotion)
        drift = self.calculate_mood_drift(sender)
        tone = tone_for_drift(drift)
        if tone and tone != self.get_tone(sender):
            logger.debug(
                "Mood drift adjusted tone",
                sender=sender,
                tone=tone,
                score=round(drift.score, 3),
            )
            self.set_tone(sender, tone)
        return drift

    # --- Personality and relationship ---

    def get_personality(self, sender: str) -> PersonalityProfile:
        return self._get_singleton(sender, MemoryKind.PERSONALITY) or PersonalityProfile()

    def update_personality(self, sender: str, profile: PersonalityProfile) -> None:
        self._set_singleton(sender, MemoryKind.PERSONALITY, profile)

    def get_relationship(self, sender: str) -> Optional[RelationshipState]:
        return self._get_singleton(sender, MemoryKind.RELATIONSHIP)

    def set_relationship(self, sender: str, state: RelationshipState) -> None:
        self._set_singleton(sender, MemoryKind.RELATIONSHIP, state)

    def resolve_relationship(self, sender: str, extra_text: str = "") -> RelationshipState:
        """Current relationship, recomputed from recent messages if stale.

        Read-only: a fresh determination is returned but not stored.
        """
        current = self.get_relationship(sender)
        now = self._clock()
        if not is_relationship_stale(current, now, self._settings.relationship_stale_days):
            return current

        texts = [m.content for m in self.get_chat_history(sender) if m.role == "user"]
        if extra_text:
            texts.append(extra_text)
        return determine_relationship(texts, now)

    # --- Self-reflection ---

    def get_response_quality(self, sender: str) -> list[ResponseQuality]:
        return self._get_list(sender, MemoryKind.RESPONSE_QUALITY)

    def record_response_quality(self, sender: str, quality: ResponseQuality) -> None:
        self._append(sender, MemoryKind.RESPONSE_QUALITY, quality)

    # --- Maintenance ---

    def senders(self) -> list[str]:
        names = {s for s, kinds in self._lists.items() if kinds}
        names.update(s for s, kinds in self._singletons.items() if kinds)
        return sorted(names)

    def clear_sender(self, sender: str) -> None:
        """Forget everything about a sender."""
        self._lists.pop(sender, None)
        self._singletons.pop(sender, None)
        self._claimed_follow_ups.pop(sender, None)
        for key in [k for k in self._pending_appends if k[0] == sender]:
            del self._pending_appends[key]
        self._dirty_lists = {k for k in self._dirty_lists if k[0] != sender}
        self._dirty_singletons = {k for k in self._dirty_singletons if k[0] != sender}
        self._deleted_senders.add(sender)
        self.schedule_save()
        logger.info("Sender memory cleared", sender=sender)

    def get_stats(self) -> dict[str, Any]:
        counts: dict[str, int] = defaultdict(int)
        for kinds in self._lists.values():
            for kind, records in kinds.items():
                counts[kind.value] += len(records)

        stats: dict[str, Any] = {
            "senders": len(self.senders()),
            "records": dict(counts),
            "pending_writes": self.has_pending_writes,
        }
        if self._embeddings is not None:
            stats["embedding_cache"] = {
                "size": len(self._embeddings),
                "hits": self._embeddings.hits,
                "misses": self._embeddings.misses,
            }
        return stats
