"""Tests for the per-sender reply scheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.bot.scheduler import ReplyScheduler
from src.config.settings import Settings


@pytest.fixture
def settings():
    return Settings(
        min_reply_delay=1.0,
        max_reply_delay=6.0,
        reply_delay_per_char=0.05,
        reply_jitter=1.0,
        _env_file=None,
    )


@pytest.fixture
def transport():
    t = MagicMock()
    t.send_message = AsyncMock()
    t.send_presence = AsyncMock()
    t.mark_read = AsyncMock()
    return t


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def scheduler(transport, settings, sleep):
    return ReplyScheduler(transport, settings, sleep=sleep, rng=lambda: 0.5)


class TestQueueDiscipline:
    async def test_actions_for_one_sender_run_in_order(self, scheduler):
        log: list[str] = []

        def action(name: str, pause: float):
            async def run() -> None:
                log.append(f"start {name}")
                await asyncio.sleep(pause)
                log.append(f"end {name}")

            return run

        first = scheduler.enqueue("alice", action("a", 0.03))
        second = scheduler.enqueue("alice", action("b", 0.0))

        assert await first is True
        assert await second is True
        assert log == ["start a", "end a", "start b", "end b"]

    async def test_senders_run_concurrently(self, scheduler):
        alice_started = asyncio.Event()
        bob_done = asyncio.Event()

        async def alice() -> None:
            alice_started.set()
            # Only finishes if bob's queue makes progress meanwhile
            await asyncio.wait_for(bob_done.wait(), timeout=1)

        async def bob() -> None:
            await alice_started.wait()
            bob_done.set()

        results = await asyncio.gather(
            scheduler.enqueue("alice", alice),
            scheduler.enqueue("bob", bob),
        )
        assert results == [True, True]

    async def test_failure_does_not_block_later_actions(self, scheduler):
        ran = []

        async def broken() -> None:
            raise RuntimeError("send failed")

        async def fine() -> None:
            ran.append("fine")

        failed = scheduler.enqueue("alice", broken)
        ok = scheduler.enqueue("alice", fine)

        assert await failed is False
        assert await ok is True
        assert ran == ["fine"]

    async def test_worker_exits_when_queue_empty(self, scheduler):
        done = scheduler.enqueue("alice", AsyncMock())
        assert scheduler.is_busy("alice")

        await done
        await asyncio.sleep(0)
        assert not scheduler.is_busy("alice")

    async def test_shutdown_waits_for_queue(self, scheduler):
        ran = []

        async def late() -> None:
            await asyncio.sleep(0.01)
            ran.append("late")

        scheduler.enqueue("alice", late)
        await scheduler.shutdown()

        assert ran == ["late"]


class TestCalculateDelay:
    def test_base_formula(self, scheduler):
        # 1.0 + 10 * 0.05 + 0.5 jitter
        assert scheduler.calculate_delay("x" * 10, "neutral") == pytest.approx(2.0)

    @pytest.mark.parametrize(
        "emotion,factor",
        [("sad", 1.3), ("flirty", 1.1), ("happy", 0.8), ("excited", 0.8), ("anxious", 1.0)],
    )
    def test_emotion_factor(self, scheduler, emotion, factor):
        assert scheduler.calculate_delay("x" * 10, emotion) == pytest.approx(2.0 * factor)

    def test_capped_at_max(self, scheduler):
        assert scheduler.calculate_delay("x" * 500, "sad") == 6.0

    def test_jitter_range(self, transport, settings):
        low = ReplyScheduler(transport, settings, rng=lambda: 0.0)
        high = ReplyScheduler(transport, settings, rng=lambda: 0.999)

        assert low.calculate_delay("", "neutral") == pytest.approx(1.0)
        assert 1.0 < high.calculate_delay("", "neutral") < 2.0


class TestScheduleReply:
    async def test_delivery_sequence(self, scheduler, transport, sleep):
        calls = MagicMock()
        calls.attach_mock(transport.send_presence, "presence")
        calls.attach_mock(transport.send_message, "send")
        calls.attach_mock(transport.mark_read, "read")

        delivered = await scheduler.schedule_reply("alice", "hey you", "sad", "m-1")

        assert delivered is True
        assert [c[0] for c in calls.mock_calls] == [
            "presence",
            "presence",
            "send",
            "read",
            "presence",
        ]
        states = [c.args[1] for c in transport.send_presence.await_args_list]
        assert states == ["composing", "paused", "available"]
        transport.send_message.assert_awaited_once_with("alice", "hey you")
        transport.mark_read.assert_awaited_once_with("alice", "m-1")
        sleep.assert_awaited_once()
        assert sleep.await_args.args[0] == pytest.approx(
            (1.0 + 7 * 0.05 + 0.5) * 1.3
        )

    async def test_no_mark_read_without_message_id(self, scheduler, transport):
        await scheduler.schedule_reply("alice", "hello there")
        transport.mark_read.assert_not_awaited()

    async def test_send_failure_resolves_false(self, scheduler, transport):
        transport.send_message.side_effect = ConnectionError("offline")

        assert await scheduler.schedule_reply("alice", "hello there") is False
        # A later reply still goes out
        transport.send_message.side_effect = None
        assert await scheduler.schedule_reply("alice", "second try") is True
