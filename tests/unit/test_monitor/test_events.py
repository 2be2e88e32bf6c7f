"""Tests for the monitor event bus."""

from __future__ import annotations

import pytest

from satwatch.domain.models import LiveStatus, QuestionCandidate, QuestionDetected
from satwatch.monitor.events import EventBus


def _detected(text: str = "Which choice best completes the text?") -> QuestionDetected:
    return QuestionDetected(candidate=QuestionCandidate(is_question=True, text=text))


class TestEventBus:
    """Test typed subscriptions and channels."""

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        def on_sync(event: QuestionDetected) -> None:
            seen.append("sync")

        async def on_async(event: QuestionDetected) -> None:
            seen.append("async")

        bus.subscribe(QuestionDetected, on_sync)
        bus.subscribe(QuestionDetected, on_async)
        await bus.publish(_detected())
        assert seen == ["sync", "async"]

    @pytest.mark.asyncio
    async def test_handlers_are_typed(self) -> None:
        bus = EventBus()
        seen: list[object] = []
        bus.subscribe(LiveStatus, seen.append)
        await bus.publish(_detected())
        assert seen == []
        await bus.publish(LiveStatus(status="skipped"))
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        bus = EventBus()
        seen: list[object] = []
        unsubscribe = bus.subscribe(QuestionDetected, seen.append)
        unsubscribe()
        unsubscribe()
        await bus.publish(_detected())
        assert seen == []

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self) -> None:
        """A raising handler must not stop delivery to the others."""
        bus = EventBus()
        seen: list[object] = []

        def broken(event: QuestionDetected) -> None:
            raise RuntimeError("overlay window gone")

        bus.subscribe(QuestionDetected, broken)
        bus.subscribe(QuestionDetected, seen.append)
        await bus.publish(_detected())
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_channel_receives_everything(self) -> None:
        bus = EventBus()
        channel = bus.open_channel()
        await bus.publish(_detected())
        await bus.publish(LiveStatus(status="unchanged"))
        assert isinstance(await channel.get(), QuestionDetected)
        assert isinstance(await channel.get(), LiveStatus)

    @pytest.mark.asyncio
    async def test_channel_drops_oldest(self) -> None:
        bus = EventBus()
        channel = bus.open_channel(maxsize=2)
        for text in ["first question text", "second question text", "third question text"]:
            await bus.publish(_detected(text))
        assert channel.dropped == 1
        first = await channel.get()
        assert first.candidate.text == "second question text"

    @pytest.mark.asyncio
    async def test_closed_channel_stops_iteration(self) -> None:
        bus = EventBus()
        received = []
        async with bus.open_channel() as channel:
            await bus.publish(LiveStatus(status="ready"))
            channel.close()
            async for event in channel:
                received.append(event)
        assert len(received) == 1
        assert channel.closed
        await bus.publish(LiveStatus(status="ready"))
