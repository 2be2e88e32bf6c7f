"""Typed publish/subscribe for monitor events.

Subscribers either register a handler for one event type, or open a
channel that receives every event as an async iterator. The monitor only
knows about the bus, never about its consumers.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, TypeVar, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseModel)
Handler = Callable[[Any], Union[Awaitable[None], None]]

_CLOSED = object()


class EventChannel:
    """Bounded queue of events; the oldest event is dropped when full."""

    def __init__(self, bus: EventBus, maxsize: int = 100) -> None:
        self._bus = bus
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped: int = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, item: Any) -> None:
        """Enqueue without blocking, evicting the oldest item if full."""
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(item)

    async def get(self) -> BaseModel:
        """Wait for the next event.

        Raises:
            StopAsyncIteration: If the channel has been closed.
        """
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus._detach(self)
        self.offer(_CLOSED)

    def __aiter__(self) -> EventChannel:
        return self

    async def __anext__(self) -> BaseModel:
        return await self.get()

    async def __aenter__(self) -> EventChannel:
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()


class EventBus:
    """Dispatches events to typed handlers and open channels."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = {}
        self._channels: list[EventChannel] = []

    def subscribe(self, event_type: type[E], handler: Callable[[E], Any]) -> Callable[[], None]:
        """Register a sync or async handler; returns an unsubscribe callable."""
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def open_channel(self, maxsize: int = 100) -> EventChannel:
        """Open a channel receiving every published event."""
        channel = EventChannel(self, maxsize=maxsize)
        self._channels.append(channel)
        return channel

    async def publish(self, event: BaseModel) -> None:
        """Deliver an event. Handler failures are logged, never raised."""
        for handler in list(self._handlers.get(type(event), [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, type(event).__name__)
        for channel in list(self._channels):
            channel.offer(event)

    def _detach(self, channel: EventChannel) -> None:
        if channel in self._channels:
            self._channels.remove(channel)
