"""Dashboard synchronization over HTTP.

Queues detected questions (and any other typed payload) and POSTs them to
the web dashboard. Delivery is fire-and-forget: failures are logged and
retried on the next flush, never raised into the monitor.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

import httpx

from satwatch.domain.models import QuestionDetected

if TYPE_CHECKING:
    from satwatch.config.settings import Settings
    from satwatch.monitor.events import EventBus

logger = logging.getLogger(__name__)

# Item type -> dashboard endpoint; unknown types go to GENERAL_ENDPOINT
ENDPOINTS: dict[str, str] = {
    "question_detected": "/api/questions/detected",
    "question_attempt": "/api/questions/attempts",
    "practice_session": "/api/sessions",
    "progress_update": "/api/users/progress",
    "usage_stats": "/api/analytics/usage",
}
GENERAL_ENDPOINT = "/api/sync/general"


def endpoint_for(item_type: str) -> str:
    return ENDPOINTS.get(item_type, GENERAL_ENDPOINT)


@dataclass
class SyncItem:
    type: str
    data: dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    retries: int = 0


class DashboardSync:
    """Pushes queued items to the dashboard with per-item retries."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        user_id: str | None = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        max_pending: int = 500,
        max_failed: int = 100,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key or None
        self._user_id = user_id
        self._max_retries = max_retries
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)
        self._pending: deque[SyncItem] = deque(maxlen=max_pending)
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()
        self.last_sync: float | None = None
        # Most recent items that ran out of retries
        self.failed: deque[SyncItem] = deque(maxlen=max_failed)

    @classmethod
    def from_settings(cls, settings: Settings) -> DashboardSync:
        cfg = settings.dashboard
        return cls(
            base_url=cfg.base_url,
            api_key=settings.dashboard_api_key.get_secret_value(),
            user_id=cfg.user_id,
            timeout=cfg.timeout,
            max_retries=cfg.max_retries,
            max_pending=cfg.max_pending,
            max_failed=cfg.max_failed,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._user_id)

    @property
    def pending(self) -> list[SyncItem]:
        return list(self._pending)

    def set_credentials(self, api_key: str, user_id: str) -> None:
        self._api_key = api_key
        self._user_id = user_id
        logger.info("Dashboard credentials updated for user %s", user_id)

    def attach(self, bus: EventBus) -> Callable[[], None]:
        """Queue every detected question published on the bus."""
        return bus.subscribe(QuestionDetected, self._on_question)

    def _on_question(self, event: QuestionDetected) -> None:
        self.queue(
            "question_detected",
            event.candidate.model_dump(mode="json", by_alias=True),
        )

    def queue(self, item_type: str, data: dict[str, Any]) -> SyncItem:
        """Queue a payload and schedule a background flush when possible."""
        item = SyncItem(type=item_type, data=data)
        if len(self._pending) == self._pending.maxlen:
            dropped = self._pending[0]
            logger.warning(
                "Sync queue full (%d items), dropping oldest %s (%s)",
                len(self._pending), dropped.type, dropped.id,
            )
        self._pending.append(item)
        logger.debug("Queued %s for sync (%s)", item_type, item.id)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return item
        if self.configured:
            task = loop.create_task(self.flush())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return item

    async def flush(self) -> int:
        """Send every pending item; returns how many were delivered."""
        if not self.configured:
            logger.debug("Dashboard credentials not configured, keeping %d items", len(self._pending))
            return 0

        async with self._lock:
            items = list(self._pending)
            self._pending.clear()
            synced = 0
            for item in items:
                try:
                    await self._send(item)
                    synced += 1
                except httpx.HTTPError as e:
                    item.retries += 1
                    if item.retries < self._max_retries:
                        logger.warning(
                            "Sync of %s (%s) failed, will retry: %s", item.type, item.id, e
                        )
                        self._pending.append(item)
                    else:
                        logger.error(
                            "Giving up on %s (%s) after %d attempts: %s",
                            item.type, item.id, item.retries, e,
                        )
                        self.failed.append(item)
            self.last_sync = time.time()
            if items:
                logger.info("Dashboard sync: %d sent, %d pending", synced, len(self._pending))
            return synced

    async def _send(self, item: SyncItem) -> httpx.Response:
        payload = {
            "userId": self._user_id,
            "timestamp": item.timestamp,
            "type": item.type,
            **item.data,
        }
        resp = await self._client.post(
            endpoint_for(item.type),
            json=payload,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        resp.raise_for_status()
        return resp

    def status(self) -> dict[str, Any]:
        return {
            "configured": self.configured,
            "pendingItems": len(self._pending),
            "failedItems": len(self.failed),
            "lastSyncTime": self.last_sync,
        }

    async def aclose(self) -> None:
        """Wait for in-flight flushes and close the HTTP client."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()
