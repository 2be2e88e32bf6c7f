"""Tests for the dashboard sync collaborator."""

from __future__ import annotations

import json

import httpx
import pytest

from satwatch.config.settings import Settings
from satwatch.domain.models import QuestionCandidate, QuestionDetected
from satwatch.integrations.dashboard import GENERAL_ENDPOINT, DashboardSync, endpoint_for
from satwatch.monitor.events import EventBus


class FakeDashboard:
    """Records requests and answers with scripted status codes."""

    def __init__(self, statuses: list[int] | None = None) -> None:
        self.statuses = list(statuses or [])
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.pop(0) if self.statuses else 201
        return httpx.Response(status, json={"ok": status < 400})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url="http://dashboard.test", transport=httpx.MockTransport(self)
        )


def make_sync(server: FakeDashboard, **kwargs) -> DashboardSync:
    options = dict(api_key="secret-key", user_id="student-1", max_retries=3)
    options.update(kwargs)
    return DashboardSync("http://dashboard.test", client=server.client(), **options)


class TestEndpoints:
    def test_known_and_unknown_types(self) -> None:
        assert endpoint_for("question_detected") == "/api/questions/detected"
        assert endpoint_for("practice_session") == "/api/sessions"
        assert endpoint_for("something_else") == GENERAL_ENDPOINT


class TestDashboardSync:
    """Test queueing, delivery and retries."""

    @pytest.mark.asyncio
    async def test_flush_posts_payload(self) -> None:
        server = FakeDashboard()
        sync = make_sync(server)
        item = sync.queue("practice_session", {"minutes": 25})
        await sync.aclose()

        assert len(server.requests) == 1
        request = server.requests[0]
        assert request.url.path == "/api/sessions"
        assert request.headers["Authorization"] == "Bearer secret-key"
        body = json.loads(request.content)
        assert body == {
            "userId": "student-1",
            "timestamp": item.timestamp,
            "type": "practice_session",
            "minutes": 25,
        }
        assert sync.pending == []

    @pytest.mark.asyncio
    async def test_unconfigured_keeps_items(self) -> None:
        server = FakeDashboard()
        sync = make_sync(server, api_key=None)
        sync.queue("usage_stats", {"ticks": 10})
        assert await sync.flush() == 0
        assert len(sync.pending) == 1
        assert server.requests == []

        sync.set_credentials("late-key", "student-1")
        assert await sync.flush() == 1
        assert server.requests[0].headers["Authorization"] == "Bearer late-key"
        await sync.aclose()

    @pytest.mark.asyncio
    async def test_failed_item_is_retried(self) -> None:
        server = FakeDashboard(statuses=[500])
        sync = make_sync(server)
        sync.queue("usage_stats", {"ticks": 1})
        await sync.aclose()
        assert len(sync.pending) == 1
        assert sync.pending[0].retries == 1

        assert await sync.flush() == 1
        assert sync.pending == []

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self) -> None:
        server = FakeDashboard(statuses=[503, 503])
        sync = make_sync(server, api_key=None, max_retries=2)
        sync.queue("usage_stats", {"ticks": 1})
        sync.set_credentials("secret-key", "student-1")

        assert await sync.flush() == 0
        assert await sync.flush() == 0
        assert sync.pending == []
        assert len(sync.failed) == 1
        assert sync.status()["failedItems"] == 1

    @pytest.mark.asyncio
    async def test_queues_are_bounded(self) -> None:
        """Without credentials the queue keeps only the newest items."""
        server = FakeDashboard(statuses=[500] * 6)
        sync = make_sync(server, api_key=None, max_retries=1, max_pending=3, max_failed=2)
        for tick in range(5):
            sync.queue("usage_stats", {"ticks": tick})
        assert [item.data["ticks"] for item in sync.pending] == [2, 3, 4]

        sync.set_credentials("secret-key", "student-1")
        assert await sync.flush() == 0
        assert sync.pending == []
        assert [item.data["ticks"] for item in sync.failed] == [3, 4]
        assert sync.status()["failedItems"] == 2
        await sync.aclose()

    @pytest.mark.asyncio
    async def test_attach_forwards_detected_questions(self) -> None:
        server = FakeDashboard()
        sync = make_sync(server)
        bus = EventBus()
        sync.attach(bus)

        candidate = QuestionCandidate(is_question=True, text="Which choice best completes the text?")
        await bus.publish(QuestionDetected(candidate=candidate))
        await sync.aclose()

        request = server.requests[0]
        assert request.url.path == "/api/questions/detected"
        body = json.loads(request.content)
        assert body["isQuestion"] is True
        assert body["type"] == "question_detected"
        assert body["userId"] == "student-1"

    def test_from_settings(self) -> None:
        settings = Settings(dashboard_api_key="from-env", dashboard={"user_id": "u1"})
        sync = DashboardSync.from_settings(settings)
        assert sync.configured is True
