"""FastAPI control server for the monitor.

Exposes start/stop/force-capture over HTTP and streams monitor events to
WebSocket clients, so a host UI process can drive the pipeline without
embedding it.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from satwatch.domain.models import MonitorPhase, QuestionCandidate
from satwatch.integrations.dashboard import DashboardSync
from satwatch.monitor.loop import MonitorLoop
from satwatch.ocr.base import EngineInitError

logger = logging.getLogger(__name__)


class HealthStatus(BaseModel):
    status: str = "ok"
    phase: MonitorPhase
    engine_ready: bool = Field(serialization_alias="engineReady")


class MonitorStatus(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phase: MonitorPhase
    running: bool
    busy: bool
    ticks_run: int
    ticks_dropped: int
    fingerprint: str | None = None
    stability_counter: int = 0
    last_candidate: QuestionCandidate | None = None
    dashboard: dict[str, Any] | None = None


def create_app(
    monitor: MonitorLoop,
    dashboard: DashboardSync | None = None,
    autostart: bool = False,
) -> FastAPI:
    """Create the control app around an existing monitor."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if dashboard is not None:
            dashboard.attach(monitor.bus)
        if autostart:
            await monitor.start()
        logger.info("Control server started")
        yield
        await monitor.stop()
        if dashboard is not None:
            await dashboard.aclose()
        logger.info("Control server stopped")

    app = FastAPI(
        title="satwatch",
        description="Control API for the satwatch screen monitor",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.monitor = monitor

    @app.get("/health")
    async def health_check() -> HealthStatus:
        return HealthStatus(phase=monitor.phase, engine_ready=monitor.engine_ready)

    @app.get("/status")
    async def get_status() -> MonitorStatus:
        state = monitor.state
        return MonitorStatus(
            phase=state.phase,
            running=state.running,
            busy=state.busy,
            ticks_run=state.ticks_run,
            ticks_dropped=state.ticks_dropped,
            fingerprint=state.fingerprint,
            stability_counter=state.stability_counter,
            last_candidate=state.last_candidate,
            dashboard=dashboard.status() if dashboard is not None else None,
        )

    @app.post("/monitor/start")
    async def start_monitor() -> dict[str, str]:
        try:
            await monitor.start()
        except EngineInitError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        return {"status": "ok", "phase": monitor.phase.value}

    @app.post("/monitor/stop")
    async def stop_monitor() -> dict[str, str]:
        await monitor.stop()
        return {"status": "ok", "phase": monitor.phase.value}

    @app.post("/capture")
    async def force_capture() -> dict[str, Any] | None:
        try:
            candidate = await monitor.force_capture()
        except EngineInitError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        if candidate is None:
            return None
        return candidate.model_dump(mode="json", by_alias=True)

    @app.websocket("/events")
    async def stream_events(websocket: WebSocket) -> None:
        async with monitor.bus.open_channel() as channel:
            await websocket.accept()

            async def forward() -> None:
                async for event in channel:
                    await websocket.send_json(event.model_dump(mode="json", by_alias=True))

            sender = asyncio.create_task(forward())
            try:
                # Client messages are ignored; receiving only detects disconnects
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                logger.debug("Event stream client disconnected")
            finally:
                sender.cancel()
                try:
                    await sender
                except (asyncio.CancelledError, RuntimeError, WebSocketDisconnect):
                    pass

    return app


def serve(app: FastAPI, host: str = "127.0.0.1", port: int = 8765) -> None:
    """Run the control server until interrupted."""
    uvicorn.run(app, host=host, port=port, log_config=None)
