"""Monitor loop orchestrating capture, OCR, change detection and classification.

One fixed-rate scheduler drives a sequential async chain per tick:
capture -> OCR -> normalize -> change-detect -> classify -> emit. A tick
that comes due while the previous chain is still in flight is dropped,
never queued.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Callable

from satwatch.capture.base import CaptureError
from satwatch.capture.sampler import ScreenSampler
from satwatch.detection.change import ChangeDetector
from satwatch.detection.classifier import QuestionClassifier
from satwatch.detection.normalizer import normalize_text
from satwatch.domain.models import (
    CaptureFrame,
    ChangeDecision,
    LiveStatus,
    MonitorPhase,
    NonQuestionPolicy,
    OCRResult,
    QuestionCandidate,
    QuestionDetected,
    preview,
)
from satwatch.monitor.events import EventBus
from satwatch.ocr.base import EngineInitError, OCREngine, OCRError

if TYPE_CHECKING:
    from satwatch.config.settings import Settings

logger = logging.getLogger(__name__)


class TickGate:
    """The single in-flight tick slot of one monitor.

    Outlives state swaps, so a manual tick started before start() or still
    running during stop() keeps every other tick out.
    """

    def __init__(self) -> None:
        self.busy = False
        self.idle = asyncio.Event()
        self.idle.set()
        self.task: asyncio.Task | None = None

    def acquire(self) -> bool:
        """Mark a tick in flight; False if one already is."""
        if self.busy:
            return False
        self.busy = True
        self.idle.clear()
        return True

    def release(self) -> None:
        self.busy = False
        self.idle.set()


@dataclass
class MonitorState:
    """Mutable state owned by exactly one monitor loop.

    A fresh state is created on every start() and stop(), so a tick that
    outlives stop() only ever touches the state it started with. The tick
    gate is shared by all states of the same monitor.
    """

    detector: ChangeDetector
    gate: TickGate = field(default_factory=TickGate)
    running: bool = False
    phase: MonitorPhase = MonitorPhase.STOPPED
    ticks_run: int = 0
    ticks_dropped: int = 0
    last_candidate: QuestionCandidate | None = None

    @property
    def busy(self) -> bool:
        return self.gate.busy

    @property
    def fingerprint(self) -> str | None:
        return self.detector.last_fingerprint

    @property
    def last_text(self) -> str:
        return self.detector.last_text

    @property
    def stability_counter(self) -> int:
        return self.detector.stability_counter


class MonitorLoop:
    """Watches the screen and emits question events on an event bus."""

    def __init__(
        self,
        sampler: ScreenSampler,
        engine: OCREngine,
        classifier: QuestionClassifier | None = None,
        bus: EventBus | None = None,
        detector_factory: Callable[[], ChangeDetector] = ChangeDetector,
        interval: float = 0.5,
        min_text_length: int = 20,
        min_confidence: float = 0.0,
        ocr_timeout: float | None = None,
        stop_timeout: float = 5.0,
        non_question_policy: NonQuestionPolicy = NonQuestionPolicy.EMIT,
        init_retries: int = 0,
        init_backoff: float = 0.5,
    ) -> None:
        self._sampler = sampler
        self._engine = engine
        self._classifier = classifier or QuestionClassifier()
        self._bus = bus or EventBus()
        self._detector_factory = detector_factory
        self._interval = interval
        self._min_text_length = min_text_length
        self._min_confidence = min_confidence
        self._ocr_timeout = ocr_timeout
        self._stop_timeout = stop_timeout
        self._non_question_policy = NonQuestionPolicy(non_question_policy)
        self._init_retries = init_retries
        self._init_backoff = init_backoff

        self._gate = TickGate()
        self._state = self._new_state()
        self._lifecycle_lock = asyncio.Lock()
        self._engine_lock = asyncio.Lock()
        self._scheduler: asyncio.Task | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        bus: EventBus | None = None,
        sampler: ScreenSampler | None = None,
        engine: OCREngine | None = None,
    ) -> MonitorLoop:
        """Build a monitor with the mss sampler and tesseract engine."""
        if sampler is None:
            sampler = ScreenSampler.from_settings(settings.capture)
        if engine is None:
            from satwatch.ocr.tesseract import TesseractEngine

            engine = TesseractEngine.from_config(settings.ocr)
        mon = settings.monitor
        return cls(
            sampler=sampler,
            engine=engine,
            classifier=QuestionClassifier(**settings.classifier.model_dump()),
            bus=bus,
            detector_factory=partial(ChangeDetector, **settings.detection.model_dump()),
            interval=mon.interval,
            min_text_length=mon.min_text_length,
            min_confidence=mon.min_confidence,
            ocr_timeout=mon.ocr_timeout,
            stop_timeout=mon.stop_timeout,
            non_question_policy=mon.non_question_policy,
            init_retries=settings.ocr.init_retries,
            init_backoff=settings.ocr.init_backoff,
        )

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def phase(self) -> MonitorPhase:
        return self._state.phase

    @property
    def is_running(self) -> bool:
        return self._state.running

    @property
    def engine_ready(self) -> bool:
        return self._engine.is_ready

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the OCR engine and begin ticking. Idempotent.

        Raises:
            EngineInitError: If the engine cannot be started; monitoring
                does not begin.
        """
        async with self._lifecycle_lock:
            if self._state.running:
                logger.debug("Monitor already running")
                return
            state = self._new_state()
            state.phase = MonitorPhase.STARTING
            self._state = state
            logger.info("Monitor starting")

            try:
                await self._start_engine()
            except EngineInitError:
                state.phase = MonitorPhase.STOPPED
                raise

            state.running = True
            state.phase = MonitorPhase.RUNNING
            self._scheduler = asyncio.create_task(self._schedule(state))
            logger.info("Monitor started (interval=%.2fs)", self._interval)

    async def stop(self) -> None:
        """Stop ticking and release the OCR engine.

        Safe to call while a tick is in flight: its results are discarded
        and the engine is released once it finishes or is abandoned.
        """
        async with self._lifecycle_lock:
            state = self._state
            if not state.running and not self._engine.is_ready and not self._gate.busy:
                return
            logger.info("Monitor stopping")
            state.running = False
            state.phase = MonitorPhase.STOPPING

            if self._scheduler is not None:
                self._scheduler.cancel()
                try:
                    await self._scheduler
                except asyncio.CancelledError:
                    pass
                self._scheduler = None

            # Scheduled or manual, the engine outlives the tick using it
            task = self._gate.task
            if task is not None and not task.done():
                done, _ = await asyncio.wait({task}, timeout=self._stop_timeout)
                if not done:
                    logger.warning(
                        "In-flight tick did not finish within %.1fs, abandoning it",
                        self._stop_timeout,
                    )

            async with self._engine_lock:
                await self._engine.close()
            state.phase = MonitorPhase.STOPPED
            self._state = self._new_state()
            logger.info(
                "Monitor stopped (ticks=%d, dropped=%d)", state.ticks_run, state.ticks_dropped
            )

    async def force_capture(self) -> QuestionCandidate | None:
        """Run one tick now and return its candidate, bypassing the stability gate.

        Waits for an in-flight tick to finish first. Returns None when there
        is no capture source, the capture or OCR fails, or too little text
        was read.
        """
        gate = self._gate
        while not gate.acquire():
            await gate.idle.wait()
        task = asyncio.create_task(self._manual_tick(self._state))
        gate.task = task
        return await task

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def _schedule(self, state: MonitorState) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while state.running:
            self._fire_tick(state)
            next_at += self._interval
            now = loop.time()
            if next_at < now:
                # Event loop fell behind; skip the missed deadlines
                missed = int((now - next_at) // self._interval) + 1
                next_at += missed * self._interval
            await asyncio.sleep(next_at - now)

    def _fire_tick(self, state: MonitorState) -> None:
        if not self._gate.acquire():
            state.ticks_dropped += 1
            logger.debug("Previous tick still in flight, dropping tick")
            return
        self._gate.task = asyncio.create_task(self._scheduled_tick(state))

    async def _scheduled_tick(self, state: MonitorState) -> None:
        try:
            await self._run_tick(state, manual=False)
        except Exception as e:
            logger.exception("Unexpected error in monitor tick")
            await self._status(state, False, status="error", message=f"Tick failed: {e}")
        finally:
            self._gate.release()

    async def _manual_tick(self, state: MonitorState) -> QuestionCandidate | None:
        try:
            return await self._run_tick(state, manual=True)
        finally:
            self._gate.release()

    # ------------------------------------------------------------------
    # Tick pipeline
    # ------------------------------------------------------------------

    async def _run_tick(self, state: MonitorState, manual: bool) -> QuestionCandidate | None:
        state.ticks_run += 1

        try:
            frame = await self._sampler.capture_frame()
        except CaptureError as e:
            logger.warning("Screen capture failed: %s", e)
            await self._status(state, manual, status="error", message=f"Capture failed: {e}")
            return None
        if frame is None:
            await self._status(state, manual, status="skipped", message="No capture source")
            return None

        if manual and not self._engine.is_ready:
            await self._start_engine()

        try:
            result = await self._recognize(frame)
        except OCRError as e:
            logger.warning("OCR failed, skipping tick: %s", e)
            await self._status(state, manual, status="error", message=f"OCR failed: {e}")
            return None
        except asyncio.TimeoutError:
            logger.warning("OCR exceeded %.1fs watchdog, skipping tick", self._ocr_timeout)
            await self._status(state, manual, status="error", message="OCR timed out")
            return None

        text = normalize_text(result.text)
        fields = dict(
            text_preview=preview(text),
            text_length=len(text),
            ocr_confidence=result.confidence,
        )
        if len(text) < self._min_text_length:
            await self._status(
                state, manual, status="skipped", message="Insufficient text content", **fields
            )
            return None
        if result.confidence < self._min_confidence:
            await self._status(
                state, manual, status="skipped", message="OCR confidence too low", **fields
            )
            return None

        if manual:
            candidate = self._classify(text, frame).model_copy(update={"manual_capture": True})
            await self._status(state, manual, status="detected", **fields)
            return candidate

        # Similarity on a full page is too slow to run on the event loop
        loop = asyncio.get_running_loop()
        decision = await loop.run_in_executor(None, state.detector.check, text)
        if not decision.accepted:
            await self._status(state, manual, status="unchanged", decision=decision, **fields)
            return None

        candidate = self._apply_policy(self._classify(text, frame))
        if not state.running:
            logger.debug("Monitor stopped during tick, discarding result")
            return None
        if candidate is not None:
            state.last_candidate = candidate
            logger.info(
                "New content detected: question=%s subject=%s score=%d",
                candidate.is_question, candidate.subject.value, candidate.score,
            )
            await self._bus.publish(QuestionDetected(candidate=candidate))
        await self._status(
            state, manual, status="detected", decision=ChangeDecision.ACCEPTED, **fields
        )
        return candidate

    async def _recognize(self, frame: CaptureFrame) -> OCRResult:
        coro = self._engine.recognize(frame.image, source_id=frame.source_id)
        if self._ocr_timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=self._ocr_timeout)

    def _classify(self, text: str, frame: CaptureFrame) -> QuestionCandidate:
        return self._classifier.classify(
            text, source_tag=frame.source_tag.value, timestamp=frame.timestamp
        )

    def _apply_policy(self, candidate: QuestionCandidate) -> QuestionCandidate | None:
        if candidate.is_question or self._non_question_policy is NonQuestionPolicy.EMIT:
            return candidate
        if self._non_question_policy is NonQuestionPolicy.FLAG:
            return candidate.model_copy(update={"is_question": True, "manual_review": True})
        logger.debug("Suppressing non-question content (score=%d)", candidate.score)
        return None

    async def _status(self, state: MonitorState, manual: bool, **fields) -> None:
        if not (manual or state.running):
            return
        await self._bus.publish(
            LiveStatus(sources_found=self._sampler.last_source_count, **fields)
        )

    async def _start_engine(self) -> None:
        async with self._engine_lock:
            if self._engine.is_ready:
                return
            attempts = self._init_retries + 1
            delay = self._init_backoff
            for attempt in range(1, attempts + 1):
                try:
                    await self._engine.start()
                    return
                except Exception as e:
                    if attempt >= attempts:
                        logger.error("OCR engine failed to start: %s", e)
                        if isinstance(e, EngineInitError):
                            raise
                        raise EngineInitError(f"OCR engine failed to start: {e}") from e
                    logger.warning(
                        "OCR engine failed to start (attempt %d/%d): %s, retrying in %.1fs",
                        attempt, attempts, e, delay,
                    )
                    await asyncio.sleep(delay)
                    delay *= 2

    def _new_state(self) -> MonitorState:
        return MonitorState(detector=self._detector_factory(), gate=self._gate)
