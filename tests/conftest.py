"""Shared test fixtures for the satwatch test suite.

Provides fake capture backends and OCR engines built on the real base
classes, plus sample sources and question texts.
"""

from __future__ import annotations

import asyncio

import pytest

from satwatch.capture.base import CaptureBackend
from satwatch.capture.sampler import ScreenSampler
from satwatch.domain.models import OCRResult, SourceBounds, SourceInfo, SourceKind
from satwatch.ocr.base import EngineInitError, OCREngine, OCRError


READING_QUESTION = (
    "Question 5 of 27\n"
    "Based on the passage, which choice best describes the author's main purpose?\n"
    "A) To criticize a theory\n"
    "B) To describe a process\n"
    "C) To compare two views\n"
    "D) To explain a discovery"
)

MATH_QUESTION = (
    "Question 12\n"
    "If 3x + 4 = 19, what is the value of x?\n"
    "A) 3\n"
    "B) 5\n"
    "C) 7\n"
    "D) 15"
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeBackend(CaptureBackend):
    """Capture backend returning fixed sources and a fixed image."""

    def __init__(self, sources: list[SourceInfo] | None = None, image: bytes = b"\x89PNG fake") -> None:
        self.sources = list(sources or [])
        self.image = image
        self.grabbed: list[str] = []

    def list_sources(self) -> list[SourceInfo]:
        return list(self.sources)

    def grab(self, source: SourceInfo) -> bytes:
        self.grabbed.append(source.id)
        return self.image


class FakeEngine(OCREngine):
    """OCR engine replaying scripted texts.

    The last text repeats once the script runs out. Setting ``gate`` makes
    every recognition wait until the event is set.
    """

    def __init__(
        self,
        texts: list[str] | None = None,
        confidence: float = 0.9,
        fail_starts: int = 0,
        fail_recognize: bool = False,
    ) -> None:
        super().__init__()
        self.texts = list(texts or [READING_QUESTION])
        self.confidence = confidence
        self.fail_starts = fail_starts
        self.fail_recognize = fail_recognize
        self.gate: asyncio.Event | None = None
        self.start_calls = 0
        self.close_calls = 0
        self.recognize_calls = 0
        self.active = 0
        self.max_active = 0
        self.closed_mid_recognize = False

    async def start(self) -> None:
        self.start_calls += 1
        if self.fail_starts > 0:
            self.fail_starts -= 1
            raise EngineInitError("worker failed to load", engine="fake")
        self._is_ready = True

    async def close(self) -> None:
        self.close_calls += 1
        if self.active:
            self.closed_mid_recognize = True
        self._is_ready = False

    async def recognize(self, image: bytes, source_id: str | None = None) -> OCRResult:
        self.recognize_calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
        finally:
            self.active -= 1
        if self.fail_recognize:
            raise OCRError("recognition crashed", engine="fake")
        text = self.texts.pop(0) if len(self.texts) > 1 else self.texts[0]
        return OCRResult(text=text, confidence=self.confidence, source_id=source_id)


# ---------------------------------------------------------------------------
# Source Fixtures
# ---------------------------------------------------------------------------


def make_source(source_id: str, name: str, kind: SourceKind = SourceKind.WINDOW) -> SourceInfo:
    return SourceInfo(
        id=source_id,
        name=name,
        kind=kind,
        bounds=SourceBounds(left=0, top=0, width=1920, height=1080),
    )


@pytest.fixture
def screen_source() -> SourceInfo:
    """The primary display."""
    return make_source("screen:0", "Entire Screen", SourceKind.SCREEN)


@pytest.fixture
def fake_backend(screen_source: SourceInfo) -> FakeBackend:
    """A backend with only the primary display."""
    return FakeBackend([screen_source])


@pytest.fixture
def sampler(fake_backend: FakeBackend) -> ScreenSampler:
    """A sampler over the fake backend."""
    return ScreenSampler(fake_backend)


@pytest.fixture
def empty_sampler() -> ScreenSampler:
    """A sampler whose backend reports no sources at all."""
    return ScreenSampler(FakeBackend([]))


@pytest.fixture
def fake_engine() -> FakeEngine:
    """An engine that always reads the reading question."""
    return FakeEngine()
