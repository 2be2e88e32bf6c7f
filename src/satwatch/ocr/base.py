"""Abstract base class for OCR engines.

An engine is expensive to start, so the monitor starts it once, reuses
it for every tick, and closes it only when monitoring stops. A failed
recognition never invalidates the engine.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from satwatch.domain.models import OCRResult

logger = logging.getLogger(__name__)


class OCREngine(ABC):
    """Abstract interface for long-lived text recognition workers."""

    def __init__(self) -> None:
        self._is_ready: bool = False

    @property
    def is_ready(self) -> bool:
        """Whether the engine has been started and not yet closed."""
        return self._is_ready

    @abstractmethod
    async def start(self) -> None:
        """Initialize the recognition worker.

        Raises:
            EngineInitError: If the worker cannot be started.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the worker. Safe to call multiple times."""
        ...

    @abstractmethod
    async def recognize(self, image: bytes, source_id: str | None = None) -> OCRResult:
        """Extract text from a PNG screenshot.

        Raises:
            OCRError: If recognition fails. The engine remains usable.
        """
        ...

    async def __aenter__(self) -> OCREngine:
        await self.start()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()


class OCRError(Exception):
    """Raised when a recognition call fails."""

    def __init__(self, message: str, engine: str = "unknown") -> None:
        super().__init__(message)
        self.engine = engine


class EngineInitError(OCRError):
    """Raised when an OCR engine cannot be started."""
