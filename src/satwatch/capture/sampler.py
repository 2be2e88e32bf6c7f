"""Screen sampler: picks the best capture source and takes one screenshot.

Source priority, highest first:

1. a configured test-delivery application (e.g. Bluebook)
2. a generic exam/test window (SAT, exam, digital test)
3. a window whose title suggests question content
4. the primary display
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from satwatch.capture.base import CaptureBackend
from satwatch.domain.models import CaptureFrame, SourceInfo, SourceKind, SourceTag

if TYPE_CHECKING:
    from satwatch.config.settings import CaptureConfig

logger = logging.getLogger(__name__)


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern[str] | None:
    words = [re.escape(k.strip().lower()) for k in keywords if k.strip()]
    if not words:
        return None
    return re.compile(r"\b(?:" + "|".join(words) + r")s?\b", re.IGNORECASE)


class ScreenSampler:
    """Acquires one screenshot per call from the best available source."""

    def __init__(
        self,
        backend: CaptureBackend,
        app_names: Iterable[str] = ("bluebook", "college board"),
        exam_keywords: Iterable[str] = ("sat", "exam"),
        content_keywords: Iterable[str] = ("question", "practice", "section"),
        debug_dir: Path | None = None,
    ) -> None:
        self._backend = backend
        self._app_names = [name.lower() for name in app_names if name]
        self._exam_pattern = _keyword_pattern(exam_keywords)
        self._content_pattern = _keyword_pattern(content_keywords)
        self._debug_dir = Path(debug_dir) if debug_dir else None
        self.last_source_count: int = 0

    @classmethod
    def from_settings(
        cls, config: CaptureConfig, backend: CaptureBackend | None = None
    ) -> ScreenSampler:
        """Build a sampler from the capture config, defaulting to mss."""
        if backend is None:
            from satwatch.capture.screen import MssCaptureBackend

            backend = MssCaptureBackend(include_windows=config.include_windows)
        return cls(
            backend,
            app_names=config.app_names,
            exam_keywords=config.exam_keywords,
            content_keywords=config.content_keywords,
            debug_dir=config.debug_dir,
        )

    @property
    def backend(self) -> CaptureBackend:
        return self._backend

    def select_source(
        self, sources: list[SourceInfo]
    ) -> tuple[SourceInfo, SourceTag] | None:
        """Choose a source by descending priority, or None if there are none."""
        for source in sources:
            name = source.name.lower()
            if any(app in name for app in self._app_names):
                return source, SourceTag.APP

        for source in sources:
            name = source.name.lower()
            if self._exam_pattern is not None and self._exam_pattern.search(name):
                return source, SourceTag.EXAM
            if re.search(r"\btest\b", name) and re.search(r"\bdigital\b", name):
                return source, SourceTag.EXAM

        if self._content_pattern is not None:
            for source in sources:
                if self._content_pattern.search(source.name):
                    return source, SourceTag.CONTENT

        screens = [s for s in sources if s.kind == SourceKind.SCREEN]
        for source in screens:
            if source.id == "screen:0":
                return source, SourceTag.SCREEN
        if screens:
            return screens[0], SourceTag.SCREEN
        return None

    async def capture_frame(self) -> CaptureFrame | None:
        """Take one screenshot of the best source.

        Returns:
            The frame, or None when no capture source exists.

        Raises:
            CaptureError: If the OS capture call fails.
        """
        loop = asyncio.get_running_loop()
        sources = await loop.run_in_executor(None, self._backend.list_sources)
        self.last_source_count = len(sources)
        logger.debug("Found %d capture sources", len(sources))

        selected = self.select_source(sources)
        if selected is None:
            logger.warning("No suitable capture source found")
            return None
        source, tag = selected

        image = await loop.run_in_executor(None, self._grab, source)
        logger.debug("Captured %s (%s, %d bytes)", source.name, tag.value, len(image))
        return CaptureFrame(
            image=image,
            timestamp=datetime.now(),
            source_id=source.id,
            source_name=source.name,
            source_tag=tag,
        )

    async def capture(self) -> bytes | None:
        """Take one screenshot and return only its PNG bytes."""
        frame = await self.capture_frame()
        return frame.image if frame is not None else None

    def _grab(self, source: SourceInfo) -> bytes:
        """Blocking grab plus optional debug dump (runs in thread pool)."""
        image = self._backend.grab(source)
        if self._debug_dir is not None:
            self._save_debug(image)
        return image

    def _save_debug(self, image: bytes) -> None:
        try:
            self._debug_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
            path = self._debug_dir / f"capture-{stamp}.png"
            path.write_bytes(image)
            logger.debug("Debug screenshot saved: %s", path)
        except OSError as e:
            logger.warning("Failed to save debug screenshot: %s", e)
