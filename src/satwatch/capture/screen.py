"""Screen capture backend using mss.

Lists every physical display (and, optionally, top-level windows) and
grabs a source's rectangle as a PNG.
"""

from __future__ import annotations

import logging
from typing import Callable

import mss
import mss.tools
from mss.exception import ScreenShotError

from satwatch.capture.base import CaptureBackend, CaptureError
from satwatch.capture.windows import list_windows
from satwatch.domain.models import SourceBounds, SourceInfo, SourceKind

logger = logging.getLogger(__name__)


class MssCaptureBackend(CaptureBackend):
    """Captures displays and windows with mss.

    A fresh mss handle is opened per call: mss handles are not safe to
    share across the executor threads the sampler runs us on.
    """

    def __init__(
        self,
        include_windows: bool = True,
        window_lister: Callable[[], list[SourceInfo]] = list_windows,
    ) -> None:
        self._include_windows = include_windows
        self._window_lister = window_lister

    def list_sources(self) -> list[SourceInfo]:
        sources = self._list_screens()
        if self._include_windows:
            try:
                sources.extend(self._window_lister())
            except Exception as e:
                # Window titles are an optional refinement; displays still work
                logger.warning("Window enumeration failed: %s", e)
        return sources

    def grab(self, source: SourceInfo) -> bytes:
        if source.bounds is None:
            raise CaptureError(f"Source {source.id} has no bounds")
        try:
            with mss.mss() as sct:
                shot = sct.grab(source.bounds.as_mss())
                return mss.tools.to_png(shot.rgb, shot.size)
        except ScreenShotError as e:
            raise CaptureError(f"Failed to capture {source.id}: {e}") from e

    def _list_screens(self) -> list[SourceInfo]:
        try:
            with mss.mss() as sct:
                # monitors[0] is the virtual union of all displays
                monitors = sct.monitors[1:]
        except ScreenShotError as e:
            raise CaptureError(f"Failed to enumerate displays: {e}") from e

        screens = []
        for index, monitor in enumerate(monitors):
            screens.append(
                SourceInfo(
                    id=f"screen:{index}",
                    name="Entire Screen" if index == 0 else f"Screen {index + 1}",
                    kind=SourceKind.SCREEN,
                    bounds=SourceBounds(
                        left=monitor["left"],
                        top=monitor["top"],
                        width=monitor["width"],
                        height=monitor["height"],
                    ),
                )
            )
        return screens
