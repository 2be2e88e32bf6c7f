"""Top-level window enumeration for window-targeted capture.

Uses win32gui on Windows and Quartz (PyObjC) on macOS. Other platforms
report no windows, which leaves the sampler with display sources only.
"""

from __future__ import annotations

import logging
import sys

from satwatch.domain.models import SourceBounds, SourceInfo, SourceKind

logger = logging.getLogger(__name__)


def list_windows() -> list[SourceInfo]:
    """List visible, titled top-level windows on the current platform."""
    if sys.platform == "win32":
        return _list_windows_win32()
    if sys.platform == "darwin":
        return _list_windows_macos()
    return []


def _make_source(handle: int, title: str, left: int, top: int, width: int, height: int) -> SourceInfo | None:
    if not title or width <= 0 or height <= 0:
        return None
    return SourceInfo(
        id=f"window:{handle}",
        name=title,
        kind=SourceKind.WINDOW,
        bounds=SourceBounds(left=left, top=top, width=width, height=height),
    )


def _list_windows_win32() -> list[SourceInfo]:
    try:
        import win32gui
    except ImportError:
        logger.debug("pywin32 not available, skipping window enumeration")
        return []

    sources: list[SourceInfo] = []

    def _collect(hwnd: int, _: object) -> bool:
        if not win32gui.IsWindowVisible(hwnd):
            return True
        title = win32gui.GetWindowText(hwnd)
        left, top, right, bottom = win32gui.GetWindowRect(hwnd)
        source = _make_source(hwnd, title, left, top, right - left, bottom - top)
        if source is not None:
            sources.append(source)
        return True

    win32gui.EnumWindows(_collect, None)
    return sources


def _list_windows_macos() -> list[SourceInfo]:
    try:
        from Quartz import (
            CGWindowListCopyWindowInfo,
            kCGNullWindowID,
            kCGWindowListExcludeDesktopElements,
            kCGWindowListOptionOnScreenOnly,
        )
    except ImportError:
        logger.debug("PyObjC Quartz not available, skipping window enumeration")
        return []

    options = kCGWindowListOptionOnScreenOnly | kCGWindowListExcludeDesktopElements
    sources: list[SourceInfo] = []
    for window in CGWindowListCopyWindowInfo(options, kCGNullWindowID) or []:
        # Window titles need screen-recording permission; fall back to the app name
        title = window.get("kCGWindowName") or window.get("kCGWindowOwnerName") or ""
        bounds = window.get("kCGWindowBounds", {})
        source = _make_source(
            int(window.get("kCGWindowNumber", 0)),
            str(title),
            int(bounds.get("X", 0)),
            int(bounds.get("Y", 0)),
            int(bounds.get("Width", 0)),
            int(bounds.get("Height", 0)),
        )
        if source is not None:
            sources.append(source)
    return sources
