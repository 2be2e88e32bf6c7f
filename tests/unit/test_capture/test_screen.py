"""Tests for the mss capture backend and window enumeration."""

from __future__ import annotations

from typing import Iterator
from unittest.mock import MagicMock, patch

import pytest
from mss.exception import ScreenShotError

from satwatch.capture.base import CaptureError
from satwatch.capture.screen import MssCaptureBackend
from satwatch.capture.windows import _make_source, list_windows
from satwatch.domain.models import SourceKind

from conftest import make_source

MONITORS = [
    {"left": 0, "top": 0, "width": 3840, "height": 1080},
    {"left": 0, "top": 0, "width": 1920, "height": 1080},
    {"left": 1920, "top": 0, "width": 1920, "height": 1080},
]


@pytest.fixture
def fake_mss() -> Iterator[MagicMock]:
    """Patch the mss module used by the backend."""
    with patch("satwatch.capture.screen.mss") as module:
        sct = MagicMock()
        sct.monitors = MONITORS
        module.mss.return_value.__enter__.return_value = sct
        module.tools.to_png.return_value = b"png"
        module.sct = sct
        yield module


class TestMssCaptureBackend:
    """Test display listing and grabbing through a mocked mss."""

    def test_lists_physical_displays(self, fake_mss: MagicMock) -> None:
        backend = MssCaptureBackend(include_windows=False)
        sources = backend.list_sources()
        assert [s.id for s in sources] == ["screen:0", "screen:1"]
        assert [s.name for s in sources] == ["Entire Screen", "Screen 2"]
        assert sources[1].bounds.left == 1920
        assert all(s.kind == SourceKind.SCREEN for s in sources)

    def test_includes_windows(self, fake_mss: MagicMock) -> None:
        window = make_source("window:7", "Bluebook")
        backend = MssCaptureBackend(window_lister=lambda: [window])
        assert backend.list_sources()[-1] == window

    def test_window_lister_failure_keeps_displays(self, fake_mss: MagicMock) -> None:
        def broken() -> list:
            raise RuntimeError("no window server")

        backend = MssCaptureBackend(window_lister=broken)
        assert len(backend.list_sources()) == 2

    def test_grab(self, fake_mss: MagicMock) -> None:
        source = make_source("screen:0", "Entire Screen", SourceKind.SCREEN)
        assert MssCaptureBackend().grab(source) == b"png"
        fake_mss.sct.grab.assert_called_once_with(source.bounds.as_mss())

    def test_grab_failure(self, fake_mss: MagicMock) -> None:
        fake_mss.sct.grab.side_effect = ScreenShotError("denied")
        source = make_source("screen:0", "Entire Screen", SourceKind.SCREEN)
        with pytest.raises(CaptureError):
            MssCaptureBackend().grab(source)

    def test_grab_without_bounds(self) -> None:
        source = make_source("screen:0", "Entire Screen").model_copy(update={"bounds": None})
        with pytest.raises(CaptureError):
            MssCaptureBackend().grab(source)


class TestWindows:
    """Test platform window enumeration helpers."""

    def test_unsupported_platform(self) -> None:
        with patch("satwatch.capture.windows.sys") as fake_sys:
            fake_sys.platform = "linux"
            assert list_windows() == []

    def test_make_source(self) -> None:
        source = _make_source(42, "Bluebook", 10, 20, 800, 600)
        assert source.id == "window:42"
        assert source.kind == SourceKind.WINDOW
        assert source.bounds.width == 800

    def test_make_source_skips_untitled_or_empty(self) -> None:
        assert _make_source(1, "", 0, 0, 800, 600) is None
        assert _make_source(1, "Title", 0, 0, 0, 600) is None
