"""Screen capture module for satwatch.

Provides capture source enumeration, priority-based source selection
and screenshot acquisition. The abstract backend allows alternative
implementations (e.g., file-based testing).

Public API:
    CaptureBackend -- Abstract base class
    CaptureError -- Raised on OS capture failures
    ScreenSampler -- Picks a source and captures it
    MssCaptureBackend -- mss implementation
"""

from satwatch.capture.base import CaptureBackend, CaptureError
from satwatch.capture.sampler import ScreenSampler

__all__ = ["CaptureBackend", "CaptureError", "ScreenSampler", "MssCaptureBackend"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "MssCaptureBackend":
        from satwatch.capture.screen import MssCaptureBackend
        return MssCaptureBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
