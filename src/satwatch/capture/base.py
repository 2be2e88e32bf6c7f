"""Abstract base class for screen capture backends.

Backends enumerate what can be captured (displays and windows) and grab
a PNG of a chosen source. Source selection lives in the screen sampler,
so backends can be swapped for platform-specific or file-based test
implementations without changing the rest of the pipeline.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from satwatch.domain.models import SourceInfo

logger = logging.getLogger(__name__)


class CaptureBackend(ABC):
    """Abstract interface for listing and grabbing capture sources.

    Both methods are blocking; the sampler runs them in a thread pool
    executor so the event loop is never stalled by the OS capture call.
    """

    @abstractmethod
    def list_sources(self) -> list[SourceInfo]:
        """Enumerate the displays and windows currently available.

        Raises:
            CaptureError: If the OS refuses enumeration (e.g. permissions).
        """
        ...

    @abstractmethod
    def grab(self, source: SourceInfo) -> bytes:
        """Capture one source and return it as PNG bytes.

        Raises:
            CaptureError: If the capture call fails.
        """
        ...


class CaptureError(Exception):
    """Raised when the OS capture layer fails."""
