"""OCR module for satwatch.

Converts screenshots to text plus a confidence score. Engines are
long-lived workers: started once when monitoring begins and reused for
every tick.

Public API:
    OCREngine -- Abstract base class
    OCRError -- Raised when a recognition call fails
    EngineInitError -- Raised when an engine cannot start
    TesseractEngine -- pytesseract implementation
"""

from satwatch.ocr.base import EngineInitError, OCREngine, OCRError

__all__ = ["EngineInitError", "OCREngine", "OCRError", "TesseractEngine"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "TesseractEngine":
        from satwatch.ocr.tesseract import TesseractEngine
        return TesseractEngine
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
