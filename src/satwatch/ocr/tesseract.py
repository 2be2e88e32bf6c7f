"""Tesseract OCR engine using pytesseract.

The engine owns a single-thread executor that acts as its worker: every
recognition runs there, one at a time, so the blocking tesseract call
never stalls the event loop and two recognitions never overlap.
"""

from __future__ import annotations

import asyncio
import io
import logging
import shlex
import time
from concurrent.futures import ThreadPoolExecutor

import pytesseract
from PIL import Image

from satwatch.config.settings import DEFAULT_CHAR_WHITELIST, OCRConfig
from satwatch.domain.models import OCRResult
from satwatch.ocr.base import EngineInitError, OCREngine, OCRError
from satwatch.utils.imaging import prepare_for_ocr

logger = logging.getLogger(__name__)


class TesseractEngine(OCREngine):
    """Recognizes screenshot text with a locally installed tesseract."""

    def __init__(
        self,
        language: str = "eng",
        char_whitelist: str = DEFAULT_CHAR_WHITELIST,
        page_segmentation_mode: int = 3,
        engine_mode: int = 1,
        preserve_interword_spaces: bool = True,
        dpi: int = 300,
        preprocess: bool = True,
        tesseract_cmd: str | None = None,
    ) -> None:
        super().__init__()
        self._language = language
        self._preprocess = preprocess
        self._tesseract_cmd = tesseract_cmd
        self._config = self.build_config(
            char_whitelist=char_whitelist,
            page_segmentation_mode=page_segmentation_mode,
            engine_mode=engine_mode,
            preserve_interword_spaces=preserve_interword_spaces,
            dpi=dpi,
        )
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_config(cls, config: OCRConfig) -> TesseractEngine:
        return cls(**config.model_dump(exclude={"init_retries", "init_backoff"}))

    @property
    def config(self) -> str:
        """The tesseract command-line configuration passed on every call."""
        return self._config

    @staticmethod
    def build_config(
        char_whitelist: str,
        page_segmentation_mode: int,
        engine_mode: int,
        preserve_interword_spaces: bool,
        dpi: int,
    ) -> str:
        parts = [
            f"--oem {engine_mode}",
            f"--psm {page_segmentation_mode}",
            f"--dpi {dpi}",
        ]
        if preserve_interword_spaces:
            parts.append("-c preserve_interword_spaces=1")
        if char_whitelist:
            parts.append("-c " + shlex.quote(f"tessedit_char_whitelist={char_whitelist}"))
        return " ".join(parts)

    async def start(self) -> None:
        """Probe the tesseract install and create the worker."""
        if self._is_ready:
            return
        if self._tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._tesseract_cmd

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="satwatch-ocr")
        loop = asyncio.get_running_loop()
        try:
            version, languages = await loop.run_in_executor(executor, self._probe)
        except Exception as e:
            executor.shutdown(wait=False)
            raise EngineInitError(
                f"Failed to start tesseract: {e}", engine="tesseract"
            ) from e

        missing = [lang for lang in self._language.split("+") if lang not in languages]
        if missing:
            executor.shutdown(wait=False)
            raise EngineInitError(
                f"Tesseract language data not installed: {', '.join(missing)}",
                engine="tesseract",
            )

        self._executor = executor
        self._is_ready = True
        logger.info("Tesseract %s ready (lang=%s, config=%s)", version, self._language, self._config)

    async def close(self) -> None:
        """Shut the worker down."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
            logger.info("Tesseract worker released")
        self._is_ready = False

    async def recognize(self, image: bytes, source_id: str | None = None) -> OCRResult:
        """Extract text and mean word confidence from a PNG screenshot."""
        if not self._is_ready or self._executor is None:
            raise OCRError("Tesseract engine is not started", engine="tesseract")
        loop = asyncio.get_running_loop()
        started = time.monotonic()
        try:
            text, confidence = await loop.run_in_executor(
                self._executor, self._recognize_sync, image
            )
        except OCRError:
            raise
        except Exception as e:
            raise OCRError(f"Recognition failed: {e}", engine="tesseract") from e
        elapsed = time.monotonic() - started
        logger.debug(
            "OCR extracted %d characters in %.2fs (confidence %.2f)",
            len(text), elapsed, confidence,
        )
        return OCRResult(
            text=text,
            confidence=confidence,
            source_id=source_id,
            elapsed=elapsed,
        )

    def _probe(self) -> tuple[str, list[str]]:
        """Blocking version/language probe (runs on the worker)."""
        version = str(pytesseract.get_tesseract_version())
        languages = pytesseract.get_languages(config="")
        return version, languages

    def _recognize_sync(self, image: bytes) -> tuple[str, float]:
        """Blocking recognition (runs on the worker)."""
        try:
            pil_image = prepare_for_ocr(image, enhance=self._preprocess)
        except ValueError as e:
            raise OCRError(str(e), engine="tesseract") from e
        data = pytesseract.image_to_data(
            pil_image,
            lang=self._language,
            config=self._config,
            output_type=pytesseract.Output.DICT,
        )
        return parse_tesseract_data(data)


def parse_tesseract_data(data: dict[str, list]) -> tuple[str, float]:
    """Rebuild line-structured text and mean confidence from image_to_data.

    Words are grouped by (block, paragraph, line); confidence is the mean
    of the non-negative word confidences, scaled to 0-1.
    """
    lines: dict[tuple[int, int, int], list[str]] = {}
    confidences: list[float] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        if not word:
            continue
        key = (
            int(data["block_num"][i]),
            int(data["par_num"][i]),
            int(data["line_num"][i]),
        )
        lines.setdefault(key, []).append(word)
        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            continue
        if conf >= 0:
            confidences.append(conf)

    text = "\n".join(" ".join(words) for words in lines.values())
    mean = sum(confidences) / len(confidences) if confidences else 0.0
    return text, max(0.0, min(1.0, mean / 100.0))


def load_image(path: str) -> bytes:
    """Read an image file and return it as PNG bytes for recognize()."""
    with Image.open(path) as img:
        buffer = io.BytesIO()
        img.convert("RGB").save(buffer, format="PNG")
        return buffer.getvalue()
