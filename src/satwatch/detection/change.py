"""Noise-tolerant change detection over normalized OCR text.

Live-rendering UIs produce noisy, partially rendered OCR from one frame to
the next. The detector only accepts new content once the exact same text
has been read on consecutive ticks, and ignores re-reads that are merely
cosmetically different from the content it already accepted.
"""

from __future__ import annotations

import hashlib
import logging

from satwatch.domain.models import ChangeDecision

logger = logging.getLogger(__name__)


def fingerprint(text: str) -> str:
    """Short hex digest of text for cheap equality checks between ticks."""
    return hashlib.blake2b(text.encode("utf-8"), digest_size=8).hexdigest()


def levenshtein(a: str, b: str, max_distance: int | None = None) -> int:
    """Edit distance between two strings.

    Two-row dynamic programming over what remains once the shared prefix
    and suffix are stripped. With ``max_distance`` set, only the diagonal
    band ``|i - j| <= max_distance`` is filled and ``max_distance + 1`` is
    returned as soon as the distance is known to exceed it.
    """
    if a == b:
        return 0

    # A shared prefix or suffix never adds to the distance
    shortest = min(len(a), len(b))
    start = 0
    while start < shortest and a[start] == b[start]:
        start += 1
    end = 0
    while end < shortest - start and a[-1 - end] == b[-1 - end]:
        end += 1
    a = a[start:len(a) - end]
    b = b[start:len(b) - end]

    if len(a) < len(b):
        a, b = b, a
    if max_distance is not None and len(a) - len(b) > max_distance:
        return max_distance + 1
    if not b:
        return len(a)

    n, m = len(a), len(b)
    band = n if max_distance is None else max_distance
    over = band + 1

    previous = [j if j <= band else over for j in range(m + 1)]
    for i in range(1, n + 1):
        lo = max(1, i - band)
        hi = min(m, i + band)
        current = [over] * (m + 1)
        if i <= band:
            current[0] = i
        ca = a[i - 1]
        for j in range(lo, hi + 1):
            cost = 0 if ca == b[j - 1] else 1
            value = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
            current[j] = value if value <= band else over
        if min(current[lo - 1:hi + 1]) > band:
            return over
        previous = current
    return previous[m]


def similarity(a: str, b: str, threshold: float | None = None) -> float:
    """``1 - levenshtein(a, b) / max(len(a), len(b))``, in [0, 1].

    When ``threshold`` is given, the exact value is only computed if it
    could exceed the threshold; otherwise a lower bound at or below the
    threshold is returned.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    max_distance = None
    if threshold is not None:
        # Any distance above this keeps similarity at or below the threshold
        max_distance = int(longest * (1.0 - threshold))
    distance = levenshtein(a, b, max_distance=max_distance)
    return 1.0 - min(distance, longest) / longest


class ChangeDetector:
    """Decides whether a normalized read is new, stable content.

    State is private to one instance, so every monitor owns its own
    detector.
    """

    def __init__(
        self,
        similarity_threshold: float = 0.85,
        stable_reads: int = 2,
        prime_baseline: bool = True,
    ) -> None:
        self._similarity_threshold = similarity_threshold
        self._stable_reads = stable_reads
        self._prime_baseline = prime_baseline
        self.reset()

    @property
    def last_fingerprint(self) -> str | None:
        return self._last_fingerprint

    @property
    def last_text(self) -> str:
        return self._last_text

    @property
    def stability_counter(self) -> int:
        return self._stability_counter

    def reset(self) -> None:
        """Forget all accepted and pending content."""
        self._last_fingerprint: str | None = None
        self._last_text: str = ""
        self._pending_text: str | None = None
        self._stability_counter: int = 0

    def check(self, text: str) -> ChangeDecision:
        """Feed one normalized read and return the decision for this tick."""
        fp = fingerprint(text)

        if self._last_fingerprint is None and self._pending_text is None and self._prime_baseline:
            self._commit(text, fp)
            logger.debug("Baseline content primed (%d chars)", len(text))
            return ChangeDecision.BASELINE

        if fp == self._last_fingerprint:
            return ChangeDecision.UNCHANGED

        if self._last_text:
            score = similarity(text, self._last_text, threshold=self._similarity_threshold)
            if score > self._similarity_threshold:
                logger.debug("Text similarity %.1f%%, skipping minor change", score * 100)
                return ChangeDecision.JITTER

        if text == self._pending_text:
            self._stability_counter += 1
            # The pending read plus each repeat counts toward stable_reads
            if self._stability_counter + 1 >= self._stable_reads:
                self._commit(text, fp)
                logger.debug("Stable new content accepted (%d chars)", len(text))
                return ChangeDecision.ACCEPTED
            return ChangeDecision.UNSTABLE

        self._pending_text = text
        self._stability_counter = 0
        if self._stable_reads <= 1:
            self._commit(text, fp)
            return ChangeDecision.ACCEPTED
        return ChangeDecision.UNSTABLE

    def _commit(self, text: str, fp: str) -> None:
        self._last_fingerprint = fp
        self._last_text = text
        self._pending_text = None
        self._stability_counter = 0
