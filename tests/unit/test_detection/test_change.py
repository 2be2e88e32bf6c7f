"""Tests for fingerprinting, similarity and the change detector."""

from __future__ import annotations

import time

from satwatch.detection.change import ChangeDetector, fingerprint, levenshtein, similarity
from satwatch.domain.models import ChangeDecision

TONE = "Which of the following best describes the author's tone?"
TONE_MISREAD = "Which of the following best describes the author's tome?"


class TestEditDistance:
    """Test levenshtein and similarity."""

    def test_levenshtein_known_values(self) -> None:
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_levenshtein_early_exit(self) -> None:
        """A bounded distance stops at max_distance + 1."""
        assert levenshtein("abcdef", "uvwxyz", max_distance=2) == 3
        assert levenshtein("a", "abcdefgh", max_distance=3) == 4

    def test_levenshtein_ignores_shared_affixes(self) -> None:
        assert levenshtein("Time left 12:04 Question 5", "Time left 12:03 Question 5") == 1
        assert levenshtein("prefix-abc-suffix", "prefix-suffix") == 4

    def test_banded_matches_full_distance(self) -> None:
        """Within the band, the bounded distance is exact."""
        pairs = [
            ("kitten", "sitting"),
            ("Saturday", "Sunday"),
            ("flaw", "lawn"),
            ("intention", "execution"),
        ]
        for a, b in pairs:
            exact = levenshtein(a, b)
            assert levenshtein(a, b, max_distance=exact) == exact
            assert levenshtein(a, b, max_distance=exact + 3) == exact
            assert levenshtein(a, b, max_distance=exact - 1) == exact

    def test_similarity_bounds(self) -> None:
        assert similarity("", "") == 1.0
        assert similarity("abc", "abc") == 1.0
        assert similarity("abc", "xyz") == 0.0

    def test_similarity_of_misread(self) -> None:
        assert similarity(TONE, TONE_MISREAD) > 0.85
        assert similarity(TONE, TONE_MISREAD, threshold=0.85) > 0.85

    def test_similarity_with_threshold_stays_below(self) -> None:
        """Below the threshold only a lower bound is promised."""
        assert similarity("foo", "bar", threshold=0.85) <= 0.85

    def test_fingerprint_is_stable(self) -> None:
        assert fingerprint(TONE) == fingerprint(TONE)
        assert fingerprint(TONE) != fingerprint(TONE_MISREAD)
        assert len(fingerprint(TONE)) == 16


class TestChangeDetector:
    """Test the stability gate."""

    def test_identical_reads_are_unchanged(self) -> None:
        """The second of two identical reads should be a no-change."""
        detector = ChangeDetector()
        assert detector.check("foo") == ChangeDecision.BASELINE
        assert detector.check("foo") == ChangeDecision.UNCHANGED

    def test_similar_read_is_jitter(self) -> None:
        """A near-identical re-read should not count as new content."""
        detector = ChangeDetector()
        detector.check(TONE)
        decision = detector.check(TONE_MISREAD)
        assert decision == ChangeDecision.JITTER
        assert not decision.accepted
        assert detector.last_text == TONE
        assert detector.last_fingerprint == fingerprint(TONE)

    def test_stability_gate(self) -> None:
        """['foo', 'bar', 'bar'] should accept only at index 2."""
        detector = ChangeDetector()
        decisions = [detector.check(t) for t in ["foo", "bar", "bar"]]
        assert [d.accepted for d in decisions] == [False, False, True]
        assert decisions[1] == ChangeDecision.UNSTABLE
        assert detector.last_text == "bar"

    def test_accepted_content_then_repeats_unchanged(self) -> None:
        detector = ChangeDetector()
        for text in ["foo", "bar", "bar"]:
            detector.check(text)
        assert detector.check("bar") == ChangeDecision.UNCHANGED

    def test_interrupted_pending_restarts(self) -> None:
        """A different read resets the pending content."""
        detector = ChangeDetector()
        decisions = [detector.check(t) for t in ["foo", "bar", "baz", "baz"]]
        assert [d.accepted for d in decisions] == [False, False, False, True]
        assert detector.last_text == "baz"

    def test_without_baseline_priming(self) -> None:
        """Without priming, the very first content goes through the gate."""
        detector = ChangeDetector(prime_baseline=False)
        assert detector.check("foo") == ChangeDecision.UNSTABLE
        assert detector.check("foo") == ChangeDecision.ACCEPTED

    def test_more_stable_reads(self) -> None:
        detector = ChangeDetector(stable_reads=3)
        decisions = [detector.check(t) for t in ["foo", "bar", "bar", "bar"]]
        assert [d.accepted for d in decisions] == [False, False, False, True]

    def test_single_read_accepts_immediately(self) -> None:
        detector = ChangeDetector(stable_reads=1)
        detector.check("foo")
        assert detector.check("bar") == ChangeDecision.ACCEPTED

    def test_stability_counter(self) -> None:
        detector = ChangeDetector(stable_reads=3)
        for text in ["foo", "bar", "bar"]:
            detector.check(text)
        assert detector.stability_counter == 1

    def test_reset(self) -> None:
        detector = ChangeDetector()
        detector.check("foo")
        detector.reset()
        assert detector.last_fingerprint is None
        assert detector.last_text == ""
        assert detector.check("foo") == ChangeDecision.BASELINE

    def test_independent_instances(self) -> None:
        """Two detectors never share state."""
        first, second = ChangeDetector(), ChangeDetector()
        first.check("foo")
        assert second.last_fingerprint is None

    def test_long_screen_timer_tick_is_fast(self) -> None:
        """A countdown changing on a full page resolves as jitter quickly."""
        body = ("Section 1, Module 2: Reading and Writing. The passage below is adapted "
                "from a novel published in 1911. ") * 24
        screen = f"Time remaining 12:04\n{body}"[:2470]
        detector = ChangeDetector()
        detector.check(screen)

        started = time.perf_counter()
        head = detector.check(screen.replace("12:04", "11:59"))
        tail = detector.check(screen[:-5] + "Next>")
        elapsed = time.perf_counter() - started

        assert head == ChangeDecision.JITTER
        assert tail == ChangeDecision.JITTER
        assert elapsed < 0.2

    def test_long_screen_new_page_is_not_jitter(self) -> None:
        first = ("Which choice completes the text with the most logical transition? " * 30)[:2000]
        second = ("If 3x + 4 = 19 and y = 2x - 1, what is the value of y when x = 5? " * 30)[:2000]
        detector = ChangeDetector()
        detector.check(first)
        assert detector.check(second) == ChangeDecision.UNSTABLE
