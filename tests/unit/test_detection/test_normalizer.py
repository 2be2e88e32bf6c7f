"""Tests for OCR text normalization."""

from __future__ import annotations

import pytest

from satwatch.detection.normalizer import normalize_text

from conftest import MATH_QUESTION, READING_QUESTION

SAMPLES = [
    "",
    "   ",
    READING_QUESTION,
    MATH_QUESTION,
    "Which  of   the following ?  (A)happy (B) sad",
    "x = 1O5 and y = 2l3\r\nThe author’s “tone” — calm…",
    "ok\nno\nThis line stays .Next sentence",
    "A)\nB)\n(C) answer text\nD ) other",
    "Question\x00 7\tof\t27 | Mark for Review",
    "10l1O0 0nly 1ike 1st place",
]


class TestNormalizeText:
    """Test the normalization passes."""

    @pytest.mark.parametrize("text", SAMPLES)
    def test_idempotent(self, text: str) -> None:
        """Normalizing twice should equal normalizing once."""
        once = normalize_text(text)
        assert normalize_text(once) == once

    def test_empty_and_none(self) -> None:
        """Empty input should normalize to the empty string."""
        assert normalize_text("") == ""
        assert normalize_text(None) == ""

    def test_clean_question_is_unchanged(self) -> None:
        """Already clean text should pass through untouched."""
        assert normalize_text(READING_QUESTION) == READING_QUESTION

    def test_collapses_inline_whitespace(self) -> None:
        """Runs of spaces and tabs should collapse to one space."""
        assert normalize_text("Which  of\t\tthe   following") == "Which of the following"

    def test_preserves_lines(self) -> None:
        """Newlines should survive normalization."""
        assert normalize_text("First line here\r\nSecond line here") == (
            "First line here\nSecond line here"
        )

    def test_typographic_misreads(self) -> None:
        """Curly quotes, dashes and ellipses should map to ASCII."""
        assert normalize_text("The author’s “tone” — calm…") == (
            "The author's \"tone\" - calm..."
        )

    def test_strips_non_printable(self) -> None:
        """Control characters should be removed."""
        assert normalize_text("Question\x00 7 of 27") == "Question 7 of 27"

    def test_punctuation_spacing(self) -> None:
        """Spaces before punctuation go; sentences get one space."""
        assert normalize_text("Is it true ?Yes it is .Done") == "Is it true? Yes it is. Done"

    def test_digit_repairs(self) -> None:
        """O and l between digits should become 0 and 1."""
        assert normalize_text("x = 1O5 and y = 2l3") == "x = 105 and y = 213"

    def test_leading_digit_before_word(self) -> None:
        """A 0 or 1 starting a word should read as a letter."""
        assert normalize_text("0nly 1ike this") == "Only like this"

    def test_ordinal_is_kept(self) -> None:
        """Ordinals like 1st should not be repaired."""
        assert normalize_text("The 1st answer") == "The 1st answer"

    def test_choice_markers(self) -> None:
        """Choice markers should be canonicalized to 'A) '."""
        assert normalize_text("(A)happy\nB )sad\nC) angry") == "A) happy\nB) sad\nC) angry"

    def test_drops_short_lines(self) -> None:
        """Lines of three characters or fewer are noise."""
        assert normalize_text("ok\nno\nThis line stays") == "This line stays"

    def test_keeps_bare_choice_lines(self) -> None:
        """A lone choice marker line should be kept."""
        assert normalize_text("A)\nThis line stays") == "A)\nThis line stays"
