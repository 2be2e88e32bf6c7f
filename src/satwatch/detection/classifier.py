"""Heuristic question classifier.

Scores normalized screen text against the pattern banks and decides
whether it is a test question, which subject it belongs to, and how much
to trust that. The decision is deliberately permissive: anything decided
by a fallback rather than the score is marked for manual review instead
of being dropped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

from satwatch.detection.change import fingerprint
from satwatch.detection.patterns import (
    DEFAULT_RULES,
    NO_PUNCTUATION_PENALTY,
    SHORT_TEXT_PENALTY,
    SUBJECT_BANKS,
    PatternRule,
)
from satwatch.domain.models import (
    AnswerChoice,
    ConfidenceTier,
    Difficulty,
    QuestionCandidate,
    QuestionType,
    SourceTag,
    Subject,
)

logger = logging.getLogger(__name__)

_QUESTION_NUMBER = re.compile(r"\bquestion\s+(\d+)", re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"^\s*(\d{1,3})\s*\.(?!\d)", re.MULTILINE)
_SENTENCE_PUNCTUATION = re.compile(r"[.?!]")
_COMPLEX_WORD = re.compile(r"\b\w{7,}\b")

# Tried in order; the first form with at least two options wins
_CHOICE_FORMS = (
    re.compile(r"(?<![\w(])\(?([A-D])\)[ \t]*(\S.*?)(?=[ \t]+\(?[A-D]\)[ \t]|$)", re.MULTILINE),
    re.compile(r"^[ \t]*([A-D])\.[ \t]+(\S.*)$", re.MULTILINE),
)


@dataclass
class ScoreBreakdown:
    """How a text was scored: total, matched signals and decisive flags."""

    score: int = 0
    signals: list[str] = field(default_factory=list)
    strong: list[str] = field(default_factory=list)
    vetoed: bool = False


def detect_subject(text: str) -> Subject:
    """First subject bank with a matching pattern, else UNKNOWN."""
    for subject, patterns in SUBJECT_BANKS:
        if any(p.search(text) for p in patterns):
            return Subject(subject)
    return Subject.UNKNOWN


def parse_question_number(text: str) -> int | None:
    """Question number from 'Question N' or a leading 'N.' line."""
    match = _QUESTION_NUMBER.search(text) or _LEADING_NUMBER.search(text)
    return int(match.group(1)) if match else None


def confidence_tier(text: str) -> ConfidenceTier:
    if len(text) > 100:
        return ConfidenceTier.HIGH
    if len(text) > 50:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def extract_choices(text: str) -> list[AnswerChoice]:
    """Labelled answer options, written as 'A) ...', '(A) ...' or 'A. ...'.

    Options may sit on their own lines or run together on one line. Fewer
    than two matches of a form is not a choice list.
    """
    for form in _CHOICE_FORMS:
        matches = form.findall(text)
        if len(matches) >= 2:
            return [AnswerChoice(label=label, text=option.strip()) for label, option in matches]
    return []


def estimate_difficulty(text: str) -> Difficulty:
    words = text.split()
    if not words:
        return Difficulty.EASY
    average_length = sum(len(w) for w in words) / len(words)
    if len(words) < 30 and average_length < 5:
        return Difficulty.EASY
    if len(words) > 80 or len(_COMPLEX_WORD.findall(text)) > 5:
        return Difficulty.HARD
    return Difficulty.MEDIUM


class QuestionClassifier:
    """Stateless scorer over normalized text."""

    def __init__(
        self,
        threshold: int = 1,
        fallback_length: int = 50,
        short_text_length: int = 30,
        rules: tuple[PatternRule, ...] = DEFAULT_RULES,
    ) -> None:
        self._threshold = threshold
        self._fallback_length = fallback_length
        self._short_text_length = short_text_length
        self._rules = rules

    @property
    def threshold(self) -> int:
        return self._threshold

    def score(self, text: str) -> ScoreBreakdown:
        """Sum matched rule weights minus shape penalties."""
        breakdown = ScoreBreakdown()
        for rule in self._rules:
            if not rule.matches(text):
                continue
            breakdown.score += rule.weight
            breakdown.signals.append(rule.name)
            if rule.strong:
                breakdown.strong.append(rule.name)
            if rule.category == "veto":
                breakdown.vetoed = True

        if len(text) < self._short_text_length:
            breakdown.score += SHORT_TEXT_PENALTY
            breakdown.signals.append("short_text")
        if not _SENTENCE_PUNCTUATION.search(text):
            breakdown.score += NO_PUNCTUATION_PENALTY
            breakdown.signals.append("no_punctuation")
        return breakdown

    def classify(
        self,
        text: str,
        source_tag: str = SourceTag.SCREEN.value,
        timestamp: datetime | None = None,
    ) -> QuestionCandidate:
        """Classify normalized text into a question candidate."""
        text = text.strip()
        breakdown = self.score(text)

        by_score = breakdown.score >= self._threshold
        by_fallback = not breakdown.vetoed and (
            bool(breakdown.strong) or len(text) > self._fallback_length
        )
        is_question = by_score or by_fallback
        choices = extract_choices(text)
        multiple_choice = bool(choices) or "choice" in text.lower()

        candidate = QuestionCandidate(
            is_question=is_question,
            text=text,
            subject=detect_subject(text),
            question_number=parse_question_number(text),
            score=breakdown.score,
            confidence=confidence_tier(text),
            timestamp=timestamp or datetime.now(),
            source_tag=source_tag,
            fingerprint=fingerprint(text),
            manual_review=is_question and not by_score,
            signals=breakdown.signals,
            question_type=(
                QuestionType.MULTIPLE_CHOICE if multiple_choice else QuestionType.UNKNOWN
            ),
            choices=choices,
            difficulty=estimate_difficulty(text),
        )
        logger.debug(
            "Classified text: question=%s subject=%s score=%d signals=%s",
            candidate.is_question,
            candidate.subject.value,
            candidate.score,
            ",".join(candidate.signals),
        )
        return candidate

    __call__ = classify


_default_classifier = QuestionClassifier()


def classify(text: str) -> QuestionCandidate:
    """Classify text with the default thresholds."""
    return _default_classifier.classify(text)
