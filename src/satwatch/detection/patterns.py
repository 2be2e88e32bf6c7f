"""Declarative pattern banks for question classification.

Each rule is plain data (name, regex, weight, category) so the scoring can
be tuned and tested without touching the classifier's control flow.
Weights favour recall: a missed question costs more than a false alarm.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

Category = Literal["structure", "interface", "penalty", "veto"]


@dataclass(frozen=True)
class PatternRule:
    """One weighted signal.

    ``strong`` rules decide a match on their own, regardless of the total
    score.
    """

    name: str
    pattern: re.Pattern[str]
    weight: int
    category: Category = "structure"
    strong: bool = False

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(
    name: str,
    regex: str,
    weight: int = 2,
    category: Category = "structure",
    strong: bool = False,
    flags: int = re.IGNORECASE,
) -> PatternRule:
    return PatternRule(name, re.compile(regex, flags), weight, category, strong)


# ---------------------------------------------------------------------------
# Structure: question phrasing and answer formats
# ---------------------------------------------------------------------------

STRUCTURE_RULES: tuple[PatternRule, ...] = (
    _rule("question_of_total", r"question\s+\d+\s+of\s+\d+"),
    _rule("which_choice_best", r"which\s+(?:choice|answer|option)\s+(?:best|correctly)"),
    _rule("which_of_following", r"which\s+of\s+the\s+following"),
    _rule("based_on_source", r"based\s+on\s+(?:the\s+)?(?:passage|text|graph|table)"),
    _rule("according_to_source", r"according\s+to\s+(?:the\s+)?(?:passage|author|text)"),
    _rule("author_suggests", r"the\s+(?:author|passage|text)\s+(?:suggests?|indicates?|implies?)"),
    _rule("can_be_inferred", r"it\s+can\s+be\s+(?:inferred|concluded)\s+(?:from|that)"),
    _rule("main_purpose", r"the\s+(?:main|primary)\s+(?:purpose|idea|theme)"),
    _rule("line_reference", r"\bin\s+lines?\s+\d+"),
    _rule("paragraph_reference", r"\bparagraph\s+\d+"),
    _rule("if_variable", r"\bif\s+[a-z]\s*[=<>]"),
    _rule("solve_for", r"\bsolve\s+for\s+[a-z]\b"),
    _rule("find_value", r"\bfind\s+the\s+(?:value|solution)"),
    _rule("what_is_value", r"\bwhat\s+is\s+the\s+(?:result|answer|value)"),
    _rule("calculate", r"\bcalculate\b"),
    _rule("equation_reference", r"\bthe\s+(?:equation|function|graph)"),
    _rule("assignment", r"\b[a-z]\s*=\s*-?\d+|\bx\s*\^\s*2", flags=0),
    _rule("underlined_portion", r"underlined\s+(?:portion|part)"),
    _rule("no_change", r"\bno\s+change\b"),
    _rule("which_choice_provides", r"which\s+choice\s+(?:provides|offers|gives)"),
    _rule("writer_wants", r"the\s+writer\s+(?:wants\s+to|should)"),
    _rule("accomplish_goal", r"to\s+accomplish\s+this\s+goal"),
    _rule("choice_line", r"^\s*[A-D]\)\s+", flags=re.MULTILINE),
    _rule("option_letter", r"\boption\s+[A-D]\b"),
    # Very strong structural signals
    _rule("question_mark", r"\?", weight=1, strong=True, flags=0),
    # Counted once as a phrase and once more as a direct answer reference
    _rule("choice_reference", r"\bchoice\s+[A-D]\b", weight=5, strong=True),
    _rule("multiple_choice_format", r"\b[A-D]\)\s+[A-Z]", weight=3, strong=True),
    _rule("question_number", r"\bquestion\s+\d+", weight=4, strong=True),
)

# ---------------------------------------------------------------------------
# Interface chrome of the test-delivery application
# ---------------------------------------------------------------------------

INTERFACE_RULES: tuple[PatternRule, ...] = (
    _rule("section_header", r"section\s+\d+\s*:?\s*(?:reading|writing|math)", category="interface", strong=True),
    _rule("test_preview", r"this\s+is\s+a\s+test\s+preview", category="interface", strong=True),
    _rule("check_your_work", r"check\s+your\s+work", category="interface", strong=True),
    _rule("back_next", r"\bback\b.*\bnext\b", category="interface", strong=True),
    # Question navigation grid, e.g. "1 | 2 | 3 | 4" (bars are read as "l")
    _rule("question_grid", r"\b\d{1,2}(?:\s*[|l]?\s+\d{1,2}){3}\b", category="interface", strong=True),
    _rule("next_when_ready", r"next\s+when\s+you'?re\s+ready", category="interface"),
    _rule("review_status", r"\bunanswered\b|\bfor\s+review\b", category="interface"),
    _rule("mark_for_review", r"mark\s+for\s+review", category="interface"),
    _rule("minutes_remaining", r"minutes?\s+remaining", category="interface"),
    _rule("countdown", r"\d+\s*minutes?\s+remaining", category="interface"),
    _rule("directions", r"\bdirections\b", category="interface"),
)

# ---------------------------------------------------------------------------
# Penalties: screens that are clearly not question content
# ---------------------------------------------------------------------------

PENALTY_RULES: tuple[PatternRule, ...] = (
    _rule("loading_boilerplate", r"^\s*(?:loading|please\s+wait|connecting)", weight=-5, category="veto"),
)

# Weights for penalties computed from text shape rather than a regex
SHORT_TEXT_PENALTY = -2
NO_PUNCTUATION_PENALTY = -1

# ---------------------------------------------------------------------------
# Subject banks, checked in order; the first bank with a hit wins
# ---------------------------------------------------------------------------

MATH_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bequations?\b",
        r"\bsolve\b",
        r"\bcalculate\b",
        r"\bfunctions?\b",
        r"\b[xy]\s*=",
        r"\d+\s*\+\s*\d+",
        r"\d+\s*\*\s*\d+",
        r"\btriangles?\b",
        r"\bcircles?\b",
        r"\bpolygons?\b",
        r"\bsimplify\b",
        r"\bwhich\s+expression\b",
        r"\b(?:area|volume|perimeter)\s+of\b",
    )
)

READING_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bpassage\b",
        r"\bauthor",
        r"\bparagraph\b",
        r"\baccording\s+to\b",
        r"\bsuggests\s+that\b",
        r"\bmain\s+idea\b",
        r"\btone\b",
        r"\bperspective\b",
        r"\bnarrator\b",
        r"\bcentral\s+(?:idea|theme)\b",
    )
)

WRITING_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bgrammar\b",
        r"\bsentences?\b",
        r"\bpunctuation\b",
        r"\bcommas?\b",
        r"\bsemicolons?\b",
        r"\bapostrophes?\b",
        r"\brevisions?\b",
        r"\bedit",
        r"\bstandard\s+english\b",
        r"\bunderlined\b",
    )
)

SUBJECT_BANKS: tuple[tuple[str, tuple[re.Pattern[str], ...]], ...] = (
    ("math", MATH_PATTERNS),
    ("reading", READING_PATTERNS),
    ("writing", WRITING_PATTERNS),
)

DEFAULT_RULES: tuple[PatternRule, ...] = STRUCTURE_RULES + INTERFACE_RULES + PENALTY_RULES
