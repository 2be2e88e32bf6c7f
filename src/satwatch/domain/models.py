"""Core domain models for the satwatch pipeline.

These models represent the data flowing through the question-detection
pipeline: capture sources and frames from the screen sampler, OCR results,
question candidates from the classifier, and the events the monitor emits
to its subscribers.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SourceKind(str, enum.Enum):
    """What a capture source points at."""

    SCREEN = "screen"
    WINDOW = "window"


class SourceTag(str, enum.Enum):
    """Priority tier that selected a capture source."""

    APP = "app"  # Configured test-delivery application window
    EXAM = "exam"  # Generic exam/test keyword match
    CONTENT = "content"  # Question/practice/section keyword match
    SCREEN = "screen"  # Primary display fallback


class Subject(str, enum.Enum):
    """SAT content category inferred from keyword heuristics."""

    MATH = "math"
    READING = "reading"
    WRITING = "writing"
    UNKNOWN = "unknown"


class ConfidenceTier(str, enum.Enum):
    """Coarse confidence derived from how much text was read."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Difficulty(str, enum.Enum):
    """Rough difficulty estimated from word count and word length."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestionType(str, enum.Enum):
    """Answer format of a question."""

    MULTIPLE_CHOICE = "multiple-choice"
    UNKNOWN = "unknown"


class ChangeDecision(str, enum.Enum):
    """Outcome of feeding one normalized read to the change detector."""

    BASELINE = "baseline"  # First read, primes the detector
    UNCHANGED = "unchanged"  # Fingerprint matches the accepted content
    JITTER = "jitter"  # Near-identical re-read of the accepted content
    UNSTABLE = "unstable"  # New content, waiting for a stable repeat
    ACCEPTED = "accepted"  # New content observed stably

    @property
    def accepted(self) -> bool:
        return self is ChangeDecision.ACCEPTED


class MonitorPhase(str, enum.Enum):
    """Lifecycle phase of a monitor loop."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class NonQuestionPolicy(str, enum.Enum):
    """What the monitor does with accepted content classified as non-question."""

    EMIT = "emit"  # Emit the candidate as classified
    FLAG = "flag"  # Emit it as a question marked for manual review
    SUPPRESS = "suppress"  # Drop it


# ---------------------------------------------------------------------------
# Capture Models
# ---------------------------------------------------------------------------


class SourceBounds(BaseModel):
    """Screen-space rectangle of a capture source, in pixels."""

    model_config = ConfigDict(frozen=True)

    left: int
    top: int
    width: int = Field(gt=0)
    height: int = Field(gt=0)

    def as_mss(self) -> dict[str, int]:
        return {
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
        }


class SourceInfo(BaseModel):
    """A screen or window that can be captured."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Backend identifier, e.g. 'screen:0' or 'window:1234'")
    name: str = Field(description="Display or window title")
    kind: SourceKind
    bounds: SourceBounds | None = Field(default=None)


class CaptureFrame(BaseModel):
    """A single screenshot taken by the screen sampler."""

    model_config = ConfigDict(frozen=True)

    image: bytes = Field(description="PNG-encoded screenshot")
    timestamp: datetime = Field(default_factory=datetime.now)
    source_id: str
    source_name: str = ""
    source_tag: SourceTag = SourceTag.SCREEN


# ---------------------------------------------------------------------------
# OCR Models
# ---------------------------------------------------------------------------


class OCRResult(BaseModel):
    """Text extracted from a frame, with the engine's confidence."""

    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(ge=0.0, le=1.0, description="Mean word confidence (0-1)")
    source_id: str | None = None
    elapsed: float = Field(default=0.0, ge=0.0, description="Recognition time in seconds")


# ---------------------------------------------------------------------------
# Classification Models
# ---------------------------------------------------------------------------


class AnswerChoice(BaseModel):
    """One labelled option of a multiple-choice question."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(description="Choice letter, A to D")
    text: str


class QuestionCandidate(BaseModel):
    """Classified screen content, emitted when new stable text appears.

    Serializes with camelCase aliases (``isQuestion``, ``questionNumber``,
    ``sourceTag``...) for host-process consumers.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    is_question: bool
    text: str
    subject: Subject = Subject.UNKNOWN
    question_number: int | None = None
    score: int = 0
    confidence: ConfidenceTier = ConfidenceTier.LOW
    timestamp: datetime = Field(default_factory=datetime.now)
    source_tag: str = SourceTag.SCREEN.value
    fingerprint: str = ""
    manual_review: bool = Field(
        default=False,
        description="Decided by a permissive fallback rather than the score",
    )
    manual_capture: bool = Field(
        default=False, description="Produced by force_capture() rather than the schedule"
    )
    question_type: QuestionType = QuestionType.UNKNOWN
    choices: list[AnswerChoice] = Field(default_factory=list)
    difficulty: Difficulty = Difficulty.MEDIUM
    signals: list[str] = Field(
        default_factory=list, description="Names of the pattern rules that matched"
    )


# ---------------------------------------------------------------------------
# Events (discriminated union)
# ---------------------------------------------------------------------------


class QuestionDetected(BaseModel):
    """Fired when new stable content has been classified."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    kind: Literal["question_detected"] = "question_detected"
    candidate: QuestionCandidate


class LiveStatus(BaseModel):
    """Per-tick diagnostic status for a status display."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    kind: Literal["live_status"] = "live_status"
    scan_time: datetime = Field(default_factory=datetime.now)
    status: Literal["ready", "skipped", "unchanged", "detected", "error"] = "ready"
    sources_found: int = 0
    text_preview: str = ""
    text_length: int = 0
    ocr_confidence: float | None = None
    decision: ChangeDecision | None = None
    message: str = ""


MonitorEvent = Annotated[
    Union[QuestionDetected, LiveStatus],
    Field(discriminator="kind"),
]


def preview(text: str, limit: int = 100) -> str:
    """Truncate text for status displays."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
