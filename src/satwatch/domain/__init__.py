"""Domain models for satwatch.

This package contains the core data structures, enumerations and events
used throughout the pipeline. All models use Pydantic v2 for validation
and serialization.
"""

from satwatch.domain.models import (
    AnswerChoice,
    CaptureFrame,
    ChangeDecision,
    ConfidenceTier,
    Difficulty,
    LiveStatus,
    MonitorEvent,
    MonitorPhase,
    NonQuestionPolicy,
    OCRResult,
    QuestionCandidate,
    QuestionDetected,
    QuestionType,
    SourceBounds,
    SourceInfo,
    SourceKind,
    SourceTag,
    Subject,
)

__all__ = [
    "AnswerChoice",
    "CaptureFrame",
    "ChangeDecision",
    "ConfidenceTier",
    "Difficulty",
    "LiveStatus",
    "MonitorEvent",
    "MonitorPhase",
    "NonQuestionPolicy",
    "OCRResult",
    "QuestionCandidate",
    "QuestionDetected",
    "QuestionType",
    "SourceBounds",
    "SourceInfo",
    "SourceKind",
    "SourceTag",
    "Subject",
]
