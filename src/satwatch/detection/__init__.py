"""Text normalization, change detection and question classification.

Public API:
    normalize_text -- Clean raw OCR text
    ChangeDetector -- Stability-gated change detection
    QuestionClassifier -- Weighted pattern scoring
"""

from satwatch.detection.change import ChangeDetector, fingerprint, levenshtein, similarity
from satwatch.detection.classifier import (
    QuestionClassifier,
    classify,
    estimate_difficulty,
    extract_choices,
)
from satwatch.detection.normalizer import normalize_text

__all__ = [
    "ChangeDetector",
    "QuestionClassifier",
    "classify",
    "estimate_difficulty",
    "extract_choices",
    "fingerprint",
    "levenshtein",
    "normalize_text",
    "similarity",
]
