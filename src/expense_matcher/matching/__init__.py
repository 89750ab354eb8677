"""Matching engine for correlating receipts with card transactions."""

from expense_matcher.matching.candidates import CandidateGenerator
from expense_matcher.matching.engine import MatchingEngine, MatchResult
from expense_matcher.matching.scorer import (
    ScoreBreakdown,
    Scorer,
    SubScore,
    normalize_text,
    text_similarity,
)

__all__ = [
    "CandidateGenerator",
    "MatchResult",
    "MatchingEngine",
    "ScoreBreakdown",
    "Scorer",
    "SubScore",
    "normalize_text",
    "text_similarity",
]
