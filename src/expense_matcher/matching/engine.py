"""Matching engine for correlating receipts with imported card transactions.

Runs the candidate generator and scorer for one receipt, applies the
minimum confidence floor and orders the results best first. Persistence of
the results is left to the match lifecycle service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from expense_matcher.matching.candidates import CandidateGenerator
from expense_matcher.matching.scorer import ScoreBreakdown, Scorer

if TYPE_CHECKING:
    from expense_matcher.config import Config
    from expense_matcher.state_store import ReceiptRecord, StateStore, TransactionRecord

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """A scored candidate transaction for a receipt."""

    transaction_id: int
    receipt_id: int
    breakdown: ScoreBreakdown
    day_distance: int
    # Filled in once the result has been persisted
    match_id: int | None = None
    created: bool = False

    @property
    def confidence(self) -> Decimal:
        return self.breakdown.confidence

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "transaction_id": self.transaction_id,
            "receipt_id": self.receipt_id,
            "match_id": self.match_id,
            "created": self.created,
            "confidence": float(self.confidence),
            "signals": [s.to_dict() for s in self.breakdown.signals],
            "reasons": self.breakdown.reasons,
        }


class MatchingEngine:
    """Engine for matching receipts to imported card transactions.

    Signals (see Scorer):
    - Amount: exact or within tolerance (highest weight)
    - Date: within the configured window
    - Text: merchant name similarity (lowest weight, OCR is noisy)

    Results below `min_confidence` are dropped here, so no caller can
    persist them.
    """

    def __init__(self, state_store: StateStore, config: Config) -> None:
        """Initialize the matching engine.

        Args:
            state_store: State store for reading transactions.
            config: Application configuration.
        """
        self.store = state_store
        self.matching = config.matching
        self.candidates = CandidateGenerator(state_store, config.matching)
        self.scorer = Scorer(config.matching)

    @property
    def min_confidence(self) -> Decimal:
        return Decimal(str(self.matching.min_confidence))

    def score_pair(self, transaction: TransactionRecord, receipt: ReceiptRecord) -> MatchResult:
        """Score a single pair without windows or floor (previews, tuning)."""
        breakdown = self.scorer.score(transaction, receipt)
        distance = (
            abs((transaction.date - receipt.extracted_date).days)
            if receipt.extracted_date
            else 0
        )
        return MatchResult(
            transaction_id=transaction.id,
            receipt_id=receipt.id,
            breakdown=breakdown,
            day_distance=distance,
        )

    def find_matches(
        self,
        receipt: ReceiptRecord,
        max_results: int | None = None,
    ) -> list[MatchResult]:
        """Find candidate transactions for a receipt.

        Args:
            receipt: Receipt with completed OCR extraction.
            max_results: Optional cap on the number of results.

        Returns:
            MatchResults at or above the floor, best first (ties broken by
            date distance, then transaction ID).
        """
        floor = self.min_confidence
        results: list[MatchResult] = []

        for tx in self.candidates.candidates_for(receipt):
            result = self.score_pair(tx, receipt)
            if result.confidence < floor:
                logger.debug(
                    "Receipt %d / tx %d below floor (%.2f < %.2f)",
                    receipt.id,
                    tx.id,
                    result.confidence,
                    floor,
                )
                continue
            results.append(result)

        results.sort(key=lambda r: (-r.confidence, r.day_distance, r.transaction_id))

        if max_results is not None:
            results = results[:max_results]
        return results
