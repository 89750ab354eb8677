"""Match lifecycle orchestration service.

Persists scored proposals and drives each match through its state machine:

    pending ──confirm──▶ confirmed
       │
       └────reject───▶ rejected

Confirmed and rejected are terminal: a repeat of the same action is a
no-op, the opposite action is a conflict. A rejected pair is never
re-proposed while its row exists. Delete is valid from any state.

The service is safe to run repeatedly (idempotent):
- The (transaction, receipt) UNIQUE constraint absorbs duplicate proposals
- Concurrent proposals for the same pair resolve to one row
- Status changes are compare-and-set, so concurrent actions cannot overwrite
  each other
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from expense_matcher.matching.engine import MatchingEngine, MatchResult
from expense_matcher.state_store import ConflictError, MatchStatus, NotFoundError

if TYPE_CHECKING:
    from expense_matcher.config import Config
    from expense_matcher.state_store import MatchRecord, StateStore

logger = logging.getLogger(__name__)


@dataclass
class AutoMatchResult:
    """Result of an auto-match sweep."""

    matched: int = 0
    receipts_processed: int = 0
    candidates_scored: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "matched": self.matched,
            "receipts_processed": self.receipts_processed,
            "candidates_scored": self.candidates_scored,
        }


class MatchLifecycleManager:
    """Creates, confirms, rejects and deletes matches.

    Usage:
        manager = MatchLifecycleManager(state_store, config)
        proposals = manager.propose(receipt_id)
        manager.confirm(proposals[0].match_id)
    """

    def __init__(self, state_store: StateStore, config: Config) -> None:
        """Initialize the lifecycle manager.

        Args:
            state_store: State store for persistence.
            config: Application configuration.
        """
        self.store = state_store
        self.config = config
        self.engine = MatchingEngine(state_store, config)

    def _persist(self, result: MatchResult) -> bool:
        match_id, created = self.store.insert_match(
            result.transaction_id, result.receipt_id, result.confidence
        )
        result.match_id = match_id
        result.created = created
        if created:
            logger.info(
                "Created match %d: receipt %d -> tx %d (confidence: %.2f)",
                match_id,
                result.receipt_id,
                result.transaction_id,
                result.confidence,
            )
        return created

    def propose(self, receipt_id: int) -> list[MatchResult]:
        """Score candidates for a receipt and store a pending match for each.

        Pairs that already have a row (in any status) are left untouched.

        Returns:
            Scored candidates, best first, with match_id set and `created`
            telling whether this call inserted the row.

        Raises:
            NotFoundError: If the receipt does not exist.
        """
        receipt = self.store.get_receipt(receipt_id)
        if receipt is None:
            raise NotFoundError("receipt", receipt_id)

        results = self.engine.find_matches(receipt)
        for result in results:
            self._persist(result)
        # Candidates deleted since scoring have no row
        results = [r for r in results if r.match_id is not None]

        logger.info(
            "Receipt %d: %d candidates, %d new matches",
            receipt_id,
            len(results),
            sum(1 for r in results if r.created),
        )
        return results

    def auto_match(self, threshold: float | None = None) -> AutoMatchResult:
        """Propose matches for every completed receipt lacking a confirmed match.

        Only candidates scoring at or above `threshold` are stored, as
        pending; the sweep never confirms.

        Args:
            threshold: Minimum confidence (0-100). Defaults to
                matching.auto_match_threshold.

        Returns:
            AutoMatchResult; `matched` counts newly created rows only.
        """
        if threshold is None:
            threshold = self.config.matching.auto_match_threshold
        if not 0 <= threshold <= 100:
            raise ValueError(f"threshold must be between 0 and 100, got {threshold}")
        cutoff = Decimal(str(threshold))

        result = AutoMatchResult()
        for receipt in self.store.get_receipts_without_confirmed_match():
            result.receipts_processed += 1
            candidates = self.engine.find_matches(receipt)
            result.candidates_scored += len(candidates)
            for candidate in candidates:
                if candidate.confidence >= cutoff and self._persist(candidate):
                    result.matched += 1

        logger.info(
            "Auto-match (threshold %.2f): %d receipts, %d new matches",
            threshold,
            result.receipts_processed,
            result.matched,
        )
        return result

    def _transition(self, match_id: int, target: MatchStatus) -> MatchRecord:
        if target is MatchStatus.PENDING:
            raise ValueError("Matches cannot be moved back to pending")

        # A lost compare-and-set means another request moved the match out of
        # pending; the second pass resolves against that state.
        for _ in range(2):
            match = self.store.get_match(match_id)
            if match is None:
                raise NotFoundError("match", match_id)

            current = match.status
            if current is target:
                logger.info("Match %d already %s", match_id, target.value)
                return match
            if current is MatchStatus.PENDING:
                if self.store.compare_and_set_match_status(match_id, MatchStatus.PENDING, target):
                    logger.info("Match %d %s", match_id, target.value)
                    updated = self.store.get_match(match_id)
                    if updated is None:
                        raise NotFoundError("match", match_id)
                    return updated
                continue
            if current is MatchStatus.CONFIRMED or current is MatchStatus.REJECTED:
                raise ConflictError(
                    f"Match {match_id} is {current.value}; cannot mark it {target.value}",
                    current=current.value,
                    requested=target.value,
                )
            raise ValueError(f"Unhandled match status: {current}")

        raise ConflictError(f"Match {match_id} changed concurrently", requested=target.value)

    def confirm(self, match_id: int) -> MatchRecord:
        """Confirm a pending match (sets user_confirmed).

        Raises:
            NotFoundError: If the match does not exist.
            ConflictError: If the match was rejected.
        """
        return self._transition(match_id, MatchStatus.CONFIRMED)

    def reject(self, match_id: int) -> MatchRecord:
        """Reject a pending match.

        Raises:
            NotFoundError: If the match does not exist.
            ConflictError: If the match was confirmed.
        """
        return self._transition(match_id, MatchStatus.REJECTED)

    def delete(self, match_id: int) -> None:
        """Delete a match in any state.

        Raises:
            NotFoundError: If the match does not exist.
        """
        if not self.store.delete_match(match_id):
            raise NotFoundError("match", match_id)
        logger.info("Deleted match %d", match_id)

    def get(self, match_id: int) -> MatchRecord:
        match = self.store.get_match(match_id)
        if match is None:
            raise NotFoundError("match", match_id)
        return match

    def list_matches(self, status: MatchStatus | None = None) -> list[dict[str, Any]]:
        """Matches with transaction and receipt details, best first."""
        return self.store.list_matches(status)

    def stats(self) -> dict[str, int]:
        """Total, confirmed, pending and rejected matches; unmatched receipts."""
        return self.store.get_match_stats()
