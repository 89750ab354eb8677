"""Confidence scoring for (transaction, receipt) pairs.

Three independent sub-scores on a 0-100 scale are combined with
configurable weights:
- Amount: exact match or linear decay to the tolerance bound
- Date: same day or linear decay across the date window
- Text: merchant name (or raw OCR text) against the card description
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_DOWN, Decimal
from difflib import SequenceMatcher
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from expense_matcher.config import MatchingConfig
    from expense_matcher.state_store import ReceiptRecord, TransactionRecord

# Only an exact amount earns a perfect amount score
_BELOW_PERFECT = 99.99
_NON_WORD = re.compile(r"[\W_]+")

CONFIDENCE_QUANT = Decimal("0.01")


def normalize_text(value: str | None) -> str:
    """Lower-case, drop punctuation and purely numeric tokens (store numbers)."""
    if not value:
        return ""
    tokens = _NON_WORD.sub(" ", value.lower()).split()
    return " ".join(t for t in tokens if not t.isdigit())


def text_similarity(left: str | None, right: str | None) -> float:
    """Similarity of two merchant strings in [0, 1].

    Equal normalized text scores 1.0, whole-word containment 0.8-1.0,
    anything else the best of token Jaccard, token containment and
    difflib's sequence ratio.
    """
    a, b = normalize_text(left), normalize_text(right)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    short, long = sorted((a, b), key=len)
    if f" {short} " in f" {long} ":
        return 0.8 + 0.2 * len(short) / len(long)

    a_tokens, b_tokens = set(a.split()), set(b.split())
    overlap = len(a_tokens & b_tokens)
    jaccard = overlap / len(a_tokens | b_tokens)
    containment = overlap / min(len(a_tokens), len(b_tokens))
    ratio = SequenceMatcher(None, a, b).ratio()
    return max(jaccard, 0.75 * containment, ratio)


@dataclass
class SubScore:
    """Individual signal contribution to a confidence score."""

    signal: str
    score: float  # 0-100
    weight: float
    detail: str

    @property
    def weighted_score(self) -> float:
        """Get the weighted score for this signal."""
        return self.score * self.weight

    def to_dict(self) -> dict[str, Any]:
        return {
            "signal": self.signal,
            "score": round(self.score, 2),
            "weight": self.weight,
            "weighted_score": round(self.weighted_score, 2),
            "detail": self.detail,
        }


@dataclass
class ScoreBreakdown:
    """All sub-scores of a pair and the resulting confidence."""

    amount: SubScore
    date: SubScore
    text: SubScore
    confidence: Decimal

    @property
    def signals(self) -> list[SubScore]:
        return [self.amount, self.date, self.text]

    @property
    def reasons(self) -> list[str]:
        """Signals that agree more than they disagree."""
        return [f"{s.signal}_match ({s.detail})" for s in self.signals if s.score > 50]


class Scorer:
    """Computes the 0-100 confidence of a transaction/receipt pair.

    Weights come from MatchingConfig; amount and date dominate because OCR
    merchant extraction is the least reliable signal. The final value is
    clamped to [0, 100] and truncated to two decimals, so a pair that is not
    identical never reports 100.
    """

    def __init__(self, config: MatchingConfig) -> None:
        self.config = config

    def score_amount(self, receipt_amount: Decimal | None, tx_amount: Decimal | None) -> SubScore:
        """Score amount agreement (receipt total vs |transaction amount|)."""
        weight = self.config.weight_amount
        if receipt_amount is None or tx_amount is None:
            return SubScore("amount", 0.0, weight, "missing")

        receipt_abs, tx_abs = abs(receipt_amount), abs(tx_amount)
        diff = abs(tx_abs - receipt_abs)
        if diff == 0:
            return SubScore("amount", 100.0, weight, f"exact: {receipt_abs}")

        relative = receipt_abs * Decimal(str(self.config.amount_tolerance_pct)) / 100
        bound = max(self.config.amount_tolerance_abs, relative)
        if bound == 0 or diff >= bound:
            return SubScore("amount", 0.0, weight, f"mismatch: {receipt_abs} vs {tx_abs}")

        score = float(100 * (1 - diff / bound))
        return SubScore(
            "amount",
            min(score, _BELOW_PERFECT),
            weight,
            f"off by {diff}: {receipt_abs} vs {tx_abs}",
        )

    def score_date(self, receipt_date: date | None, tx_date: date | None) -> SubScore:
        """Score date proximity within the configured window."""
        weight = self.config.weight_date
        if receipt_date is None or tx_date is None:
            return SubScore("date", 0.0, weight, "missing")

        days = abs((tx_date - receipt_date).days)
        window = self.config.date_window_days
        if days == 0:
            return SubScore("date", 100.0, weight, "same day")
        if days <= window:
            # Linear decay within the window
            return SubScore("date", 100.0 * (1 - days / (window + 1)), weight, f"{days} days")
        return SubScore("date", 0.0, weight, f">{window} days")

    def score_text(
        self,
        merchant: str | None,
        raw_text: str | None,
        description: str | None,
    ) -> SubScore:
        """Score merchant text; falls back to raw OCR text without a merchant."""
        weight = self.config.weight_text
        source, label = (merchant, "merchant") if merchant else (raw_text, "ocr text")
        if not source or not description:
            return SubScore("text", 0.0, weight, "missing")

        similarity = text_similarity(source, description)
        return SubScore("text", 100.0 * similarity, weight, f"{label} {similarity:.0%}")

    def combine(self, signals: list[SubScore]) -> Decimal:
        """Weighted sum, clamped to [0, 100] and truncated to two decimals."""
        total = sum(
            (Decimal(str(s.weight)) * Decimal(str(s.score)) for s in signals),
            Decimal(0),
        )
        total = min(max(total, Decimal(0)), Decimal(100))
        return total.quantize(CONFIDENCE_QUANT, rounding=ROUND_DOWN)

    def score(self, transaction: TransactionRecord, receipt: ReceiptRecord) -> ScoreBreakdown:
        """Score a stored transaction against a stored receipt."""
        amount = self.score_amount(receipt.extracted_amount, transaction.amount)
        day = self.score_date(receipt.extracted_date, transaction.date)
        text = self.score_text(
            receipt.extracted_merchant, receipt.ocr_text, transaction.description
        )
        return ScoreBreakdown(
            amount=amount,
            date=day,
            text=text,
            confidence=self.combine([amount, day, text]),
        )
