"""Tests for confidence scoring."""

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

import pytest

from expense_matcher.config import MatchingConfig
from expense_matcher.matching import Scorer, SubScore, normalize_text, text_similarity


@pytest.fixture
def scorer() -> Scorer:
    return Scorer(MatchingConfig())


class TestTextSimilarity:
    """Tests for merchant text normalization and similarity."""

    def test_normalize_drops_punctuation_and_numbers(self):
        """Store numbers and punctuation are noise."""
        assert normalize_text("STARBUCKS STORE #12345") == "starbucks store"
        assert normalize_text("AMAZON.COM*RT4YU1") == "amazon com rt4yu1"
        assert normalize_text(None) == ""

    def test_equal_after_normalization(self):
        """Case and punctuation differences still score 1.0."""
        assert text_similarity("Shell Oil", "SHELL OIL #57444") == 1.0

    def test_containment(self):
        """A merchant contained in the description scores 0.8-1.0."""
        similarity = text_similarity("Starbucks", "STARBUCKS STORE #12345")
        assert similarity == pytest.approx(0.8 + 0.2 * 9 / 15)

    def test_partial_word_is_not_containment(self):
        """Containment requires whole words."""
        assert text_similarity("star", "STARBUCKS STORE") < 0.8

    def test_unrelated(self):
        """Unrelated names score low."""
        assert text_similarity("Walmart", "SHELL OIL") < 0.4

    def test_missing(self):
        """Missing text scores zero."""
        assert text_similarity("", "SHELL") == 0.0
        assert text_similarity("Shell", None) == 0.0


class TestAmountScore:
    """Tests for the amount sub-score."""

    def test_exact(self, scorer):
        """Exact amounts score 100 regardless of sign."""
        assert scorer.score_amount(Decimal("4.50"), Decimal("-4.50")).score == 100.0

    def test_decreases_with_difference(self, scorer):
        """Larger differences never score higher."""
        scores = [
            scorer.score_amount(Decimal("20.00"), Decimal(f"-{20 + d / 10:.2f}")).score
            for d in range(0, 25)
        ]
        assert scores == sorted(scores, reverse=True)
        assert scores[0] == 100.0
        assert scores[-1] == 0.0

    def test_near_exact_below_perfect(self, scorer):
        """A one-cent difference on a large total is still below 100."""
        sub = scorer.score_amount(Decimal("100000.00"), Decimal("-100000.01"))
        assert 99 < sub.score < 100

    def test_relative_tolerance(self, scorer):
        """Large totals use the percentage bound."""
        # 10% of 200.00 = 20.00 > 1.00 absolute
        assert scorer.score_amount(Decimal("200.00"), Decimal("-190.00")).score == pytest.approx(50)

    def test_beyond_bound(self, scorer):
        """Differences at or beyond the bound score zero."""
        assert scorer.score_amount(Decimal("5.00"), Decimal("-6.00")).score == 0.0

    def test_missing(self, scorer):
        """Missing amounts score zero."""
        assert scorer.score_amount(None, Decimal("-1")).score == 0.0


class TestDateScore:
    """Tests for the date sub-score."""

    def test_same_day(self, scorer):
        """Same day scores 100."""
        assert scorer.score_date(date(2024, 1, 15), date(2024, 1, 15)).score == 100.0

    def test_decreases_with_distance(self, scorer):
        """Scores fall with day distance and vanish outside the window."""
        base = date(2024, 1, 15)
        scores = [
            scorer.score_date(base, date(2024, 1, 15 + d)).score for d in range(0, 10)
        ]
        assert scores == sorted(scores, reverse=True)
        assert scores[1] == pytest.approx(100 * (1 - 1 / 8))
        assert scores[7] > 0
        assert scores[8] == 0.0

    def test_symmetric(self, scorer):
        """Earlier and later dates score the same."""
        base = date(2024, 1, 15)
        before = scorer.score_date(base, date(2024, 1, 12)).score
        after = scorer.score_date(base, date(2024, 1, 18)).score
        assert before == after


class TestTextScore:
    """Tests for the text sub-score."""

    def test_merchant_preferred(self, scorer):
        """The extracted merchant is used when present."""
        sub = scorer.score_text("Starbucks", "garbage", "STARBUCKS STORE #12345")
        assert sub.score > 90
        assert sub.detail.startswith("merchant")

    def test_falls_back_to_ocr_text(self, scorer):
        """Raw OCR text is used without a merchant."""
        sub = scorer.score_text(None, "STARBUCKS", "STARBUCKS STORE #12345")
        assert sub.score > 90
        assert sub.detail.startswith("ocr text")

    def test_missing(self, scorer):
        """No text at all scores zero."""
        assert scorer.score_text(None, None, "STARBUCKS").score == 0.0


class TestCombine:
    """Tests for the weighted combination."""

    def test_weighted_score(self):
        """Weighted score multiplies score by weight."""
        sub = SubScore(signal="amount", score=80.0, weight=0.45, detail="test")
        assert sub.weighted_score == pytest.approx(36.0)

    def test_all_perfect_is_100(self, scorer):
        """Only perfect sub-scores reach 100."""
        signals = [
            SubScore("amount", 100.0, 0.45, ""),
            SubScore("date", 100.0, 0.35, ""),
            SubScore("text", 100.0, 0.20, ""),
        ]
        assert scorer.combine(signals) == Decimal("100.00")

    def test_truncates_instead_of_rounding(self, scorer):
        """99.999 reports 99.99, never 100."""
        signals = [
            SubScore("amount", 99.99, 0.45, ""),
            SubScore("date", 100.0, 0.35, ""),
            SubScore("text", 100.0, 0.20, ""),
        ]
        assert scorer.combine(signals) == Decimal("99.99")

    def test_clamped(self, scorer):
        """Out-of-range sums are clamped."""
        assert scorer.combine([SubScore("amount", 300.0, 1.0, "")]) == Decimal("100.00")
        assert scorer.combine([SubScore("amount", -5.0, 1.0, "")]) == Decimal("0.00")


class TestConfidenceMonotonicity:
    """Final confidence never rises as a pair drifts further apart."""

    @pytest.fixture
    def pair(self, store, make_transaction, make_receipt):
        tx_id = make_transaction(date(2024, 1, 15), "STARBUCKS STORE #12345", "-20.00")
        receipt_id = make_receipt(date(2024, 1, 15), "20.00", "Starbucks")
        return store.get_transaction(tx_id), store.get_receipt(receipt_id)

    def test_non_increasing_in_amount_difference(self, scorer, pair):
        """Date and merchant fixed, a larger amount difference never scores higher."""
        transaction, receipt = pair
        amounts = [Decimal(f"-{20 + cents / 100:.2f}") for cents in range(0, 260, 10)]
        confidences = [
            scorer.score(replace(transaction, amount=amount), receipt).confidence
            for amount in amounts
        ]

        assert confidences == sorted(confidences, reverse=True)
        assert confidences[0] > confidences[-1]

    def test_non_increasing_in_day_distance(self, scorer, pair):
        """Amount and merchant fixed, a later posting date never scores higher."""
        transaction, receipt = pair
        dates = [receipt.extracted_date + timedelta(days=d) for d in range(0, 10)]
        confidences = [
            scorer.score(replace(transaction, date=tx_date), receipt).confidence
            for tx_date in dates
        ]

        assert confidences == sorted(confidences, reverse=True)
        assert confidences[0] > confidences[-1]
