"""Tests for candidate generation."""

from datetime import date
from decimal import Decimal

import pytest

from expense_matcher.config import MatchingConfig
from expense_matcher.matching import CandidateGenerator
from expense_matcher.state_store import ReceiptStatus


@pytest.fixture
def generator(store) -> CandidateGenerator:
    return CandidateGenerator(store, MatchingConfig())


class TestWindows:
    """Tests for the date and amount windows."""

    def test_date_window(self, generator):
        """The window is symmetric around the receipt date."""
        assert generator.date_window(date(2024, 1, 15)) == (date(2024, 1, 8), date(2024, 1, 22))

    def test_amount_bound_absolute_for_small_totals(self, generator):
        """Small totals use the absolute tolerance."""
        assert generator.amount_bound(Decimal("4.50")) == Decimal("1.00")

    def test_amount_bound_relative_for_large_totals(self, generator):
        """Large totals use the percentage tolerance."""
        assert generator.amount_bound(Decimal("250.00")) == Decimal("25")

    def test_amount_window_compares_absolute_values(self, generator):
        """Debits (negative) match unsigned receipt totals."""
        assert generator.in_amount_window(Decimal("4.50"), Decimal("-5.50"))
        assert not generator.in_amount_window(Decimal("4.50"), Decimal("-5.51"))

    def test_date_window_edges(self, generator):
        """Edge days are inside, one past is outside."""
        receipt_date = date(2024, 1, 15)
        assert generator.in_date_window(receipt_date, date(2024, 1, 22))
        assert generator.in_date_window(receipt_date, date(2024, 1, 8))
        assert not generator.in_date_window(receipt_date, date(2024, 1, 23))


class TestCandidatesFor:
    """Tests for candidates_for."""

    def test_filters_by_both_windows(self, store, generator, make_transaction, make_receipt):
        """Only transactions inside both windows are candidates."""
        inside = make_transaction(date(2024, 1, 17), "STARBUCKS", "-4.75")
        make_transaction(date(2024, 1, 30), "STARBUCKS", "-4.50")  # too late
        make_transaction(date(2024, 1, 15), "SHELL OIL", "-42.17")  # amount too far
        receipt_id = make_receipt(date(2024, 1, 15), "4.50", "Starbucks")

        candidates = generator.candidates_for(store.get_receipt(receipt_id))

        assert [tx.id for tx in candidates] == [inside]

    def test_unfinished_receipt_has_no_candidates(self, store, generator, make_transaction):
        """Receipts that are not completed are never matched."""
        make_transaction(date(2024, 1, 15), "STARBUCKS", "-4.50")
        receipt_id = store.create_receipt("uploads/a.jpg")
        store.transition_receipt(receipt_id, ReceiptStatus.PROCESSING)

        assert generator.candidates_for(store.get_receipt(receipt_id)) == []

    def test_receipt_without_amount_has_no_candidates(
        self, store, generator, make_transaction, make_receipt
    ):
        """A completed receipt lacking an amount is excluded."""
        make_transaction(date(2024, 1, 15), "STARBUCKS", "-4.50")
        receipt_id = make_receipt(date(2024, 1, 15), None, "Starbucks")

        assert generator.candidates_for(store.get_receipt(receipt_id)) == []

    def test_select_in_memory(self, store, generator, make_transaction):
        """select applies the same windows to given transactions."""
        make_transaction(date(2024, 1, 15), "A", "-10.00")
        make_transaction(date(2024, 1, 15), "B", "-20.00")
        transactions = store.list_transactions()

        selected = generator.select(Decimal("10.50"), date(2024, 1, 16), transactions)

        assert [tx.description for tx in selected] == ["A"]
