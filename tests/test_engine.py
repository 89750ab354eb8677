"""Tests for the matching engine."""

from datetime import date
from decimal import Decimal

from expense_matcher.config import Config, MatchingConfig
from expense_matcher.matching import MatchingEngine


class TestFindMatches:
    """Tests for MatchingEngine.find_matches."""

    def test_starbucks_scenario(self, store, config, make_transaction, make_receipt):
        """An exact same-day purchase scores well above 90."""
        tx_id = make_transaction(date(2024, 1, 15), "STARBUCKS STORE #12345", "-4.50")
        receipt_id = make_receipt(date(2024, 1, 15), "4.50", "Starbucks")

        results = MatchingEngine(store, config).find_matches(store.get_receipt(receipt_id))

        assert len(results) == 1
        result = results[0]
        assert result.transaction_id == tx_id
        assert result.confidence >= 90
        assert result.confidence == Decimal("98.40")
        assert result.match_id is None

    def test_ordered_best_first(self, store, config, make_transaction, make_receipt):
        """Closer amount and date rank higher."""
        far = make_transaction(date(2024, 1, 19), "STARBUCKS", "-4.90")
        near = make_transaction(date(2024, 1, 15), "STARBUCKS", "-4.50")
        mid = make_transaction(date(2024, 1, 16), "STARBUCKS", "-4.60")
        receipt_id = make_receipt(date(2024, 1, 15), "4.50", "Starbucks")

        results = MatchingEngine(store, config).find_matches(store.get_receipt(receipt_id))

        assert [r.transaction_id for r in results] == [near, mid, far]
        assert results[0].confidence > results[1].confidence > results[2].confidence

    def test_ties_broken_by_transaction_id(self, store, config, make_transaction, make_receipt):
        """Equal confidence and distance fall back to the lower id."""
        engine = MatchingEngine(store, config)
        later = make_transaction(date(2024, 1, 17), "COFFEE", "-4.50")
        earlier = make_transaction(date(2024, 1, 13), "COFFEE SHOP", "-4.50")
        receipt_id = make_receipt(date(2024, 1, 15), "4.50")

        results = engine.find_matches(store.get_receipt(receipt_id))

        assert [r.transaction_id for r in results] == [later, earlier]

    def test_floor_applies(self, store, temp_db, make_transaction, make_receipt):
        """Candidates below min_confidence are dropped."""
        make_transaction(date(2024, 1, 22), "UNRELATED", "-5.40")
        receipt_id = make_receipt(date(2024, 1, 15), "4.50", "Starbucks")
        receipt = store.get_receipt(receipt_id)

        lenient = Config(state_db_path=temp_db, matching=MatchingConfig(min_confidence=0))
        strict = Config(state_db_path=temp_db, matching=MatchingConfig(min_confidence=50))

        assert len(MatchingEngine(store, lenient).find_matches(receipt)) == 1
        assert MatchingEngine(store, strict).find_matches(receipt) == []

    def test_max_results(self, store, config, make_transaction, make_receipt):
        """max_results caps the list."""
        for day in (14, 15, 16):
            make_transaction(date(2024, 1, day), "STARBUCKS", "-4.50")
        receipt_id = make_receipt(date(2024, 1, 15), "4.50", "Starbucks")

        results = MatchingEngine(store, config).find_matches(
            store.get_receipt(receipt_id), max_results=2
        )

        assert len(results) == 2
        assert results[0].day_distance == 0

    def test_to_dict(self, store, config, make_transaction, make_receipt):
        """Results serialize their signals and reasons."""
        make_transaction(date(2024, 1, 15), "STARBUCKS STORE #12345", "-4.50")
        receipt_id = make_receipt(date(2024, 1, 15), "4.50", "Starbucks")

        (result,) = MatchingEngine(store, config).find_matches(store.get_receipt(receipt_id))
        data = result.to_dict()

        assert data["confidence"] == 98.4
        assert [s["signal"] for s in data["signals"]] == ["amount", "date", "text"]
        assert "amount_match (exact: 4.50)" in data["reasons"]
