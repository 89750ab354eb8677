"""
Record normalization for statement imports.

Turns raw import rows into canonical transactions:
- Dates parsed into calendar dates (several export formats accepted)
- Amounts stripped of currency symbols and thousands separators, sign kept
- Descriptions whitespace-normalized so dedup comparisons are exact

Rows that cannot be parsed raise ValueError; the import service counts them
as skipped and moves on.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from ..config import DEFAULT_DATE_FORMATS

MONEY_QUANT = Decimal("0.01")

# ISO code ("USD") or symbol with an optional country prefix ("US$")
_CURRENCY = r"(?:[A-Za-z]{3}|[A-Za-z]{0,2}[$€£¥])"
# Sign, currency on either side, comma thousands groups before the dot only
_AMOUNT = re.compile(
    r"^(?P<sign>[+-]?)\s*(?:" + _CURRENCY + r"\s*)?(?P<inner_sign>[+-]?)"
    r"(?P<number>(?:\d{1,3}(?:,\d{3})+|\d*)(?:\.\d*)?)"
    r"\s*" + _CURRENCY + r"?$"
)
_DIGITS = re.compile(r"\d")

# Transaction columns whose edits must be parsed like imported values
_TRANSACTION_TEXT_FIELDS = (
    "category",
    "issuer_transaction_id",
    "external_transaction_id",
)


@dataclass
class ImportRow:
    """A raw statement row as read from the import source."""

    date: str
    description: str
    amount: str
    category: str | None = None
    issuer_transaction_id: str | None = None
    card_last_four: str | None = None
    external_transaction_id: str | None = None
    sales_tax: str | None = None


@dataclass(frozen=True)
class NormalizedTransaction:
    """A parsed import row, ready to be stored."""

    date: date
    description: str
    amount: Decimal
    category: str | None = None
    card_last_four: str | None = None
    issuer_transaction_id: str | None = None
    external_transaction_id: str | None = None
    sales_tax: Decimal | None = None

    @property
    def dedupe_key(self) -> tuple[date, str, Decimal]:
        """Fields that identify a duplicate row."""
        return (self.date, self.description, self.amount)


def parse_date(value: str | None, formats: list[str] | None = None) -> date:
    """
    Parse a statement date into a calendar date.

    Args:
        value: Date text, e.g. "01/15/2024" or "2024-01-15".
        formats: strptime formats to try, in order.

    Raises:
        ValueError: If no format matches.
    """
    if value is None or not value.strip():
        raise ValueError("missing date")
    text = value.strip()

    for fmt in formats or DEFAULT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    # ISO timestamps from API-style exports
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValueError(f"unparseable date: {value!r}") from None


def parse_amount(value: str | None) -> Decimal:
    """
    Parse a signed money amount.

    A leading or trailing currency code or symbol, whitespace and comma
    thousands separators are accepted. Accounting negatives "(4.50)" and
    trailing minus "4.50-" are honoured. Anything else is rejected rather
    than guessed at: "1e5", "1,5" and "1.234,56" all raise.

    Raises:
        ValueError: If the text is not a plain amount.
    """
    if value is None or not str(value).strip():
        raise ValueError("missing amount")
    text = str(value).strip()

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1].strip()
    if text.endswith("-"):
        negative = True
        text = text[:-1].rstrip()

    match = _AMOUNT.match(text)
    if (
        match is None
        or not _DIGITS.search(match["number"])
        or (match["sign"] and match["inner_sign"])
    ):
        raise ValueError(f"unparseable amount: {value!r}")

    try:
        amount = Decimal(match["number"].replace(",", ""))
    except InvalidOperation:
        raise ValueError(f"unparseable amount: {value!r}") from None

    if negative or "-" in (match["sign"], match["inner_sign"]):
        amount = -abs(amount)
    return amount


def quantize_amount(amount: Decimal) -> Decimal:
    """
    Round an amount to cents.

    Raises:
        ValueError: If the amount is not finite or has too many digits to
            be held at cent precision.
    """
    if not amount.is_finite():
        raise ValueError(f"amount out of range: {amount}")
    try:
        return amount.quantize(MONEY_QUANT)
    except InvalidOperation:
        raise ValueError(f"amount out of range: {amount}") from None


def to_amount(value: Decimal | str | int | float) -> Decimal:
    """Coerce an edited amount (Decimal or text) to a cent-precision Decimal."""
    if isinstance(value, Decimal):
        return quantize_amount(value)
    if isinstance(value, bool):
        raise ValueError(f"unparseable amount: {value!r}")
    return quantize_amount(parse_amount(str(value)))


def to_date(value: date | str, formats: list[str] | None = None) -> date:
    """Coerce an edited date (date, datetime or text) to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"unparseable date: {value!r}")
    return parse_date(value, formats)


def normalize_transaction_changes(
    changes: dict[str, Any], date_formats: list[str] | None = None
) -> dict[str, Any]:
    """
    Normalize a user edit of transaction fields the way imports are normalized.

    Only the fields present in `changes` are touched, so an edited row keeps
    the same dedupe key as a re-imported copy of it.

    Raises:
        ValueError: If a date, amount or description is unusable.
    """
    normalized = dict(changes)
    if "date" in changes:
        normalized["date"] = to_date(changes["date"], date_formats)
    if "amount" in changes:
        if changes["amount"] is None:
            raise ValueError("missing amount")
        normalized["amount"] = to_amount(changes["amount"])
    if "sales_tax" in changes:
        tax = changes["sales_tax"]
        if isinstance(tax, str):
            tax = _clean_optional(tax)
        normalized["sales_tax"] = to_amount(tax) if tax is not None else None
    if "description" in changes:
        description = " ".join((changes["description"] or "").split())
        if not description:
            raise ValueError("missing description")
        normalized["description"] = description
    if "card_last_four" in changes:
        normalized["card_last_four"] = _card_last_four(changes["card_last_four"])
    for name in _TRANSACTION_TEXT_FIELDS:
        if name in changes:
            normalized[name] = _clean_optional(changes[name])
    return normalized


def normalize_receipt_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """
    Normalize a user correction of a receipt's extracted fields.

    Amounts become unsigned cent-precision totals and dates calendar dates;
    None clears a field.

    Raises:
        ValueError: If an amount or date is unusable.
    """
    normalized = dict(changes)
    if "extracted_amount" in changes:
        amount = changes["extracted_amount"]
        if isinstance(amount, str):
            amount = _clean_optional(amount)
        normalized["extracted_amount"] = abs(to_amount(amount)) if amount is not None else None
    if "extracted_date" in changes:
        extracted_date = changes["extracted_date"]
        if isinstance(extracted_date, str):
            extracted_date = _clean_optional(extracted_date)
        normalized["extracted_date"] = (
            to_date(extracted_date) if extracted_date is not None else None
        )
    if "extracted_merchant" in changes:
        normalized["extracted_merchant"] = _clean_optional(changes["extracted_merchant"])
    return normalized


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


def _card_last_four(value: str | None) -> str | None:
    if value is None:
        return None
    digits = "".join(_DIGITS.findall(value))
    return digits[-4:] if digits else None


class RecordNormalizer:
    """
    Parses raw import rows into NormalizedTransaction objects.

    Usage:
        normalizer = RecordNormalizer(config.importing.date_formats)
        tx = normalizer.normalize(row)  # raises ValueError on malformed rows
    """

    def __init__(
        self,
        date_formats: list[str] | None = None,
        default_card_last_four: str | None = None,
    ) -> None:
        self.date_formats = date_formats or list(DEFAULT_DATE_FORMATS)
        self.default_card_last_four = default_card_last_four

    def normalize(self, row: ImportRow) -> NormalizedTransaction:
        """
        Normalize a single row.

        Raises:
            ValueError: If the date, amount or description is unusable.
        """
        tx_date = parse_date(row.date, self.date_formats)
        amount = parse_amount(row.amount)

        description = " ".join((row.description or "").split())
        if not description:
            raise ValueError("missing description")

        sales_tax = None
        if _clean_optional(row.sales_tax):
            sales_tax = parse_amount(row.sales_tax)

        return NormalizedTransaction(
            date=tx_date,
            description=description,
            amount=quantize_amount(amount),
            category=_clean_optional(row.category),
            card_last_four=_card_last_four(row.card_last_four) or self.default_card_last_four,
            issuer_transaction_id=_clean_optional(row.issuer_transaction_id),
            external_transaction_id=_clean_optional(row.external_transaction_id),
            sales_tax=quantize_amount(sales_tax) if sales_tax is not None else None,
        )
