"""Adapter for Capital One credit-card CSV statements.

Expected header (order free, names case-insensitive)::

    Transaction Date,Posted Date,Card No.,Description,Category,Debit,Credit

Charges carry a ``Debit`` value; payments and refunds carry ``Credit``. Rows
with an unparseable transaction date are dropped.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ...errors import StructuralImportError
from ...logging_setup import get_logger
from ...models import normalize_header
from ...validation import parse_date, parse_decimal, round_money
from ..tabular import CsvParser

logger = get_logger("finance_import.ingest.adapters.capital_one_csv")

REQUIRED_HEADERS: tuple[str, ...] = (
    "Transaction Date",
    "Posted Date",
    "Card No.",
    "Description",
    "Category",
    "Debit",
    "Credit",
)


@dataclass(frozen=True, slots=True)
class CapitalOneTransaction:
    row_number: int
    transaction_date: date
    posted_date: date
    card_number: str
    description: str
    category: str
    debit: Decimal | None = None
    credit: Decimal | None = None

    @property
    def is_credit(self) -> bool:
        return self.credit is not None and self.credit > 0

    @property
    def amount(self) -> Decimal:
        return self.debit if self.debit is not None else Decimal("0.00")


def _money(raw: str) -> Decimal | None:
    # Capital One writes "." in the unused column of some exports.
    if raw == ".":
        return None
    value = parse_decimal(raw)
    return round_money(value) if value is not None else None


def _check_headers(headers: tuple[str, ...]) -> None:
    present = {normalize_header(h) for h in headers}
    for required in REQUIRED_HEADERS:
        if normalize_header(required) not in present:
            raise StructuralImportError(
                f"Missing required header: {required}. "
                f"Expected headers: {', '.join(REQUIRED_HEADERS)}"
            )


def read_capital_one_csv(content: bytes) -> Iterator[CapitalOneTransaction]:
    """Yield transactions from a Capital One CSV export.

    Raises
    ------
    StructuralImportError
        When the file is unreadable or a required header is missing. An empty
        file yields nothing.
    """

    parser = CsvParser(content)
    if not any(parser.headers):
        return
    _check_headers(parser.headers)

    for row in parser.rows():
        transaction_at = parse_date(row.get("Transaction Date"))
        if transaction_at is None:
            logger.debug("capital_one_csv:skip_invalid_date row=%d", row.row_number)
            continue
        posted_at = parse_date(row.get("Posted Date")) or transaction_at
        yield CapitalOneTransaction(
            row_number=row.row_number,
            transaction_date=transaction_at.date(),
            posted_date=posted_at.date(),
            card_number=row.get("Card No."),
            description=row.get("Description"),
            category=row.get("Category"),
            debit=_money(row.get("Debit")),
            credit=_money(row.get("Credit")),
        )


__all__ = ["REQUIRED_HEADERS", "CapitalOneTransaction", "read_capital_one_csv"]
