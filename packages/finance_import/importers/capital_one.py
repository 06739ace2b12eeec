"""Capital One CSV preview/import.

Every statement row becomes a preview entry with its mapped category and a
duplicate/credit verdict. A commit imports the importable entries (optionally
narrowed to the caller's row selection), tags each with the card type and
applies per-row category overrides and amount splits.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from ..categories import CAPITAL_ONE_RULES, CategoryResolver, map_external_category
from ..config import DEFAULT_MAX_FILE_BYTES
from ..duplicates import DuplicateIndex, transaction_key
from ..effects import effects_for
from ..errors import StructuralImportError
from ..ingest.adapters.capital_one_csv import CapitalOneTransaction, read_capital_one_csv
from ..ingest.tabular import file_extension
from ..logging_setup import get_logger
from ..models import CategoryRef, NewExpense
from ..persistence import Stores
from ..reports import CapitalOneExpensePreview, CapitalOneImportReport, CategoryOption
from ..tags import TagResolver
from ..validation import round_money

logger = get_logger("finance_import.importers.capital_one")

CARD_TAG_COLORS: dict[str, str] = {
    "quicksilver": "#4169E1",
    "venturex": "#8B0000",
}
DEFAULT_CARD_TAG_COLOR = "#808080"

CREDIT_MESSAGE = "Credit/payment - will be skipped"
DUPLICATE_MESSAGE = "Duplicate found in your expenses"


def card_tag_color(card_type: str) -> str:
    return CARD_TAG_COLORS.get(card_type.strip().lower(), DEFAULT_CARD_TAG_COLOR)


@dataclass(frozen=True, slots=True)
class CapitalOneImportRequest:
    user_id: int
    file_name: str
    content: bytes
    card_type: str
    dry_run: bool = True
    # None (or empty) means "every importable row".
    selected_row_numbers: Collection[int] | None = None
    category_overrides: Mapping[int, int] | None = None
    amount_splits: Mapping[int, int] | None = None


def _split_amount(amount: Decimal, row_number: int, splits: Mapping[int, int] | None) -> Decimal:
    if not splits:
        return amount
    divisor = splits.get(row_number)
    if divisor is None or divisor <= 1:
        return amount
    return round_money(amount / Decimal(divisor))


class CapitalOneImporter:
    def __init__(self, stores: Stores, *, max_file_bytes: int = DEFAULT_MAX_FILE_BYTES) -> None:
        self.stores = stores
        self.max_file_bytes = max_file_bytes

    def _read(self, request: CapitalOneImportRequest) -> list[CapitalOneTransaction]:
        if not request.content:
            raise StructuralImportError("No file content received.")
        if len(request.content) > self.max_file_bytes:
            limit_mb = max(1, self.max_file_bytes // (1024 * 1024))
            raise StructuralImportError(
                f"File is too large. Please upload a file smaller than {limit_mb} MB."
            )
        if file_extension(request.file_name) != "csv":
            raise StructuralImportError("Unsupported file type. Please upload a CSV file.")
        return list(read_capital_one_csv(request.content))

    def run(self, request: CapitalOneImportRequest) -> CapitalOneImportReport:
        """Preview (``dry_run``) or import a Capital One statement."""

        transactions = self._read(request)
        report = CapitalOneImportReport(
            dry_run=request.dry_run,
            card_type=request.card_type,
            file_name=request.file_name,
        )
        if not transactions:
            logger.info(
                "capital_one_import:empty user_id=%d file=%r", request.user_id, request.file_name
            )
            return report

        resolver = CategoryResolver(self.stores.categories.list_for_user(request.user_id))
        index = DuplicateIndex.build(
            self.stores.expenses.list_for_user(request.user_id),
            lambda e: transaction_key(e.date, e.amount, e.title),
        )

        previews: list[CapitalOneExpensePreview] = []
        for tx in transactions:
            mapped = resolver.resolve(map_external_category(tx.category, CAPITAL_ONE_RULES))
            amount = _split_amount(tx.amount, tx.row_number, request.amount_splits)
            # Split rows are stored with the divided amount; either form matches.
            day = _utc_midnight(tx)
            is_duplicate = any(
                index.classify(transaction_key(day, value, tx.description)).is_duplicate
                for value in {tx.amount, amount}
            )
            if tx.is_credit:
                report.credits_skipped += 1
            elif is_duplicate:
                report.duplicates_found += 1
            previews.append(
                CapitalOneExpensePreview(
                    row_number=tx.row_number,
                    transaction_date=tx.transaction_date,
                    posted_date=tx.posted_date,
                    card_number=tx.card_number,
                    description=tx.description,
                    capital_one_category=tx.category,
                    amount=amount,
                    mapped_category_id=mapped.id,
                    mapped_category_name=mapped.name,
                    is_credit=tx.is_credit,
                    is_duplicate=is_duplicate,
                    status_message=_status_message(tx.is_credit, is_duplicate),
                )
            )

        batch = [p for p in previews if p.can_import]
        if request.selected_row_numbers:
            selected = set(request.selected_row_numbers)
            batch = [p for p in batch if p.row_number in selected]

        report.expenses = previews
        report.total_transactions = len(previews)
        report.importable_count = len(batch)
        report.total_amount = round_money(sum((p.amount for p in batch), Decimal("0")))
        report.available_categories = [
            CategoryOption(id=c.id, name=c.name) for c in resolver.categories
        ]

        if not request.dry_run and batch:
            report.imported_count = self._commit(request, batch, resolver, transactions)

        logger.info(
            "capital_one_import:done user_id=%d dry_run=%s total=%d credits=%d duplicates=%d "
            "importable=%d imported=%d",
            request.user_id,
            request.dry_run,
            report.total_transactions,
            report.credits_skipped,
            report.duplicates_found,
            report.importable_count,
            report.imported_count,
        )
        return report

    def _commit(
        self,
        request: CapitalOneImportRequest,
        batch: list[CapitalOneExpensePreview],
        resolver: CategoryResolver,
        transactions: list[CapitalOneTransaction],
    ) -> int:
        effects = effects_for(dry_run=False, stores=self.stores)
        tags = TagResolver(
            self.stores.tags.list_for_user(request.user_id),
            user_id=request.user_id,
            effects=effects,
        )
        card_tag = tags.ensure(request.card_type, card_tag_color(request.card_type))
        tag_ids = (card_tag.id,) if card_tag is not None else ()
        by_row = {tx.row_number: tx for tx in transactions}

        imported = 0
        for preview in batch:
            default: CategoryRef = resolver.by_id(preview.mapped_category_id) or resolver.resolve(
                preview.mapped_category_name
            )
            category = resolver.with_override(
                default, preview.row_number, request.category_overrides
            )
            effects.create_expense(
                NewExpense(
                    user_id=request.user_id,
                    title=preview.description,
                    amount=preview.amount,
                    date=_utc_midnight(by_row[preview.row_number]),
                    category_id=category.id,
                    notes=(
                        f"Imported from Capital One {request.card_type}. "
                        f"Card ending in {preview.card_number}. "
                        f"Original category: {preview.capital_one_category}"
                    ),
                ),
                tag_ids,
            )
            imported += 1
        return imported


def _status_message(is_credit: bool, is_duplicate: bool) -> str | None:
    if is_credit:
        return CREDIT_MESSAGE
    if is_duplicate:
        return DUPLICATE_MESSAGE
    return None


def _utc_midnight(tx: CapitalOneTransaction) -> datetime:
    d = tx.transaction_date
    return datetime(d.year, d.month, d.day, tzinfo=UTC)


__all__ = [
    "CARD_TAG_COLORS",
    "DEFAULT_CARD_TAG_COLOR",
    "CapitalOneImportRequest",
    "CapitalOneImporter",
    "card_tag_color",
]
