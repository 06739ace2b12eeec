"""Splitwise group preview/import.

For one group member, each expense in the window becomes a preview entry for
that member's owed share. Deleted expenses and expenses the member owes
nothing on are left out; settle-up payments are listed but never imported.
A commit tags every imported expense with ``splitwise``.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Protocol

from ..categories import SPLITWISE_RULES, CategoryResolver, map_external_category
from ..duplicates import DuplicateIndex, transaction_key
from ..effects import effects_for
from ..errors import StructuralImportError
from ..ingest.adapters.splitwise_api import SplitwiseApiExpense, SplitwiseApiGroup, SplitwiseApiUser
from ..logging_setup import get_logger
from ..models import NewExpense
from ..persistence import Stores
from ..reports import (
    CategoryOption,
    SplitwiseExpensePreview,
    SplitwiseGroup,
    SplitwiseImportReport,
    SplitwiseMember,
)
from ..tags import TagResolver
from ..validation import as_utc, parse_decimal, round_money

logger = get_logger("finance_import.importers.splitwise")

SPLITWISE_TAG_NAME = "splitwise"
SPLITWISE_TAG_COLOR = "#1CC29F"
DEFAULT_DESCRIPTION = "Splitwise Expense"

PAYMENT_MESSAGE = "Payment - will be ignored"
DUPLICATE_MESSAGE = "Duplicate found in your expenses"


class SplitwiseSource(Protocol):
    def get_current_user(self) -> SplitwiseApiUser | None: ...

    def get_groups(self) -> list[SplitwiseApiGroup]: ...

    def get_group(self, group_id: int) -> SplitwiseApiGroup | None: ...

    def get_expenses(
        self, group_id: int, *, start_date: date | None = None, end_date: date | None = None
    ) -> list[SplitwiseApiExpense]: ...


@dataclass(frozen=True, slots=True)
class SplitwiseImportRequest:
    user_id: int
    group_id: int
    splitwise_user_id: int
    start_date: date | None = None
    end_date: date | None = None
    dry_run: bool = True
    # None (or empty) means "every importable expense".
    selected_expense_ids: Collection[int] | None = None
    category_overrides: Mapping[int, int] | None = None


def to_member(user: SplitwiseApiUser) -> SplitwiseMember:
    return SplitwiseMember(
        id=user.id,
        first_name=user.first_name or "",
        last_name=user.last_name,
        email=user.email,
    )


def to_group(group: SplitwiseApiGroup) -> SplitwiseGroup:
    return SplitwiseGroup(
        id=group.id,
        name=group.name or "Unknown Group",
        created_at=group.created_at,
        updated_at=group.updated_at,
        members=[to_member(m) for m in group.members],
    )


def _amount(raw: str | None) -> Decimal:
    value = parse_decimal(raw)
    return value if value is not None else Decimal("0")


def _status_message(is_payment: bool, is_duplicate: bool) -> str | None:
    if is_payment:
        return PAYMENT_MESSAGE
    if is_duplicate:
        return DUPLICATE_MESSAGE
    return None


def _day(value: datetime) -> datetime:
    utc = as_utc(value)
    return datetime(utc.year, utc.month, utc.day, tzinfo=UTC)


class SplitwiseImporter:
    def __init__(self, stores: Stores, source: SplitwiseSource) -> None:
        self.stores = stores
        self.source = source

    def run(self, request: SplitwiseImportRequest) -> SplitwiseImportReport:
        """Preview (``dry_run``) or import one member's share of a group's expenses.

        Raises
        ------
        StructuralImportError
            For a missing group or member id, or when the user has no categories.
        httpx.HTTPError
            When Splitwise rejects or fails a request.
        """

        if request.group_id <= 0:
            raise StructuralImportError("Group ID is required")
        if request.splitwise_user_id <= 0:
            raise StructuralImportError("Splitwise user ID is required")

        group = self.source.get_group(request.group_id)
        group_name = (group.name if group else None) or "Unknown Group"
        members = {m.id: m for m in group.members} if group else {}
        selected_member = members.get(request.splitwise_user_id)
        user_name = to_member(selected_member).display_name if selected_member else "Unknown User"

        expenses = self.source.get_expenses(
            request.group_id, start_date=request.start_date, end_date=request.end_date
        )
        report = SplitwiseImportReport(
            dry_run=request.dry_run,
            group_name=group_name,
            user_name=user_name,
            start_date=request.start_date,
            end_date=request.end_date,
        )
        categories = self.stores.categories.list_for_user(request.user_id)
        if not expenses:
            report.available_categories = [CategoryOption(id=c.id, name=c.name) for c in categories]
            logger.info(
                "splitwise_import:empty user_id=%d group_id=%d", request.user_id, request.group_id
            )
            return report

        resolver = CategoryResolver(categories)
        index = DuplicateIndex.build(
            self.stores.expenses.list_for_user(request.user_id),
            lambda e: transaction_key(e.date, e.amount, e.title),
        )

        previews: list[SplitwiseExpensePreview] = []
        for expense in expenses:
            if expense.deleted_at is not None:
                continue
            share = next((u for u in expense.users if u.user_id == request.splitwise_user_id), None)
            owed = round_money(_amount(share.owed_share if share else None))
            if owed <= 0:
                continue

            is_payment = bool(expense.payment)
            expense_date = expense.date or datetime.now(UTC)
            description = expense.description or DEFAULT_DESCRIPTION
            payer = next((u for u in expense.users if _amount(u.paid_share) > 0), None)
            payer_member = members.get(payer.user_id) if payer else None
            paid_by = (payer_member.first_name if payer_member else None) or "Unknown"
            category_name = expense.category.name if expense.category else None
            mapped = resolver.resolve(map_external_category(category_name, SPLITWISE_RULES))

            is_duplicate = index.classify(
                transaction_key(expense_date, owed, description)
            ).is_duplicate
            if is_payment:
                report.payments_ignored += 1
            elif is_duplicate:
                report.duplicates_found += 1

            previews.append(
                SplitwiseExpensePreview(
                    id=expense.id,
                    description=description,
                    total_cost=round_money(_amount(expense.cost)),
                    user_owes=owed,
                    date=as_utc(expense_date),
                    splitwise_category=category_name,
                    mapped_category_id=mapped.id,
                    mapped_category_name=mapped.name,
                    paid_by=paid_by,
                    is_payment=is_payment,
                    is_duplicate=is_duplicate,
                    status_message=_status_message(is_payment, is_duplicate),
                )
            )

        batch = [p for p in previews if p.can_import]
        if request.selected_expense_ids:
            selected = set(request.selected_expense_ids)
            batch = [p for p in batch if p.id in selected]

        report.expenses = previews
        report.total_expenses = len(previews)
        report.importable_count = len(batch)
        report.total_amount = round_money(sum((p.user_owes for p in batch), Decimal("0")))
        report.available_categories = [
            CategoryOption(id=c.id, name=c.name) for c in resolver.categories
        ]

        if not request.dry_run and batch:
            report.imported_count = self._commit(request, batch, resolver, group_name)

        logger.info(
            "splitwise_import:done user_id=%d group_id=%d dry_run=%s total=%d payments=%d "
            "duplicates=%d importable=%d imported=%d",
            request.user_id,
            request.group_id,
            request.dry_run,
            report.total_expenses,
            report.payments_ignored,
            report.duplicates_found,
            report.importable_count,
            report.imported_count,
        )
        return report

    def _commit(
        self,
        request: SplitwiseImportRequest,
        batch: list[SplitwiseExpensePreview],
        resolver: CategoryResolver,
        group_name: str,
    ) -> int:
        effects = effects_for(dry_run=False, stores=self.stores)
        tags = TagResolver(
            self.stores.tags.list_for_user(request.user_id),
            user_id=request.user_id,
            effects=effects,
        )
        tag = tags.ensure(SPLITWISE_TAG_NAME, SPLITWISE_TAG_COLOR)
        tag_ids = (tag.id,) if tag is not None else ()

        imported = 0
        for preview in batch:
            default = resolver.by_id(preview.mapped_category_id) or resolver.resolve(
                preview.mapped_category_name
            )
            category = resolver.with_override(default, preview.id, request.category_overrides)
            effects.create_expense(
                NewExpense(
                    user_id=request.user_id,
                    title=preview.description,
                    amount=preview.user_owes,
                    date=_day(preview.date),
                    category_id=category.id,
                    notes=(
                        f"Imported from Splitwise group: {group_name}. "
                        f"Paid by: {preview.paid_by}. "
                        f"Total cost: ${preview.total_cost:,.2f}"
                    ),
                ),
                tag_ids,
            )
            imported += 1
        return imported


__all__ = [
    "SPLITWISE_TAG_COLOR",
    "SPLITWISE_TAG_NAME",
    "SplitwiseImportRequest",
    "SplitwiseImporter",
    "SplitwiseSource",
    "to_group",
    "to_member",
]
