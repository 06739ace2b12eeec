"""Pydantic models for everything an import returns to a caller.

All models serialize with camelCase aliases (``model_dump(by_alias=True)``)
so the HTTP layer and the CLI emit the same JSON shape.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from .models import RowStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RowResult(_CamelModel):
    row_number: int
    status: RowStatus
    message: str


class ImportRunReport(_CamelModel):
    """Outcome of a generic expense or balance import run."""

    file_name: str
    dry_run: bool
    duplicate_strategy: str
    timezone: str | None = None
    total_rows: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    rows: list[RowResult] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def errors(self) -> int:
        return sum(1 for r in self.rows if r.status == RowStatus.ERROR)


class CategoryOption(_CamelModel):
    id: int
    name: str


class CapitalOneExpensePreview(_CamelModel):
    row_number: int
    transaction_date: date
    posted_date: date
    card_number: str
    description: str
    capital_one_category: str
    # Amount that would be imported (after any split).
    amount: Decimal
    mapped_category_id: int
    mapped_category_name: str
    is_credit: bool = False
    is_duplicate: bool = False
    status_message: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_import(self) -> bool:
        return not self.is_credit and not self.is_duplicate and self.amount > 0


class CapitalOneImportReport(_CamelModel):
    dry_run: bool
    card_type: str
    file_name: str
    total_transactions: int = 0
    credits_skipped: int = 0
    duplicates_found: int = 0
    importable_count: int = 0
    imported_count: int = 0
    total_amount: Decimal = Decimal("0.00")
    expenses: list[CapitalOneExpensePreview] = Field(default_factory=list)
    available_categories: list[CategoryOption] = Field(default_factory=list)


class SplitwiseExpensePreview(_CamelModel):
    id: int
    description: str
    total_cost: Decimal
    user_owes: Decimal
    date: datetime
    splitwise_category: str | None = None
    mapped_category_id: int
    mapped_category_name: str
    paid_by: str | None = None
    is_payment: bool = False
    is_duplicate: bool = False
    status_message: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_import(self) -> bool:
        return not self.is_payment and not self.is_duplicate and self.user_owes > 0


class SplitwiseImportReport(_CamelModel):
    dry_run: bool
    group_name: str
    user_name: str
    start_date: date | None = None
    end_date: date | None = None
    total_expenses: int = 0
    payments_ignored: int = 0
    duplicates_found: int = 0
    importable_count: int = 0
    imported_count: int = 0
    total_amount: Decimal = Decimal("0.00")
    expenses: list[SplitwiseExpensePreview] = Field(default_factory=list)
    available_categories: list[CategoryOption] = Field(default_factory=list)


class SplitwiseMember(_CamelModel):
    id: int
    first_name: str = ""
    last_name: str | None = None
    email: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_name(self) -> str:
        if not self.last_name or not self.last_name.strip():
            return self.first_name
        return f"{self.first_name} {self.last_name}"


class SplitwiseGroup(_CamelModel):
    id: int
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    members: list[SplitwiseMember] = Field(default_factory=list)


class SplitwiseStatus(_CamelModel):
    is_configured: bool
    user: SplitwiseMember | None = None


__all__ = [
    "CapitalOneExpensePreview",
    "CapitalOneImportReport",
    "CategoryOption",
    "ImportRunReport",
    "RowResult",
    "SplitwiseExpensePreview",
    "SplitwiseGroup",
    "SplitwiseImportReport",
    "SplitwiseMember",
    "SplitwiseStatus",
]
