"""Internal value types shared by the import pipelines.

These are plain frozen dataclasses that live for a single import call. The
JSON-facing report models are in :mod:`finance_import.reports`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum


class DuplicateStrategy(StrEnum):
    SKIP = "skip"
    UPDATE = "update"


class RowStatus(StrEnum):
    VALID = "valid"
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


def normalize_header(name: str) -> str:
    """Return the lookup key used for case-insensitive field access."""

    return name.strip().lower()


@dataclass(frozen=True, slots=True)
class ParsedRow:
    """One non-blank data row from a tabular upload.

    ``row_number`` is the 1-based physical position in the source (the header
    is row 1). ``fields`` is keyed by :func:`normalize_header`.
    """

    row_number: int
    fields: Mapping[str, str]

    def get(self, *names: str) -> str:
        """Return the first non-blank value among ``names`` (trimmed) or ``""``."""

        for name in names:
            value = self.fields.get(normalize_header(name))
            if value is not None and value.strip():
                return value.strip()
        return ""


# ---- Collaborator records ----------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryRef:
    id: int
    name: str
    # None marks a global category.
    user_id: int | None = None


@dataclass(frozen=True, slots=True)
class TagRef:
    id: int
    name: str
    color: str


@dataclass(frozen=True, slots=True)
class AssetRef:
    id: int
    name: str
    user_id: int
    is_liability: bool = False


@dataclass(frozen=True, slots=True)
class NewExpense:
    user_id: int
    title: str
    amount: Decimal
    date: datetime
    category_id: int
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class ExistingExpense:
    id: int
    user_id: int
    title: str
    amount: Decimal
    date: datetime
    category_id: int
    notes: str | None = None
    tag_ids: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class NewSnapshot:
    asset_id: int
    balance: Decimal
    date: datetime
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class ExistingSnapshot:
    id: int
    asset_id: int
    balance: Decimal
    date: datetime
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class ImportAuditSummary:
    user_id: int
    file_name: str
    total: int
    inserted: int
    updated: int
    skipped: int
    duplicate_strategy: str
    timezone: str | None = None
    external_batch_id: str | None = None
    errors_json: str | None = None


# ---- Validation results ------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RowRejection:
    """A row that failed validation; ``message`` is shown to the user verbatim."""

    message: str


@dataclass(frozen=True, slots=True)
class ValidatedExpenseRow:
    date_utc: datetime
    amount: Decimal
    category: CategoryRef
    title: str
    notes: str | None = None
    tag_names: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ValidatedBalanceRow:
    date_utc: datetime
    balance: Decimal
    notes: str | None = None
    # Only populated for multi-account uploads.
    account: str | None = None


@dataclass(frozen=True, slots=True)
class TagResolution:
    """Outcome of resolving a row's tag names.

    ``created`` lists names that were created during this call; ``missing``
    lists names that did not exist and were dropped because the run is a dry
    run.
    """

    tag_ids: tuple[int, ...] = ()
    created: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()


__all__ = [
    "AssetRef",
    "CategoryRef",
    "DuplicateStrategy",
    "ExistingExpense",
    "ExistingSnapshot",
    "ImportAuditSummary",
    "NewExpense",
    "NewSnapshot",
    "ParsedRow",
    "RowRejection",
    "RowStatus",
    "TagRef",
    "TagResolution",
    "ValidatedBalanceRow",
    "ValidatedExpenseRow",
    "normalize_header",
]
