# ruff: noqa: I001
"""Collaborator interfaces used by the importers and their SQLAlchemy backing.

The importers only see the narrow ``*Store`` protocols below. The ``Sql*``
classes implement them over the shared ``db`` models; they flush but never
commit, so the caller's ``session_scope`` decides the transaction outcome.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from db.models.finance import (
    FiAsset,
    FiAssetSnapshot,
    FiCategory,
    FiExpense,
    FiImportAudit,
    FiTag,
)
from .models import (
    AssetRef,
    CategoryRef,
    ExistingExpense,
    ExistingSnapshot,
    ImportAuditSummary,
    NewExpense,
    NewSnapshot,
    TagRef,
)
from .validation import as_utc


class CategoryStore(Protocol):
    def list_for_user(self, user_id: int) -> list[CategoryRef]: ...


class TagStore(Protocol):
    def list_for_user(self, user_id: int) -> list[TagRef]: ...

    def create(self, name: str, user_id: int, color: str) -> TagRef: ...


class ExpenseStore(Protocol):
    def list_for_user(self, user_id: int) -> list[ExistingExpense]: ...

    def create(self, expense: NewExpense, tag_ids: Sequence[int] = ()) -> ExistingExpense: ...

    def update(self, expense: ExistingExpense) -> ExistingExpense: ...


class SnapshotStore(Protocol):
    def list_for_asset(self, asset_id: int) -> list[ExistingSnapshot]: ...

    def create(self, snapshot: NewSnapshot) -> ExistingSnapshot: ...

    def update(self, snapshot: ExistingSnapshot) -> ExistingSnapshot: ...


class AssetStore(Protocol):
    def get(self, asset_id: int, user_id: int) -> AssetRef | None: ...

    def list_for_user(self, user_id: int) -> list[AssetRef]: ...


class AuditLog(Protocol):
    def record(self, summary: ImportAuditSummary) -> None: ...


@dataclass(frozen=True, slots=True)
class Stores:
    """Bundle of collaborators handed to an importer."""

    categories: CategoryStore
    tags: TagStore
    expenses: ExpenseStore
    snapshots: SnapshotStore
    assets: AssetStore
    audit: AuditLog


# ---- SQLAlchemy implementations ------------------------------------------------


def _category_ref(row: FiCategory) -> CategoryRef:
    return CategoryRef(id=row.id, name=row.name, user_id=row.user_id)


def _tag_ref(row: FiTag) -> TagRef:
    return TagRef(id=row.id, name=row.name, color=row.color)


def _expense(row: FiExpense) -> ExistingExpense:
    return ExistingExpense(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        amount=row.amount,
        date=as_utc(row.date),
        category_id=row.category_id,
        notes=row.description,
        tag_ids=tuple(t.id for t in row.tags),
    )


def _snapshot(row: FiAssetSnapshot) -> ExistingSnapshot:
    return ExistingSnapshot(
        id=row.id,
        asset_id=row.asset_id,
        balance=row.balance,
        date=as_utc(row.date),
        notes=row.notes,
    )


def _asset_ref(row: FiAsset) -> AssetRef:
    return AssetRef(id=row.id, name=row.name, user_id=row.user_id, is_liability=row.is_liability)


class SqlCategoryStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_user(self, user_id: int) -> list[CategoryRef]:
        """User-owned plus global categories, oldest first."""

        stmt = (
            select(FiCategory)
            .where(or_(FiCategory.user_id == user_id, FiCategory.user_id.is_(None)))
            .order_by(FiCategory.id)
        )
        return [_category_ref(c) for c in self.session.scalars(stmt)]


class SqlTagStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_user(self, user_id: int) -> list[TagRef]:
        stmt = select(FiTag).where(FiTag.user_id == user_id).order_by(FiTag.id)
        return [_tag_ref(t) for t in self.session.scalars(stmt)]

    def create(self, name: str, user_id: int, color: str) -> TagRef:
        row = FiTag(name=name, user_id=user_id, color=color)
        self.session.add(row)
        self.session.flush()
        return _tag_ref(row)


class SqlExpenseStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _tags(self, tag_ids: Sequence[int]) -> list[FiTag]:
        if not tag_ids:
            return []
        rows = {t.id: t for t in self.session.scalars(select(FiTag).where(FiTag.id.in_(tag_ids)))}
        return [rows[i] for i in tag_ids if i in rows]

    def list_for_user(self, user_id: int) -> list[ExistingExpense]:
        stmt = select(FiExpense).where(FiExpense.user_id == user_id).order_by(FiExpense.id)
        return [_expense(e) for e in self.session.scalars(stmt)]

    def create(self, expense: NewExpense, tag_ids: Sequence[int] = ()) -> ExistingExpense:
        row = FiExpense(
            user_id=expense.user_id,
            title=expense.title,
            description=expense.notes,
            amount=expense.amount,
            date=expense.date,
            category_id=expense.category_id,
        )
        row.tags = self._tags(tag_ids)
        self.session.add(row)
        self.session.flush()
        return _expense(row)

    def update(self, expense: ExistingExpense) -> ExistingExpense:
        row = self.session.get(FiExpense, expense.id)
        if row is None:
            raise LookupError(f"expense {expense.id} no longer exists")
        row.title = expense.title
        row.description = expense.notes
        row.amount = expense.amount
        row.date = expense.date
        row.category_id = expense.category_id
        row.tags = self._tags(expense.tag_ids)
        self.session.flush()
        return _expense(row)


class SqlSnapshotStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_asset(self, asset_id: int) -> list[ExistingSnapshot]:
        stmt = (
            select(FiAssetSnapshot)
            .where(FiAssetSnapshot.asset_id == asset_id)
            .order_by(FiAssetSnapshot.id)
        )
        return [_snapshot(s) for s in self.session.scalars(stmt)]

    def create(self, snapshot: NewSnapshot) -> ExistingSnapshot:
        row = FiAssetSnapshot(
            asset_id=snapshot.asset_id,
            balance=snapshot.balance,
            date=snapshot.date,
            notes=snapshot.notes,
        )
        self.session.add(row)
        self.session.flush()
        return _snapshot(row)

    def update(self, snapshot: ExistingSnapshot) -> ExistingSnapshot:
        row = self.session.get(FiAssetSnapshot, snapshot.id)
        if row is None:
            raise LookupError(f"snapshot {snapshot.id} no longer exists")
        row.balance = snapshot.balance
        row.date = snapshot.date
        row.notes = snapshot.notes
        self.session.flush()
        return _snapshot(row)


class SqlAssetStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, asset_id: int, user_id: int) -> AssetRef | None:
        row = self.session.get(FiAsset, asset_id)
        if row is None or row.user_id != user_id:
            return None
        return _asset_ref(row)

    def list_for_user(self, user_id: int) -> list[AssetRef]:
        stmt = select(FiAsset).where(FiAsset.user_id == user_id).order_by(FiAsset.id)
        return [_asset_ref(a) for a in self.session.scalars(stmt)]


class SqlAuditLog:
    def __init__(self, session: Session) -> None:
        self.session = session

    def record(self, summary: ImportAuditSummary) -> None:
        # Savepoint: a failed audit insert must not poison the import transaction.
        with self.session.begin_nested():
            self.session.add(
                FiImportAudit(
                    user_id=summary.user_id,
                    file_name=summary.file_name,
                    total=summary.total,
                    inserted=summary.inserted,
                    updated=summary.updated,
                    skipped=summary.skipped,
                    duplicate_strategy=summary.duplicate_strategy,
                    timezone=summary.timezone,
                    external_batch_id=summary.external_batch_id,
                    errors_json=summary.errors_json,
                )
            )


def sql_stores(session: Session) -> Stores:
    """Return SQLAlchemy-backed collaborators sharing one ``session``."""

    return Stores(
        categories=SqlCategoryStore(session),
        tags=SqlTagStore(session),
        expenses=SqlExpenseStore(session),
        snapshots=SqlSnapshotStore(session),
        assets=SqlAssetStore(session),
        audit=SqlAuditLog(session),
    )


__all__ = [
    "AssetStore",
    "AuditLog",
    "CategoryStore",
    "ExpenseStore",
    "SnapshotStore",
    "SqlAssetStore",
    "SqlAuditLog",
    "SqlCategoryStore",
    "SqlExpenseStore",
    "SqlSnapshotStore",
    "SqlTagStore",
    "Stores",
    "TagStore",
    "sql_stores",
]
