"""Side-effect boundary between the importers and the stores.

Importers never call a store's write methods directly; they go through an
``ImportEffects`` object. :class:`DryRunEffects` holds no store at all, so a
dry run cannot persist expenses, snapshots, tags or audit records no matter
which code path the importer takes.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .logging_setup import get_logger
from .models import (
    ExistingExpense,
    ExistingSnapshot,
    ImportAuditSummary,
    NewExpense,
    NewSnapshot,
    TagRef,
)
from .persistence import Stores

logger = get_logger("finance_import.effects")


class ImportEffects(Protocol):
    dry_run: bool

    def create_expense(
        self, expense: NewExpense, tag_ids: Sequence[int] = ()
    ) -> ExistingExpense | None: ...

    def update_expense(self, expense: ExistingExpense) -> ExistingExpense | None: ...

    def create_snapshot(self, snapshot: NewSnapshot) -> ExistingSnapshot | None: ...

    def update_snapshot(self, snapshot: ExistingSnapshot) -> ExistingSnapshot | None: ...

    def create_tag(self, name: str, user_id: int, color: str) -> TagRef | None: ...

    def record_audit(self, summary: ImportAuditSummary) -> None: ...


class CommitEffects:
    dry_run = False

    def __init__(self, stores: Stores) -> None:
        self._stores = stores

    def create_expense(
        self, expense: NewExpense, tag_ids: Sequence[int] = ()
    ) -> ExistingExpense | None:
        return self._stores.expenses.create(expense, tag_ids)

    def update_expense(self, expense: ExistingExpense) -> ExistingExpense | None:
        return self._stores.expenses.update(expense)

    def create_snapshot(self, snapshot: NewSnapshot) -> ExistingSnapshot | None:
        return self._stores.snapshots.create(snapshot)

    def update_snapshot(self, snapshot: ExistingSnapshot) -> ExistingSnapshot | None:
        return self._stores.snapshots.update(snapshot)

    def create_tag(self, name: str, user_id: int, color: str) -> TagRef | None:
        tag = self._stores.tags.create(name, user_id, color)
        logger.info("effects:tag_created user_id=%d name=%r color=%s", user_id, name, color)
        return tag

    def record_audit(self, summary: ImportAuditSummary) -> None:
        """Append an audit record; failures are logged and never abort the import."""

        try:
            self._stores.audit.record(summary)
        except Exception as exc:
            logger.warning(
                "effects:audit_failed user_id=%d file=%r error=%s",
                summary.user_id,
                summary.file_name,
                exc,
                exc_info=True,
            )


class DryRunEffects:
    dry_run = True

    def create_expense(
        self, expense: NewExpense, tag_ids: Sequence[int] = ()
    ) -> ExistingExpense | None:
        return None

    def update_expense(self, expense: ExistingExpense) -> ExistingExpense | None:
        return None

    def create_snapshot(self, snapshot: NewSnapshot) -> ExistingSnapshot | None:
        return None

    def update_snapshot(self, snapshot: ExistingSnapshot) -> ExistingSnapshot | None:
        return None

    def create_tag(self, name: str, user_id: int, color: str) -> TagRef | None:
        return None

    def record_audit(self, summary: ImportAuditSummary) -> None:
        return None


def effects_for(*, dry_run: bool, stores: Stores) -> ImportEffects:
    return DryRunEffects() if dry_run else CommitEffects(stores)


__all__ = ["CommitEffects", "DryRunEffects", "ImportEffects", "effects_for"]
