"""Composite duplicate keys and the per-run duplicate index.

Keys are built by the same pure functions from persisted records and from
incoming rows, so a record written by one run is recognized by the next.

Key shapes
----------
- generic expense import: ``day|amount|category_id|title``
- Capital One / Splitwise: ``day|amount|title``
- balance snapshots: ``asset_id|day``

``day`` is the UTC calendar date (``YYYY-MM-DD``), ``amount`` is the value
rounded half-up to two decimals and ``title`` is trimmed and lower-cased.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Generic, TypeVar

from .validation import as_utc, round_money

T = TypeVar("T")


def _day(value: datetime) -> str:
    return as_utc(value).date().isoformat()


def _amount(value: Decimal | int | float | str) -> str:
    return f"{round_money(Decimal(str(value))):.2f}"


def _title(value: str | None) -> str:
    return (value or "").strip().lower()


def expense_key(date: datetime, amount: Decimal, category_id: int, title: str | None) -> str:
    return f"{_day(date)}|{_amount(amount)}|{category_id}|{_title(title)}"


def transaction_key(date: datetime, amount: Decimal, title: str | None) -> str:
    return f"{_day(date)}|{_amount(amount)}|{_title(title)}"


def snapshot_key(asset_id: int, date: datetime) -> str:
    return f"{asset_id}|{_day(date)}"


class KeyStatus(StrEnum):
    NEW = "new"
    # Matches a record that existed before this run.
    EXISTING = "existing"
    # Matches a key registered earlier in this run.
    IN_RUN = "in_run"

    @property
    def is_duplicate(self) -> bool:
        return self is not KeyStatus.NEW


class DuplicateIndex(Generic[T]):
    """Keys of persisted records plus keys registered during the current run.

    Only persisted records are update candidates (:meth:`match`); keys from
    :meth:`insert` block later rows but never resolve to a record.
    """

    def __init__(self) -> None:
        self._persisted: dict[str, T] = {}
        self._run_keys: set[str] = set()

    @classmethod
    def build(cls, records: Iterable[T], key_fn: Callable[[T], str]) -> DuplicateIndex[T]:
        index: DuplicateIndex[T] = cls()
        for record in records:
            # First persisted record for a key is the one an update overwrites.
            index._persisted.setdefault(key_fn(record), record)
        return index

    def classify(self, key: str) -> KeyStatus:
        if key in self._run_keys:
            return KeyStatus.IN_RUN
        if key in self._persisted:
            return KeyStatus.EXISTING
        return KeyStatus.NEW

    def match(self, key: str) -> T | None:
        return self._persisted.get(key)

    def insert(self, key: str) -> None:
        self._run_keys.add(key)

    def __contains__(self, key: object) -> bool:
        return key in self._run_keys or key in self._persisted

    def __len__(self) -> int:
        return len(self._run_keys | self._persisted.keys())


__all__ = [
    "DuplicateIndex",
    "KeyStatus",
    "expense_key",
    "snapshot_key",
    "transaction_key",
]
