"""Balance snapshot imports for one asset or for many accounts at once.

Single-asset uploads carry ``Date, Balance, Notes``; multi-account uploads add
an ``Account`` column matched case-insensitively against the user's assets.
Snapshots are keyed by ``asset_id|day`` so each account holds at most one
imported balance per UTC day.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from zoneinfo import ZoneInfo

from ..config import DEFAULT_MAX_FILE_BYTES, DEFAULT_MAX_ROWS
from ..duplicates import DuplicateIndex, KeyStatus, snapshot_key
from ..effects import ImportEffects, effects_for
from ..errors import StructuralImportError
from ..ingest.tabular import TabularParser, parser_for
from ..logging_setup import get_logger
from ..models import (
    AssetRef,
    DuplicateStrategy,
    ExistingSnapshot,
    NewSnapshot,
    ParsedRow,
    RowRejection,
    RowStatus,
    ValidatedBalanceRow,
)
from ..persistence import Stores
from ..reports import ImportRunReport
from ..validation import normalize_strategy, resolve_timezone, validate_balance_row
from .base import IN_FILE_DUPLICATE_MESSAGE, check_upload, limited_rows, record_row

logger = get_logger("finance_import.importers.balances")


@dataclass(frozen=True, slots=True)
class BalanceImportRequest:
    user_id: int
    asset_id: int
    file_name: str
    content: bytes
    duplicate_strategy: str | None = DuplicateStrategy.SKIP
    timezone: str | None = None
    dry_run: bool = True


@dataclass(frozen=True, slots=True)
class BulkBalanceImportRequest:
    user_id: int
    file_name: str
    content: bytes
    duplicate_strategy: str | None = DuplicateStrategy.SKIP
    timezone: str | None = None
    dry_run: bool = True


@dataclass(frozen=True, slots=True)
class _Messages:
    """Row messages; multi-account runs name the account in each one."""

    valid: str
    inserted: str
    would_update: str
    updated: str
    skipped: str

    @classmethod
    def single(cls) -> _Messages:
        return cls(
            valid="Valid row",
            inserted="Inserted",
            would_update="Would update existing balance",
            updated="Updated existing balance",
            skipped="Duplicate date detected. Skipped based on strategy.",
        )

    @classmethod
    def for_account(cls, name: str) -> _Messages:
        return cls(
            valid=f"Valid row for {name}",
            inserted=f"Inserted for {name}",
            would_update=f"Would update balance for {name}",
            updated=f"Updated balance for {name}",
            skipped=f"Duplicate date for {name}. Skipped based on strategy.",
        )


class BalanceImporter:
    def __init__(
        self,
        stores: Stores,
        *,
        max_rows: int = DEFAULT_MAX_ROWS,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    ) -> None:
        self.stores = stores
        self.max_rows = max_rows
        self.max_file_bytes = max_file_bytes
        self._indexes: dict[int, DuplicateIndex[ExistingSnapshot]] = {}

    def _prepare(
        self, file_name: str, content: bytes, strategy: str | None, timezone: str | None
    ) -> tuple[DuplicateStrategy, ZoneInfo | None, TabularParser]:
        normalized = normalize_strategy(strategy)
        tz = resolve_timezone(timezone)
        extension = check_upload(file_name, content, max_file_bytes=self.max_file_bytes)
        return normalized, tz, parser_for(extension, content)

    def _index_for(self, asset_id: int) -> DuplicateIndex[ExistingSnapshot]:
        index = self._indexes.get(asset_id)
        if index is None:
            index = DuplicateIndex.build(
                self.stores.snapshots.list_for_asset(asset_id),
                lambda s: snapshot_key(s.asset_id, s.date),
            )
            self._indexes[asset_id] = index
        return index

    def run(self, request: BalanceImportRequest) -> ImportRunReport:
        """Import snapshots for a single asset owned by ``request.user_id``."""

        strategy, tz, parser = self._prepare(
            request.file_name, request.content, request.duplicate_strategy, request.timezone
        )
        asset = self.stores.assets.get(request.asset_id, request.user_id)
        if asset is None:
            raise StructuralImportError("Asset not found.")

        self._indexes = {}
        effects = effects_for(dry_run=request.dry_run, stores=self.stores)
        report = ImportRunReport(
            file_name=request.file_name,
            dry_run=request.dry_run,
            duplicate_strategy=strategy.value,
            timezone=tz.key if tz else None,
        )
        messages = _Messages.single()
        logger.info(
            "balance_import:start user_id=%d asset_id=%d file=%r dry_run=%s strategy=%s",
            request.user_id,
            asset.id,
            request.file_name,
            request.dry_run,
            strategy.value,
        )

        def validate(row: ParsedRow) -> ValidatedBalanceRow | RowRejection:
            return validate_balance_row(row, tz)

        self._run_rows(
            parser,
            report,
            validate=validate,
            asset_for=lambda _row: asset,
            strategy=strategy,
            effects=effects,
            messages_for=lambda _asset: messages,
            event="balance_import",
        )
        self._log_done("balance_import", request.user_id, report)
        return report

    def run_bulk(self, request: BulkBalanceImportRequest) -> ImportRunReport:
        """Import snapshots for several accounts named in an ``Account`` column."""

        strategy, tz, parser = self._prepare(
            request.file_name, request.content, request.duplicate_strategy, request.timezone
        )
        assets_by_name: dict[str, AssetRef] = {}
        for asset in self.stores.assets.list_for_user(request.user_id):
            assets_by_name.setdefault(asset.name.strip().lower(), asset)

        self._indexes = {}
        effects = effects_for(dry_run=request.dry_run, stores=self.stores)
        report = ImportRunReport(
            file_name=request.file_name,
            dry_run=request.dry_run,
            duplicate_strategy=strategy.value,
            timezone=tz.key if tz else None,
        )
        logger.info(
            "bulk_balance_import:start user_id=%d file=%r dry_run=%s strategy=%s accounts=%d",
            request.user_id,
            request.file_name,
            request.dry_run,
            strategy.value,
            len(assets_by_name),
        )

        def validate(row: ParsedRow) -> ValidatedBalanceRow | RowRejection:
            return validate_balance_row(row, tz, require_account=True)

        def asset_for(validated: ValidatedBalanceRow) -> AssetRef | None:
            return assets_by_name.get((validated.account or "").lower())

        self._run_rows(
            parser,
            report,
            validate=validate,
            asset_for=asset_for,
            strategy=strategy,
            effects=effects,
            messages_for=lambda asset: _Messages.for_account(asset.name),
            event="bulk_balance_import",
        )
        self._log_done("bulk_balance_import", request.user_id, report)
        return report

    def _run_rows(
        self,
        parser: TabularParser,
        report: ImportRunReport,
        *,
        validate: Callable[[ParsedRow], ValidatedBalanceRow | RowRejection],
        asset_for: Callable[[ValidatedBalanceRow], AssetRef | None],
        strategy: DuplicateStrategy,
        effects: ImportEffects,
        messages_for: Callable[[AssetRef], _Messages],
        event: str,
    ) -> None:
        for row in limited_rows(parser.rows(), report, max_rows=self.max_rows, event=event):
            result = validate(row)
            if isinstance(result, RowRejection):
                record_row(report, row.row_number, RowStatus.ERROR, result.message)
                continue

            asset = asset_for(result)
            if asset is None:
                record_row(
                    report,
                    row.row_number,
                    RowStatus.ERROR,
                    f"Account '{result.account}' not found. "
                    "Please create the account first or check the spelling.",
                )
                continue

            messages = messages_for(asset)
            index = self._index_for(asset.id)
            key = snapshot_key(asset.id, result.date_utc)
            status = index.classify(key)

            if status is KeyStatus.IN_RUN:
                record_row(report, row.row_number, RowStatus.SKIPPED, IN_FILE_DUPLICATE_MESSAGE)
                continue

            if status is KeyStatus.EXISTING:
                existing = index.match(key)
                if strategy is not DuplicateStrategy.UPDATE or existing is None:
                    record_row(report, row.row_number, RowStatus.SKIPPED, messages.skipped)
                    continue
                effects.update_snapshot(
                    replace(
                        existing, balance=result.balance, date=result.date_utc, notes=result.notes
                    )
                )
                index.insert(key)
                record_row(
                    report,
                    row.row_number,
                    RowStatus.UPDATED,
                    messages.would_update if effects.dry_run else messages.updated,
                )
                continue

            effects.create_snapshot(
                NewSnapshot(
                    asset_id=asset.id,
                    balance=result.balance,
                    date=result.date_utc,
                    notes=result.notes,
                )
            )
            index.insert(key)
            if effects.dry_run:
                record_row(report, row.row_number, RowStatus.VALID, messages.valid)
            else:
                record_row(report, row.row_number, RowStatus.INSERTED, messages.inserted)

    @staticmethod
    def _log_done(event: str, user_id: int, report: ImportRunReport) -> None:
        logger.info(
            "%s:done user_id=%d total=%d inserted=%d updated=%d skipped=%d errors=%d",
            event,
            user_id,
            report.total_rows,
            report.inserted,
            report.updated,
            report.skipped,
            report.errors,
        )


__all__ = ["BalanceImportRequest", "BalanceImporter", "BulkBalanceImportRequest"]
