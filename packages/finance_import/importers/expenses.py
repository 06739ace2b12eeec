"""Generic expense import from CSV/XLSX uploads.

Columns: ``Date, Amount, Category, Description (or Title), Notes, Tags``
(case-insensitive). Each row is validated, keyed by
``day|amount|category_id|title`` and then inserted, updated or skipped
according to the duplicate strategy. Dry runs produce the same report
without touching any store.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from zoneinfo import ZoneInfo

from ..config import DEFAULT_MAX_FILE_BYTES, DEFAULT_MAX_ROWS
from ..duplicates import DuplicateIndex, KeyStatus, expense_key
from ..effects import ImportEffects, effects_for
from ..errors import StructuralImportError
from ..ingest.tabular import parser_for
from ..logging_setup import get_logger
from ..models import (
    CategoryRef,
    DuplicateStrategy,
    ExistingExpense,
    ImportAuditSummary,
    NewExpense,
    ParsedRow,
    RowRejection,
    RowStatus,
    TagResolution,
)
from ..persistence import Stores
from ..reports import ImportRunReport
from ..tags import TagResolver
from ..validation import category_lookup, normalize_strategy, resolve_timezone, validate_expense_row
from .base import (
    IN_FILE_DUPLICATE_MESSAGE,
    check_upload,
    errors_json,
    limited_rows,
    record_row,
)

logger = get_logger("finance_import.importers.expenses")

DUPLICATE_SKIPPED_MESSAGE = "Duplicate detected. Skipped based on strategy."


@dataclass(frozen=True, slots=True)
class ExpenseImportRequest:
    user_id: int
    file_name: str
    content: bytes
    duplicate_strategy: str | None = DuplicateStrategy.SKIP
    timezone: str | None = None
    dry_run: bool = True
    external_batch_id: str | None = None


def _tag_preview(resolution: TagResolution, names: tuple[str, ...]) -> str:
    if not names:
        return ""
    text = f". Tags: {', '.join(names)}"
    if resolution.missing:
        text += f" (would create: {', '.join(resolution.missing)})"
    return text


@dataclass(slots=True)
class _RunContext:
    request: ExpenseImportRequest
    strategy: DuplicateStrategy
    tz: ZoneInfo | None
    categories: dict[str, CategoryRef]
    effects: ImportEffects
    tags: TagResolver
    index: DuplicateIndex[ExistingExpense]
    report: ImportRunReport


class ExpenseImporter:
    """Run expense imports against a bundle of :class:`Stores`."""

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

    def run(self, request: ExpenseImportRequest) -> ImportRunReport:
        """Import one upload and return the per-row report.

        Raises
        ------
        StructuralImportError
            For run-level problems (unknown timezone, empty/oversized/unsupported
            upload, unreadable file, no categories). Nothing is written then.
        """

        strategy = normalize_strategy(request.duplicate_strategy)
        tz = resolve_timezone(request.timezone)
        extension = check_upload(
            request.file_name, request.content, max_file_bytes=self.max_file_bytes
        )
        parser = parser_for(extension, request.content)

        categories = self.stores.categories.list_for_user(request.user_id)
        if not categories:
            raise StructuralImportError(
                "No categories exist. Create at least one category before importing."
            )

        effects = effects_for(dry_run=request.dry_run, stores=self.stores)
        ctx = _RunContext(
            request=request,
            strategy=strategy,
            tz=tz,
            categories=category_lookup(categories),
            effects=effects,
            tags=TagResolver(
                self.stores.tags.list_for_user(request.user_id),
                user_id=request.user_id,
                effects=effects,
            ),
            index=DuplicateIndex.build(
                self.stores.expenses.list_for_user(request.user_id),
                lambda e: expense_key(e.date, e.amount, e.category_id, e.title),
            ),
            report=ImportRunReport(
                file_name=request.file_name,
                dry_run=request.dry_run,
                duplicate_strategy=strategy.value,
                timezone=tz.key if tz else None,
            ),
        )
        logger.info(
            "expense_import:start user_id=%d file=%r dry_run=%s strategy=%s existing_keys=%d",
            request.user_id,
            request.file_name,
            request.dry_run,
            strategy.value,
            len(ctx.index),
        )

        for row in limited_rows(
            parser.rows(), ctx.report, max_rows=self.max_rows, event="expense_import"
        ):
            self._process_row(ctx, row)

        report = ctx.report
        if not request.dry_run:
            effects.record_audit(
                ImportAuditSummary(
                    user_id=request.user_id,
                    file_name=request.file_name,
                    total=report.total_rows,
                    inserted=report.inserted,
                    updated=report.updated,
                    skipped=report.skipped,
                    duplicate_strategy=strategy.value,
                    timezone=report.timezone,
                    external_batch_id=request.external_batch_id,
                    errors_json=errors_json(report),
                )
            )
        logger.info(
            "expense_import:done user_id=%d total=%d inserted=%d updated=%d skipped=%d errors=%d",
            request.user_id,
            report.total_rows,
            report.inserted,
            report.updated,
            report.skipped,
            report.errors,
        )
        return report

    def _resolve_tags(
        self, ctx: _RunContext, row_number: int, names: tuple[str, ...]
    ) -> TagResolution:
        resolution = ctx.tags.resolve(names)
        if resolution.created:
            logger.info(
                "expense_import:tags_created user_id=%d row=%d names=%s",
                ctx.request.user_id,
                row_number,
                ",".join(resolution.created),
            )
        return resolution

    def _process_row(self, ctx: _RunContext, row: ParsedRow) -> None:
        result = validate_expense_row(row, ctx.categories, ctx.tz)
        if isinstance(result, RowRejection):
            record_row(ctx.report, row.row_number, RowStatus.ERROR, result.message)
            return

        key = expense_key(result.date_utc, result.amount, result.category.id, result.title)
        status = ctx.index.classify(key)

        if status is KeyStatus.IN_RUN:
            record_row(ctx.report, row.row_number, RowStatus.SKIPPED, IN_FILE_DUPLICATE_MESSAGE)
            return

        if status is KeyStatus.EXISTING:
            existing = ctx.index.match(key)
            if ctx.strategy is not DuplicateStrategy.UPDATE or existing is None:
                record_row(ctx.report, row.row_number, RowStatus.SKIPPED, DUPLICATE_SKIPPED_MESSAGE)
                return
            resolution = self._resolve_tags(ctx, row.row_number, result.tag_names)
            ctx.effects.update_expense(
                replace(
                    existing,
                    title=result.title,
                    amount=result.amount,
                    date=result.date_utc,
                    category_id=result.category.id,
                    notes=result.notes,
                    tag_ids=resolution.tag_ids,
                )
            )
            # One file never touches the same stored expense twice.
            ctx.index.insert(key)
            if ctx.effects.dry_run:
                message = "Would update existing expense" + _tag_preview(
                    resolution, result.tag_names
                )
            else:
                message = "Updated existing expense"
            record_row(ctx.report, row.row_number, RowStatus.UPDATED, message)
            return

        resolution = self._resolve_tags(ctx, row.row_number, result.tag_names)
        ctx.effects.create_expense(
            NewExpense(
                user_id=ctx.request.user_id,
                title=result.title,
                amount=result.amount,
                date=result.date_utc,
                category_id=result.category.id,
                notes=result.notes,
            ),
            resolution.tag_ids,
        )
        ctx.index.insert(key)
        if ctx.effects.dry_run:
            record_row(
                ctx.report,
                row.row_number,
                RowStatus.VALID,
                "Valid row" + _tag_preview(resolution, result.tag_names),
            )
        else:
            record_row(ctx.report, row.row_number, RowStatus.INSERTED, "Inserted")


__all__ = ["DUPLICATE_SKIPPED_MESSAGE", "ExpenseImportRequest", "ExpenseImporter"]
