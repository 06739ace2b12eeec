"""Pieces shared by the file-based importers (upload checks and row tallies)."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator

from ..config import DEFAULT_MAX_FILE_BYTES
from ..errors import StructuralImportError
from ..ingest.tabular import SUPPORTED_EXTENSIONS, file_extension
from ..logging_setup import get_logger
from ..models import ParsedRow, RowStatus
from ..reports import ImportRunReport, RowResult

logger = get_logger("finance_import.importers")

IN_FILE_DUPLICATE_MESSAGE = "Duplicate of an earlier row in this file. Skipped."


def check_upload(
    file_name: str, content: bytes, *, max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
) -> str:
    """Reject empty, oversized or unsupported uploads; return the extension.

    Raises
    ------
    StructuralImportError
        With the user-facing reason, before any parsing happens.
    """

    if not content:
        raise StructuralImportError("No file content received.")
    if len(content) > max_file_bytes:
        limit_mb = max(1, max_file_bytes // (1024 * 1024))
        raise StructuralImportError(
            f"File is too large. Please upload a file smaller than {limit_mb} MB."
        )
    extension = file_extension(file_name)
    if extension not in SUPPORTED_EXTENSIONS:
        raise StructuralImportError("Unsupported file type. Please upload a CSV or XLSX file.")
    return extension


def row_limit_message(max_rows: int) -> str:
    return f"Row limit exceeded. Maximum allowed rows is {max_rows}."


def record_row(
    report: ImportRunReport,
    row_number: int,
    status: RowStatus,
    message: str,
    *,
    counted: bool = True,
) -> None:
    """Append a row result and bump the matching counters.

    Dry-run ``valid`` rows count as ``inserted`` (they would be inserted).
    """

    report.rows.append(RowResult(row_number=row_number, status=status, message=message))
    if not counted:
        return
    report.total_rows += 1
    if status in (RowStatus.VALID, RowStatus.INSERTED):
        report.inserted += 1
    elif status == RowStatus.UPDATED:
        report.updated += 1
    elif status == RowStatus.SKIPPED:
        report.skipped += 1


def limited_rows(
    rows: Iterable[ParsedRow], report: ImportRunReport, *, max_rows: int, event: str
) -> Iterator[ParsedRow]:
    """Yield ``rows`` until ``max_rows`` results exist, then add the limit row.

    The synthetic limit row is only emitted when another input row arrives, and
    it is not counted in ``total_rows``.
    """

    for row in rows:
        if len(report.rows) >= max_rows:
            record_row(
                report,
                row.row_number,
                RowStatus.ERROR,
                row_limit_message(max_rows),
                counted=False,
            )
            logger.warning("%s:row_limit limit=%d row=%d", event, max_rows, row.row_number)
            return
        yield row


def errors_json(report: ImportRunReport) -> str | None:
    """JSON array of the error rows (camelCase), or ``None`` when there are none."""

    errors = [
        r.model_dump(mode="json", by_alias=True) for r in report.rows if r.status == RowStatus.ERROR
    ]
    if not errors:
        return None
    return json.dumps(errors, separators=(",", ":"))


__all__ = [
    "IN_FILE_DUPLICATE_MESSAGE",
    "check_upload",
    "errors_json",
    "limited_rows",
    "record_row",
    "row_limit_message",
]
