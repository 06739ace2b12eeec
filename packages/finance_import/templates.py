"""Downloadable CSV/XLSX templates for the file-based imports.

Every template's header matches what the corresponding importer reads, and
the example rows validate against the user's own categories/accounts so a
freshly downloaded template imports cleanly.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.worksheet import Worksheet

from .config import DEFAULT_MAX_ROWS
from .errors import StructuralImportError
from .ingest.tabular import IMPORT_SHEET_NAME, SUPPORTED_EXTENSIONS
from .models import AssetRef

CSV_CONTENT_TYPE = "text/csv"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXPENSE_HEADERS: tuple[str, ...] = ("Date", "Amount", "Category", "Description", "Notes", "Tags")
BALANCE_HEADERS: tuple[str, ...] = ("Date", "Balance", "Notes")
BULK_BALANCE_HEADERS: tuple[str, ...] = ("Account", "Date", "Balance", "Notes")

DEFAULT_EXAMPLE_CATEGORY = "General"
_DATE_FORMAT = "yyyy-mm-dd"


@dataclass(frozen=True, slots=True)
class TemplateFile:
    content: bytes
    content_type: str
    file_name: str


def normalize_format(fmt: str | None) -> str:
    """``csv`` (default when blank) or ``xlsx``; anything else is rejected."""

    normalized = (fmt or "").strip().lower() or "csv"
    if normalized not in SUPPORTED_EXTENSIONS:
        raise StructuralImportError("Unsupported format. Use csv or xlsx.")
    return normalized


def _today(today: date | None) -> date:
    return today or datetime.now(UTC).date()


def _csv_bytes(headers: Sequence[str], rows: Sequence[Sequence[object]]) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buf.getvalue().encode("utf-8")


def _csv_row(row: Sequence[object]) -> list[str]:
    cells: list[str] = []
    for value in row:
        if isinstance(value, date):
            cells.append(value.isoformat())
        elif isinstance(value, float):
            cells.append(f"{value:.2f}")
        else:
            cells.append(str(value))
    return cells


def _fill_sheet(ws: Worksheet, headers: Sequence[str], rows: Sequence[Sequence[object]]) -> None:
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))
    for col_idx, header in enumerate(headers, start=1):
        letter = get_column_letter(col_idx)
        width = max([len(header)] + [len(str(r[col_idx - 1] or "")) for r in rows]) + 2
        ws.column_dimensions[letter].width = width
        if header == "Date":
            for row_idx in range(2, len(rows) + 2):
                ws.cell(row=row_idx, column=col_idx).number_format = _DATE_FORMAT


def _instructions(wb: Workbook, lines: Sequence[str]) -> None:
    ws = wb.create_sheet("Instructions")
    for line in lines:
        ws.append([line])
    ws.column_dimensions["A"].width = max(len(line) for line in lines) + 2


def _workbook_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _new_import_workbook() -> tuple[Workbook, Worksheet]:
    wb = Workbook()
    ws = wb.active
    assert ws is not None  # a fresh workbook always has one sheet
    ws.title = IMPORT_SHEET_NAME
    return wb, ws


# ---- Expenses ------------------------------------------------------------------


def expense_template(
    fmt: str | None,
    category_names: Sequence[str],
    *,
    today: date | None = None,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> TemplateFile:
    """Expense import template; examples use the user's first category."""

    normalized = normalize_format(fmt)
    day = _today(today)
    example = category_names[0] if category_names else DEFAULT_EXAMPLE_CATEGORY
    rows: list[list[object]] = [
        [day, 42.50, example, "Grocery run", "Weekly produce", "groceries"],
        [day - timedelta(days=2), 18.00, example, "Coffee with team", "", ""],
    ]

    if normalized == "csv":
        csv_rows = [_csv_row(r) for r in rows]
        return TemplateFile(
            _csv_bytes(EXPENSE_HEADERS, csv_rows), CSV_CONTENT_TYPE, "expenses-template.csv"
        )

    wb, ws = _new_import_workbook()
    _fill_sheet(ws, EXPENSE_HEADERS, rows)

    categories_ws = wb.create_sheet("Categories")
    categories_ws.append(["Name"])
    for name in category_names or [DEFAULT_EXAMPLE_CATEGORY]:
        categories_ws.append([name])
    last = categories_ws.max_row
    dv = DataValidation(type="list", formula1=f"=Categories!$A$2:$A${last}", allow_blank=True)
    dv.errorTitle = "Invalid Category"
    dv.error = "Please select a Category from the dropdown list."
    ws.add_data_validation(dv)
    dv.add(f"C2:C{max_rows + 1}")

    _instructions(
        wb,
        [
            "Expense Import Template",
            "Required columns: Date (yyyy-MM-dd), Amount (> 0), "
            "Category (must match existing), Description.",
            "Optional columns: Notes, Tags (separate several tags with ; or ,).",
            "Use the Categories sheet dropdown for valid categories.",
        ],
    )
    return TemplateFile(_workbook_bytes(wb), XLSX_CONTENT_TYPE, "expenses-template.xlsx")


# ---- Balances ------------------------------------------------------------------


def balance_template(
    fmt: str | None, asset_name: str, *, today: date | None = None
) -> TemplateFile:
    normalized = normalize_format(fmt)
    day = _today(today)
    rows: list[list[object]] = [
        [day, 1000.00, f"Opening balance for {asset_name}"],
        [day - timedelta(days=30), 950.50, "Previous month balance"],
    ]

    if normalized == "csv":
        csv_rows = [_csv_row(r) for r in rows]
        return TemplateFile(
            _csv_bytes(BALANCE_HEADERS, csv_rows), CSV_CONTENT_TYPE, "balances-template.csv"
        )

    wb, ws = _new_import_workbook()
    _fill_sheet(ws, BALANCE_HEADERS, rows)
    _instructions(
        wb,
        [
            "Balance Import Template",
            "Required columns: Date (yyyy-MM-dd), Balance (number).",
            "Optional columns: Notes.",
            "Balance can be positive or negative (for liabilities).",
            "If a balance already exists for a date, it will be updated or skipped "
            "based on strategy.",
        ],
    )
    return TemplateFile(_workbook_bytes(wb), XLSX_CONTENT_TYPE, "balances-template.xlsx")


def bulk_balance_template(
    fmt: str | None, assets: Sequence[AssetRef], *, today: date | None = None
) -> TemplateFile:
    """Multi-account template; lists up to five of the user's accounts as examples."""

    normalized = normalize_format(fmt)
    day = _today(today)
    if assets:
        rows: list[list[object]] = [
            [a.name, day, 1000.00, f"Example balance for {a.name}"] for a in assets[:5]
        ]
    else:
        rows = [
            ["My Checking Account", day, 1000.00, "Example balance"],
            ["My Savings Account", day, 5000.00, "Example balance"],
        ]

    if normalized == "csv":
        csv_rows = [_csv_row(r) for r in rows]
        return TemplateFile(
            _csv_bytes(BULK_BALANCE_HEADERS, csv_rows),
            CSV_CONTENT_TYPE,
            "all-accounts-balances-template.csv",
        )

    wb, ws = _new_import_workbook()
    _fill_sheet(ws, BULK_BALANCE_HEADERS, rows)

    accounts_ws = wb.create_sheet("Accounts")
    accounts_ws.append(["Your Existing Accounts", "Type"])
    for asset in assets:
        accounts_ws.append([asset.name, "Liability" if asset.is_liability else "Asset"])
    if not assets:
        accounts_ws.append(["(No accounts yet - create accounts before importing)"])
    accounts_ws.column_dimensions["A"].width = 40

    _instructions(
        wb,
        [
            "Bulk Balance Import Template",
            "Required columns: Account (exact name), Date (yyyy-MM-dd), Balance (number).",
            "Optional columns: Notes.",
            "Account names must match existing accounts (case-insensitive).",
            "See the 'Accounts' sheet for a list of your existing accounts.",
            "Balance can be positive or negative (for liabilities).",
            "If a balance already exists for an account and date, it will be updated or "
            "skipped based on strategy.",
        ],
    )
    return TemplateFile(
        _workbook_bytes(wb), XLSX_CONTENT_TYPE, "all-accounts-balances-template.xlsx"
    )


__all__ = [
    "BALANCE_HEADERS",
    "BULK_BALANCE_HEADERS",
    "CSV_CONTENT_TYPE",
    "EXPENSE_HEADERS",
    "XLSX_CONTENT_TYPE",
    "TemplateFile",
    "balance_template",
    "bulk_balance_template",
    "expense_template",
    "normalize_format",
]
