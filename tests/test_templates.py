from __future__ import annotations

import csv
import io
from datetime import date

import pytest
from openpyxl import load_workbook

from finance_import.api import balance_import_template, bulk_balance_import_template
from finance_import.errors import StructuralImportError
from finance_import.models import AssetRef
from finance_import.templates import (
    CSV_CONTENT_TYPE,
    EXPENSE_HEADERS,
    XLSX_CONTENT_TYPE,
    balance_template,
    bulk_balance_template,
    expense_template,
    normalize_format,
)

from tests.helpers.db import seed_asset

TODAY = date(2024, 6, 15)


def _csv_rows(content: bytes) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content.decode("utf-8"))))


@pytest.mark.parametrize(("raw", "expected"), [(None, "csv"), ("", "csv"), (" XLSX ", "xlsx")])
def test_normalize_format(raw: str | None, expected: str) -> None:
    assert normalize_format(raw) == expected


def test_unsupported_format_is_rejected() -> None:
    with pytest.raises(StructuralImportError, match="Unsupported format. Use csv or xlsx."):
        normalize_format("pdf")


def test_expense_csv_uses_the_first_category() -> None:
    template = expense_template("csv", ["Groceries", "Rent"], today=TODAY)
    assert template.content_type == CSV_CONTENT_TYPE
    assert template.file_name == "expenses-template.csv"
    assert _csv_rows(template.content) == [
        ["Date", "Amount", "Category", "Description", "Notes", "Tags"],
        ["2024-06-15", "42.50", "Groceries", "Grocery run", "Weekly produce", "groceries"],
        ["2024-06-13", "18.00", "Groceries", "Coffee with team", "", ""],
    ]


def test_expense_csv_without_categories_uses_a_placeholder() -> None:
    rows = _csv_rows(expense_template(None, [], today=TODAY).content)
    assert rows[1][2] == "General"


def test_expense_xlsx_has_a_category_dropdown() -> None:
    template = expense_template("xlsx", ["Groceries", "Rent"], today=TODAY, max_rows=50)
    assert template.content_type == XLSX_CONTENT_TYPE
    assert template.file_name == "expenses-template.xlsx"

    wb = load_workbook(io.BytesIO(template.content))
    assert wb.sheetnames == ["Import", "Categories", "Instructions"]
    assert [c.value for c in wb["Categories"]["A"]] == ["Name", "Groceries", "Rent"]

    ws = wb["Import"]
    assert tuple(c.value for c in ws[1]) == EXPENSE_HEADERS
    assert ws["C2"].value == "Groceries"
    (validation,) = ws.data_validations.dataValidation
    assert validation.type == "list"
    assert validation.formula1.endswith("Categories!$A$2:$A$3")
    assert str(validation.sqref) == "C2:C51"


def test_balance_templates() -> None:
    rows = _csv_rows(balance_template("csv", "Checking", today=TODAY).content)
    assert rows == [
        ["Date", "Balance", "Notes"],
        ["2024-06-15", "1000.00", "Opening balance for Checking"],
        ["2024-05-16", "950.50", "Previous month balance"],
    ]
    wb = load_workbook(io.BytesIO(balance_template("xlsx", "Checking", today=TODAY).content))
    assert wb.sheetnames == ["Import", "Instructions"]


def test_bulk_balance_template_lists_up_to_five_accounts() -> None:
    assets = [AssetRef(id=i, name=f"Account {i}", user_id=1, is_liability=i == 2) for i in range(7)]
    rows = _csv_rows(bulk_balance_template("csv", assets, today=TODAY).content)
    assert rows[0] == ["Account", "Date", "Balance", "Notes"]
    assert [r[0] for r in rows[1:]] == [f"Account {i}" for i in range(5)]
    assert rows[1][3] == "Example balance for Account 0"

    wb = load_workbook(io.BytesIO(bulk_balance_template("xlsx", assets, today=TODAY).content))
    assert wb.sheetnames == ["Import", "Accounts", "Instructions"]
    accounts = [(r[0].value, r[1].value) for r in wb["Accounts"].iter_rows(min_row=2)]
    assert len(accounts) == 7
    assert accounts[2] == ("Account 2", "Liability")
    assert accounts[0] == ("Account 0", "Asset")


def test_bulk_balance_template_without_accounts_has_placeholders() -> None:
    rows = _csv_rows(bulk_balance_template("csv", [], today=TODAY).content)
    assert [r[0] for r in rows[1:]] == ["My Checking Account", "My Savings Account"]
    assert rows[2][2] == "5000.00"


def test_balance_template_for_missing_asset(engine, settings) -> None:
    with pytest.raises(StructuralImportError, match="Asset not found."):
        balance_import_template(1, 404, "csv", settings=settings)


def test_bulk_template_uses_the_users_accounts(engine, settings) -> None:
    seed_asset("Brokerage", user_id=1)
    seed_asset("Someone else's", user_id=2)
    template = bulk_balance_import_template(1, "csv", settings=settings)
    assert template.file_name == "all-accounts-balances-template.csv"
    assert [r[0] for r in _csv_rows(template.content)[1:]] == ["Brokerage"]
