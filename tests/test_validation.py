from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from finance_import.errors import StructuralImportError
from finance_import.models import (
    CategoryRef,
    DuplicateStrategy,
    ParsedRow,
    RowRejection,
    ValidatedBalanceRow,
    ValidatedExpenseRow,
)
from finance_import.validation import (
    category_lookup,
    normalize_strategy,
    parse_date,
    parse_decimal,
    parse_tag_names,
    resolve_timezone,
    validate_balance_row,
    validate_expense_row,
)

FOOD = CategoryRef(id=1, name="Food & Dining")
OTHER = CategoryRef(id=2, name="Other")
CATEGORIES = category_lookup([FOOD, OTHER])


def _row(**fields: str) -> ParsedRow:
    return ParsedRow(row_number=2, fields={k.lower(): v for k, v in fields.items()})


# ---- Run-level inputs ----------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("update", DuplicateStrategy.UPDATE),
        (" UPDATE ", DuplicateStrategy.UPDATE),
        ("skip", DuplicateStrategy.SKIP),
        ("overwrite", DuplicateStrategy.SKIP),
        (None, DuplicateStrategy.SKIP),
    ],
)
def test_normalize_strategy(raw: str | None, expected: DuplicateStrategy) -> None:
    assert normalize_strategy(raw) is expected


def test_resolve_timezone() -> None:
    assert resolve_timezone(None) is None
    assert resolve_timezone("  ") is None
    assert resolve_timezone("Europe/Paris").key == "Europe/Paris"
    with pytest.raises(StructuralImportError, match="Unknown time zone: Mars/Olympus"):
        resolve_timezone("Mars/Olympus")


# ---- Scalars -------------------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1,234.50", Decimal("1234.50")),
        ("$4", Decimal("4")),
        ("(3.10)", Decimal("-3.10")),
        ("-12", Decimal("-12")),
        ("12-", Decimal("-12")),
        ("abc", None),
        ("NaN", None),
        ("1e30", None),
        ("123456789012345678901234567.89", None),
        ("9999999999999999.995", None),
        ("9999999999999999.99", Decimal("9999999999999999.99")),
        ("", None),
    ],
)
def test_parse_decimal(raw: str, expected: Decimal | None) -> None:
    assert parse_decimal(raw) == expected


def test_parse_date_naive_uses_timezone_and_converts_to_utc() -> None:
    tz = resolve_timezone("America/Los_Angeles")
    # 2024-03-10 is the first day of PDT (UTC-7).
    assert parse_date("2024-03-10 23:30", tz) == datetime(2024, 3, 11, 6, 30, tzinfo=UTC)
    assert parse_date("2024-01-15") == datetime(2024, 1, 15, tzinfo=UTC)


def test_parse_date_offsets_and_alternate_formats() -> None:
    assert parse_date("2024-01-01T10:00:00+02:00") == datetime(2024, 1, 1, 8, tzinfo=UTC)
    assert parse_date("2024-01-01T10:00:00Z") == datetime(2024, 1, 1, 10, tzinfo=UTC)
    assert parse_date("01/31/2024") == datetime(2024, 1, 31, tzinfo=UTC)
    assert parse_date("31/01/2024") is None
    assert parse_date("tomorrow") is None


def test_parse_tag_names_dedupes_case_insensitively_in_order() -> None:
    assert parse_tag_names("Food; travel,food, ,Trips") == ("Food", "travel", "Trips")
    assert parse_tag_names("") == ()


def test_user_category_shadows_global_category_with_same_name() -> None:
    global_food = CategoryRef(id=1, name="Food", user_id=None)
    mine = CategoryRef(id=9, name="food ", user_id=7)
    assert category_lookup([global_food, mine])["food"] is mine
    assert category_lookup([mine, global_food])["food"] is mine


# ---- Expense rows --------------------------------------------------------------


def test_valid_expense_row() -> None:
    result = validate_expense_row(
        _row(
            Date="2024-01-15",
            Amount="10.005",
            Category="food & dining",
            Description="Lunch",
            Notes="  ",
            Tags="work;Work",
        ),
        CATEGORIES,
    )
    assert isinstance(result, ValidatedExpenseRow)
    assert result.amount == Decimal("10.01")
    assert result.category is FOOD
    assert result.title == "Lunch"
    assert result.notes is None
    assert result.tag_names == ("work",)


def test_title_column_is_accepted_in_place_of_description() -> None:
    result = validate_expense_row(
        _row(Date="2024-01-15", Amount="5", Category="Other", Title="Bus"), CATEGORIES
    )
    assert isinstance(result, ValidatedExpenseRow)
    assert result.title == "Bus"


def test_missing_fields_are_reported_together() -> None:
    result = validate_expense_row(_row(Notes="only notes"), CATEGORIES)
    assert result == RowRejection("Missing required fields: Date, Amount, Category, Description")


@pytest.mark.parametrize(
    ("fields", "message"),
    [
        (
            {"Date": "15/15/2024", "Amount": "5", "Category": "Other", "Description": "x"},
            "Invalid date format. Use yyyy-MM-dd.",
        ),
        (
            {"Date": "2024-01-15", "Amount": "abc", "Category": "Other", "Description": "x"},
            "Amount must be a positive number.",
        ),
        (
            {"Date": "2024-01-15", "Amount": "0", "Category": "Other", "Description": "x"},
            "Amount must be a positive number.",
        ),
        (
            {"Date": "2024-01-15", "Amount": "-3", "Category": "Other", "Description": "x"},
            "Amount must be a positive number.",
        ),
        (
            {"Date": "2024-01-15", "Amount": "3", "Category": "Pets", "Description": "x"},
            "Category 'Pets' does not exist. Please use an existing category.",
        ),
    ],
)
def test_expense_row_rejections(fields: dict[str, str], message: str) -> None:
    assert validate_expense_row(_row(**fields), CATEGORIES) == RowRejection(message)


# ---- Balance rows --------------------------------------------------------------


def test_balance_row_accepts_negative_and_zero() -> None:
    negative = validate_balance_row(_row(Date="2024-02-01", Balance="(1,200.00)"))
    zero = validate_balance_row(_row(Date="2024-02-01", Balance="0"))
    assert isinstance(negative, ValidatedBalanceRow)
    assert negative.balance == Decimal("-1200.00")
    assert isinstance(zero, ValidatedBalanceRow)
    assert zero.account is None


def test_balance_row_rejections() -> None:
    assert validate_balance_row(_row(Date="2024-02-01", Balance="lots")) == RowRejection(
        "Balance must be a valid number."
    )
    assert validate_balance_row(_row(Balance="1")) == RowRejection(
        "Missing required fields: Date"
    )


def test_bulk_balance_row_requires_account() -> None:
    missing = validate_balance_row(_row(Date="2024-02-01", Balance="1"), require_account=True)
    ok = validate_balance_row(
        _row(Account=" Checking ", Date="2024-02-01", Balance="1"), require_account=True
    )
    assert missing == RowRejection("Missing required fields: Account")
    assert isinstance(ok, ValidatedBalanceRow)
    assert ok.account == "Checking"
