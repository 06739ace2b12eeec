from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from db.models.finance import FiExpense
from finance_import.api import import_capital_one
from finance_import.errors import StructuralImportError
from finance_import.importers.capital_one import (
    CapitalOneImporter,
    CapitalOneImportRequest,
    card_tag_color,
)
from finance_import.ingest.adapters.capital_one_csv import read_capital_one_csv
from finance_import.models import CategoryRef

from tests.helpers.db import count, expenses_for, seed_categories, seed_expense, tags_for, utc_day
from tests.helpers.fakes import FakeBackend, fake_stores

USER = 11

STATEMENT = (
    b"Transaction Date,Posted Date,Card No.,Description,Category,Debit,Credit\n"
    b"2024-02-01,2024-02-02,1234,WHOLE FOODS,Dining,54.20,\n"
    b"2024-02-03,2024-02-04,1234,SHELL OIL,Gas/Automotive,40.00,\n"
    b"2024-02-05,2024-02-05,1234,AUTOPAY PAYMENT,Payment/Credit,,500.00\n"
    b"not a date,2024-02-06,1234,GARBAGE,Other,1.00,\n"
    b"2024-02-07,2024-02-08,1234,DELTA AIR,Airfare,300.00,\n"
)
CATEGORIES = ("Food & Dining", "Transportation", "Vacation", "Other")


def _request(content: bytes = STATEMENT, **kw) -> CapitalOneImportRequest:
    params = {
        "user_id": USER,
        "file_name": "statement.csv",
        "content": content,
        "card_type": "Quicksilver",
    }
    params.update(kw)
    return CapitalOneImportRequest(**params)


@pytest.fixture
def categories(engine) -> dict[str, int]:
    return seed_categories(CATEGORIES)


def test_adapter_reads_rows_and_drops_invalid_dates() -> None:
    rows = list(read_capital_one_csv(STATEMENT))
    assert [r.row_number for r in rows] == [2, 3, 4, 6]
    assert rows[0].transaction_date == date(2024, 2, 1)
    assert rows[0].amount == Decimal("54.20")
    assert rows[2].is_credit
    assert rows[2].amount == Decimal("0.00")


def test_adapter_rejects_missing_header() -> None:
    content = b"Transaction Date,Description,Debit\n2024-01-01,x,1\n"
    with pytest.raises(StructuralImportError, match="Missing required header: Posted Date"):
        list(read_capital_one_csv(content))


def test_preview_maps_categories_and_flags_credits(categories, settings) -> None:
    report = import_capital_one(_request(), settings=settings)

    assert report.dry_run is True
    assert report.total_transactions == 4
    assert report.credits_skipped == 1
    assert report.importable_count == 3
    assert report.total_amount == Decimal("394.20")
    names = {p.description: p.mapped_category_name for p in report.expenses}
    assert names == {
        "WHOLE FOODS": "Food & Dining",
        "SHELL OIL": "Transportation",
        "AUTOPAY PAYMENT": "Other",
        "DELTA AIR": "Vacation",
    }
    payment = next(p for p in report.expenses if p.is_credit)
    assert payment.status_message == "Credit/payment - will be skipped"
    assert not payment.can_import
    assert [c.name for c in report.available_categories] == list(CATEGORIES)
    assert count(FiExpense) == 0


def test_preview_flags_existing_expenses_as_duplicates(categories, settings) -> None:
    seed_expense(
        user_id=USER,
        title="whole foods",
        amount="54.20",
        day=utc_day(2024, 2, 1),
        category_id=categories["Other"],
    )
    report = import_capital_one(_request(), settings=settings)
    duplicate = next(p for p in report.expenses if p.description == "WHOLE FOODS")
    assert duplicate.is_duplicate
    assert duplicate.status_message == "Duplicate found in your expenses"
    assert report.duplicates_found == 1
    assert report.importable_count == 2


def test_commit_imports_selection_with_overrides_splits_and_card_tag(categories, settings) -> None:
    report = import_capital_one(
        _request(
            dry_run=False,
            selected_row_numbers=[2, 4, 6],
            category_overrides={6: categories["Other"], 2: 99999},
            amount_splits={6: 3},
        ),
        settings=settings,
    )

    # Row 4 is a credit and is never imported even when selected.
    assert report.imported_count == 2
    stored = {e["title"]: e for e in expenses_for(USER)}
    assert set(stored) == {"WHOLE FOODS", "DELTA AIR"}
    assert stored["WHOLE FOODS"]["category_id"] == categories["Food & Dining"]
    assert stored["DELTA AIR"]["category_id"] == categories["Other"]
    assert stored["DELTA AIR"]["amount"] == Decimal("100.00")
    assert stored["DELTA AIR"]["notes"] == (
        "Imported from Capital One Quicksilver. Card ending in 1234. Original category: Airfare"
    )
    assert stored["WHOLE FOODS"]["tags"] == ["Quicksilver"]
    assert tags_for(USER) == {"Quicksilver": "#4169E1"}


def test_reimporting_a_split_statement_finds_the_duplicates(categories, settings) -> None:
    request = _request(dry_run=False, amount_splits={6: 2})
    import_capital_one(request, settings=settings)
    again = import_capital_one(request, settings=settings)
    assert again.imported_count == 0
    assert again.duplicates_found == 3
    assert count(FiExpense) == 3


def test_empty_selection_means_everything_importable() -> None:
    backend = FakeBackend(categories=[CategoryRef(1, "Other")])
    report = CapitalOneImporter(fake_stores(backend)).run(
        _request(dry_run=False, selected_row_numbers=[])
    )
    assert report.imported_count == 3
    assert backend.writes[0] == "tag:Quicksilver"


def test_dry_run_preview_writes_nothing() -> None:
    backend = FakeBackend(categories=[CategoryRef(1, "Other")])
    CapitalOneImporter(fake_stores(backend)).run(_request(dry_run=True))
    assert backend.writes == []


def test_empty_statement_returns_an_empty_report(engine, settings) -> None:
    content = b"Transaction Date,Posted Date,Card No.,Description,Category,Debit,Credit\n"
    report = import_capital_one(_request(content), settings=settings)
    assert report.total_transactions == 0
    assert report.expenses == []


def test_only_csv_uploads_are_accepted(engine, settings) -> None:
    with pytest.raises(StructuralImportError, match="Please upload a CSV file"):
        import_capital_one(_request(file_name="statement.xlsx"), settings=settings)


@pytest.mark.parametrize(
    ("card", "color"),
    [("Quicksilver", "#4169E1"), ("ventureX", "#8B0000"), ("Savor", "#808080")],
)
def test_card_tag_colors(card: str, color: str) -> None:
    assert card_tag_color(card) == color


def test_oversized_debit_is_not_importable(categories, settings) -> None:
    content = (
        b"Transaction Date,Posted Date,Card No.,Description,Category,Debit,Credit\n"
        b"2024-02-01,2024-02-02,1234,TYPO,Dining,1e30,\n"
        b"2024-02-03,2024-02-04,1234,SHELL OIL,Gas/Automotive,40.00,\n"
    )
    report = import_capital_one(_request(content), settings=settings)

    typo, fuel = report.expenses
    assert typo.amount == Decimal("0.00")
    assert not typo.can_import
    assert fuel.can_import
    assert report.importable_count == 1
    assert report.total_amount == Decimal("40.00")
