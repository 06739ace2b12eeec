from __future__ import annotations

from datetime import date
from decimal import Decimal

import httpx
import pytest

from db.models.finance import FiExpense
from finance_import.api import (
    import_splitwise,
    splitwise_group_members,
    splitwise_groups,
    splitwise_status,
)
from finance_import.config import Settings
from finance_import.errors import SplitwiseNotConfiguredError, StructuralImportError
from finance_import.importers.splitwise import SplitwiseImportRequest
from finance_import.ingest.adapters.splitwise_api import SplitwiseClient

from tests.helpers.db import count, expenses_for, seed_categories, tags_for
from tests.helpers.splitwise import ALICE, API_KEY, EXPENSES, ME, FakeSplitwise

USER = 21
CONFIGURED = Settings(splitwise_api_key=API_KEY)


@pytest.fixture
def fake() -> FakeSplitwise:
    return FakeSplitwise()


@pytest.fixture
def categories(engine) -> dict[str, int]:
    return seed_categories(("Food & Dining", "Vacation", "Other"))


def _request(**kw) -> SplitwiseImportRequest:
    params = {"user_id": USER, "group_id": 77, "splitwise_user_id": ME}
    params.update(kw)
    return SplitwiseImportRequest(**params)


# ---- Client --------------------------------------------------------------------


def test_client_requires_an_api_key() -> None:
    with pytest.raises(SplitwiseNotConfiguredError, match="SPLITWISE_API_KEY"):
        SplitwiseClient("  ")


def test_expense_window_sends_an_exclusive_upper_bound(fake) -> None:
    with SplitwiseClient(API_KEY, transport=fake.transport) as client:
        client.get_expenses(77, start_date=date(2024, 3, 1), end_date=date(2024, 3, 31))
    params = fake.last("get_expenses").url.params
    assert params["group_id"] == "77"
    assert params["limit"] == "0"
    assert params["dated_after"] == "2024-03-01"
    assert params["dated_before"] == "2024-04-01"


def test_groups_leave_out_the_non_group_bucket(fake) -> None:
    groups = splitwise_groups(settings=CONFIGURED, transport=fake.transport)
    assert [g.name for g in groups] == ["Beach Trip"]
    assert [m.display_name for m in groups[0].members] == ["Sam Lee", "Alice"]


def test_group_members_of_unknown_group_is_empty(fake) -> None:
    assert splitwise_group_members(999, settings=CONFIGURED, transport=fake.transport) == []
    members = splitwise_group_members(77, settings=CONFIGURED, transport=fake.transport)
    assert [m.id for m in members] == [ME, 502]


# ---- Status --------------------------------------------------------------------


def test_status_without_a_key() -> None:
    status = splitwise_status(settings=Settings())
    assert status.is_configured is False
    assert status.user is None


def test_status_reports_the_key_owner(fake) -> None:
    status = splitwise_status(settings=CONFIGURED, transport=fake.transport)
    assert status.is_configured
    assert status.user is not None and status.user.display_name == "Sam Lee"


def test_status_with_a_rejected_key_has_no_user() -> None:
    rejecting = FakeSplitwise(reject_key=True)
    status = splitwise_status(settings=CONFIGURED, transport=rejecting.transport)
    assert status.is_configured
    assert status.user is None


# ---- Preview / import ----------------------------------------------------------


def test_preview_lists_owed_shares_and_flags_payments(categories, fake) -> None:
    report = import_splitwise(_request(), settings=CONFIGURED, transport=fake.transport)

    assert report.dry_run
    assert (report.group_name, report.user_name) == ("Beach Trip", "Sam Lee")
    # Deleted expenses and ones the member owes nothing on are left out.
    assert [p.id for p in report.expenses] == [1, 2, 3]
    assert report.total_expenses == 3
    assert report.payments_ignored == 1
    assert report.importable_count == 2
    assert report.total_amount == Decimal("750.00")

    groceries, hotel, payment = report.expenses
    assert groceries.mapped_category_name == "Food & Dining"
    assert groceries.paid_by == "Alice"
    assert groceries.total_cost == Decimal("1200.00")
    assert hotel.mapped_category_name == "Vacation"
    assert payment.status_message == "Payment - will be ignored"
    assert not payment.can_import
    assert count(FiExpense) == 0


def test_commit_imports_with_tag_notes_and_overrides(categories, fake) -> None:
    report = import_splitwise(
        _request(dry_run=False, category_overrides={2: categories["Other"]}),
        settings=CONFIGURED,
        transport=fake.transport,
    )

    assert report.imported_count == 2
    stored = {e["title"]: e for e in expenses_for(USER)}
    assert set(stored) == {"Groceries for the house", "Hotel"}
    groceries = stored["Groceries for the house"]
    assert groceries["amount"] == Decimal("600.00")
    assert groceries["category_id"] == categories["Food & Dining"]
    assert groceries["notes"] == (
        "Imported from Splitwise group: Beach Trip. Paid by: Alice. Total cost: $1,200.00"
    )
    assert groceries["tags"] == ["splitwise"]
    assert (groceries["date"].year, groceries["date"].month, groceries["date"].day) == (2024, 3, 5)
    assert stored["Hotel"]["category_id"] == categories["Other"]
    assert tags_for(USER) == {"splitwise": "#1CC29F"}


def test_selection_narrows_the_batch(categories, fake) -> None:
    report = import_splitwise(
        _request(dry_run=False, selected_expense_ids=[2, 3]),
        settings=CONFIGURED,
        transport=fake.transport,
    )
    assert report.importable_count == 1
    assert [e["title"] for e in expenses_for(USER)] == ["Hotel"]


def test_reimport_marks_everything_as_duplicate(categories, fake) -> None:
    import_splitwise(_request(dry_run=False), settings=CONFIGURED, transport=fake.transport)
    again = import_splitwise(_request(dry_run=False), settings=CONFIGURED, transport=fake.transport)
    assert again.duplicates_found == 2
    assert again.imported_count == 0
    assert count(FiExpense) == 2


def test_empty_window_still_lists_categories(categories) -> None:
    empty = FakeSplitwise(expenses=[])
    report = import_splitwise(_request(), settings=CONFIGURED, transport=empty.transport)
    assert report.total_expenses == 0
    assert [c.name for c in report.available_categories] == ["Food & Dining", "Vacation", "Other"]


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"group_id": 0}, "Group ID is required"),
        ({"splitwise_user_id": 0}, "Splitwise user ID is required"),
    ],
)
def test_missing_ids_are_structural(categories, fake, kwargs, message) -> None:
    with pytest.raises(StructuralImportError, match=message):
        import_splitwise(_request(**kwargs), settings=CONFIGURED, transport=fake.transport)


def test_import_without_a_key_is_not_configured(categories) -> None:
    with pytest.raises(SplitwiseNotConfiguredError):
        import_splitwise(_request(), settings=Settings())


def test_upstream_failures_propagate(categories) -> None:
    failing = FakeSplitwise(fail_expenses=True)
    with pytest.raises(httpx.HTTPStatusError):
        import_splitwise(_request(), settings=CONFIGURED, transport=failing.transport)


def test_oversized_shares_do_not_abort_the_preview(categories) -> None:
    groceries = EXPENSES[0]
    runaway = {
        **groceries,
        "id": 9,
        "description": "Typo",
        "cost": "1e30",
        "users": [
            {"user_id": ALICE, "paid_share": "1e30", "owed_share": "0.00"},
            {"user_id": ME, "paid_share": "0.00", "owed_share": "123456789012345678901234567.89"},
        ],
    }
    fake = FakeSplitwise(expenses=[groceries, runaway])
    report = import_splitwise(_request(), settings=CONFIGURED, transport=fake.transport)

    # A share that does not parse as money counts as owing nothing.
    assert [p.id for p in report.expenses] == [1]
    assert report.total_amount == Decimal("600.00")
