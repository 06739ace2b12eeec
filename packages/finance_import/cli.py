# ruff: noqa: I001
"""Typer console interface for the ``finance_import`` package.

Environment variables (``DATABASE_URL``, ``SPLITWISE_API_KEY``, limits) are
loaded from a local ``.env`` by the root callback before any command runs.
Commands are thin: they read the input file, build a request, delegate to
``finance_import.api`` and print the report. Imports preview by default; pass
``--commit`` to write.

Output is one ``<row>\\t<status>\\t<message>`` line per result followed by a
summary line, or the full camelCase JSON report with ``--json``.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from dotenv import load_dotenv
from pydantic import BaseModel
from typer.models import OptionInfo

from .errors import StructuralImportError
from .logging_setup import configure_logging

T = TypeVar("T")


# ---- Small module-level helpers used by CLI commands -------------------------


def _read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
        raise typer.Exit(1) from None
    except PermissionError:
        print(f"Error: Permission denied: {path}", file=sys.stderr)
        raise typer.Exit(1) from None


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Print ``Error: ...`` to stderr and exit 1 for any failure."""

    try:
        yield
    except typer.Exit:
        raise
    except StructuralImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    except Exception as e:
        print(f"Error: unexpected failure: {e}", file=sys.stderr)
        raise typer.Exit(1) from e


def _run(fn: Callable[[], T]) -> T:
    with _exit_on_error():
        return fn()


def _print_json(model: BaseModel) -> None:
    print(model.model_dump_json(by_alias=True, indent=2))


def _print_run_report(report, *, as_json: bool) -> None:  # ImportRunReport
    if as_json:
        _print_json(report)
        return
    for row in report.rows:
        print(f"{row.row_number}\t{row.status}\t{row.message}")
    mode = "dry-run" if report.dry_run else "committed"
    print(
        f"{mode}: total={report.total_rows} inserted={report.inserted} "
        f"updated={report.updated} skipped={report.skipped} errors={report.errors}"
    )


def _parse_ids(raw: str | None) -> list[int] | None:
    if raw is None or not raw.strip():
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        print(f"Error: expected a comma-separated list of integers, got {raw!r}", file=sys.stderr)
        raise typer.Exit(1) from None


def _parse_pairs(raw: str | None) -> dict[int, int]:
    """Parse ``"2=5,7=3"`` into ``{2: 5, 7: 3}``."""

    if raw is None or not raw.strip():
        return {}
    result: dict[int, int] = {}
    try:
        for part in raw.split(","):
            if not part.strip():
                continue
            key, _, value = part.partition("=")
            result[int(key)] = int(value)
    except ValueError:
        print(f"Error: expected KEY=VALUE pairs of integers, got {raw!r}", file=sys.stderr)
        raise typer.Exit(1) from None
    return result


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
FILE_OPTION: OptionInfo = typer.Option(
    ...,
    "--file",
    help="Path to the CSV or XLSX file to import.",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
USER_OPTION: OptionInfo = typer.Option(..., "--user-id", help="Owner of the imported records.")
STRATEGY_OPTION: OptionInfo = typer.Option(
    "skip", "--strategy", help="What to do with duplicates: skip or update."
)
TIMEZONE_OPTION: OptionInfo = typer.Option(
    None, "--timezone", help="IANA zone for dates without an offset (default UTC)."
)
COMMIT_OPTION: OptionInfo = typer.Option(
    False, "--commit", help="Write to the database (default is a dry run)."
)
JSON_OPTION: OptionInfo = typer.Option(False, "--json", help="Print the full JSON report.")


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import expenses and account balances from CSV/XLSX files, Capital One "
        "statements and Splitwise. Loads DATABASE_URL and SPLITWISE_API_KEY from a "
        "local .env before running."
    ),
)


@app.command("import-expenses")
def import_expenses_cmd(
    file: Annotated[Path, FILE_OPTION],
    user_id: Annotated[int, USER_OPTION],
    *,
    strategy: str = STRATEGY_OPTION,
    timezone: str | None = TIMEZONE_OPTION,
    commit: bool = COMMIT_OPTION,
    batch_id: str | None = typer.Option(None, help="External batch id stored on the audit row."),
    as_json: bool = JSON_OPTION,
) -> None:
    """Import expenses (Date, Amount, Category, Description, Notes, Tags)."""

    from .api import import_expenses
    from .importers.expenses import ExpenseImportRequest

    content = _read_file(file)
    report = _run(
        lambda: import_expenses(
            ExpenseImportRequest(
                user_id=user_id,
                file_name=file.name,
                content=content,
                duplicate_strategy=strategy,
                timezone=timezone,
                dry_run=not commit,
                external_batch_id=batch_id,
            )
        )
    )
    _print_run_report(report, as_json=as_json)


@app.command("import-balances")
def import_balances_cmd(
    file: Annotated[Path, FILE_OPTION],
    user_id: Annotated[int, USER_OPTION],
    asset_id: int = typer.Option(..., "--asset-id", help="Asset receiving the snapshots."),
    *,
    strategy: str = STRATEGY_OPTION,
    timezone: str | None = TIMEZONE_OPTION,
    commit: bool = COMMIT_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Import balance snapshots (Date, Balance, Notes) for one asset."""

    from .api import import_balances
    from .importers.balances import BalanceImportRequest

    content = _read_file(file)
    report = _run(
        lambda: import_balances(
            BalanceImportRequest(
                user_id=user_id,
                asset_id=asset_id,
                file_name=file.name,
                content=content,
                duplicate_strategy=strategy,
                timezone=timezone,
                dry_run=not commit,
            )
        )
    )
    _print_run_report(report, as_json=as_json)


@app.command("import-balances-bulk")
def import_balances_bulk_cmd(
    file: Annotated[Path, FILE_OPTION],
    user_id: Annotated[int, USER_OPTION],
    *,
    strategy: str = STRATEGY_OPTION,
    timezone: str | None = TIMEZONE_OPTION,
    commit: bool = COMMIT_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Import balances for several accounts (Account, Date, Balance, Notes)."""

    from .api import import_balances_bulk
    from .importers.balances import BulkBalanceImportRequest

    content = _read_file(file)
    report = _run(
        lambda: import_balances_bulk(
            BulkBalanceImportRequest(
                user_id=user_id,
                file_name=file.name,
                content=content,
                duplicate_strategy=strategy,
                timezone=timezone,
                dry_run=not commit,
            )
        )
    )
    _print_run_report(report, as_json=as_json)


@app.command("import-capital-one")
def import_capital_one_cmd(
    file: Annotated[Path, FILE_OPTION],
    user_id: Annotated[int, USER_OPTION],
    card_type: str = typer.Option(..., "--card-type", help="Card name, e.g. QuickSilver."),
    *,
    rows: str | None = typer.Option(
        None, help="Comma-separated row numbers to import (default: all importable)."
    ),
    categories: str | None = typer.Option(
        None, help="Category overrides as ROW=CATEGORY_ID pairs, e.g. '2=5,4=1'."
    ),
    splits: str | None = typer.Option(
        None, help="Amount splits as ROW=PARTS pairs, e.g. '3=2'."
    ),
    commit: bool = COMMIT_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Preview or import a Capital One credit-card CSV statement."""

    from .api import import_capital_one
    from .importers.capital_one import CapitalOneImportRequest

    content = _read_file(file)
    request = CapitalOneImportRequest(
        user_id=user_id,
        file_name=file.name,
        content=content,
        card_type=card_type,
        dry_run=not commit,
        selected_row_numbers=_parse_ids(rows),
        category_overrides=_parse_pairs(categories),
        amount_splits=_parse_pairs(splits),
    )
    report = _run(lambda: import_capital_one(request))
    if as_json:
        _print_json(report)
        return
    for p in report.expenses:
        flag = "import" if p.can_import else (p.status_message or "skip")
        print(f"{p.row_number}\t{p.transaction_date}\t{p.amount}\t{p.mapped_category_name}\t{flag}")
    print(
        f"{'dry-run' if report.dry_run else 'committed'}: total={report.total_transactions} "
        f"credits={report.credits_skipped} duplicates={report.duplicates_found} "
        f"importable={report.importable_count} imported={report.imported_count} "
        f"amount={report.total_amount}"
    )


@app.command("splitwise-status")
def splitwise_status_cmd() -> None:
    """Show whether a Splitwise API key is configured and whose it is."""

    from .api import splitwise_status

    status = _run(splitwise_status)
    _print_json(status)


@app.command("splitwise-groups")
def splitwise_groups_cmd() -> None:
    """List Splitwise groups with their member ids."""

    from .api import splitwise_groups

    for group in _run(splitwise_groups):
        members = ", ".join(f"{m.id}:{m.display_name}" for m in group.members)
        print(f"{group.id}\t{group.name}\t{members}")


@app.command("splitwise-import")
def splitwise_import_cmd(
    user_id: Annotated[int, USER_OPTION],
    group_id: int = typer.Option(..., "--group-id", help="Splitwise group id."),
    member_id: int = typer.Option(
        ..., "--member-id", help="Splitwise user whose owed share is imported."
    ),
    *,
    start: datetime | None = typer.Option(None, formats=["%Y-%m-%d"], help="First day."),
    end: datetime | None = typer.Option(None, formats=["%Y-%m-%d"], help="Last day."),
    ids: str | None = typer.Option(
        None, help="Comma-separated Splitwise expense ids (default: all importable)."
    ),
    categories: str | None = typer.Option(
        None, help="Category overrides as EXPENSE_ID=CATEGORY_ID pairs."
    ),
    commit: bool = COMMIT_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Preview or import one member's share of a Splitwise group's expenses."""

    from .api import import_splitwise
    from .importers.splitwise import SplitwiseImportRequest

    start_date: date | None = start.date() if start else None
    end_date: date | None = end.date() if end else None
    request = SplitwiseImportRequest(
        user_id=user_id,
        group_id=group_id,
        splitwise_user_id=member_id,
        start_date=start_date,
        end_date=end_date,
        dry_run=not commit,
        selected_expense_ids=_parse_ids(ids),
        category_overrides=_parse_pairs(categories),
    )
    report = _run(lambda: import_splitwise(request))
    if as_json:
        _print_json(report)
        return
    for p in report.expenses:
        flag = "import" if p.can_import else (p.status_message or "skip")
        print(f"{p.id}\t{p.date.date()}\t{p.user_owes}\t{p.mapped_category_name}\t{flag}")
    print(
        f"{'dry-run' if report.dry_run else 'committed'}: group={report.group_name!r} "
        f"user={report.user_name!r} total={report.total_expenses} "
        f"payments={report.payments_ignored} duplicates={report.duplicates_found} "
        f"importable={report.importable_count} imported={report.imported_count} "
        f"amount={report.total_amount}"
    )


@app.command("template")
def template_cmd(
    kind: str = typer.Argument(..., help="expenses, balances or bulk-balances."),
    user_id: Annotated[int, USER_OPTION] = 0,
    *,
    fmt: str = typer.Option("csv", "--format", help="csv or xlsx."),
    asset_id: int | None = typer.Option(None, "--asset-id", help="Required for 'balances'."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Where to write the file (default: its standard name)."
    ),
) -> None:
    """Write an import template prefilled with the user's categories/accounts."""

    from . import api

    def build():
        if kind == "expenses":
            return api.expense_import_template(user_id, fmt)
        if kind == "balances":
            if asset_id is None:
                raise StructuralImportError("--asset-id is required for balance templates.")
            return api.balance_import_template(user_id, asset_id, fmt)
        if kind == "bulk-balances":
            return api.bulk_balance_import_template(user_id, fmt)
        raise StructuralImportError(
            f"Unknown template kind: {kind}. Use expenses, balances or bulk-balances."
        )

    template = _run(build)
    target = output or Path.cwd() / template.file_name
    with _exit_on_error():
        target.write_bytes(template.content)
    print(target)


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
