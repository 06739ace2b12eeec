# ruff: noqa: I001
"""Public API for the ``finance_import`` package.

Each function runs one import (or lookup) inside a single ``session_scope``:
the transaction commits when the importer returns and rolls back when it
raises. Limits and the Splitwise key come from :func:`load_settings` unless a
``Settings`` instance is passed in.

Structural problems surface as :class:`~finance_import.errors.StructuralImportError`
with a user-facing message; everything else propagates unchanged.
"""

from __future__ import annotations

import httpx

from db.client import session_scope
from .config import Settings, load_settings
from .errors import StructuralImportError
from .importers.balances import BalanceImporter, BalanceImportRequest, BulkBalanceImportRequest
from .importers.capital_one import CapitalOneImporter, CapitalOneImportRequest
from .importers.expenses import ExpenseImporter, ExpenseImportRequest
from .importers.splitwise import SplitwiseImporter, SplitwiseImportRequest, to_group, to_member
from .ingest.adapters.splitwise_api import SplitwiseClient
from .logging_setup import get_logger
from .persistence import sql_stores
from .reports import (
    CapitalOneImportReport,
    ImportRunReport,
    SplitwiseGroup,
    SplitwiseImportReport,
    SplitwiseMember,
    SplitwiseStatus,
)
from .templates import (
    TemplateFile,
    balance_template,
    bulk_balance_template,
    expense_template,
    normalize_format,
)

logger = get_logger("finance_import.api")


def _settings(settings: Settings | None) -> Settings:
    return settings if settings is not None else load_settings()


# ---- File imports --------------------------------------------------------------


def import_expenses(
    request: ExpenseImportRequest, *, settings: Settings | None = None
) -> ImportRunReport:
    """Import (or preview, when ``request.dry_run``) an expense CSV/XLSX upload."""

    cfg = _settings(settings)
    with session_scope(database_url=cfg.database_url) as session:
        importer = ExpenseImporter(
            sql_stores(session), max_rows=cfg.max_rows, max_file_bytes=cfg.max_file_bytes
        )
        return importer.run(request)


def import_balances(
    request: BalanceImportRequest, *, settings: Settings | None = None
) -> ImportRunReport:
    """Import balance snapshots for one asset."""

    cfg = _settings(settings)
    with session_scope(database_url=cfg.database_url) as session:
        importer = BalanceImporter(
            sql_stores(session), max_rows=cfg.max_rows, max_file_bytes=cfg.max_file_bytes
        )
        return importer.run(request)


def import_balances_bulk(
    request: BulkBalanceImportRequest, *, settings: Settings | None = None
) -> ImportRunReport:
    """Import balance snapshots for several accounts named in the file."""

    cfg = _settings(settings)
    with session_scope(database_url=cfg.database_url) as session:
        importer = BalanceImporter(
            sql_stores(session), max_rows=cfg.max_rows, max_file_bytes=cfg.max_file_bytes
        )
        return importer.run_bulk(request)


def import_capital_one(
    request: CapitalOneImportRequest, *, settings: Settings | None = None
) -> CapitalOneImportReport:
    """Preview or import a Capital One CSV statement."""

    cfg = _settings(settings)
    with session_scope(database_url=cfg.database_url) as session:
        importer = CapitalOneImporter(sql_stores(session), max_file_bytes=cfg.max_file_bytes)
        return importer.run(request)


# ---- Splitwise -----------------------------------------------------------------


def _splitwise_client(cfg: Settings, transport: httpx.BaseTransport | None) -> SplitwiseClient:
    return SplitwiseClient(
        cfg.splitwise_api_key, base_url=cfg.splitwise_base_url, transport=transport
    )


def splitwise_status(
    *, settings: Settings | None = None, transport: httpx.BaseTransport | None = None
) -> SplitwiseStatus:
    """Whether an API key is configured and, if it works, whose it is.

    Never raises for a rejected key or an unreachable API; ``user`` is then
    ``None``.
    """

    cfg = _settings(settings)
    if not cfg.splitwise_configured:
        return SplitwiseStatus(is_configured=False)
    try:
        with _splitwise_client(cfg, transport) as client:
            user = client.get_current_user()
    except httpx.HTTPError as exc:
        logger.warning("splitwise_status:failed error=%s", exc)
        user = None
    return SplitwiseStatus(is_configured=True, user=to_member(user) if user else None)


def splitwise_groups(
    *, settings: Settings | None = None, transport: httpx.BaseTransport | None = None
) -> list[SplitwiseGroup]:
    cfg = _settings(settings)
    with _splitwise_client(cfg, transport) as client:
        return [to_group(g) for g in client.get_groups()]


def splitwise_group_members(
    group_id: int,
    *,
    settings: Settings | None = None,
    transport: httpx.BaseTransport | None = None,
) -> list[SplitwiseMember]:
    """Members of one group; an unknown group yields an empty list."""

    cfg = _settings(settings)
    with _splitwise_client(cfg, transport) as client:
        group = client.get_group(group_id)
    return [to_member(m) for m in group.members] if group else []


def import_splitwise(
    request: SplitwiseImportRequest,
    *,
    settings: Settings | None = None,
    transport: httpx.BaseTransport | None = None,
) -> SplitwiseImportReport:
    """Preview or import one member's share of a Splitwise group's expenses."""

    cfg = _settings(settings)
    with _splitwise_client(cfg, transport) as client:
        with session_scope(database_url=cfg.database_url) as session:
            return SplitwiseImporter(sql_stores(session), client).run(request)


# ---- Templates -----------------------------------------------------------------


def expense_import_template(
    user_id: int, fmt: str | None = None, *, settings: Settings | None = None
) -> TemplateFile:
    """Expense template whose examples and dropdown use ``user_id``'s categories."""

    cfg = _settings(settings)
    normalized = normalize_format(fmt)
    with session_scope(database_url=cfg.database_url) as session:
        names = [c.name for c in sql_stores(session).categories.list_for_user(user_id)]
    return expense_template(normalized, names, max_rows=cfg.max_rows)


def balance_import_template(
    user_id: int, asset_id: int, fmt: str | None = None, *, settings: Settings | None = None
) -> TemplateFile:
    cfg = _settings(settings)
    normalized = normalize_format(fmt)
    with session_scope(database_url=cfg.database_url) as session:
        asset = sql_stores(session).assets.get(asset_id, user_id)
    if asset is None:
        raise StructuralImportError("Asset not found.")
    return balance_template(normalized, asset.name)


def bulk_balance_import_template(
    user_id: int, fmt: str | None = None, *, settings: Settings | None = None
) -> TemplateFile:
    cfg = _settings(settings)
    normalized = normalize_format(fmt)
    with session_scope(database_url=cfg.database_url) as session:
        assets = sql_stores(session).assets.list_for_user(user_id)
    return bulk_balance_template(normalized, assets)


__all__ = [
    "balance_import_template",
    "bulk_balance_import_template",
    "expense_import_template",
    "import_balances",
    "import_balances_bulk",
    "import_capital_one",
    "import_expenses",
    "import_splitwise",
    "splitwise_group_members",
    "splitwise_groups",
    "splitwise_status",
]
