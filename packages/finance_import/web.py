# ruff: noqa: I001
"""FastAPI application exposing the import endpoints.

``create_app`` loads ``.env`` from the working directory (never overriding the
environment), configures package logging and reads :class:`Settings` once.
Handlers are plain ``def`` functions, so FastAPI runs them in its threadpool
and the synchronous database and Splitwise calls never block the event loop.

Status mapping: structural import errors are 400 with the message verbatim;
Splitwise HTTP failures on lookups are 401; anything else is logged and
becomes a 500 with a generic "Failed to ..." message.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Annotated

import httpx
from dotenv import load_dotenv
from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from . import api
from .config import Settings, load_settings
from .errors import StructuralImportError
from .importers.balances import BalanceImportRequest, BulkBalanceImportRequest
from .importers.capital_one import CapitalOneImportRequest
from .importers.expenses import ExpenseImportRequest
from .importers.splitwise import SplitwiseImportRequest
from .logging_setup import configure_logging, get_logger
from .reports import (
    CapitalOneImportReport,
    ImportRunReport,
    SplitwiseGroup,
    SplitwiseImportReport,
    SplitwiseMember,
    SplitwiseStatus,
)
from .templates import TemplateFile

logger = get_logger("finance_import.web")

_OVERRIDES = TypeAdapter(dict[int, int])


class SplitwiseImportBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: int
    group_id: int
    splitwise_user_id: int
    start_date: date | None = None
    end_date: date | None = None
    selected_expense_ids: list[int] | None = None
    category_overrides: dict[int, int] = Field(default_factory=dict)

    def to_request(self, *, dry_run: bool) -> SplitwiseImportRequest:
        return SplitwiseImportRequest(
            user_id=self.user_id,
            group_id=self.group_id,
            splitwise_user_id=self.splitwise_user_id,
            start_date=self.start_date,
            end_date=self.end_date,
            dry_run=dry_run,
            selected_expense_ids=self.selected_expense_ids,
            category_overrides=self.category_overrides,
        )


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _transport(request: Request) -> httpx.BaseTransport | None:
    return request.app.state.splitwise_transport


SettingsDep = Annotated[Settings, Depends(_settings)]
TransportDep = Annotated[httpx.BaseTransport | None, Depends(_transport)]


@contextmanager
def _failures(action: str, *, upstream: str | None = None) -> Iterator[None]:
    """Translate importer exceptions into HTTP errors for one endpoint.

    ``upstream`` names what is fetched from Splitwise; when given, HTTP
    failures talking to Splitwise become 401 responses.
    """

    try:
        yield
    except StructuralImportError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except httpx.HTTPError as exc:
        if upstream is None:
            logger.exception("web:%s_failed", action.replace(" ", "_"))
            raise HTTPException(
                status_code=500, detail=f"Failed to {action}. Please try again."
            ) from exc
        logger.warning("web:splitwise_failed upstream=%s error=%s", upstream, exc)
        raise HTTPException(
            status_code=401, detail=f"Failed to fetch {upstream}: {exc}"
        ) from exc
    except Exception as exc:
        logger.exception("web:%s_failed", action.replace(" ", "_"))
        raise HTTPException(
            status_code=500, detail=f"Failed to {action}. Please try again."
        ) from exc


def _read_upload(file: UploadFile) -> tuple[str, bytes]:
    return file.filename or "", file.file.read()


def _template_response(template: TemplateFile) -> Response:
    return Response(
        content=template.content,
        media_type=template.content_type,
        headers={"Content-Disposition": f'attachment; filename="{template.file_name}"'},
    )


def _row_numbers(raw: str | None) -> list[int] | None:
    if raw is None or not raw.strip():
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail="selectedRowNumbers must be a comma-separated list of integers."
        ) from exc


def _id_map(raw: str | None, field: str) -> dict[int, int]:
    if raw is None or not raw.strip():
        return {}
    try:
        return _OVERRIDES.validate_json(raw)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail=f"{field} must be a JSON object of integer ids."
        ) from exc


# ---- Expenses ------------------------------------------------------------------

expenses_router = APIRouter(prefix="/api/expenses", tags=["expenses"])


@expenses_router.post("/import", response_model=ImportRunReport, response_model_by_alias=True)
def import_expenses(
    settings: SettingsDep,
    file: Annotated[UploadFile, File()],
    user_id: Annotated[int, Form(alias="userId")],
    duplicate_strategy: Annotated[str, Form(alias="duplicateStrategy")] = "skip",
    timezone: Annotated[str | None, Form()] = None,
    dry_run: Annotated[bool, Form(alias="dryRun")] = True,
    external_batch_id: Annotated[str | None, Form(alias="externalBatchId")] = None,
) -> ImportRunReport:
    file_name, content = _read_upload(file)
    with _failures("import expenses"):
        return api.import_expenses(
            ExpenseImportRequest(
                user_id=user_id,
                file_name=file_name,
                content=content,
                duplicate_strategy=duplicate_strategy,
                timezone=timezone,
                dry_run=dry_run,
                external_batch_id=external_batch_id,
            ),
            settings=settings,
        )


@expenses_router.get("/import/template")
def expense_template(
    settings: SettingsDep,
    user_id: Annotated[int, Query(alias="userId")],
    fmt: Annotated[str | None, Query(alias="format")] = "csv",
) -> Response:
    with _failures("generate template"):
        return _template_response(api.expense_import_template(user_id, fmt, settings=settings))


# ---- Balances ------------------------------------------------------------------

assets_router = APIRouter(prefix="/api/assets", tags=["assets"])


@assets_router.post(
    "/snapshots/bulk-import", response_model=ImportRunReport, response_model_by_alias=True
)
def import_balances_bulk(
    settings: SettingsDep,
    file: Annotated[UploadFile, File()],
    user_id: Annotated[int, Form(alias="userId")],
    duplicate_strategy: Annotated[str, Form(alias="duplicateStrategy")] = "skip",
    timezone: Annotated[str | None, Form()] = None,
    dry_run: Annotated[bool, Form(alias="dryRun")] = True,
) -> ImportRunReport:
    file_name, content = _read_upload(file)
    with _failures("import balances"):
        return api.import_balances_bulk(
            BulkBalanceImportRequest(
                user_id=user_id,
                file_name=file_name,
                content=content,
                duplicate_strategy=duplicate_strategy,
                timezone=timezone,
                dry_run=dry_run,
            ),
            settings=settings,
        )


@assets_router.get("/snapshots/bulk-import/template")
def bulk_balance_template(
    settings: SettingsDep,
    user_id: Annotated[int, Query(alias="userId")],
    fmt: Annotated[str | None, Query(alias="format")] = "csv",
) -> Response:
    with _failures("generate template"):
        return _template_response(
            api.bulk_balance_import_template(user_id, fmt, settings=settings)
        )


@assets_router.post(
    "/{asset_id}/snapshots/import", response_model=ImportRunReport, response_model_by_alias=True
)
def import_balances(
    asset_id: int,
    settings: SettingsDep,
    file: Annotated[UploadFile, File()],
    user_id: Annotated[int, Form(alias="userId")],
    duplicate_strategy: Annotated[str, Form(alias="duplicateStrategy")] = "skip",
    timezone: Annotated[str | None, Form()] = None,
    dry_run: Annotated[bool, Form(alias="dryRun")] = True,
) -> ImportRunReport:
    file_name, content = _read_upload(file)
    with _failures("import balances"):
        report = api.import_balances(
            BalanceImportRequest(
                user_id=user_id,
                asset_id=asset_id,
                file_name=file_name,
                content=content,
                duplicate_strategy=duplicate_strategy,
                timezone=timezone,
                dry_run=dry_run,
            ),
            settings=settings,
        )
    return report


@assets_router.get("/{asset_id}/snapshots/import/template")
def balance_template(
    asset_id: int,
    settings: SettingsDep,
    user_id: Annotated[int, Query(alias="userId")],
    fmt: Annotated[str | None, Query(alias="format")] = "csv",
) -> Response:
    with _failures("generate template"):
        template = api.balance_import_template(user_id, asset_id, fmt, settings=settings)
    return _template_response(template)


# ---- Capital One ---------------------------------------------------------------

capital_one_router = APIRouter(prefix="/api/capital-one", tags=["capital-one"])


@capital_one_router.post(
    "/preview", response_model=CapitalOneImportReport, response_model_by_alias=True
)
def capital_one_preview(
    settings: SettingsDep,
    file: Annotated[UploadFile, File()],
    user_id: Annotated[int, Form(alias="userId")],
    card_type: Annotated[str, Form(alias="cardType")],
) -> CapitalOneImportReport:
    file_name, content = _read_upload(file)
    with _failures("preview Capital One import"):
        return api.import_capital_one(
            CapitalOneImportRequest(
                user_id=user_id,
                file_name=file_name,
                content=content,
                card_type=card_type,
                dry_run=True,
            ),
            settings=settings,
        )


@capital_one_router.post(
    "/import", response_model=CapitalOneImportReport, response_model_by_alias=True
)
def capital_one_import(
    settings: SettingsDep,
    file: Annotated[UploadFile, File()],
    user_id: Annotated[int, Form(alias="userId")],
    card_type: Annotated[str, Form(alias="cardType")],
    selected_row_numbers: Annotated[str | None, Form(alias="selectedRowNumbers")] = None,
    category_overrides: Annotated[str | None, Form(alias="categoryOverrides")] = None,
    amount_splits: Annotated[str | None, Form(alias="amountSplits")] = None,
) -> CapitalOneImportReport:
    file_name, content = _read_upload(file)
    request = CapitalOneImportRequest(
        user_id=user_id,
        file_name=file_name,
        content=content,
        card_type=card_type,
        dry_run=False,
        selected_row_numbers=_row_numbers(selected_row_numbers),
        category_overrides=_id_map(category_overrides, "categoryOverrides"),
        amount_splits=_id_map(amount_splits, "amountSplits"),
    )
    with _failures("import Capital One expenses"):
        return api.import_capital_one(request, settings=settings)


# ---- Splitwise -----------------------------------------------------------------

splitwise_router = APIRouter(prefix="/api/splitwise", tags=["splitwise"])


@splitwise_router.get("/status", response_model=SplitwiseStatus, response_model_by_alias=True)
def splitwise_status(settings: SettingsDep, transport: TransportDep) -> SplitwiseStatus:
    try:
        return api.splitwise_status(settings=settings, transport=transport)
    except Exception:
        logger.exception("web:splitwise_status_failed")
        return SplitwiseStatus(is_configured=settings.splitwise_configured)


@splitwise_router.get(
    "/groups", response_model=list[SplitwiseGroup], response_model_by_alias=True
)
def splitwise_groups(settings: SettingsDep, transport: TransportDep) -> list[SplitwiseGroup]:
    with _failures("fetch groups", upstream="groups"):
        return api.splitwise_groups(settings=settings, transport=transport)


@splitwise_router.get(
    "/groups/{group_id}/members",
    response_model=list[SplitwiseMember],
    response_model_by_alias=True,
)
def splitwise_group_members(
    group_id: int, settings: SettingsDep, transport: TransportDep
) -> list[SplitwiseMember]:
    with _failures("fetch group members", upstream="group members"):
        return api.splitwise_group_members(group_id, settings=settings, transport=transport)


@splitwise_router.post(
    "/preview", response_model=SplitwiseImportReport, response_model_by_alias=True
)
def splitwise_preview(
    body: SplitwiseImportBody, settings: SettingsDep, transport: TransportDep
) -> SplitwiseImportReport:
    with _failures("preview Splitwise import", upstream="expenses"):
        return api.import_splitwise(
            body.to_request(dry_run=True), settings=settings, transport=transport
        )


@splitwise_router.post(
    "/import", response_model=SplitwiseImportReport, response_model_by_alias=True
)
def splitwise_import(
    body: SplitwiseImportBody, settings: SettingsDep, transport: TransportDep
) -> SplitwiseImportReport:
    with _failures("import Splitwise expenses", upstream="expenses"):
        return api.import_splitwise(
            body.to_request(dry_run=False), settings=settings, transport=transport
        )


def create_app(
    settings: Settings | None = None,
    *,
    splitwise_transport: httpx.BaseTransport | None = None,
) -> FastAPI:
    """Build the application.

    Parameters
    ----------
    settings:
        Explicit settings; when omitted they are read from the environment
        after loading ``.env``.
    splitwise_transport:
        Optional ``httpx`` transport for the Splitwise client (tests pass an
        ``httpx.MockTransport``).
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()

    app = FastAPI(title="finance-import")
    app.state.settings = settings if settings is not None else load_settings()
    app.state.splitwise_transport = splitwise_transport
    for router in (expenses_router, assets_router, capital_one_router, splitwise_router):
        app.include_router(router)
    return app


__all__ = ["SplitwiseImportBody", "create_app"]
