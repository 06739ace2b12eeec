"""Thin synchronous client for the Splitwise v3.0 REST API (``httpx``).

Only the read endpoints the importer needs are wrapped: the current user,
groups, one group with its members, and a group's expenses in a date window.
Responses are validated into small pydantic models; unknown fields are
ignored.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from types import TracebackType
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ...config import DEFAULT_SPLITWISE_BASE_URL
from ...errors import SplitwiseNotConfiguredError
from ...logging_setup import get_logger

logger = get_logger("finance_import.ingest.adapters.splitwise_api")


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SplitwiseApiUser(_ApiModel):
    id: int
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class SplitwiseApiGroup(_ApiModel):
    id: int
    name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    members: list[SplitwiseApiUser] = Field(default_factory=list)


class SplitwiseApiCategory(_ApiModel):
    id: int | None = None
    name: str | None = None


class SplitwiseApiShare(_ApiModel):
    user_id: int
    paid_share: str | None = None
    owed_share: str | None = None


class SplitwiseApiExpense(_ApiModel):
    id: int
    description: str | None = None
    cost: str | None = None
    date: datetime | None = None
    deleted_at: datetime | None = None
    payment: bool | None = None
    category: SplitwiseApiCategory | None = None
    users: list[SplitwiseApiShare] = Field(default_factory=list)


class SplitwiseClient:
    """Bearer-token client; use as a context manager or call :meth:`close`."""

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_SPLITWISE_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise SplitwiseNotConfiguredError()
        self._client = httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key.strip()}"},
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> SplitwiseClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = self._client.get(path, params=params)
        response.raise_for_status()
        payload = response.json()
        return payload if isinstance(payload, dict) else {}

    def get_current_user(self) -> SplitwiseApiUser | None:
        """Return the key's owner, or ``None`` when the key is rejected."""

        try:
            payload = self._get("get_current_user")
        except httpx.HTTPError as exc:
            logger.warning("splitwise:current_user_failed error=%s", exc)
            return None
        user = payload.get("user")
        return SplitwiseApiUser.model_validate(user) if user else None

    def get_groups(self) -> list[SplitwiseApiGroup]:
        """Real groups only; group id 0 collects non-group expenses."""

        payload = self._get("get_groups")
        groups = [SplitwiseApiGroup.model_validate(g) for g in payload.get("groups") or []]
        return [g for g in groups if g.id != 0]

    def get_group(self, group_id: int) -> SplitwiseApiGroup | None:
        """The group with its members, or ``None`` when Splitwise does not know it."""

        try:
            payload = self._get(f"get_group/{group_id}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code != 404:
                raise
            logger.info("splitwise:group_not_found group_id=%d", group_id)
            return None
        group = payload.get("group")
        return SplitwiseApiGroup.model_validate(group) if group else None

    def get_expenses(
        self,
        group_id: int,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[SplitwiseApiExpense]:
        """All expenses of ``group_id`` dated within ``[start_date, end_date]``.

        The API's ``dated_before`` bound is exclusive, so the inclusive end date
        is sent as the following day.
        """

        params: dict[str, Any] = {"group_id": group_id, "limit": 0}
        if start_date is not None:
            params["dated_after"] = start_date.isoformat()
        if end_date is not None:
            if end_date < date.max:
                params["dated_before"] = (end_date + timedelta(days=1)).isoformat()
            else:
                params["dated_before"] = date.max.isoformat()
        payload = self._get("get_expenses", params=params)
        expenses = [SplitwiseApiExpense.model_validate(e) for e in payload.get("expenses") or []]
        logger.debug("splitwise:expenses_fetched group_id=%d count=%d", group_id, len(expenses))
        return expenses


__all__ = [
    "SplitwiseApiCategory",
    "SplitwiseApiExpense",
    "SplitwiseApiGroup",
    "SplitwiseApiShare",
    "SplitwiseApiUser",
    "SplitwiseClient",
]
