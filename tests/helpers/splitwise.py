"""A canned Splitwise API served through ``httpx.MockTransport``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

API_KEY = "test-key"
ME = 501
ALICE = 502

GROUP: dict[str, Any] = {
    "id": 77,
    "name": "Beach Trip",
    "created_at": "2024-01-01T00:00:00Z",
    "updated_at": "2024-03-01T00:00:00Z",
    "members": [
        {"id": ME, "first_name": "Sam", "last_name": "Lee", "email": "sam@example.com"},
        {"id": ALICE, "first_name": "Alice", "last_name": None, "email": "alice@example.com"},
    ],
}


def _expense(
    expense_id: int,
    description: str,
    cost: str,
    owed: str,
    *,
    day: str = "2024-03-05T18:30:00Z",
    category: str | None = "Groceries",
    payment: bool = False,
    deleted: bool = False,
) -> dict[str, Any]:
    return {
        "id": expense_id,
        "description": description,
        "cost": cost,
        "date": day,
        "deleted_at": "2024-03-06T00:00:00Z" if deleted else None,
        "payment": payment,
        "category": {"id": 1, "name": category} if category else None,
        "users": [
            {"user_id": ALICE, "paid_share": cost, "owed_share": "0.00"},
            {"user_id": ME, "paid_share": "0.00", "owed_share": owed},
        ],
    }


EXPENSES: list[dict[str, Any]] = [
    _expense(1, "Groceries for the house", "1200.00", "600.00"),
    _expense(2, "Hotel", "300.00", "150.00", day="2024-03-06T09:00:00Z", category="Hotel"),
    _expense(3, "Settle up", "100.00", "100.00", payment=True, category=None),
    _expense(4, "Removed dinner", "80.00", "40.00", deleted=True),
    _expense(5, "Alice's own thing", "20.00", "0.00"),
]


@dataclass
class FakeSplitwise:
    """Route table for the read endpoints; records every request it sees."""

    groups: list[dict[str, Any]] = field(default_factory=lambda: [{"id": 0}, GROUP])
    expenses: list[dict[str, Any]] = field(default_factory=lambda: list(EXPENSES))
    reject_key: bool = False
    fail_expenses: bool = False
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.reject_key or request.headers.get("Authorization") != f"Bearer {API_KEY}":
            return httpx.Response(401, json={"error": "Invalid API request: you are not logged in"})
        endpoint = request.url.path.rsplit("/api/v3.0/", 1)[-1]
        if endpoint == "get_current_user":
            return httpx.Response(200, json={"user": GROUP["members"][0]})
        if endpoint == "get_groups":
            return httpx.Response(200, json={"groups": self.groups})
        if endpoint.startswith("get_group/"):
            group_id = int(endpoint.split("/")[1])
            group = next((g for g in self.groups if g["id"] == group_id), None)
            if group is None:
                return httpx.Response(404, json={"errors": {"base": ["Not found"]}})
            return httpx.Response(200, json={"group": group})
        if endpoint == "get_expenses":
            if self.fail_expenses:
                return httpx.Response(503, json={"error": "unavailable"})
            return httpx.Response(200, json={"expenses": self.expenses})
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def last(self, endpoint: str) -> httpx.Request:
        return next(r for r in reversed(self.requests) if r.url.path.endswith(endpoint))
