"""Row validation: turn a :class:`ParsedRow` into a typed row or a rejection.

Validators never raise for row content; every problem becomes a
:class:`RowRejection` carrying the user-facing message. Run-level inputs
(timezone, duplicate strategy) are checked by :func:`resolve_timezone` and
:func:`normalize_strategy`, which the orchestrators call before parsing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import StructuralImportError
from .models import (
    CategoryRef,
    DuplicateStrategy,
    ParsedRow,
    RowRejection,
    ValidatedBalanceRow,
    ValidatedExpenseRow,
)

_CENT = Decimal("0.01")
# Money columns are Numeric(18, 2): sixteen integer digits.
MONEY_LIMIT = Decimal("1e16")

# Accepted after ISO 8601 (``datetime.fromisoformat``) fails.
_DATE_FORMATS: tuple[str, ...] = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%m-%d-%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)

_TAG_SPLIT_RE = re.compile(r"[;,]")

INVALID_DATE_MESSAGE = "Invalid date format. Use yyyy-MM-dd."
INVALID_AMOUNT_MESSAGE = "Amount must be a positive number."
INVALID_BALANCE_MESSAGE = "Balance must be a valid number."


# ---- Run-level inputs ----------------------------------------------------------


def normalize_strategy(value: str | None) -> DuplicateStrategy:
    """``"update"`` (any case, surrounding spaces ignored) or ``"skip"``."""

    if value is not None and value.strip().lower() == DuplicateStrategy.UPDATE:
        return DuplicateStrategy.UPDATE
    return DuplicateStrategy.SKIP


def resolve_timezone(tz_id: str | None) -> ZoneInfo | None:
    """Return the IANA zone for ``tz_id`` or ``None`` when blank.

    Raises
    ------
    StructuralImportError
        When ``tz_id`` is not a known zone identifier.
    """

    if tz_id is None or not tz_id.strip():
        return None
    key = tz_id.strip()
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise StructuralImportError(f"Unknown time zone: {key}") from exc


# ---- Scalar parsers ------------------------------------------------------------


def round_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def parse_decimal(raw: str | None) -> Decimal | None:
    """Parse a locale-invariant number (``1,234.50``, ``-12``, ``(3.10)``, ``$4``).

    Returns ``None`` for blank or unparseable input and for NaN/Infinity.
    Magnitudes that reach :data:`MONEY_LIMIT` once rounded to cents are
    rejected the same way.
    """

    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None
    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1].strip()
    if s.endswith("-"):
        negative = not negative
        s = s[:-1].strip()
    s = s.replace("$", "").replace(",", "").replace(" ", "")
    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    if not value.is_finite() or value.adjusted() >= MONEY_LIMIT.adjusted():
        return None
    if abs(round_money(value)) >= MONEY_LIMIT:
        return None
    return -value if negative else value


def parse_date(raw: str | None, tz: ZoneInfo | None = None) -> datetime | None:
    """Parse ``raw`` into an aware UTC datetime.

    Naive values are wall-clock time in ``tz`` (UTC when ``tz`` is ``None``);
    values carrying an offset are converted to UTC directly.
    """

    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00") if s.endswith("Z") else s)
    except ValueError:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(s, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz or UTC)
    return parsed.astimezone(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_tag_names(raw: str | None) -> tuple[str, ...]:
    """Split on ``;`` or ``,``; trim; drop empties; de-duplicate ignoring case."""

    if not raw:
        return ()
    seen: set[str] = set()
    names: list[str] = []
    for part in _TAG_SPLIT_RE.split(raw):
        name = part.strip()
        if not name:
            continue
        key = name.casefold()
        if key in seen:
            continue
        seen.add(key)
        names.append(name)
    return tuple(names)


def _clean_notes(raw: str) -> str | None:
    s = raw.strip()
    return s or None


def _missing_fields(row: ParsedRow, required: Iterable[tuple[str, tuple[str, ...]]]) -> list[str]:
    return [label for label, aliases in required if not row.get(*aliases)]


def _missing_message(missing: list[str]) -> RowRejection:
    return RowRejection(f"Missing required fields: {', '.join(missing)}")


# ---- Row validators ------------------------------------------------------------


_EXPENSE_REQUIRED: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Date", ("Date",)),
    ("Amount", ("Amount",)),
    ("Category", ("Category",)),
    ("Description", ("Description", "Title")),
)


def category_lookup(categories: Iterable[CategoryRef]) -> dict[str, CategoryRef]:
    """Index categories by trimmed, lower-cased name.

    A user-owned category shadows a global one with the same name; otherwise the
    first category seen wins.
    """

    lookup: dict[str, CategoryRef] = {}
    for category in categories:
        key = category.name.strip().lower()
        current = lookup.get(key)
        if current is None or (current.user_id is None and category.user_id is not None):
            lookup[key] = category
    return lookup


def validate_expense_row(
    row: ParsedRow,
    categories_by_name: Mapping[str, CategoryRef],
    tz: ZoneInfo | None = None,
) -> ValidatedExpenseRow | RowRejection:
    """Validate one expense row.

    Checks run in order (missing fields, date, amount, category) and the first
    failing check decides the message. Missing fields are reported together.
    """

    missing = _missing_fields(row, _EXPENSE_REQUIRED)
    if missing:
        return _missing_message(missing)

    date_utc = parse_date(row.get("Date"), tz)
    if date_utc is None:
        return RowRejection(INVALID_DATE_MESSAGE)

    amount = parse_decimal(row.get("Amount"))
    if amount is None or amount <= 0:
        return RowRejection(INVALID_AMOUNT_MESSAGE)

    category_name = row.get("Category")
    category = categories_by_name.get(category_name.lower())
    if category is None:
        return RowRejection(
            f"Category '{category_name}' does not exist. Please use an existing category."
        )

    return ValidatedExpenseRow(
        date_utc=date_utc,
        amount=round_money(amount),
        category=category,
        title=row.get("Description", "Title"),
        notes=_clean_notes(row.get("Notes")),
        tag_names=parse_tag_names(row.get("Tags")),
    )


def validate_balance_row(
    row: ParsedRow,
    tz: ZoneInfo | None = None,
    *,
    require_account: bool = False,
) -> ValidatedBalanceRow | RowRejection:
    """Validate one balance snapshot row; balances may be zero or negative."""

    required: list[tuple[str, tuple[str, ...]]] = []
    if require_account:
        required.append(("Account", ("Account",)))
    required.extend((("Date", ("Date",)), ("Balance", ("Balance",))))
    missing = _missing_fields(row, required)
    if missing:
        return _missing_message(missing)

    date_utc = parse_date(row.get("Date"), tz)
    if date_utc is None:
        return RowRejection(INVALID_DATE_MESSAGE)

    balance = parse_decimal(row.get("Balance"))
    if balance is None:
        return RowRejection(INVALID_BALANCE_MESSAGE)

    return ValidatedBalanceRow(
        date_utc=date_utc,
        balance=round_money(balance),
        notes=_clean_notes(row.get("Notes")),
        account=(row.get("Account") or None) if require_account else None,
    )


__all__ = [
    "INVALID_AMOUNT_MESSAGE",
    "INVALID_BALANCE_MESSAGE",
    "INVALID_DATE_MESSAGE",
    "MONEY_LIMIT",
    "as_utc",
    "category_lookup",
    "normalize_strategy",
    "parse_date",
    "parse_decimal",
    "parse_tag_names",
    "resolve_timezone",
    "round_money",
    "validate_balance_row",
    "validate_expense_row",
]
