"""Keyword-based mapping of external category labels onto internal names.

Each source has an ordered rule table of ``(category name, keywords)``. The
input is lower-cased and tested against the table top to bottom; the first rule
with a keyword contained in the input wins, so rule order matters ("gas
station bar" maps to Alcohol under the Capital One table). No match, or blank
input, yields ``"Other"``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .errors import StructuralImportError
from .models import CategoryRef

FALLBACK_CATEGORY = "Other"


@dataclass(frozen=True, slots=True)
class CategoryRule:
    category: str
    keywords: tuple[str, ...]


CAPITAL_ONE_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "Vacation",
        ("travel", "airline", "airfare", "lodging", "hotel", "rental car", "other travel"),
    ),
    CategoryRule("Alcohol", ("bar", "nightlife")),
    CategoryRule(
        "Food & Dining",
        ("dining", "restaurant", "groceries", "grocery", "food", "coffee shop", "cafe"),
    ),
    CategoryRule(
        "Transportation",
        (
            "gas",
            "fuel",
            "automotive",
            "parking",
            "tolls",
            "public transit",
            "rideshare",
            "taxi",
            "uber",
            "lyft",
        ),
    ),
    CategoryRule(
        "Bills & Utilities",
        (
            "phone",
            "internet",
            "cable",
            "utility",
            "utilities",
            "electric",
            "water",
            "subscription",
            "streaming",
            "software subscription",
        ),
    ),
    CategoryRule(
        "Healthcare",
        ("health", "medical", "pharmacy", "doctor", "dental", "vision", "hospital"),
    ),
    CategoryRule(
        "Entertainment",
        (
            "entertainment",
            "movies",
            "movie",
            "music",
            "concert",
            "sports",
            "recreation",
            "hobby",
            "video games",
            "amusement",
        ),
    ),
    CategoryRule(
        "Shopping",
        (
            "merchandise",
            "shopping",
            "electronics",
            "clothing",
            "department store",
            "home improvement",
            "pet supplies",
            "books",
        ),
    ),
)

SPLITWISE_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "Vacation", ("travel", "vacation", "trip", "hotel", "lodging", "airbnb", "resort")
    ),
    CategoryRule("Alcohol", ("alcohol", "bar", "beer", "wine", "liquor", "drinks", "cocktail")),
    CategoryRule("Food & Dining", ("food", "dining", "restaurant", "grocer", "grocery", "coffee")),
    CategoryRule(
        "Transportation",
        (
            "transport",
            "transit",
            "gas",
            "fuel",
            "uber",
            "lyft",
            "taxi",
            "parking",
            "car",
            "train",
            "bus",
            "flight",
            "airfare",
        ),
    ),
    CategoryRule(
        "Bills & Utilities",
        (
            "bill",
            "utility",
            "rent",
            "mortgage",
            "electric",
            "water",
            "internet",
            "phone",
            "cell",
            "wifi",
            "cable",
            "subscription",
            "insurance",
        ),
    ),
    CategoryRule(
        "Healthcare",
        ("health", "medical", "doctor", "dent", "pharmacy", "hospital", "therapy", "vision"),
    ),
    CategoryRule(
        "Entertainment",
        (
            "entertain",
            "movie",
            "game",
            "music",
            "concert",
            "sport",
            "ticket",
            "hobby",
            "recreation",
        ),
    ),
    CategoryRule(
        "Shopping",
        ("shop", "clothing", "electronics", "amazon", "supplies", "home", "furnitur"),
    ),
)


def map_external_category(text: str | None, rules: Sequence[CategoryRule]) -> str:
    """Return the internal category name for an external label (pure)."""

    if text is None or not text.strip():
        return FALLBACK_CATEGORY
    needle = text.lower()
    for rule in rules:
        if any(keyword in needle for keyword in rule.keywords):
            return rule.category
    return FALLBACK_CATEGORY


class CategoryResolver:
    """Resolve mapped names and caller overrides against a user's categories."""

    def __init__(self, categories: Sequence[CategoryRef]) -> None:
        if not categories:
            raise StructuralImportError(
                "No categories exist. Create at least one category before importing."
            )
        self.categories: tuple[CategoryRef, ...] = tuple(categories)
        self._by_id: dict[int, CategoryRef] = {c.id: c for c in categories}
        self._by_name: dict[str, CategoryRef] = {}
        for category in categories:
            self._by_name.setdefault(category.name.strip().lower(), category)

    def by_name(self, name: str) -> CategoryRef | None:
        return self._by_name.get(name.strip().lower())

    def by_id(self, category_id: int) -> CategoryRef | None:
        return self._by_id.get(category_id)

    def resolve(self, mapped_name: str) -> CategoryRef:
        """Mapped name, else ``Other``, else the first category."""

        return (
            self.by_name(mapped_name)
            or self.by_name(FALLBACK_CATEGORY)
            or self.categories[0]
        )

    def with_override(
        self, default: CategoryRef, key: int, overrides: Mapping[int, int] | None
    ) -> CategoryRef:
        """Apply ``overrides[key]`` when it names a category in this set."""

        if not overrides or key not in overrides:
            return default
        return self.by_id(overrides[key]) or default


__all__ = [
    "CAPITAL_ONE_RULES",
    "FALLBACK_CATEGORY",
    "SPLITWISE_RULES",
    "CategoryResolver",
    "CategoryRule",
    "map_external_category",
]
