from __future__ import annotations

import re

import pytest

from finance_import.categories import (
    CAPITAL_ONE_RULES,
    SPLITWISE_RULES,
    CategoryResolver,
    map_external_category,
)
from finance_import.effects import CommitEffects, DryRunEffects
from finance_import.errors import StructuralImportError
from finance_import.models import CategoryRef, TagRef
from finance_import.tags import TagResolver, tag_color

from tests.helpers.fakes import FakeBackend, fake_stores

# ---- Category mapping ----------------------------------------------------------


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("Dining", "Food & Dining"),
        ("Airfare", "Vacation"),
        ("Gas/Automotive", "Transportation"),
        ("Phone/Cable", "Bills & Utilities"),
        ("Health Care", "Healthcare"),
        ("Merchandise", "Shopping"),
        ("Entertainment", "Entertainment"),
        # Rule order decides: "bar" (Alcohol) comes before "gas" (Transportation).
        ("Gas station bar", "Alcohol"),
        ("Fee/Interest Charge", "Other"),
        ("", "Other"),
        (None, "Other"),
    ],
)
def test_capital_one_mapping(label: str | None, expected: str) -> None:
    assert map_external_category(label, CAPITAL_ONE_RULES) == expected


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("Groceries", "Food & Dining"),
        ("Hotel", "Vacation"),
        ("Liquor", "Alcohol"),
        ("Taxi", "Transportation"),
        ("Rent", "Bills & Utilities"),
        ("Medical expenses", "Healthcare"),
        ("Movies", "Entertainment"),
        ("General", "Other"),
    ],
)
def test_splitwise_mapping(label: str, expected: str) -> None:
    assert map_external_category(label, SPLITWISE_RULES) == expected


def test_mapping_is_deterministic() -> None:
    labels = ["Dining", "Lodging", "Other Services", "Internet"]
    first = [map_external_category(x, CAPITAL_ONE_RULES) for x in labels]
    assert first == [map_external_category(x, CAPITAL_ONE_RULES) for x in labels]


def test_resolver_falls_back_to_other_then_first_category() -> None:
    with_other = CategoryResolver([CategoryRef(1, "Food & Dining"), CategoryRef(2, "Other")])
    assert with_other.resolve("Vacation").name == "Other"
    assert with_other.resolve("food & dining").id == 1

    without_other = CategoryResolver([CategoryRef(5, "Groceries"), CategoryRef(6, "Rent")])
    assert without_other.resolve("Vacation").id == 5


def test_resolver_requires_categories() -> None:
    with pytest.raises(StructuralImportError, match="No categories exist"):
        CategoryResolver([])


def test_overrides_only_apply_to_known_categories() -> None:
    resolver = CategoryResolver([CategoryRef(1, "Food & Dining"), CategoryRef(2, "Other")])
    default = resolver.resolve("Food & Dining")
    assert resolver.with_override(default, 7, {7: 2}).id == 2
    assert resolver.with_override(default, 7, {7: 999}) is default
    assert resolver.with_override(default, 8, {7: 2}) is default
    assert resolver.with_override(default, 7, None) is default


# ---- Tags ----------------------------------------------------------------------


def test_tag_color_is_deterministic_case_insensitive_and_clamped() -> None:
    color = tag_color("Groceries")
    assert color == tag_color("groceries")
    assert re.fullmatch(r"#[0-9A-F]{6}", color)
    for name in ("a", "b", "travel", "work", "x" * 40):
        channels = [int(tag_color(name)[i : i + 2], 16) for i in (1, 3, 5)]
        assert all(50 <= c <= 200 for c in channels)


def test_tag_resolver_dry_run_reports_missing_without_creating() -> None:
    backend = FakeBackend(tags=[TagRef(id=1, name="Work", color="#111111")])
    resolver = TagResolver(backend.tags, user_id=7, effects=DryRunEffects())

    resolution = resolver.resolve(("work", "Travel"))

    assert resolution.tag_ids == (1,)
    assert resolution.missing == ("Travel",)
    assert resolution.created == ()
    assert backend.writes == []


def test_tag_resolver_commit_creates_once_and_caches() -> None:
    backend = FakeBackend()
    resolver = TagResolver([], user_id=7, effects=CommitEffects(fake_stores(backend)))

    first = resolver.resolve(("Travel",))
    second = resolver.resolve(("travel",))

    assert first.created == ("Travel",)
    assert second.created == ()
    assert first.tag_ids == second.tag_ids
    assert backend.writes == ["tag:Travel"]
    assert backend.tags[0].color == tag_color("Travel")


def test_ensure_uses_the_fixed_color() -> None:
    backend = FakeBackend()
    resolver = TagResolver([], user_id=7, effects=CommitEffects(fake_stores(backend)))
    tag = resolver.ensure("splitwise", "#1CC29F")
    assert tag is not None and tag.color == "#1CC29F"
    assert resolver.ensure("Splitwise", "#000000") is tag
