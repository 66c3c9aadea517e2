from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from resourcesync.domain.reconciliation import (
    IdentifierFields,
    IdentifierRegistry,
    derive_identifier,
    slugify,
    time_suffix,
)

if TYPE_CHECKING:
    from collections.abc import Callable


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Hello World!", "hello-world"),
        ("  Food   Bank  ", "food-bank"),
        ("a -- b", "a-b"),
        ("Café Über", "cafe-uber"),
        ("Приют", ""),
        ("snake_case-Name", "snake_case-name"),
        ("---", ""),
        (42, "42"),
    ],
)
def test_slugify_normalises(value: object, expected: str) -> None:
    assert slugify(value) == expected


def test_slugify_truncates_to_thirty_characters() -> None:
    slug = slugify("An extremely long resource title that keeps going")

    assert len(slug) == 30
    assert slug == "an-extremely-long-resource-tit"


def test_time_suffix_is_six_digits() -> None:
    suffix = time_suffix()

    assert len(suffix) == 6
    assert suffix.isdigit()


def test_explicit_identifier_is_trimmed_and_kept(fixed_suffix: Callable[[], str]) -> None:
    record = {"id": "  r-17 ", "title": "Something Else"}

    assert derive_identifier(record, 0, suffix=fixed_suffix) == "r-17"


def test_blank_identifier_falls_back_to_title(fixed_suffix: Callable[[], str]) -> None:
    record = {"id": "   ", "title": "Food Bank"}

    assert derive_identifier(record, 0, suffix=fixed_suffix) == "food-bank"


def test_title_and_type_are_combined(fixed_suffix: Callable[[], str]) -> None:
    record = {"title": "Food Bank", "Resource Type": "Food Pantry", "state": "CA"}

    assert derive_identifier(record, 0, suffix=fixed_suffix) == "food-bank-food-pantry"


def test_type_and_state_used_without_title(fixed_suffix: Callable[[], str]) -> None:
    record = {"Resource Type": "Legal Aid", "state": "New York"}

    assert derive_identifier(record, 4, suffix=fixed_suffix) == "legal-aid-new-york-123456"


@pytest.mark.parametrize("title", ["!!!", "Приют Дом", "東京"])
def test_title_that_slugifies_to_nothing_counts_as_missing(
    fixed_suffix: Callable[[], str], title: str
) -> None:
    record = {"title": title, "Resource Type": "Shelter", "state": "TX"}

    assert derive_identifier(record, 0, suffix=fixed_suffix) == "shelter-tx-123456"


def test_generic_fallback_uses_position(fixed_suffix: Callable[[], str]) -> None:
    record = {"phone number": "555-0100"}

    assert derive_identifier(record, 7, suffix=fixed_suffix) == "generated-resource-7-123456"


def test_derivation_is_deterministic(fixed_suffix: Callable[[], str]) -> None:
    record = {"title": "Clinic", "Resource Type": "Health"}

    first = derive_identifier(record, 2, suffix=fixed_suffix)
    second = derive_identifier(dict(record), 2, suffix=fixed_suffix)

    assert first == second


def test_custom_identifier_fields(fixed_suffix: Callable[[], str]) -> None:
    fields = IdentifierFields(identifier="key", title="name", type="kind", state="region")

    assert derive_identifier({"key": "k1"}, 0, fields=fields) == "k1"
    assert derive_identifier({"name": "Desk", "kind": "Tool"}, 0, fields=fields) == "desk-tool"
    assert (
        derive_identifier({"kind": "Tool", "region": "EU"}, 0, fields=fields, suffix=fixed_suffix)
        == "tool-eu-123456"
    )


def test_registry_flags_repeated_explicit_identifier(fixed_suffix: Callable[[], str]) -> None:
    registry = IdentifierRegistry(suffix=fixed_suffix)

    first = registry.assign({"id": "r1", "title": "A"}, 0)
    second = registry.assign({"id": "r1", "title": "B"}, 1)

    assert not first.duplicate
    assert not first.derived
    assert second.duplicate
    assert second.identifier == "r1"
    assert "r1" in registry


def test_registry_rederives_colliding_synthetic_identifiers(
    fixed_suffix: Callable[[], str],
) -> None:
    registry = IdentifierRegistry(suffix=fixed_suffix)

    first = registry.assign({"title": "Same"}, 0)
    second = registry.assign({"title": "Same"}, 1)
    third = registry.assign({"title": "Same"}, 2)

    assert first.identifier == "same"
    assert first.rederived_from is None
    assert second.identifier == "same-123456"
    assert second.rederived_from == "same"
    assert third.identifier == "same-123456-2"
    assert len({first.identifier, second.identifier, third.identifier}) == 3


def test_registry_rederives_when_synthetic_hits_explicit(
    fixed_suffix: Callable[[], str],
) -> None:
    registry = IdentifierRegistry(suffix=fixed_suffix)

    registry.assign({"id": "shelter"}, 0)
    derived = registry.assign({"title": "Shelter"}, 1)

    assert derived.derived
    assert derived.identifier == "shelter-123456"
