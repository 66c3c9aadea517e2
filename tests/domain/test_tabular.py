from __future__ import annotations

from resourcesync.domain.tabular import (
    RESOURCE_CSV_HEADERS,
    common_fields,
    field_counts,
    records_to_rows,
    rows_to_records,
    stringify_value,
)


def test_first_row_is_header_without_mapping() -> None:
    rows = [
        ["", "  "],
        [" title ", "state", "email"],
        ["Food Bank", "CA", ""],
        ["", "", ""],
        ["Clinic", "NV"],
    ]

    records = rows_to_records(rows)

    assert records == [
        {"title": "Food Bank", "state": "CA"},
        {"title": "Clinic", "state": "NV"},
    ]


def test_fixed_mapping_ignores_header_text() -> None:
    rows = [
        ["ID", "Name", "Kind", "Region", "Web", "Phone", "Mail", "Notes"],
        ["r1", "Shelter", "Housing", "TX", "https://a.example", "", "a@example.org", "late"],
    ]

    records = rows_to_records(rows, header_mapping=RESOURCE_CSV_HEADERS)

    assert records == [
        {
            "id": "r1",
            "title": "Shelter",
            "Resource Type": "Housing",
            "state": "TX",
            "website": "https://a.example",
            "email": "a@example.org",
            "field7": "late",
        }
    ]


def test_unnamed_header_columns_are_dropped() -> None:
    records = rows_to_records([["title", ""], ["A", "orphan"]])

    assert records == [{"title": "A"}]


def test_no_rows_means_no_records() -> None:
    assert rows_to_records([]) == []
    assert rows_to_records([["title", "state"]]) == []


def test_common_fields_order() -> None:
    records = [
        {"id": "1", "zeta": "z", "state": "CA", "title": "A", "rare": "x"},
        {"id": "2", "zeta": "z", "state": "NV", "title": "B"},
        {"id": "3", "zeta": "z", "title": "C"},
    ]

    assert field_counts(records)["rare"] == 1
    assert common_fields(records) == ["id", "title", "state", "zeta"]


def test_common_fields_always_include_identifier() -> None:
    assert common_fields([]) == ["id"]
    assert common_fields([{"title": "A"}, {"title": "B"}]) == ["id", "title"]


def test_common_fields_keep_rare_priority_fields() -> None:
    records = [{"title": "A", "email": "a@example.org"}, {"title": "B"}, {"title": "C"}]

    assert common_fields(records) == ["id", "title", "email"]


def test_stringify_value() -> None:
    assert stringify_value(None) == ""
    assert stringify_value(True) == "true"
    assert stringify_value(3) == "3"
    assert stringify_value(["a", "ü"]) == '["a", "ü"]'
    assert stringify_value({"open": False}) == '{"open": false}'


def test_records_to_rows() -> None:
    rows = records_to_rows(
        [{"id": "r1", "title": "A, B", "tags": ["x"]}, {"id": "r2"}],
        ["id", "title", "tags"],
    )

    assert rows == [
        ["id", "title", "tags"],
        ["r1", "A, B", '["x"]'],
        ["r2", "", ""],
    ]
