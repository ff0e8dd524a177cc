"""Tests for the index-suffix grammar."""

import pytest

from src.generator.blocks.field_selector import FieldSelector, SelectorKind, parse_field


@pytest.mark.parametrize(
    "text, expected",
    [
        ("title", FieldSelector("title")),
        ("rows[0]", FieldSelector("rows", SelectorKind.FIRST, index=0)),
        ("rows[first]", FieldSelector("rows", SelectorKind.FIRST, index=0)),
        ("rows[last]", FieldSelector("rows", SelectorKind.LAST)),
        ("rows[all]", FieldSelector("rows", SelectorKind.ALL)),
        ("rows[ANY]", FieldSelector("rows", SelectorKind.ANY)),
        ("rows[2]", FieldSelector("rows", SelectorKind.NTH, index=2)),
        (
            "rows[{{ rowIndex }}]",
            FieldSelector("rows", SelectorKind.NTH, index_variable="rowIndex"),
        ),
        (" rows[ 3 ] ", FieldSelector("rows", SelectorKind.NTH, index=3)),
    ],
)
def test_parse_field(text, expected):
    assert parse_field(text) == expected


def test_unknown_selector_is_a_plain_field():
    assert parse_field("rows[odd]") == FieldSelector("rows[odd]")


def test_only_all_loops():
    assert parse_field("rows[all]").is_loop
    assert not parse_field("rows[any]").is_loop
