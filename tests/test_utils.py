"""
tests/test_utils.py
Unit tests for accessgen.utils: naming, literals, imports and file output.
"""

from __future__ import annotations

import pathlib

import pytest

from accessgen.utils import (
    build_import_block,
    count_lines,
    format_tuple_literal,
    merge_import_dicts,
    safe_identifier,
    table_to_class_name,
    to_plural,
    to_singular,
    to_snake_case,
    write_file,
)


@pytest.mark.parametrize(
    "table, cls",
    [
        ("orders", "Order"),
        ("order_items", "OrderItem"),
        ("categories", "Category"),
        ("addresses", "Address"),
        ("people", "Person"),
        ("status", "Status"),
    ],
)
def test_table_to_class_name(table: str, cls: str) -> None:
    assert table_to_class_name(table) == cls


@pytest.mark.parametrize(
    "word, plural",
    [("order_item", "order_items"), ("category", "categories"), ("box", "boxes"), ("order_person", "order_people")],
)
def test_plural_and_back(word: str, plural: str) -> None:
    assert to_plural(word) == plural
    assert to_singular(plural) == word


def test_to_snake_case() -> None:
    assert to_snake_case("OrderItem") == "order_item"
    assert to_snake_case("getHTTPResponse") == "get_http_response"
    assert to_snake_case("already_snake") == "already_snake"


@pytest.mark.parametrize(
    "name, expected",
    [("class", "class_"), ("2fa", "_2fa"), ("scan", "scan_"), ("id", "id"), ("", "_unnamed")],
)
def test_safe_identifier(name: str, expected: str) -> None:
    assert safe_identifier(name) == expected


def test_format_tuple_literal() -> None:
    assert format_tuple_literal(["id"]) == '("id",)'
    assert format_tuple_literal(["id", 'odd"name']) == '("id", "odd\\"name")'
    assert format_tuple_literal(["a", "b"], quote=False) == "(a, b)"


def test_import_block() -> None:
    merged = merge_import_dicts({"typing": {"List"}}, {"typing": {"Any"}, "json": set()})
    assert build_import_block(merged) == "import json\nfrom typing import Any, List"


def test_write_file_creates_parents(tmp_path: pathlib.Path) -> None:
    target = tmp_path / "a" / "b" / "out.py"
    content = "x = 1\ny = 2\n"
    assert write_file(target, content) == len(content.encode("utf-8"))
    assert target.read_text(encoding="utf-8") == content
    assert [p.name for p in target.parent.iterdir()] == ["out.py"]
    assert count_lines(content) == 2
