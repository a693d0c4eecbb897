"""
tests/test_include.py
Unit tests for accessgen.runtime.include: parsing, closure, validation and
the per-call loaded-record cache.
"""

from __future__ import annotations

from typing import Dict, List

import pytest

from accessgen.runtime.errors import IncludeSpecError
from accessgen.runtime.include import (
    IncludeSpec,
    LoadedRecordCache,
    distinct_records,
    must_parse,
)

GRAPH: Dict[str, List[str]] = {
    "customers": ["orders"],
    "orders": ["order_items", "customers", "invoices"],
    "order_items": ["orders", "products"],
    "products": ["order_items"],
    "invoices": ["orders"],
}


class TestParse:
    def test_bare_name(self) -> None:
        spec = IncludeSpec.parse("orders")
        assert spec.table_name == "orders"
        assert spec.includes is None

    def test_empty_braces_mean_no_includes(self) -> None:
        assert IncludeSpec.parse("orders{}").includes is None

    def test_nested(self) -> None:
        spec = must_parse(" orders { customers, order_items{ products } } ")
        assert set(spec.includes or {}) == {"customers", "order_items"}
        items = spec.get("order_items")
        assert items is not None
        assert items.get("products") is not None
        assert spec.get("customers").includes is None  # type: ignore[union-attr]

    def test_str_round_trips_sorted(self) -> None:
        spec = IncludeSpec.parse("orders{order_items{products},customers}")
        assert str(spec) == "orders{customers, order_items{products}}"

    @pytest.mark.parametrize(
        "source",
        ["", "   ", "{orders}", "orders{", "orders{customers", "orders}", "orders{a,,b}",
         "orders{a b}", "orders{a,a}", "orders-1"],
    )
    def test_malformed(self, source: str) -> None:
        with pytest.raises(IncludeSpecError):
            IncludeSpec.parse(source)

    def test_include_spec_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            IncludeSpec.parse("{")

    def test_from_mapping(self) -> None:
        spec = IncludeSpec.from_mapping("orders", {"customers": {}, "order_items": {"products": None}})
        assert str(spec) == "orders{customers, order_items{products}}"


class TestClosure:
    def test_closure_is_finite_and_shared(self) -> None:
        spec = IncludeSpec.closure("customers", GRAPH)
        orders = spec.get("orders")
        assert orders is not None
        # cycle back to the root reuses the root object
        assert orders.get("customers") is spec

    def test_root_never_includes_itself(self) -> None:
        for table in GRAPH:
            spec = IncludeSpec.closure(table, GRAPH)
            assert table not in (spec.includes or {})

    def test_every_table_is_reachable(self) -> None:
        spec = IncludeSpec.closure("products", GRAPH)
        seen = set()
        stack = [spec]
        while stack:
            s = stack.pop()
            if s.table_name in seen:
                continue
            seen.add(s.table_name)
            stack.extend((s.includes or {}).values())
        assert seen == set(GRAPH)

    def test_self_edges_are_dropped(self) -> None:
        spec = IncludeSpec.closure("nodes", {"nodes": ["nodes"]})
        assert spec.includes is None

    def test_unrelated_table_has_empty_closure(self) -> None:
        assert IncludeSpec.closure("audit", {"audit": []}).includes is None

    def test_closure_renders_without_looping(self) -> None:
        assert str(IncludeSpec.closure("invoices", GRAPH)).startswith("invoices{orders{")


class TestCheck:
    def test_valid_spec_passes(self) -> None:
        IncludeSpec.parse("orders{customers, order_items{products{order_items}}}").check("orders", GRAPH)

    def test_full_closure_passes(self) -> None:
        IncludeSpec.closure("orders", GRAPH).check("orders", GRAPH)

    def test_root_mismatch(self) -> None:
        with pytest.raises(IncludeSpecError, match="expected includes for 'customers'"):
            IncludeSpec.parse("orders").check("customers", GRAPH)

    def test_unrelated_table(self) -> None:
        with pytest.raises(IncludeSpecError, match="no relationship to 'products'"):
            IncludeSpec.parse("orders{products}").check("orders", GRAPH)

    def test_nested_unrelated_table(self) -> None:
        with pytest.raises(IncludeSpecError):
            IncludeSpec.parse("orders{customers{products}}").check("orders", GRAPH)

    def test_key_and_spec_disagree(self) -> None:
        spec = IncludeSpec("orders", {"customers": IncludeSpec("invoices")})
        with pytest.raises(IncludeSpecError, match="holds a spec for 'invoices'"):
            spec.check("orders", GRAPH)


class _Rec:
    def __init__(self, key: int) -> None:
        self.key = key


class TestLoadedRecordCache:
    def test_admit_registers_and_filters(self) -> None:
        cache = LoadedRecordCache()
        spec = IncludeSpec("orders")
        a, b = _Rec(1), _Rec(2)
        assert cache.admit("orders", spec, [a, b], [1, 2]) == [a, b]
        assert cache.admit("orders", spec, [a], [1]) == []
        assert cache.table("orders") == {1: a, 2: b}
        assert "orders" in cache

    def test_same_record_under_another_spec_is_expanded_again(self) -> None:
        cache = LoadedRecordCache()
        a = _Rec(1)
        assert cache.admit("orders", IncludeSpec("orders"), [a], [1]) == [a]
        assert cache.admit("orders", IncludeSpec("orders"), [a], [1]) == [a]

    def test_first_instance_wins(self) -> None:
        cache = LoadedRecordCache()
        first, second = _Rec(1), _Rec(1)
        cache.admit("orders", IncludeSpec("orders"), [first], [1])
        cache.admit("orders", IncludeSpec("orders"), [second], [1])
        assert cache.table("orders")[1] is first

    def test_tables_are_independent(self) -> None:
        cache = LoadedRecordCache()
        cache.table("orders")[1] = "o"
        assert cache.table("customers") == {}
        assert "invoices" not in cache


def test_distinct_records_by_identity() -> None:
    a, b = _Rec(1), _Rec(1)
    assert distinct_records([a, b, a]) == [a, b]
