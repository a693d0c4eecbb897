"""
tests/test_types.py
Unit tests for accessgen.types: normalisation, the default table and
override handling.
"""

from __future__ import annotations

import pytest

from accessgen.config import ImportName, TypeOverride
from accessgen.errors import ConfigurationError
from accessgen.types import TypeInfo, TypeTable, normalize_type_name


class TestNormalize:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("VARCHAR(255)", "varchar"),
            ("  Character   Varying (10) ", "character varying"),
            ("NUMERIC(10, 2)", "numeric"),
            ("integer []", "integer[]"),
            ("TIMESTAMP WITH TIME ZONE", "timestamp with time zone"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_type_name(raw) == expected


class TestDefaultTable:
    def test_lookup_and_resolve(self) -> None:
        table = TypeTable.default()
        assert table.resolve("INTEGER").name == "int"
        assert table.lookup("VARCHAR(40)").name == "str"  # type: ignore[union-attr]
        assert table.lookup("geometry") is None
        assert "bigint" in table
        assert "geometry" not in table

    def test_resolve_unknown_raises(self) -> None:
        with pytest.raises(KeyError):
            TypeTable.default().resolve("geometry")

    def test_timestamps(self) -> None:
        table = TypeTable.default()
        naive = table.resolve("timestamp")
        aware = table.resolve("timestamptz")
        assert naive.is_timestamp and not naive.has_timezone
        assert aware.is_timestamp and aware.has_timezone
        assert not table.resolve("date").is_timestamp

    def test_nullable_scan_wraps_converting_adapters_only(self) -> None:
        table = TypeTable.default()
        assert table.resolve("text").scan_expr(nullable=True) == "adapters.identity"
        assert table.resolve("numeric").scan_expr(nullable=True) == "adapters.nullable(adapters.to_decimal)"
        assert table.resolve("numeric").scan_expr(nullable=False) == "adapters.to_decimal"

    def test_annotations(self) -> None:
        uuid_info = TypeTable.default().resolve("uuid")
        assert uuid_info.annotation(False) == "UUID"
        assert uuid_info.annotation(True) == "Optional[UUID]"
        assert ("uuid", "UUID") in uuid_info.imports
        assert uuid_info.arg_expr() == "adapters.uuid_arg"

    def test_arrays(self) -> None:
        info = TypeTable.default().resolve("integer[]")
        assert info.name == "List[int]"
        assert info.scan_adapter == "to_list"


class TestTypeInfoValidation:
    def test_unknown_builtin_adapter(self) -> None:
        with pytest.raises(ValueError):
            TypeInfo(catalog_name="x", name="int", scan_adapter="nope")

    def test_dotted_adapter_accepted(self) -> None:
        info = TypeInfo(catalog_name="x", name="Money", scan_adapter="myapp.money.parse")
        assert info.scan_expr(nullable=False) == "myapp.money.parse"
        assert info.required_modules() == {"myapp.money"}

    def test_timezone_requires_timestamp(self) -> None:
        with pytest.raises(ValueError):
            TypeInfo(catalog_name="x", name="int", has_timezone=True)


class TestOverrides:
    def test_override_known_type(self) -> None:
        base = TypeTable.default()
        table = base.apply_overrides([
            TypeOverride(catalog_type="NUMERIC", type_name="float", nullable_type_name="float | None"),
        ])
        assert table.resolve("numeric(4,1)").name == "float"
        assert table.resolve("numeric").nullable_name == "float | None"
        # original table untouched
        assert base.resolve("numeric").name == "Decimal"

    def test_override_keeps_timestamp_flags(self) -> None:
        table = TypeTable.default().apply_overrides([
            TypeOverride(
                catalog_type="timestamptz",
                type_name="Instant",
                imports=[ImportName(module="myapp.time", name="Instant")],
            ),
        ])
        info = table.resolve("timestamptz")
        assert info.is_timestamp and info.has_timezone
        assert info.imports == (("myapp.time", "Instant"),)

    def test_override_user_defined_type(self) -> None:
        table = TypeTable.default().apply_overrides(
            [TypeOverride(catalog_type="mood", type_name="str")],
            known_types=["mood"],
        )
        assert table.resolve("mood").name == "str"

    def test_override_unknown_type_fails(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown catalog type 'mood'"):
            TypeTable.default().apply_overrides([TypeOverride(catalog_type="mood", type_name="str")])

    def test_override_bad_adapter_fails(self) -> None:
        with pytest.raises(ConfigurationError, match="invalid type override"):
            TypeTable.default().apply_overrides([
                TypeOverride(catalog_type="text", type_name="str", scan_adapter="not an adapter"),
            ])
