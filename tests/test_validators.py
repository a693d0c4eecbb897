"""
tests/test_validators.py
Unit tests for accessgen.validators.

Tests cover:
- Table name checks (duplicates, identifiers, snake_case)
- belongs_to targets and duplicate keys
- Timestamp column sanity
- Duplicate type overrides
- The result container and the full pipeline (validate_full)
"""

from __future__ import annotations

from typing import Any, Dict

import pytest

from accessgen.config import CodegenConfig, parse_config
from accessgen.validators import (
    ValidationResult,
    validate_belongs_to,
    validate_full,
    validate_table_names,
    validate_timestamps,
    validate_type_overrides,
)


def _config(**raw: Any) -> CodegenConfig:
    return parse_config(raw)


# ===========================================================================
# Table names
# ===========================================================================


class TestTableNames:

    def test_valid(self, shop_config: CodegenConfig) -> None:
        assert validate_table_names(shop_config).codes() == set()

    def test_no_tables_is_a_warning(self) -> None:
        result = validate_table_names(_config(tables=[]))
        assert result.is_valid
        assert "NO_TABLES" in result.codes()

    def test_duplicate(self) -> None:
        result = validate_table_names(_config(tables=[{"name": "users"}, {"name": "users"}]))
        assert "DUPLICATE_TABLE_NAME" in result.codes()
        assert result.error_count == 1

    @pytest.mark.parametrize("name", ["order items", "1users", "public.users"])
    def test_invalid_identifier(self, name: str) -> None:
        result = validate_table_names(_config(tables=[{"name": name}]))
        assert "INVALID_TABLE_NAME" in result.codes()

    def test_not_snake_case_is_a_warning(self) -> None:
        result = validate_table_names(_config(tables=[{"name": "OrderItems"}]))
        assert result.is_valid
        assert "TABLE_NAME_NOT_SNAKE_CASE" in result.codes()


# ===========================================================================
# belongs_to
# ===========================================================================


class TestBelongsTo:

    def test_valid(self, shop_config: CodegenConfig) -> None:
        assert validate_belongs_to(shop_config).is_valid

    def test_unknown_table(self) -> None:
        result = validate_belongs_to(_config(tables=[
            {"name": "orders", "belongs_to": [{"table": "customers", "key_field": "customer_id"}]},
        ]))
        (err,) = result.errors
        assert err.code == "BELONGS_TO_UNKNOWN_TABLE"
        assert err.context == {"table": "orders", "key_field": "customer_id"}

    def test_duplicate_key(self) -> None:
        result = validate_belongs_to(_config(tables=[
            {"name": "customers"},
            {"name": "accounts"},
            {"name": "orders", "belongs_to": [
                {"table": "customers", "key_field": "owner_id"},
                {"table": "accounts", "key_field": "owner_id"},
            ]},
        ]))
        assert result.codes() == {"BELONGS_TO_DUPLICATE_KEY"}

    def test_self_reference_is_a_warning(self) -> None:
        result = validate_belongs_to(_config(tables=[
            {"name": "categories", "belongs_to": [{"table": "categories", "key_field": "parent_id"}]},
        ]))
        assert result.is_valid
        assert result.codes() == {"BELONGS_TO_SELF"}


# ===========================================================================
# Timestamps & type overrides
# ===========================================================================


class TestTimestamps:

    def test_same_field_warns(self) -> None:
        result = validate_timestamps(_config(tables=[
            {"name": "orders", "created_at_field": "stamp", "updated_at_field": "stamp"},
        ]))
        assert result.is_valid
        assert result.codes() == {"TIMESTAMP_SAME_FIELD"}

    def test_timestamp_as_key(self) -> None:
        result = validate_timestamps(_config(tables=[
            {"name": "orders", "updated_at_field": "customer_id",
             "belongs_to": [{"table": "customers", "key_field": "customer_id"}]},
        ]))
        assert result.codes() == {"TIMESTAMP_IS_KEY"}


class TestTypeOverrides:

    def test_duplicate_after_normalisation(self) -> None:
        result = validate_type_overrides(_config(type_overrides=[
            {"catalog_type": "CITEXT", "type_name": "str"},
            {"catalog_type": "citext", "type_name": "str"},
        ]))
        assert result.codes() == {"DUPLICATE_TYPE_OVERRIDE"}


# ===========================================================================
# Result container & pipeline
# ===========================================================================


class TestValidationResult:

    def test_bool_and_counts(self) -> None:
        result = ValidationResult()
        assert result
        result.add_warning("W", "warn")
        assert result and result.has_warnings
        result.add_error("E", "boom", {"table": "t"})
        assert not result
        assert (result.error_count, result.warning_count, len(result)) == (1, 1, 2)

    def test_format_report(self) -> None:
        result = ValidationResult()
        result.add_error("E", "boom", {"table": "t"})
        result.add_info("I", "fyi")
        report = result.format_report()
        assert "ERROR [E] boom" in report
        assert "table: t" in report
        assert "fyi" not in report
        assert "fyi" in result.format_report(include_info=True)


class TestValidateFull:

    def test_shop_config(self, shop_config: CodegenConfig) -> None:
        result = validate_full(shop_config)
        assert result.is_valid
        assert len(result) == 0

    def test_collects_from_every_validator(self, shop_config_dict: Dict[str, Any]) -> None:
        shop_config_dict["tables"].append({"name": "customers"})
        shop_config_dict["tables"][1]["belongs_to"].append({"table": "users", "key_field": "user_id"})
        shop_config_dict["type_overrides"] = [
            {"catalog_type": "citext", "type_name": "str"},
            {"catalog_type": "citext", "type_name": "str"},
        ]
        result = validate_full(parse_config(shop_config_dict))
        assert {
            "DUPLICATE_TABLE_NAME",
            "BELONGS_TO_UNKNOWN_TABLE",
            "DUPLICATE_TYPE_OVERRIDE",
        } <= result.codes()
        assert result.error_count == 3
