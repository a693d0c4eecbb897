"""
tests/test_stmts.py
Unit tests for the statement builders in accessgen.runtime.stmts.

Statements are checked through their SQL text; execution is covered by
tests/test_generated_client.py.
"""

from __future__ import annotations

import pytest

from accessgen.runtime import stmts
from accessgen.runtime.fieldset import FieldSet

FIELDS = ("id", "name", "email", "updated_at")


class TestQuoting:
    def test_quote_ident_doubles_quotes(self) -> None:
        assert stmts.quote_ident('we"ird') == '"we""ird"'

    def test_quote_ident_escapes_colons(self) -> None:
        assert stmts.quote_ident("a:b") == '"a\\:b"'


class TestKeyStatements:
    def test_select_by_keys(self) -> None:
        sql = str(stmts.select_by_keys("users", "id"))
        assert sql.startswith('SELECT * FROM "users" WHERE "id" IN')

    def test_delete_by_keys(self) -> None:
        assert str(stmts.delete_by_keys("users", "id")).startswith('DELETE FROM "users"')

    def test_live_columns_probe(self) -> None:
        assert str(stmts.select_live_columns("users")) == 'SELECT * FROM "users" LIMIT 0'


class TestInsert:
    def test_insert_columns_skip_key(self) -> None:
        assert stmts.insert_columns(4, 0, include_pkey=False) == [1, 2, 3]
        assert stmts.insert_columns(4, 0, include_pkey=True) == [0, 1, 2, 3]

    def test_bulk_insert_multi_row(self) -> None:
        stmt, params = stmts.bulk_insert(
            "users", FIELDS, 0, [(None, "a", "a@x", None), (None, "b", None, None)]
        )
        sql = str(stmt)
        assert '"id"' not in sql.split("VALUES")[0]
        assert sql.endswith('RETURNING "id"')
        assert params["p0_1"] == "a"
        assert params["p1_2"] is None
        assert "p0_0" not in params

    def test_bulk_insert_with_key(self) -> None:
        _, params = stmts.bulk_insert("users", FIELDS, 0, [(7, "a", None, None)], include_pkey=True)
        assert params["p0_0"] == 7

    def test_row_width_checked(self) -> None:
        with pytest.raises(ValueError):
            stmts.bulk_insert("users", FIELDS, 0, [(1, "a")])


class TestUpsert:
    def test_update_columns_exclude_key_and_conflict(self) -> None:
        mask = FieldSet.filled(4)
        assert stmts.upsert_update_columns(FIELDS, 0, mask, ["email"]) == [1, 3]

    def test_masked_upsert_sets_masked_columns(self) -> None:
        mask = FieldSet.of(4, 0, 1)
        stmt, _ = stmts.bulk_upsert("users", FIELDS, 0, [(1, "a", None, None)], None, mask)
        sql = str(stmt)
        assert 'ON CONFLICT ("id") DO UPDATE SET "name" = excluded."name"' in sql
        assert '"email" = excluded' not in sql

    def test_empty_mask_does_nothing(self) -> None:
        stmt, params = stmts.bulk_upsert(
            "users", FIELDS, 0, [(1, "a", None, None)], None, FieldSet(4)
        )
        sql = str(stmt)
        assert "ON CONFLICT DO NOTHING" in sql
        assert "SET" not in sql
        # key bit unset: the key is left to the database
        assert "p0_0" not in params

    def test_key_only_mask_degenerates_to_do_nothing(self) -> None:
        stmt, params = stmts.bulk_upsert(
            "users", FIELDS, 0, [(1, "a", None, None)], None, FieldSet.of(4, 0)
        )
        assert "DO NOTHING" in str(stmt)
        assert params["p0_0"] == 1

    def test_custom_conflict_target(self) -> None:
        stmt, _ = stmts.bulk_upsert(
            "users", FIELDS, 0, [(1, "a", "a@x", None)], ["email"], FieldSet.filled(4)
        )
        sql = str(stmt)
        assert 'ON CONFLICT ("email")' in sql
        assert '"email" = excluded' not in sql

    def test_unknown_conflict_column(self) -> None:
        with pytest.raises(ValueError, match="nope"):
            stmts.bulk_upsert("users", FIELDS, 0, [(1, "a", None, None)], ["nope"], FieldSet(4))

    def test_mask_width_checked(self) -> None:
        with pytest.raises(ValueError):
            stmts.bulk_upsert("users", FIELDS, 0, [(1, "a", None, None)], None, FieldSet(3))


class TestUpdate:
    def test_update_names_only_masked_non_key_columns(self) -> None:
        stmt, params = stmts.update(
            "users", FIELDS, 0, FieldSet.of(4, 0, 2), (5, "n", "e@x", None)
        )
        sql = str(stmt)
        assert sql == 'UPDATE "users" SET "email" = :f2 WHERE "id" = :pkey RETURNING "id"'
        assert params == {"pkey": 5, "f2": "e@x"}

    def test_key_only_mask_selects(self) -> None:
        stmt, params = stmts.update("users", FIELDS, 0, FieldSet.of(4, 0), (5, "n", None, None))
        assert str(stmt).startswith('SELECT "id" FROM "users"')
        assert params == {"pkey": 5}
