# File: accessgen/runtime/stmts.py
"""
Statement builders for generated accessors.

The shape of insert, update and upsert statements depends on the field mask
and on how many rows are written, so they are assembled at call time.  Column
lists always come from iterating the mask against the table's fixed
generation-time column order; rows arrive as tuples in that same order.

Every builder returns a ``TextClause`` ready for ``Connection.execute`` plus
the parameter dict to go with it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import bindparam, text
from sqlalchemy.sql.elements import TextClause

from accessgen.runtime.fieldset import FieldSet

logger: logging.Logger = logging.getLogger("accessgen.runtime.stmts")

Statement = Tuple[TextClause, Dict[str, Any]]

# Name of the expanding parameter used by key-set statements.
KEYS_PARAM: str = "keys"


def quote_ident(name: str) -> str:
    """Double-quote an identifier; colons are escaped so ``text()`` leaves them alone."""
    return '"' + name.replace('"', '""').replace(":", "\\:") + '"'


# ---------------------------------------------------------------------------
# Key-set statements
# ---------------------------------------------------------------------------


def select_by_keys(table: str, column: str) -> TextClause:
    """``SELECT *`` of every row whose *column* is in the bound key list."""
    return text(
        f"SELECT * FROM {quote_ident(table)} "
        f"WHERE {quote_ident(column)} IN :{KEYS_PARAM}"
    ).bindparams(bindparam(KEYS_PARAM, expanding=True))


def delete_by_keys(table: str, column: str) -> TextClause:
    return text(
        f"DELETE FROM {quote_ident(table)} "
        f"WHERE {quote_ident(column)} IN :{KEYS_PARAM}"
    ).bindparams(bindparam(KEYS_PARAM, expanding=True))


def select_live_columns(table: str) -> TextClause:
    return text(f"SELECT * FROM {quote_ident(table)} LIMIT 0")


# ---------------------------------------------------------------------------
# Insert / upsert
# ---------------------------------------------------------------------------


def insert_columns(
    field_count: int,
    pkey_idx: int,
    include_pkey: bool,
) -> List[int]:
    """Column indices written by an insert: all of them, minus the key unless asked."""
    return [i for i in range(field_count) if i != pkey_idx or include_pkey]


def _insert_common(
    table: str,
    fields: Sequence[str],
    columns: Sequence[int],
    rows: Sequence[Sequence[Any]],
) -> Tuple[List[str], Dict[str, Any]]:
    params: Dict[str, Any] = {}
    tuples: List[str] = []
    for r, row in enumerate(rows):
        if len(row) != len(fields):
            raise ValueError(
                f"row {r} for '{table}' has {len(row)} value(s), expected {len(fields)}"
            )
        names: List[str] = []
        for c in columns:
            name: str = f"p{r}_{c}"
            params[name] = row[c]
            names.append(f":{name}")
        tuples.append("(" + ", ".join(names) + ")")

    col_list: str = ", ".join(quote_ident(fields[c]) for c in columns)
    parts: List[str] = [
        f"INSERT INTO {quote_ident(table)} ({col_list})",
        "VALUES " + ", ".join(tuples),
    ]
    return parts, params


def bulk_insert(
    table: str,
    fields: Sequence[str],
    pkey_idx: int,
    rows: Sequence[Sequence[Any]],
    include_pkey: bool = False,
) -> Statement:
    """
    Multi-row INSERT returning the keys in the order the database reports them.

    The primary key column is left to its database default unless
    *include_pkey* is set.
    """
    columns: List[int] = insert_columns(len(fields), pkey_idx, include_pkey=include_pkey)
    parts, params = _insert_common(table, fields, columns, rows)
    parts.append(f"RETURNING {quote_ident(fields[pkey_idx])}")
    return text(" ".join(parts)), params


def upsert_update_columns(
    fields: Sequence[str],
    pkey_idx: int,
    field_mask: FieldSet,
    conflict_columns: Sequence[str],
) -> List[int]:
    """Masked columns an upsert overwrites on conflict: never the key or the conflict target."""
    skip = set(conflict_columns)
    return [
        i for i in field_mask.indices()
        if i != pkey_idx and fields[i] not in skip
    ]


def bulk_upsert(
    table: str,
    fields: Sequence[str],
    pkey_idx: int,
    rows: Sequence[Sequence[Any]],
    conflict_columns: Optional[Sequence[str]],
    field_mask: FieldSet,
) -> Statement:
    """
    Multi-row ``INSERT ... ON CONFLICT`` returning the affected keys.

    The primary key is inserted only when its bit is in *field_mask*.  When
    the mask selects nothing to overwrite the statement ends in
    ``ON CONFLICT DO NOTHING`` and rows that already existed are not returned.
    """
    if field_mask.size != len(fields):
        raise ValueError("field mask width does not match the column list")
    conflict: List[str] = list(conflict_columns or [fields[pkey_idx]])
    unknown: List[str] = [c for c in conflict if c not in fields]
    if unknown:
        raise ValueError(
            f"conflict column(s) {', '.join(unknown)} are not columns of '{table}'"
        )

    columns: List[int] = insert_columns(
        len(fields), pkey_idx, include_pkey=field_mask.test(pkey_idx)
    )
    parts, params = _insert_common(table, fields, columns, rows)

    updates: List[int] = upsert_update_columns(fields, pkey_idx, field_mask, conflict)
    if updates:
        target: str = ", ".join(quote_ident(c) for c in conflict)
        assignments: str = ", ".join(
            f"{quote_ident(fields[i])} = excluded.{quote_ident(fields[i])}"
            for i in updates
        )
        parts.append(f"ON CONFLICT ({target}) DO UPDATE SET {assignments}")
    else:
        parts.append("ON CONFLICT DO NOTHING")
    parts.append(f"RETURNING {quote_ident(fields[pkey_idx])}")
    return text(" ".join(parts)), params


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


def update(
    table: str,
    fields: Sequence[str],
    pkey_idx: int,
    field_mask: FieldSet,
    row: Sequence[Any],
) -> Statement:
    """
    UPDATE of the masked non-key columns of one row, returning its key.

    A mask with only the key bit still has to prove the row exists, so it
    becomes a plain ``SELECT`` of the key.
    """
    if field_mask.size != len(fields):
        raise ValueError("field mask width does not match the column list")
    pkey: str = quote_ident(fields[pkey_idx])
    params: Dict[str, Any] = {"pkey": row[pkey_idx]}
    assignments: List[str] = []
    for i in field_mask.indices():
        if i == pkey_idx:
            continue
        name: str = f"f{i}"
        params[name] = row[i]
        assignments.append(f"{quote_ident(fields[i])} = :{name}")

    if not assignments:
        return (
            text(f"SELECT {pkey} FROM {quote_ident(table)} WHERE {pkey} = :pkey"),
            params,
        )
    sql: str = (
        f"UPDATE {quote_ident(table)} SET {', '.join(assignments)} "
        f"WHERE {pkey} = :pkey RETURNING {pkey}"
    )
    return text(sql), params


__all__: List[str] = [
    "KEYS_PARAM",
    "Statement",
    "quote_ident",
    "select_by_keys",
    "delete_by_keys",
    "select_live_columns",
    "insert_columns",
    "bulk_insert",
    "upsert_update_columns",
    "bulk_upsert",
    "update",
]
