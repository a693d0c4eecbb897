# File: accessgen/catalog.py
"""
accessgen - Catalog Introspection
==================================
Reads table, column, key and type information from a live database.

The rest of the generator only sees the ``CatalogIntrospector`` protocol, so
tests can hand it a plain in-memory catalog.  ``SQLAlchemyCatalog`` is the
real implementation on top of ``sqlalchemy.inspect``; it works against any
dialect SQLAlchemy can reflect (PostgreSQL in production, SQLite in tests).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.exc import ArgumentError, CompileError, NoSuchTableError, SQLAlchemyError

from accessgen.config import expand_connection_string
from accessgen.errors import MetadataError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("accessgen.catalog")

_CATALOG_CONFIG: ConfigDict = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------


class CatalogColumn(BaseModel):
    model_config = _CATALOG_CONFIG

    name: str = Field(..., min_length=1)
    type_name: str = Field(..., min_length=1, description="Type name as the catalog spells it.")
    nullable: bool = Field(default=True)
    is_primary_key: bool = Field(default=False)


class CatalogForeignKey(BaseModel):
    """A foreign key constraint; multi-column keys keep all their columns."""

    model_config = _CATALOG_CONFIG

    table: str = Field(..., min_length=1, description="Referencing table.")
    columns: List[str] = Field(..., min_length=1, description="Referencing columns.")
    ref_table: str = Field(..., min_length=1, description="Referenced table.")
    ref_columns: List[str] = Field(..., min_length=1, description="Referenced columns.")
    nullable: bool = Field(default=True, description="Any referencing column allows NULL.")
    unique: bool = Field(default=False, description="Referencing columns are unique together.")

    @property
    def is_composite(self) -> bool:
        return len(self.columns) > 1


class CatalogIntrospector(Protocol):
    """What the metadata builder needs to know about the database."""

    def list_columns(self, table: str) -> List[CatalogColumn]:
        """Columns of *table* in catalog order; empty if the table does not exist."""
        ...

    def list_foreign_keys(self, table: str) -> List[CatalogForeignKey]:
        """Foreign keys declared on *table*."""
        ...

    def list_referencing_foreign_keys(self, table: str) -> List[CatalogForeignKey]:
        """Foreign keys on any table that point at *table*."""
        ...

    def list_type_names(self) -> List[str]:
        """User-defined type names (enums, domains) known to the catalog."""
        ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------


class SQLAlchemyCatalog:
    """``CatalogIntrospector`` backed by SQLAlchemy reflection."""

    def __init__(self, engine: Engine, schema: Optional[str] = None) -> None:
        self._engine: Engine = engine
        self._schema: Optional[str] = schema
        self._inspector: Inspector = inspect(engine)
        self._columns: Dict[str, List[CatalogColumn]] = {}
        self._foreign_keys: Dict[str, List[CatalogForeignKey]] = {}
        self._unique_sets: Dict[str, List[Set[str]]] = {}

    @property
    def engine(self) -> Engine:
        return self._engine

    def _type_name(self, sa_type: Any) -> str:
        try:
            return str(sa_type.compile(dialect=self._engine.dialect))
        except CompileError:
            # NullType and friends have no DDL spelling
            return type(sa_type).__name__.lower()

    def list_columns(self, table: str) -> List[CatalogColumn]:
        cached: Optional[List[CatalogColumn]] = self._columns.get(table)
        if cached is not None:
            return cached
        try:
            raw: List[Dict[str, Any]] = self._inspector.get_columns(table, schema=self._schema)
            pk: Dict[str, Any] = self._inspector.get_pk_constraint(table, schema=self._schema)
        except NoSuchTableError:
            logger.debug("Table '%s' not found in catalog.", table)
            return []
        pk_cols: Set[str] = set(pk.get("constrained_columns") or [])
        columns: List[CatalogColumn] = [
            CatalogColumn(
                name=col["name"],
                type_name=self._type_name(col["type"]),
                nullable=bool(col.get("nullable", True)),
                is_primary_key=col["name"] in pk_cols,
            )
            for col in raw
        ]
        self._columns[table] = columns
        logger.debug("Reflected %d column(s) of '%s'.", len(columns), table)
        return columns

    def _unique_column_sets(self, table: str) -> List[Set[str]]:
        cached: Optional[List[Set[str]]] = self._unique_sets.get(table)
        if cached is not None:
            return cached
        sets: List[Set[str]] = []
        for uc in self._inspector.get_unique_constraints(table, schema=self._schema):
            sets.append(set(uc.get("column_names") or []))
        for idx in self._inspector.get_indexes(table, schema=self._schema):
            if idx.get("unique"):
                sets.append({c for c in idx.get("column_names") or [] if c is not None})
        pk_cols: List[str] = (
            self._inspector.get_pk_constraint(table, schema=self._schema)
            .get("constrained_columns") or []
        )
        if pk_cols:
            sets.append(set(pk_cols))
        self._unique_sets[table] = sets
        return sets

    def list_foreign_keys(self, table: str) -> List[CatalogForeignKey]:
        cached: Optional[List[CatalogForeignKey]] = self._foreign_keys.get(table)
        if cached is not None:
            return cached
        try:
            raw: List[Dict[str, Any]] = self._inspector.get_foreign_keys(
                table, schema=self._schema
            )
        except NoSuchTableError:
            return []
        nullability: Dict[str, bool] = {c.name: c.nullable for c in self.list_columns(table)}
        unique_sets: List[Set[str]] = self._unique_column_sets(table)
        fks: List[CatalogForeignKey] = []
        for fk in raw:
            cols: List[str] = list(fk["constrained_columns"])
            fks.append(CatalogForeignKey(
                table=table,
                columns=cols,
                ref_table=fk["referred_table"],
                ref_columns=list(fk["referred_columns"]),
                nullable=any(nullability.get(c, True) for c in cols),
                unique=set(cols) in unique_sets,
            ))
        self._foreign_keys[table] = fks
        return fks

    def list_referencing_foreign_keys(self, table: str) -> List[CatalogForeignKey]:
        referencing: List[CatalogForeignKey] = []
        for other in self._inspector.get_table_names(schema=self._schema):
            for fk in self.list_foreign_keys(other):
                if fk.ref_table == table:
                    referencing.append(fk)
        return referencing

    def list_type_names(self) -> List[str]:
        get_enums = getattr(self._inspector, "get_enums", None)
        if get_enums is None:
            return []
        return [e["name"] for e in get_enums(schema=self._schema or "*")]


# ---------------------------------------------------------------------------
# Connection selection
# ---------------------------------------------------------------------------


def open_engine(url: str) -> Engine:
    """Create an engine for *url* and prove it answers a trivial query."""
    engine: Engine = create_engine(url, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        engine.dispose()
        raise
    return engine


def _loggable(raw: str, url: str) -> str:
    """*url* with its password masked, prefixed by the variable it came from."""
    try:
        shown: str = make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        shown = "<unparseable URL>"
    return shown if raw == url else f"{raw} ({shown})"


def connect_catalog(
    connection_strings: Sequence[str],
    schema: Optional[str] = None,
) -> SQLAlchemyCatalog:
    """
    Try each connection string in order and introspect the first that works.

    ``$NAME`` entries are read from the environment; unset variables are
    skipped.  Raises ``MetadataError`` when none of them connects.
    """
    tried: int = 0
    for raw in connection_strings:
        url: Optional[str] = expand_connection_string(raw)
        if url is None:
            continue
        tried += 1
        try:
            engine: Engine = open_engine(url)
        except SQLAlchemyError as exc:
            shown: str = _loggable(raw, url)
            # parse errors quote the whole string back
            logger.warning("Could not connect with %s: %s", shown, str(exc).replace(url, shown))
            continue
        logger.info("Introspecting catalog through %s.", _loggable(raw, url))
        return SQLAlchemyCatalog(engine, schema)

    if tried == 0:
        raise MetadataError("no connection string given (or all $VARIABLES unset)")
    raise MetadataError(f"could not connect to any of {tried} database(s)")


__all__: List[str] = [
    "CatalogColumn",
    "CatalogForeignKey",
    "CatalogIntrospector",
    "SQLAlchemyCatalog",
    "open_engine",
    "connect_catalog",
]

logger.debug("accessgen.catalog loaded.")
