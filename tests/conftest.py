"""
tests/conftest.py
Shared fixtures for the accessgen test suite.

Two kinds of catalog are used:

- ``FakeCatalog``: a plain in-memory ``CatalogIntrospector`` for metadata,
  relationship and template tests that never touch a database.
- an in-memory SQLite engine (``StaticPool``, so every connection sees the
  same database) introspected with ``SQLAlchemyCatalog``; generated code is
  loaded as a real module and run against it end to end.

SQLite has no native decimal or timestamp storage, so the shop schema uses
REAL for money and tests compare timestamps only for presence.
"""

from __future__ import annotations

import copy
import itertools
import pathlib
import sys
import types
from typing import Any, Dict, Iterator, List, Optional

import pytest
import yaml
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from accessgen.catalog import CatalogColumn, CatalogForeignKey, SQLAlchemyCatalog
from accessgen.config import CodegenConfig, parse_config
from accessgen.generator import generate_source


# ---------------------------------------------------------------------------
# In-memory catalog
# ---------------------------------------------------------------------------


class FakeCatalog:
    """``CatalogIntrospector`` over hand-written table descriptions."""

    def __init__(self) -> None:
        self.columns: Dict[str, List[CatalogColumn]] = {}
        self.foreign_keys: Dict[str, List[CatalogForeignKey]] = {}
        self.type_names: List[str] = []
        self.calls: List[str] = []

    def add_table(self, name: str, *columns: CatalogColumn) -> "FakeCatalog":
        self.columns[name] = list(columns)
        self.foreign_keys.setdefault(name, [])
        return self

    def add_fk(
        self,
        table: str,
        column: str,
        ref_table: str,
        ref_column: str = "id",
        *,
        nullable: bool = True,
        unique: bool = False,
    ) -> "FakeCatalog":
        self.foreign_keys.setdefault(table, []).append(CatalogForeignKey(
            table=table,
            columns=[column],
            ref_table=ref_table,
            ref_columns=[ref_column],
            nullable=nullable,
            unique=unique,
        ))
        return self

    def list_columns(self, table: str) -> List[CatalogColumn]:
        self.calls.append(f"columns:{table}")
        return list(self.columns.get(table, []))

    def list_foreign_keys(self, table: str) -> List[CatalogForeignKey]:
        return list(self.foreign_keys.get(table, []))

    def list_referencing_foreign_keys(self, table: str) -> List[CatalogForeignKey]:
        return [
            fk
            for fks in self.foreign_keys.values()
            for fk in fks
            if fk.ref_table == table
        ]

    def list_type_names(self) -> List[str]:
        return list(self.type_names)


def col(
    name: str,
    type_name: str = "integer",
    *,
    nullable: bool = True,
    pk: bool = False,
) -> CatalogColumn:
    """Short-hand ``CatalogColumn`` builder; primary keys are never nullable."""
    return CatalogColumn(
        name=name,
        type_name=type_name,
        nullable=nullable and not pk,
        is_primary_key=pk,
    )


@pytest.fixture()
def shop_catalog() -> FakeCatalog:
    """customers <- orders <- order_items -> products, orders <- invoices (1:1)."""
    catalog = FakeCatalog()
    catalog.add_table(
        "customers",
        col("id", pk=True),
        col("name", "varchar(100)", nullable=False),
        col("email", "text"),
    )
    catalog.add_table(
        "orders",
        col("id", pk=True),
        col("customer_id"),
        col("total", "numeric(10,2)", nullable=False),
        col("created_at", "timestamp with time zone"),
        col("updated_at", "timestamp"),
    )
    catalog.add_table(
        "products",
        col("id", pk=True),
        col("name", "varchar(100)", nullable=False),
    )
    catalog.add_table(
        "order_items",
        col("id", pk=True),
        col("order_id", nullable=False),
        col("product_id", nullable=False),
        col("quantity", nullable=False),
    )
    catalog.add_table(
        "invoices",
        col("id", pk=True),
        col("order_id"),
        col("amount", "real", nullable=False),
    )
    catalog.add_fk("orders", "customer_id", "customers")
    catalog.add_fk("order_items", "order_id", "orders", nullable=False)
    catalog.add_fk("order_items", "product_id", "products", nullable=False)
    catalog.add_fk("invoices", "order_id", "orders", unique=True)
    return catalog


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_shop_config() -> Dict[str, Any]:
    return {
        "tables": [
            {"name": "customers"},
            {
                "name": "orders",
                "created_at_field": "created_at",
                "updated_at_field": "updated_at",
                "belongs_to": [{"table": "customers", "key_field": "customer_id"}],
            },
            {"name": "products"},
            {"name": "order_items"},
            {"name": "invoices"},
        ],
    }


@pytest.fixture()
def shop_config_dict(raw_shop_config: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_shop_config)


@pytest.fixture()
def shop_config(shop_config_dict: Dict[str, Any]) -> CodegenConfig:
    return parse_config(shop_config_dict)


@pytest.fixture()
def shop_config_path(shop_config_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the config to a temporary YAML file and return its path."""
    path = tmp_path / "accessgen.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(shop_config_dict, fh, default_flow_style=False)
    return path


# ---------------------------------------------------------------------------
# SQLite database
# ---------------------------------------------------------------------------

SHOP_DDL: List[str] = [
    "CREATE TABLE customers ("
    " id INTEGER PRIMARY KEY,"
    " name VARCHAR(100) NOT NULL,"
    " email TEXT)",
    "CREATE TABLE orders ("
    " id INTEGER PRIMARY KEY,"
    " customer_id INTEGER REFERENCES customers (id),"
    " total REAL NOT NULL,"
    " created_at DATETIME,"
    " updated_at DATETIME)",
    "CREATE TABLE products ("
    " id INTEGER PRIMARY KEY,"
    " name VARCHAR(100) NOT NULL,"
    " UNIQUE (name))",
    "CREATE TABLE order_items ("
    " id INTEGER PRIMARY KEY,"
    " order_id INTEGER NOT NULL REFERENCES orders (id),"
    " product_id INTEGER NOT NULL REFERENCES products (id),"
    " quantity INTEGER NOT NULL)",
    "CREATE TABLE invoices ("
    " id INTEGER PRIMARY KEY,"
    " order_id INTEGER REFERENCES orders (id),"
    " amount REAL NOT NULL,"
    " UNIQUE (order_id))",
]


def make_sqlite_engine(ddl: Optional[List[str]] = None) -> Engine:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with engine.begin() as conn:
        for stmt in ddl or []:
            conn.execute(text(stmt))
    return engine


@pytest.fixture()
def sqlite_engine() -> Iterator[Engine]:
    engine = make_sqlite_engine(SHOP_DDL)
    yield engine
    engine.dispose()


class StatementLog:
    """Records every SQL statement an engine executes."""

    def __init__(self, engine: Engine) -> None:
        self.statements: List[str] = []
        event.listen(engine, "before_cursor_execute", self._record)

    def _record(self, conn: Any, cursor: Any, statement: str, *args: Any) -> None:
        self.statements.append(statement)

    def clear(self) -> None:
        self.statements.clear()

    def matching(self, fragment: str) -> List[str]:
        return [s for s in self.statements if fragment in s]


@pytest.fixture()
def statement_log(sqlite_engine: Engine) -> StatementLog:
    return StatementLog(sqlite_engine)


# ---------------------------------------------------------------------------
# Generated module loader
# ---------------------------------------------------------------------------

_module_counter = itertools.count()


def load_generated(source: str, name: Optional[str] = None) -> types.ModuleType:
    """Execute generated *source* as a registered module and return it."""
    module_name: str = name or f"_accessgen_generated_{next(_module_counter)}"
    module = types.ModuleType(module_name)
    module.__file__ = f"<{module_name}>"
    # dataclasses resolves string annotations through sys.modules
    sys.modules[module_name] = module
    code = compile(source, module.__file__, "exec")
    exec(code, module.__dict__)
    return module


@pytest.fixture()
def shop_source(sqlite_engine: Engine, shop_config: CodegenConfig) -> str:
    return generate_source(SQLAlchemyCatalog(sqlite_engine), shop_config)


@pytest.fixture()
def shop_module(shop_source: str) -> Iterator[types.ModuleType]:
    module = load_generated(shop_source)
    yield module
    sys.modules.pop(module.__name__, None)


@pytest.fixture()
def client(shop_module: types.ModuleType, sqlite_engine: Engine) -> Any:
    return shop_module.PGClient(sqlite_engine)
