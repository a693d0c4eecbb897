# File: accessgen/runtime/client.py
"""
Base classes for generated clients and the column index cache.

Generated modules define ``PGClient`` (pool-backed) and ``TxPGClient``
(bound to one transaction) by mixing per-table accessor classes into
``PoolClient`` and ``TxClient``.  Accessors only ever talk to the database
through ``self._connect()``, which is where the two differ.

Scan routines are positional.  Because the deployed table may order its
columns differently from the catalog the code was generated against, the
first scan of each table asks the live database for its column order and
caches a generation-index to live-index translation table.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import (
    ClassVar,
    ContextManager,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
)

from sqlalchemy.engine import Connection, Engine

from accessgen.runtime import stmts
from accessgen.runtime.errors import ColumnDriftError, annotate_errors

logger: logging.Logger = logging.getLogger("accessgen.runtime.client")

ColumnIndexTable = Tuple[int, ...]


def build_column_index_table(
    conn: Connection,
    table: str,
    gen_time_columns: Sequence[str],
) -> ColumnIndexTable:
    """Map each generation-time column position to its position in the live table."""
    with annotate_errors("scan", table):
        result = conn.execute(stmts.select_live_columns(table))
        live: List[str] = list(result.keys())
        result.close()

    positions: Dict[str, int] = {name: i for i, name in enumerate(live)}
    missing: List[str] = [c for c in gen_time_columns if c not in positions]
    if missing:
        raise ColumnDriftError(table, missing)
    if live[: len(gen_time_columns)] != list(gen_time_columns):
        logger.info(
            "Column order of '%s' differs from generation time: %s",
            table,
            live,
        )
    return tuple(positions[c] for c in gen_time_columns)


class ColumnIndexCache:
    """Per-client, per-table translation tables, built once under a lock."""

    __slots__ = ("_tables", "_locks", "_guard")

    def __init__(self) -> None:
        self._tables: Dict[str, ColumnIndexTable] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard: threading.Lock = threading.Lock()

    def get(
        self,
        conn: Connection,
        table: str,
        gen_time_columns: Sequence[str],
    ) -> ColumnIndexTable:
        tab: Optional[ColumnIndexTable] = self._tables.get(table)
        if tab is not None:
            return tab

        with self._guard:
            lock: threading.Lock = self._locks.setdefault(table, threading.Lock())
        with lock:
            tab = self._tables.get(table)
            if tab is None:
                tab = build_column_index_table(conn, table, gen_time_columns)
                self._tables[table] = tab
                logger.debug("Column index table for '%s': %s", table, tab)
        return tab

    def clear(self) -> None:
        with self._guard:
            self._tables.clear()


class BaseClient:
    """Behaviour shared by pool-backed and transaction-bound clients."""

    _column_indexes: ColumnIndexCache

    def _connect(self) -> ContextManager[Connection]:
        raise NotImplementedError

    def column_index_table(
        self,
        conn: Connection,
        table: str,
        gen_time_columns: Sequence[str],
    ) -> ColumnIndexTable:
        return self._column_indexes.get(conn, table, gen_time_columns)


class TxClient(BaseClient):
    """Client bound to one open transaction; every call uses its connection."""

    def __init__(self, parent: "PoolClient", conn: Connection) -> None:
        self._parent: PoolClient = parent
        self._conn: Connection = conn
        self._column_indexes = parent._column_indexes

    @property
    def connection(self) -> Connection:
        return self._conn

    @contextlib.contextmanager
    def _connect(self) -> Iterator[Connection]:
        yield self._conn


class PoolClient(BaseClient):
    """Client backed by an engine's connection pool; each call is its own transaction."""

    tx_client_class: ClassVar[Type[TxClient]] = TxClient

    def __init__(self, engine: Engine) -> None:
        self._engine: Engine = engine
        self._column_indexes = ColumnIndexCache()

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextlib.contextmanager
    def _connect(self) -> Iterator[Connection]:
        with self._engine.begin() as conn:
            yield conn

    @contextlib.contextmanager
    def begin_tx(self) -> Iterator[TxClient]:
        """
        Open a transaction and yield a client bound to it.

        The transaction commits when the block exits normally and rolls back
        when it raises.
        """
        with self._engine.connect() as conn:
            with conn.begin():
                yield self.tx_client_class(self, conn)


__all__: List[str] = [
    "ColumnIndexTable",
    "ColumnIndexCache",
    "build_column_index_table",
    "BaseClient",
    "PoolClient",
    "TxClient",
]
