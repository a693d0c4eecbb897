# File: accessgen/runtime/errors.py
"""
Exceptions raised by generated data-access code.

All of them derive from ``AccessError`` and name the operation and the table
they happened on.  Database failures are never swallowed: ``annotate_errors``
wraps them in ``DatabaseAccessError`` with the driver exception chained.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator, List, Sequence

from sqlalchemy.exc import SQLAlchemyError

logger: logging.Logger = logging.getLogger("accessgen.runtime.errors")


class AccessError(Exception):
    """Base class for run-time errors raised by generated accessors."""

    def __init__(self, operation: str, table: str, message: str) -> None:
        self.operation: str = operation
        self.table: str = table
        super().__init__(f"{operation} on '{table}': {message}")


class CountMismatchError(AccessError):
    """An exact-count contract (list, bulk delete, update) was violated."""

    def __init__(self, operation: str, table: str, expected: int, found: int) -> None:
        self.expected: int = expected
        self.found: int = found
        super().__init__(
            operation,
            table,
            f"asked for {expected} record(s), found {found}",
        )


class MissingPrimaryKeyError(AccessError):
    """An update was requested with a field mask that omits the primary key."""

    def __init__(self, operation: str, table: str) -> None:
        super().__init__(
            operation,
            table,
            f"primary key required for updates to '{table}'",
        )


class FieldMaskError(AccessError, ValueError):
    """A field mask does not have one bit per column of the table."""


class ColumnDriftError(AccessError):
    """Columns known at generation time are gone from the live table."""

    def __init__(self, table: str, missing: Sequence[str]) -> None:
        self.missing: List[str] = list(missing)
        super().__init__(
            "scan",
            table,
            "columns missing from the live table: " + ", ".join(self.missing),
        )


class IncludeSpecError(ValueError):
    """An include spec could not be parsed or does not fit the record type."""


class DatabaseAccessError(AccessError):
    """A database-level failure, annotated with operation and table."""

    def __init__(self, operation: str, table: str, orig: SQLAlchemyError) -> None:
        self.orig: SQLAlchemyError = orig
        super().__init__(operation, table, str(orig))


@contextlib.contextmanager
def annotate_errors(operation: str, table: str) -> Iterator[None]:
    """Re-raise SQLAlchemy errors as ``DatabaseAccessError`` for *operation*."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.debug("%s on '%s' failed: %s", operation, table, exc)
        raise DatabaseAccessError(operation, table, exc) from exc


def check_field_mask(mask_size: int, expected: int, operation: str, table: str) -> None:
    if mask_size != expected:
        raise FieldMaskError(
            operation,
            table,
            f"field mask has {mask_size} bit(s), table has {expected} column(s)",
        )


__all__: List[str] = [
    "AccessError",
    "CountMismatchError",
    "MissingPrimaryKeyError",
    "FieldMaskError",
    "ColumnDriftError",
    "IncludeSpecError",
    "DatabaseAccessError",
    "annotate_errors",
    "check_field_mask",
]
