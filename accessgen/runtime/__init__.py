# File: accessgen/runtime/__init__.py
"""
accessgen.runtime - support code imported by generated data-access modules.

Generated code depends on this package the way an ORM model depends on its
ORM: it holds the pieces that are the same for every table (field masks,
statement builders, include specs, client base classes, value adapters and
error types) so the emitted modules only carry what is table specific.
"""

from __future__ import annotations

from typing import List

from accessgen.runtime import adapters, stmts
from accessgen.runtime.client import (
    BaseClient,
    ColumnIndexCache,
    PoolClient,
    TxClient,
    build_column_index_table,
)
from accessgen.runtime.errors import (
    AccessError,
    ColumnDriftError,
    CountMismatchError,
    DatabaseAccessError,
    FieldMaskError,
    IncludeSpecError,
    MissingPrimaryKeyError,
    annotate_errors,
    check_field_mask,
)
from accessgen.runtime.fieldset import FieldSet
from accessgen.runtime.include import (
    IncludeSpec,
    LoadedRecordCache,
    distinct_records,
    must_parse,
)

__all__: List[str] = [
    "adapters",
    "stmts",
    "BaseClient",
    "ColumnIndexCache",
    "PoolClient",
    "TxClient",
    "build_column_index_table",
    "AccessError",
    "ColumnDriftError",
    "CountMismatchError",
    "DatabaseAccessError",
    "FieldMaskError",
    "IncludeSpecError",
    "MissingPrimaryKeyError",
    "annotate_errors",
    "check_field_mask",
    "FieldSet",
    "IncludeSpec",
    "LoadedRecordCache",
    "must_parse",
    "distinct_records",
]
