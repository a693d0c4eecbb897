# File: accessgen/metadata.py
"""
accessgen - Catalog Metadata Builder
=====================================
Turns the configured table list into a registry of ``TableMeta`` read from the
catalog.

Every configured table must exist, have columns, a single-column primary key
and only single-column foreign keys pointing into it; every column type must
resolve in the type table.  Incoming references are recorded as reported; no
filtering or inference happens here.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from accessgen.catalog import CatalogColumn, CatalogForeignKey, CatalogIntrospector
from accessgen.config import CodegenConfig
from accessgen.errors import ConfigurationError, MetadataError
from accessgen.models import ColumnMeta, RelationshipMeta, TableMeta
from accessgen.types import TypeInfo, TypeTable
from accessgen.utils import column_to_field_name, table_to_class_name

logger: logging.Logger = logging.getLogger("accessgen.metadata")


def _build_columns(
    table: str,
    columns: List[CatalogColumn],
    type_table: TypeTable,
) -> List[ColumnMeta]:
    result: List[ColumnMeta] = []
    seen_fields: Dict[str, str] = {}
    for ordinal, col in enumerate(columns):
        info: Optional[TypeInfo] = type_table.lookup(col.type_name)
        if info is None:
            raise MetadataError(
                f"unknown column type '{col.type_name}' (add a type override)",
                table=table,
                field=col.name,
            )
        field_name: str = column_to_field_name(col.name)
        if field_name in seen_fields:
            raise MetadataError(
                f"attribute name '{field_name}' also used by column '{seen_fields[field_name]}'",
                table=table,
                field=col.name,
            )
        seen_fields[field_name] = col.name
        result.append(ColumnMeta(
            name=col.name,
            field_name=field_name,
            type_info=info,
            nullable=col.nullable,
            is_primary_key=col.is_primary_key,
            ordinal=ordinal,
        ))
    return result


def _reference_from_fk(fk: CatalogForeignKey, into: str) -> RelationshipMeta:
    if fk.is_composite:
        raise MetadataError(
            f"composite foreign key {fk.table}({', '.join(fk.columns)}) is not supported",
            table=into,
        )
    return RelationshipMeta(
        points_from=fk.table,
        points_from_column=fk.columns[0],
        points_to=fk.ref_table,
        points_to_column=fk.ref_columns[0],
        one_to_one=fk.unique,
        nullable=fk.nullable,
        explicit=False,
    )


def build_table_meta(
    catalog: CatalogIntrospector,
    table: str,
    type_table: TypeTable,
    class_name: Optional[str] = None,
) -> TableMeta:
    """
    Introspect one table.  Raises ``MetadataError`` naming *table*.

    *class_name* overrides the record class name derived from *table*.
    """
    raw_columns: List[CatalogColumn] = catalog.list_columns(table)
    if not raw_columns:
        raise MetadataError("table not found in catalog, or has no columns", table=table)

    columns: List[ColumnMeta] = _build_columns(table, raw_columns, type_table)
    pkeys: List[ColumnMeta] = [c for c in columns if c.is_primary_key]
    if not pkeys:
        raise MetadataError("no primary key", table=table)
    if len(pkeys) > 1:
        raise MetadataError(
            "composite primary key (" + ", ".join(c.name for c in pkeys) + ") is not supported",
            table=table,
        )

    references: List[RelationshipMeta] = [
        _reference_from_fk(fk, table)
        for fk in catalog.list_referencing_foreign_keys(table)
    ]

    meta = TableMeta(
        name=table,
        class_name=class_name or table_to_class_name(table),
        columns=columns,
        pkey_index=pkeys[0].ordinal,
        references=references,
    )
    logger.debug("Built %r with %d reference(s).", meta, len(references))
    return meta


def build_registry(
    catalog: CatalogIntrospector,
    config: CodegenConfig,
    type_table: TypeTable,
) -> Dict[str, TableMeta]:
    """
    Build ``TableMeta`` for every configured table, keyed by table name.

    Raises:
        MetadataError: a table is missing or unsupported.
        ConfigurationError: two tables map to the same record class name.
    """
    registry: Dict[str, TableMeta] = {}
    class_owners: Dict[str, str] = {}
    for table_config in config.tables:
        name: str = table_config.name
        meta: TableMeta = build_table_meta(catalog, name, type_table, table_config.class_name)
        owner: str = class_owners.get(meta.class_name, "")
        if owner:
            raise ConfigurationError(
                f"record class name '{meta.class_name}' already used by table '{owner}'",
                table=name,
            )
        class_owners[meta.class_name] = name
        registry[name] = meta

    logger.info(
        "Metadata registry: %d table(s), %d column(s).",
        len(registry),
        sum(len(m.columns) for m in registry.values()),
    )
    return registry


def resolve_type_table(
    catalog: CatalogIntrospector,
    config: CodegenConfig,
) -> TypeTable:
    """Default type table with the config's overrides applied."""
    base: TypeTable = TypeTable.default()
    if not config.type_overrides:
        return base
    return base.apply_overrides(config.type_overrides, catalog.list_type_names())


__all__: List[str] = [
    "build_table_meta",
    "build_registry",
    "resolve_type_table",
]

logger.debug("accessgen.metadata loaded.")
