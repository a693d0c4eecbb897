# File: accessgen/relationships.py
"""
accessgen - Relationship & Include-Spec Closure Builder
========================================================
Derives, from the metadata registry and the config, everything the accessor
generator needs per table:

1. **Inference filter**: a catalog reference into a configured table is kept
   only when the referencing table is configured too and has not set
   ``no_infer_belongs_to``.  References to a column other than the target's
   primary key are dropped with a warning.
2. **Explicit belongs-to**: each ``belongs_to`` entry adds a relationship
   from the declaring table's key column to the target's primary key,
   replacing an inferred one on the same key column.
3. **Attribute names** on both ends of every kept relationship.
4. **Include closure** of every table over the relationship graph, in both
   directions.  Self references are not eager-loadable and are left out.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from accessgen.config import CodegenConfig, TableConfig
from accessgen.errors import ConfigurationError
from accessgen.models import (
    ColumnMeta,
    RelationField,
    RelationshipMeta,
    TableGenInfo,
    TableMeta,
    default_child_attr,
    default_parent_attr,
)
from accessgen.runtime.include import IncludeSpec
from accessgen.utils import safe_identifier

logger: logging.Logger = logging.getLogger("accessgen.relationships")

IncludeGraph = Dict[str, List[str]]


# ---------------------------------------------------------------------------
# Step 1 & 2: kept relationships, filed under the referenced table
# ---------------------------------------------------------------------------


def filter_inferred(
    registry: Dict[str, TableMeta],
    config: CodegenConfig,
) -> Dict[str, List[RelationshipMeta]]:
    kept: Dict[str, List[RelationshipMeta]] = {name: [] for name in registry}
    for name, meta in registry.items():
        for ref in meta.references:
            source: Optional[TableConfig] = config.get_table(ref.points_from)
            if source is None or ref.points_from not in registry:
                logger.debug("Skipping %r: referencing table not configured.", ref)
                continue
            if source.no_infer_belongs_to:
                logger.debug("Skipping %r: no_infer_belongs_to is set.", ref)
                continue
            if ref.points_to_column != meta.pkey.name:
                logger.warning(
                    "Ignoring reference %s.%s -> %s.%s: target is not the primary key.",
                    ref.points_from,
                    ref.points_from_column,
                    name,
                    ref.points_to_column,
                )
                continue
            kept[name].append(ref)
    return kept


def attach_explicit(
    kept: Dict[str, List[RelationshipMeta]],
    registry: Dict[str, TableMeta],
    config: CodegenConfig,
) -> None:
    """Add every ``belongs_to`` entry to *kept* in place."""
    for table_config in config.tables:
        declaring: TableMeta = registry[table_config.name]
        for entry in table_config.belongs_to:
            target: Optional[TableMeta] = registry.get(entry.table)
            if target is None:
                raise ConfigurationError(
                    f"belongs_to table '{entry.table}' is not a configured table",
                    table=declaring.name,
                    field=entry.key_field,
                )
            key: Optional[ColumnMeta] = declaring.get_column(entry.key_field)
            if key is None:
                raise ConfigurationError(
                    f"belongs_to key '{entry.key_field}' is not a column",
                    table=declaring.name,
                    field=entry.key_field,
                )
            rel = RelationshipMeta(
                points_from=declaring.name,
                points_from_column=key.name,
                points_to=target.name,
                points_to_column=target.pkey.name,
                one_to_one=entry.one_to_one,
                nullable=key.nullable,
                explicit=True,
            )
            existing: List[RelationshipMeta] = kept[target.name]
            for i, other in enumerate(existing):
                if (other.points_from, other.points_from_column) == (rel.points_from, rel.points_from_column):
                    logger.info("Explicit %r replaces %r.", rel, other)
                    existing[i] = rel
                    break
            else:
                existing.append(rel)


# ---------------------------------------------------------------------------
# Step 3: attribute names
# ---------------------------------------------------------------------------


def _claim(
    table: TableMeta,
    used: Set[str],
    wanted: str,
    key_column: str,
) -> str:
    name: str = safe_identifier(wanted)
    if name in used:
        name = f"{name}_via_{safe_identifier(key_column)}"
    if name in used:
        raise ConfigurationError(
            f"cannot find a free attribute name for the relationship on '{key_column}'",
            table=table.name,
            field=key_column,
        )
    used.add(name)
    return name


def _relation_fields(
    registry: Dict[str, TableMeta],
    kept: Dict[str, List[RelationshipMeta]],
) -> Dict[str, Dict[str, List[RelationField]]]:
    """Per table: ``{"children": [...], "parents": [...]}``."""
    fields: Dict[str, Dict[str, List[RelationField]]] = {
        name: {"children": [], "parents": []} for name in registry
    }
    used: Dict[str, Set[str]] = {
        name: {c.field_name for c in meta.columns} for name, meta in registry.items()
    }

    for parent_name, rels in kept.items():
        for rel in rels:
            if rel.points_from == rel.points_to:
                logger.info("Self reference %r is not eager-loadable; skipped.", rel)
                continue
            parent: TableMeta = registry[parent_name]
            child: TableMeta = registry[rel.points_from]

            child_attr: str = _claim(
                parent,
                used[parent.name],
                default_child_attr(child.snake_name, rel.one_to_one),
                rel.points_from_column,
            )
            fields[parent.name]["children"].append(
                RelationField(attr_name=child_attr, direction="child", relationship=rel)
            )

            parent_attr: str = _claim(
                child,
                used[child.name],
                default_parent_attr(rel.points_from_column, parent.snake_name),
                rel.points_from_column,
            )
            fields[child.name]["parents"].append(
                RelationField(attr_name=parent_attr, direction="parent", relationship=rel)
            )
    return fields


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def _timestamp_column(meta: TableMeta, column: Optional[str], role: str) -> Optional[ColumnMeta]:
    if column is None:
        return None
    col: Optional[ColumnMeta] = meta.get_column(column)
    if col is None:
        raise ConfigurationError(f"{role} column does not exist", table=meta.name, field=column)
    if not col.type_info.is_timestamp:
        raise ConfigurationError(
            f"{role} column has type '{col.type_info.catalog_name}', not a timestamp",
            table=meta.name,
            field=column,
        )
    if col.is_primary_key:
        raise ConfigurationError(f"{role} column is the primary key", table=meta.name, field=column)
    return col


# ---------------------------------------------------------------------------
# Step 4: closure
# ---------------------------------------------------------------------------


def build_include_graph(
    fields: Dict[str, Dict[str, List[RelationField]]],
) -> IncludeGraph:
    """Related tables of every table, in either direction, without self edges."""
    graph: IncludeGraph = {}
    for name, sides in fields.items():
        related: List[str] = []
        for f in sides["children"] + sides["parents"]:
            if f.related_table != name and f.related_table not in related:
                related.append(f.related_table)
        graph[name] = related
    return graph


def derive_generation_info(
    registry: Dict[str, TableMeta],
    config: CodegenConfig,
) -> Dict[str, TableGenInfo]:
    """
    Build ``TableGenInfo`` for every configured table, in config order.

    Raises:
        ConfigurationError: bad belongs_to entry, bad timestamp column, or an
            attribute name that cannot be made unique.
    """
    kept: Dict[str, List[RelationshipMeta]] = filter_inferred(registry, config)
    attach_explicit(kept, registry, config)
    fields = _relation_fields(registry, kept)
    graph: IncludeGraph = build_include_graph(fields)

    infos: Dict[str, TableGenInfo] = {}
    for table_config in config.tables:
        meta: TableMeta = registry[table_config.name]
        closure: IncludeSpec = IncludeSpec.closure(meta.name, graph)
        infos[meta.name] = TableGenInfo(
            meta=meta,
            config=table_config,
            children=fields[meta.name]["children"],
            parents=fields[meta.name]["parents"],
            all_includes=closure,
            created_at=_timestamp_column(meta, table_config.created_at_field, "created_at"),
            updated_at=_timestamp_column(meta, table_config.updated_at_field, "updated_at"),
        )
        logger.debug(
            "%s: %d child relation(s), %d parent relation(s), closure %s",
            meta.name,
            len(fields[meta.name]["children"]),
            len(fields[meta.name]["parents"]),
            closure,
        )

    logger.info(
        "Derived %d relationship(s) across %d table(s).",
        sum(len(f["children"]) for f in fields.values()),
        len(infos),
    )
    return infos


__all__: List[str] = [
    "IncludeGraph",
    "filter_inferred",
    "attach_explicit",
    "build_include_graph",
    "derive_generation_info",
]

logger.debug("accessgen.relationships loaded.")
