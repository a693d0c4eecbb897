# File: accessgen/models.py
"""
accessgen - Metadata Models
============================
Pydantic V2 models for the relational metadata a generation run builds from
the catalog:

    ColumnMeta, TableMeta, RelationshipMeta   (catalog metadata builder)
    RelationField, TableGenInfo                (relationship & closure builder)

All of them exist only for the duration of one generation pass.  Relationships
refer to tables by name, never by object, so the metadata has no reference
cycles even when the schema does.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from accessgen.config import TableConfig
from accessgen.runtime.include import IncludeSpec
from accessgen.types import TypeInfo
from accessgen.utils import to_plural, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("accessgen.models")

# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    frozen=True,
    extra="forbid",
    arbitrary_types_allowed=True,
)


# ---------------------------------------------------------------------------
# Catalog metadata
# ---------------------------------------------------------------------------


class ColumnMeta(BaseModel):
    """One column, as it stood in the catalog at generation time."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Catalog column name.")
    field_name: str = Field(..., min_length=1, description="Attribute name on the record.")
    type_info: TypeInfo = Field(..., description="Resolved type mapping.")
    nullable: bool = Field(default=True)
    is_primary_key: bool = Field(default=False)
    ordinal: int = Field(..., ge=0, description="Position in the generation-time column order.")

    def __repr__(self) -> str:
        null: str = "NULL" if self.nullable else "NOT NULL"
        return f"<ColumnMeta {self.ordinal}:{self.name} {self.type_info.catalog_name} {null}>"


class RelationshipMeta(BaseModel):
    """
    A single-column reference ``points_from.points_from_column`` →
    ``points_to.points_to_column``.

    The referencing side is the child; the referenced side is the parent.
    """

    model_config = _FROZEN_CONFIG

    points_from: str = Field(..., min_length=1, description="Referencing (child) table.")
    points_from_column: str = Field(..., min_length=1, description="Child's key column.")
    points_to: str = Field(..., min_length=1, description="Referenced (parent) table.")
    points_to_column: str = Field(..., min_length=1, description="Parent column referenced.")
    one_to_one: bool = Field(default=False, description="At most one child per parent.")
    nullable: bool = Field(default=True, description="The child's key column allows NULL.")
    explicit: bool = Field(default=False, description="Declared via belongs_to, not inferred.")

    def __repr__(self) -> str:
        kind: str = "1:1" if self.one_to_one else "1:n"
        origin: str = "explicit" if self.explicit else "inferred"
        return (
            f"<Rel {self.points_from}.{self.points_from_column} → "
            f"{self.points_to}.{self.points_to_column} {kind} {origin}>"
        )


class TableMeta(BaseModel):
    """A configured table with its columns and the references into it."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Catalog table name.")
    class_name: str = Field(..., min_length=1, description="Generated record class name.")
    columns: List[ColumnMeta] = Field(..., min_length=1)
    pkey_index: int = Field(..., ge=0, description="Ordinal of the primary-key column.")
    references: List[RelationshipMeta] = Field(
        default_factory=list,
        description="Catalog foreign keys pointing into this table, unfiltered.",
    )

    @model_validator(mode="after")
    def _check_columns(self) -> "TableMeta":
        for i, col in enumerate(self.columns):
            if col.ordinal != i:
                raise ValueError(
                    f"column '{col.name}' of '{self.name}' has ordinal {col.ordinal}, expected {i}"
                )
        if not self.columns[self.pkey_index].is_primary_key:
            raise ValueError(f"pkey_index of '{self.name}' is not the primary key column")
        return self

    @computed_field  # type: ignore[misc]
    @property
    def snake_name(self) -> str:
        """Singular snake_case stem used in accessor method names (``order``)."""
        return to_snake_case(self.class_name)

    @property
    def const_prefix(self) -> str:
        return self.snake_name.upper()

    @property
    def pkey(self) -> ColumnMeta:
        return self.columns[self.pkey_index]

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Optional[ColumnMeta]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def __repr__(self) -> str:
        return f"<TableMeta {self.name} ({len(self.columns)} cols, pk={self.pkey.name})>"


# ---------------------------------------------------------------------------
# Generation info
# ---------------------------------------------------------------------------


class RelationField(BaseModel):
    """
    A relationship as seen from one of its two tables.

    ``direction == "child"``: the owning table is the parent; the attribute
    holds the child record(s).  ``direction == "parent"``: the owning table is
    the child; the attribute holds the parent record.
    """

    model_config = _FROZEN_CONFIG

    attr_name: str = Field(..., min_length=1)
    direction: Literal["child", "parent"]
    relationship: RelationshipMeta

    @property
    def related_table(self) -> str:
        if self.direction == "child":
            return self.relationship.points_from
        return self.relationship.points_to

    @property
    def is_list(self) -> bool:
        return self.direction == "child" and not self.relationship.one_to_one


class TableGenInfo(BaseModel):
    """Everything the accessor generator needs for one table."""

    model_config = _FROZEN_CONFIG

    meta: TableMeta
    config: TableConfig
    children: List[RelationField] = Field(
        default_factory=list, description="Relationships where this table is the parent."
    )
    parents: List[RelationField] = Field(
        default_factory=list, description="Relationships where this table is the child."
    )
    all_includes: IncludeSpec = Field(..., description="Full include closure, possibly cyclic.")
    created_at: Optional[ColumnMeta] = None
    updated_at: Optional[ColumnMeta] = None

    @property
    def name(self) -> str:
        return self.meta.name

    @property
    def relation_fields(self) -> List[RelationField]:
        return self.children + self.parents

    def fields_for(self, related_table: str) -> List[RelationField]:
        return [f for f in self.relation_fields if f.related_table == related_table]

    @property
    def related_tables(self) -> List[str]:
        """Distinct related table names in declaration order."""
        seen: Dict[str, None] = {}
        for f in self.relation_fields:
            seen.setdefault(f.related_table, None)
        return list(seen)


def default_child_attr(child_class_snake: str, one_to_one: bool) -> str:
    if one_to_one:
        return child_class_snake
    return to_plural(child_class_snake)


def default_parent_attr(key_column: str, parent_class_snake: str) -> str:
    """``customer_id`` → ``customer``; anything else → ``<parent>_ref``."""
    if key_column.endswith("_id") and len(key_column) > 3:
        return to_snake_case(key_column[:-3])
    return f"{parent_class_snake}_ref"


__all__: List[str] = [
    "ColumnMeta",
    "RelationshipMeta",
    "TableMeta",
    "RelationField",
    "TableGenInfo",
    "default_child_attr",
    "default_parent_attr",
]

logger.debug("accessgen.models loaded.")
