# File: accessgen/types.py
"""
accessgen - Type Mapping Table
===============================
Maps catalog type names to the Python types used in generated records,
together with the adapters generated scan routines and argument builders call.

The default table covers the PostgreSQL built-ins (plus the names SQLite and
SQLAlchemy report for the same types).  User configuration overrides it entry
by entry through ``TypeTable.apply_overrides``, which returns a new table and
leaves the default untouched.

Catalog names are normalised before lookup: lower-cased, type parameters
dropped (``VARCHAR(255)`` → ``varchar``, ``TIMESTAMP(6) WITH TIME ZONE`` →
``timestamp with time zone``), whitespace collapsed.  Array types keep their
``[]`` suffix.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from accessgen.config import TypeOverride
from accessgen.errors import ConfigurationError
from accessgen.runtime import adapters

logger: logging.Logger = logging.getLogger("accessgen.types")

_PARAMS_RE: re.Pattern[str] = re.compile(r"\([^)]*\)")
_SPACES_RE: re.Pattern[str] = re.compile(r"\s+")
_DOTTED_RE: re.Pattern[str] = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)+$"
)


def normalize_type_name(name: str) -> str:
    """Canonical lookup key for a catalog type name."""
    cleaned: str = _PARAMS_RE.sub("", name.strip().lower())
    cleaned = _SPACES_RE.sub(" ", cleaned).strip()
    return cleaned.replace(" []", "[]")


def adapter_module(adapter: str) -> Optional[str]:
    """Module a dotted adapter path must import, or None for built-in adapters."""
    if "." in adapter:
        return adapter.rsplit(".", 1)[0]
    return None


# ---------------------------------------------------------------------------
# TypeInfo
# ---------------------------------------------------------------------------


class TypeInfo(BaseModel):
    """Everything the code generator needs to know about one catalog type."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    catalog_name: str = Field(..., min_length=1, description="Normalised catalog type name.")
    name: str = Field(..., min_length=1, description="Python type used for non-null columns.")
    nullable_name: str = Field(
        default="",
        description="Python type used for nullable columns; defaults to Optional[name].",
    )
    imports: Tuple[Tuple[str, str], ...] = Field(
        default=(),
        description="(module, name) pairs the type annotations need.",
    )
    scan_adapter: str = Field(
        default="identity",
        description="Adapter converting a raw driver value into the Python type.",
    )
    arg_adapter: str = Field(
        default="identity",
        description="Adapter converting the Python value into a bind parameter.",
    )
    is_timestamp: bool = Field(default=False, description="Usable as a created/updated stamp.")
    has_timezone: bool = Field(default=False, description="Timestamp column stores a zone.")

    @model_validator(mode="before")
    @classmethod
    def _default_nullable_name(cls, data: object) -> object:
        if isinstance(data, dict) and not data.get("nullable_name") and data.get("name"):
            data = dict(data)
            data["nullable_name"] = f"Optional[{data['name']}]"
        return data

    @model_validator(mode="after")
    def _check_adapters(self) -> "TypeInfo":
        for kind, adapter, builtin in (
            ("scan", self.scan_adapter, adapters.SCAN_ADAPTERS),
            ("argument", self.arg_adapter, adapters.ARG_ADAPTERS),
        ):
            if adapter in builtin:
                continue
            if not _DOTTED_RE.match(adapter):
                raise ValueError(
                    f"{kind} adapter '{adapter}' for '{self.catalog_name}' is neither "
                    f"a built-in adapter nor a dotted module.function path"
                )
        if self.has_timezone and not self.is_timestamp:
            raise ValueError(f"'{self.catalog_name}' has a timezone but is not a timestamp")
        return self

    def scan_expr(self, nullable: bool) -> str:
        """Source expression for this type's scan adapter."""
        base: str = self._adapter_expr(self.scan_adapter)
        if nullable and self.scan_adapter != "identity":
            return f"adapters.nullable({base})"
        return base

    def arg_expr(self) -> str:
        return self._adapter_expr(self.arg_adapter)

    @staticmethod
    def _adapter_expr(adapter: str) -> str:
        if "." in adapter:
            return adapter
        return f"adapters.{adapter}"

    def annotation(self, nullable: bool) -> str:
        return self.nullable_name if nullable else self.name

    def required_modules(self) -> Set[str]:
        """Plain ``import`` lines the adapters need."""
        return {
            m for m in (adapter_module(self.scan_adapter), adapter_module(self.arg_adapter))
            if m is not None
        }


# ---------------------------------------------------------------------------
# Default table
# ---------------------------------------------------------------------------


def _entries(names: Iterable[str], **spec: object) -> Dict[str, TypeInfo]:
    return {
        name: TypeInfo.model_validate({"catalog_name": name, **spec})
        for name in names
    }


def _build_default_entries() -> Dict[str, TypeInfo]:
    entries: Dict[str, TypeInfo] = {}

    entries.update(_entries(
        ("smallint", "int2", "integer", "int", "int4", "bigint", "int8",
         "serial", "serial4", "bigserial", "serial8", "smallserial"),
        name="int",
    ))
    entries.update(_entries(
        ("real", "float4", "double precision", "float8", "float", "double"),
        name="float",
    ))
    entries.update(_entries(
        ("numeric", "decimal", "money"),
        name="Decimal",
        imports=(("decimal", "Decimal"),),
        scan_adapter="to_decimal",
    ))
    entries.update(_entries(("boolean", "bool"), name="bool", scan_adapter="to_bool"))
    entries.update(_entries(
        ("text", "varchar", "character varying", "char", "character", "bpchar",
         "citext", "name", "nvarchar", "clob", "inet", "cidr", "macaddr"),
        name="str",
    ))
    entries.update(_entries(
        ("bytea", "blob", "binary", "varbinary"),
        name="bytes",
        scan_adapter="to_bytes",
    ))
    entries.update(_entries(("date",), name="date", imports=(("datetime", "date"),)))
    entries.update(_entries(
        ("time", "time without time zone", "time with time zone", "timetz"),
        name="time",
        imports=(("datetime", "time"),),
    ))
    entries.update(_entries(
        ("interval",),
        name="timedelta",
        imports=(("datetime", "timedelta"),),
    ))
    entries.update(_entries(
        ("timestamp", "timestamp without time zone", "datetime"),
        name="datetime",
        imports=(("datetime", "datetime"),),
        is_timestamp=True,
    ))
    entries.update(_entries(
        ("timestamptz", "timestamp with time zone"),
        name="datetime",
        imports=(("datetime", "datetime"),),
        is_timestamp=True,
        has_timezone=True,
    ))
    entries.update(_entries(
        ("uuid",),
        name="UUID",
        imports=(("uuid", "UUID"),),
        scan_adapter="to_uuid",
        arg_adapter="uuid_arg",
    ))
    entries.update(_entries(
        ("json", "jsonb"),
        name="Any",
        nullable_name="Any",
        imports=(("typing", "Any"),),
        arg_adapter="json_arg",
    ))

    array_elements: Dict[str, str] = {
        "smallint": "int", "integer": "int", "int": "int", "bigint": "int",
        "real": "float", "double precision": "float", "float": "float",
        "text": "str", "varchar": "str", "character varying": "str",
        "boolean": "bool",
    }
    for element, py_name in array_elements.items():
        entries.update(_entries(
            (f"{element}[]",),
            name=f"List[{py_name}]",
            imports=(("typing", "List"),),
            scan_adapter="to_list",
        ))
    entries.update(_entries(
        ("numeric[]", "decimal[]"),
        name="List[Decimal]",
        imports=(("typing", "List"), ("decimal", "Decimal")),
        scan_adapter="to_list",
    ))
    return entries


# ---------------------------------------------------------------------------
# TypeTable
# ---------------------------------------------------------------------------


class TypeTable:
    """Immutable mapping from normalised catalog type name to ``TypeInfo``."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Dict[str, TypeInfo]) -> None:
        self._entries: Dict[str, TypeInfo] = dict(entries)

    @classmethod
    def default(cls) -> "TypeTable":
        return cls(_DEFAULT_ENTRIES)

    def lookup(self, catalog_type: str) -> Optional[TypeInfo]:
        return self._entries.get(normalize_type_name(catalog_type))

    def resolve(self, catalog_type: str) -> TypeInfo:
        info: Optional[TypeInfo] = self.lookup(catalog_type)
        if info is None:
            raise KeyError(catalog_type)
        return info

    def apply_overrides(
        self,
        overrides: Iterable[TypeOverride],
        known_types: Iterable[str] = (),
    ) -> "TypeTable":
        """
        Return a new table with *overrides* applied.

        Each override must name a type already in this table or one of
        *known_types* (user-defined types reported by the catalog).
        """
        known: FrozenSet[str] = frozenset(normalize_type_name(t) for t in known_types)
        entries: Dict[str, TypeInfo] = dict(self._entries)
        for override in overrides:
            key: str = normalize_type_name(override.catalog_type)
            if key not in entries and key not in known:
                raise ConfigurationError(
                    f"type override for unknown catalog type '{override.catalog_type}'",
                    field="type_overrides",
                )
            base: Optional[TypeInfo] = entries.get(key)
            try:
                entries[key] = TypeInfo.model_validate({
                    "catalog_name": key,
                    "name": override.type_name,
                    "nullable_name": override.nullable_type_name or "",
                    "imports": tuple(
                        (imp.module, imp.name) for imp in override.imports
                    ),
                    "scan_adapter": override.scan_adapter or "identity",
                    "arg_adapter": override.arg_adapter or "identity",
                    "is_timestamp": base.is_timestamp if base else False,
                    "has_timezone": base.has_timezone if base else False,
                })
            except ValueError as exc:
                raise ConfigurationError(
                    f"invalid type override for '{override.catalog_type}': {exc}",
                    field="type_overrides",
                ) from exc
            logger.info(
                "Type override: %s -> %s (nullable %s)",
                key,
                entries[key].name,
                entries[key].nullable_name,
            )
        return TypeTable(entries)

    def __contains__(self, catalog_type: object) -> bool:
        return isinstance(catalog_type, str) and self.lookup(catalog_type) is not None

    def __len__(self) -> int:
        return len(self._entries)


_DEFAULT_ENTRIES: Dict[str, TypeInfo] = _build_default_entries()


__all__: List[str] = [
    "TypeInfo",
    "TypeTable",
    "normalize_type_name",
    "adapter_module",
]

logger.debug("accessgen.types loaded, %d default entries.", len(_DEFAULT_ENTRIES))
