# File: accessgen/templates.py
"""
accessgen - Accessor Code Generator
====================================
Turns the per-table ``TableGenInfo`` into the source text of one Python module:

    1. public field index constants, field count and include closure
    2. a ``@dataclass(kw_only=True)`` record with a positional ``scan`` routine
    3. a ``_<Class>Table`` namespace: column names, scanners, argument
       builder, select helpers and include-fill helpers
    4. an accessor mixin with get / list / insert / update / upsert / delete
       and include-fill methods
    5. ``TxPGClient`` and ``PGClient`` composed from all mixins

Generated code refers to column positions by literal index, never through
the public constants.

**Emission contract:**
    - All string assembly uses ``List[str]`` + ``"\\n".join()``.
    - Each concern has its own small ``_emit_*`` builder returning lines.
    - The generator holds no state beyond its inputs; emitting twice yields
      identical text.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set, Tuple

from accessgen.errors import ConfigurationError
from accessgen.models import ColumnMeta, RelationField, TableGenInfo, TableMeta
from accessgen.utils import build_import_block, format_tuple_literal, merge_import_dicts

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("accessgen.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_I: str = "    "
_II: str = _I * 2
_III: str = _I * 3
_IIII: str = _I * 4

GENERATED_HEADER: str = "# Code generated by accessgen. DO NOT EDIT."

_BANNER: str = "# " + "-" * 75

_BASE_IMPORTS: Dict[str, Set[str]] = {
    "dataclasses": {"dataclass", "field"},
    "typing": {"Any", "Callable", "Dict", "List", "Optional", "Sequence", "Tuple"},
    "sqlalchemy.engine": {"Connection"},
    "accessgen.runtime": {
        "BaseClient",
        "FieldSet",
        "IncludeSpec",
        "LoadedRecordCache",
        "PoolClient",
        "TxClient",
        "adapters",
        "distinct_records",
        "stmts",
    },
    "accessgen.runtime.errors": {
        "CountMismatchError",
        "IncludeSpecError",
        "MissingPrimaryKeyError",
        "annotate_errors",
        "check_field_mask",
    },
}

_MODULE_NAMES: Set[str] = {"PGClient", "TxPGClient", "_INCLUDE_GRAPH", "annotations"}


class TemplateGenerator:
    """
    Code-generation engine for one data-access module.

    Accepts the ``TableGenInfo`` of every configured table (in config order)
    and produces the module's source text with ``generate_module``.

    Every table owns three classes (the record, ``_<Class>Table`` holding its
    column layout and query helpers, ``_<Class>Accessors``) and a handful of
    public constants.  Record class names are unique, so the classes cannot
    collide.  The constants and client method names are checked up front:
    ``USER_PROFILE_ID_FIELD_INDEX`` can come from two tables, as can
    ``order_bulk_fill_includes``.
    """

    def __init__(self, infos: Dict[str, TableGenInfo]) -> None:
        self._infos: Dict[str, TableGenInfo] = infos
        self._check_names()
        logger.debug("TemplateGenerator initialised for %d table(s).", len(infos))

    def _module_level_names(self, info: TableGenInfo) -> List[str]:
        meta: TableMeta = info.meta
        prefix: str = meta.const_prefix
        names: List[str] = [
            meta.class_name,
            self._namespace(meta),
            f"_{meta.class_name}Accessors",
        ]
        names.extend(self._index_const(meta, col) for col in meta.columns)
        names.extend([
            f"{prefix}_FIELD_INDEX_MAX",
            f"{prefix}_FIELD_COUNT",
            f"{prefix}_ALL_FIELDS",
            f"{prefix}_ALL_INCLUDES",
        ])
        return names

    @staticmethod
    def _client_method_names(info: TableGenInfo) -> List[str]:
        snake: str = info.meta.snake_name
        names: List[str] = [
            f"{op}_{snake}"
            for op in (
                "get", "list", "insert", "bulk_insert", "update",
                "upsert", "bulk_upsert", "delete", "bulk_delete", "_delete",
            )
        ]
        names.extend([f"{snake}_fill_includes", f"{snake}_bulk_fill_includes"])
        return names

    def _check_names(self) -> None:
        """
        Raise ``ConfigurationError`` if two definitions would share a name,
        either at module level or on the composed client classes.  Python
        lets the later one replace the earlier without complaint.
        """
        module_owners: Dict[str, str] = {n: "a name the generated module defines" for n in _MODULE_NAMES}
        plain, typed = self._collect_imports()
        for module in plain:
            module_owners[module.split(".")[0]] = "a name the generated module imports"
        for names in typed.values():
            for name in names:
                module_owners[name] = "a name the generated module imports"
        client_owners: Dict[str, str] = {}

        for info in self._infos.values():
            claims: List[Tuple[str, Dict[str, str]]] = [
                (name, module_owners) for name in self._module_level_names(info)
            ]
            claims.extend((name, client_owners) for name in self._client_method_names(info))
            for name, owners in claims:
                owner: Optional[str] = owners.get(name)
                if owner is not None:
                    raise ConfigurationError(
                        f"generated name '{name}' clashes with {owner}; "
                        f"set class_name on one of the tables to rename it",
                        table=info.name,
                    )
                owners[name] = f"the same name generated for table '{info.name}'"

    # ===================================================================
    # Naming helpers
    # ===================================================================

    def _meta(self, table: str) -> TableMeta:
        return self._infos[table].meta

    @staticmethod
    def _index_const(meta: TableMeta, col: ColumnMeta) -> str:
        return f"{meta.const_prefix}_{col.field_name.upper()}_FIELD_INDEX"

    @staticmethod
    def _namespace(meta: TableMeta) -> str:
        return f"_{meta.class_name}Table"

    @staticmethod
    def _key_args(col: ColumnMeta, var: str) -> str:
        """Expression binding the key values in *var* for a membership test on *col*."""
        if col.type_info.arg_adapter == "identity":
            return f"list({var})"
        return f"adapters.arg_list({col.type_info.arg_expr()}, {var})"

    @staticmethod
    def _stamped(info: TableGenInfo) -> Set[str]:
        return {c.name for c in (info.created_at, info.updated_at) if c is not None}

    # ===================================================================
    # 1. Module header & imports
    # ===================================================================

    def _collect_imports(self) -> Tuple[Set[str], Dict[str, Set[str]]]:
        plain: Set[str] = set()
        typed: Dict[str, Set[str]] = {}
        for info in self._infos.values():
            for col in info.meta.columns:
                for module, name in col.type_info.imports:
                    typed.setdefault(module, set()).add(name)
                plain |= col.type_info.required_modules()
        return plain, merge_import_dicts(_BASE_IMPORTS, typed)

    def _emit_header(self) -> List[str]:
        plain, typed = self._collect_imports()
        table_list: str = ", ".join(self._infos) or "(none)"
        lines: List[str] = [
            GENERATED_HEADER,
            '"""',
            f"Data-access layer for tables: {table_list}.",
            '"""',
            "",
            "from __future__ import annotations",
            "",
        ]
        if plain:
            lines.append(build_import_block({m: set() for m in plain}))
            lines.append("")
        lines.append(build_import_block(typed))
        return lines

    def _emit_include_graph(self) -> List[str]:
        lines: List[str] = [
            "",
            "",
            "# Related tables of every table, in either direction.",
            "_INCLUDE_GRAPH: Dict[str, Tuple[str, ...]] = {",
        ]
        for name, info in self._infos.items():
            related: str = format_tuple_literal(info.related_tables) if info.related_tables else "()"
            lines.append(f'{_I}"{name}": {related},')
        lines.append("}")
        return lines

    # ===================================================================
    # 2. Per-table public constants
    # ===================================================================

    def _emit_constants(self, info: TableGenInfo) -> List[str]:
        meta: TableMeta = info.meta
        prefix: str = meta.const_prefix
        count: int = len(meta.columns)
        lines: List[str] = ["", ""]
        for col in meta.columns:
            lines.append(f"{self._index_const(meta, col)}: int = {col.ordinal}")
        lines.append(f"{prefix}_FIELD_INDEX_MAX: int = {count - 1}")
        lines.append(f"{prefix}_FIELD_COUNT: int = {count}")
        lines.append(f"{prefix}_ALL_FIELDS: FieldSet = FieldSet.filled({count})")
        lines.append("")
        lines.append(f"# {info.all_includes}")
        lines.append(
            f'{prefix}_ALL_INCLUDES: IncludeSpec = IncludeSpec.closure("{meta.name}", _INCLUDE_GRAPH)'
        )
        return lines

    # ===================================================================
    # 3. Record type & scan routine
    # ===================================================================

    def _emit_record(self, info: TableGenInfo) -> List[str]:
        meta: TableMeta = info.meta
        ns: str = self._namespace(meta)
        stamped: Set[str] = self._stamped(info)
        lines: List[str] = [
            "",
            "",
            "@dataclass(kw_only=True)",
            f"class {meta.class_name}:",
            f'{_I}"""Record of table \'{meta.name}\'."""',
            "",
        ]
        for col in meta.columns:
            ti = col.type_info
            if col.nullable or col.is_primary_key or col.name in stamped:
                lines.append(f"{_I}{col.field_name}: {ti.nullable_name} = None")
            else:
                lines.append(f"{_I}{col.field_name}: {ti.name}")

        for rel_field in info.relation_fields:
            related: str = self._meta(rel_field.related_table).class_name
            if rel_field.is_list:
                lines.append(
                    f"{_I}{rel_field.attr_name}: List[{related}] = "
                    f"field(default_factory=list, repr=False, compare=False)"
                )
            else:
                lines.append(
                    f"{_I}{rel_field.attr_name}: Optional[{related}] = "
                    f"field(default=None, repr=False, compare=False)"
                )

        lines.extend([
            "",
            f"{_I}@classmethod",
            f"{_I}def scan(",
            f"{_II}cls,",
            f"{_II}client: BaseClient,",
            f"{_II}conn: Connection,",
            f"{_II}row: Sequence[Any],",
            f"{_I}) -> {meta.class_name}:",
            f'{_II}"""Build a record from a ``SELECT *`` row of the live table."""',
            f'{_II}tab = client.column_index_table(conn, "{meta.name}", {ns}.FIELDS)',
            f"{_II}conv = {ns}.SCANNERS",
            f"{_II}return cls(",
        ])
        for col in meta.columns:
            i: int = col.ordinal
            lines.append(f"{_III}{col.field_name}=conv[{i}](row[tab[{i}]]),")
        lines.append(f"{_II})")
        return lines

    # ===================================================================
    # 4. Table namespace: column layout, query and include-fill helpers
    # ===================================================================

    def _emit_args(self, meta: TableMeta) -> List[str]:
        lines: List[str] = [
            f"def args(value: {meta.class_name}) -> Tuple[Any, ...]:",
            f"{_I}return (",
        ]
        for col in meta.columns:
            if col.type_info.arg_adapter == "identity":
                lines.append(f"{_II}value.{col.field_name},")
            else:
                lines.append(f"{_II}{col.type_info.arg_expr()}(value.{col.field_name}),")
        lines.append(f"{_I})")
        return lines

    def _emit_select(self, meta: TableMeta) -> List[str]:
        cls: str = meta.class_name
        return [
            "def select(",
            f"{_I}client: BaseClient,",
            f"{_I}conn: Connection,",
            f"{_I}column: str,",
            f"{_I}keys: List[Any],",
            f") -> List[{cls}]:",
            f'{_I}stmt = stmts.select_by_keys("{meta.name}", column)',
            f"{_I}rows = conn.execute(stmt, {{stmts.KEYS_PARAM: keys}}).all()",
            f"{_I}return [{cls}.scan(client, conn, row) for row in rows]",
        ]

    def _emit_fetch(self, meta: TableMeta) -> List[str]:
        """Exact-count lookup by primary key, in key order."""
        cls: str = meta.class_name
        pk: ColumnMeta = meta.pkey
        return [
            "def fetch(",
            f"{_I}client: BaseClient,",
            f"{_I}conn: Connection,",
            f"{_I}keys: List[Any],",
            f"{_I}op: str,",
            f") -> List[{cls}]:",
            f"{_I}by_key: Dict[Any, {cls}] = {{",
            f"{_II}rec.{pk.field_name}: rec",
            f'{_II}for rec in {self._namespace(meta)}.select(client, conn, "{pk.name}", {self._key_args(pk, "keys")})',
            f"{_I}}}",
            f"{_I}found: List[{cls}] = [by_key[k] for k in keys if k in by_key]",
            f"{_I}if len(found) != len(keys):",
            f'{_II}raise CountMismatchError(op, "{meta.name}", expected=len(keys), found=len(found))',
            f"{_I}return found",
        ]

    def _emit_child_fill(self, info: TableGenInfo, rel_field: RelationField) -> List[str]:
        """Load the children of *info*'s records through one relationship."""
        parent: TableMeta = info.meta
        child: TableMeta = self._meta(rel_field.related_table)
        fk: ColumnMeta = child.get_column(rel_field.relationship.points_from_column)  # type: ignore[assignment]
        attr: str = rel_field.attr_name
        lines: List[str] = [
            f"def fill_{attr}(",
            f"{_I}client: BaseClient,",
            f"{_I}conn: Connection,",
            f"{_I}recs: List[{parent.class_name}],",
            f"{_I}loaded: LoadedRecordCache,",
            f") -> List[{child.class_name}]:",
            f"{_I}parents: Dict[Any, {parent.class_name}] = {{}}",
            f"{_I}for rec in recs:",
            f"{_II}rec.{attr} = {'[]' if rel_field.is_list else 'None'}",
            f"{_II}parents[rec.{parent.pkey.field_name}] = rec",
            f'{_I}cache = loaded.table("{child.name}")',
            f"{_I}attached: List[{child.class_name}] = []",
            f"{_I}keys = {self._key_args(fk, 'parents')}",
            f'{_I}for scanned in {self._namespace(child)}.select(client, conn, "{fk.name}", keys):',
            f"{_II}kid = cache.setdefault(scanned.{child.pkey.field_name}, scanned)",
            f"{_II}parent = parents.get(kid.{fk.field_name})",
            f"{_II}if parent is None:",
            f"{_III}continue",
        ]
        if rel_field.is_list:
            lines.extend([
                f"{_II}parent.{attr}.append(kid)",
                f"{_II}attached.append(kid)",
            ])
        else:
            lines.extend([
                f"{_II}if parent.{attr} is None:",
                f"{_III}parent.{attr} = kid",
                f"{_III}attached.append(kid)",
            ])
        lines.append(f"{_I}return attached")
        return lines

    def _emit_parent_fill(self, info: TableGenInfo, rel_field: RelationField) -> List[str]:
        """Load the parent of each of *info*'s records through one relationship."""
        child: TableMeta = info.meta
        parent: TableMeta = self._meta(rel_field.related_table)
        fk: ColumnMeta = child.get_column(rel_field.relationship.points_from_column)  # type: ignore[assignment]
        attr: str = rel_field.attr_name
        return [
            f"def fill_{attr}(",
            f"{_I}client: BaseClient,",
            f"{_I}conn: Connection,",
            f"{_I}recs: List[{child.class_name}],",
            f"{_I}loaded: LoadedRecordCache,",
            f") -> List[{parent.class_name}]:",
            f'{_I}cache = loaded.table("{parent.name}")',
            f"{_I}wanted = adapters.distinct(",
            f"{_II}rec.{fk.field_name} for rec in recs if rec.{fk.field_name} is not None",
            f"{_I})",
            f"{_I}missing = [k for k in wanted if k not in cache]",
            f"{_I}if missing:",
            f"{_II}keys = {self._key_args(parent.pkey, 'missing')}",
            f'{_II}for scanned in {self._namespace(parent)}.select(client, conn, "{parent.pkey.name}", keys):',
            f"{_III}cache.setdefault(scanned.{parent.pkey.field_name}, scanned)",
            f"{_I}attached: List[{parent.class_name}] = []",
            f"{_I}for rec in recs:",
            f"{_II}found: Optional[{parent.class_name}] = (",
            f"{_III}None if rec.{fk.field_name} is None else cache.get(rec.{fk.field_name})",
            f"{_II})",
            f"{_II}rec.{attr} = found",
            f"{_II}if found is not None:",
            f"{_III}attached.append(found)",
            f"{_I}return attached",
        ]

    def _emit_fill(self, info: TableGenInfo) -> List[str]:
        meta: TableMeta = info.meta
        ns: str = self._namespace(meta)
        lines: List[str] = [
            "def fill(",
            f"{_I}client: BaseClient,",
            f"{_I}conn: Connection,",
            f"{_I}recs: List[{meta.class_name}],",
            f"{_I}includes: IncludeSpec,",
            f"{_I}loaded: LoadedRecordCache,",
            ") -> None:",
            f'{_I}if includes.table_name != "{meta.name}":',
            f"{_II}raise IncludeSpecError(",
            f"{_III}f\"expected includes for '{meta.name}', got '{{includes.table_name}}'\"",
            f"{_II})",
            f"{_I}recs = loaded.admit(",
            f'{_II}"{meta.name}", includes, recs, [rec.{meta.pkey.field_name} for rec in recs]',
            f"{_I})",
            f"{_I}if not recs or includes.includes is None:",
            f"{_II}return",
        ]
        for related in info.related_tables:
            lines.extend([
                f'{_I}sub = includes.get("{related}")',
                f"{_I}if sub is not None:",
                f"{_II}related: List[Any] = []",
            ])
            for rel_field in info.fields_for(related):
                lines.append(
                    f"{_II}related.extend({ns}.fill_{rel_field.attr_name}(client, conn, recs, loaded))"
                )
            lines.append(
                f"{_II}{self._namespace(self._meta(related))}.fill("
                f"client, conn, distinct_records(related), sub, loaded)"
            )
        return lines

    def _emit_table_namespace(self, info: TableGenInfo) -> List[str]:
        meta: TableMeta = info.meta
        lines: List[str] = [
            "",
            "",
            f"class {self._namespace(meta)}:",
            f'{_I}"""Column layout and query helpers of table \'{meta.name}\'."""',
            "",
            f"{_I}FIELDS: Tuple[str, ...] = {format_tuple_literal(meta.column_names)}",
            f"{_I}SCANNERS: Tuple[Callable[[Any], Any], ...] = (",
        ]
        for col in meta.columns:
            lines.append(f"{_II}{col.type_info.scan_expr(col.nullable)},")
        lines.append(f"{_I})")

        blocks: List[List[str]] = [
            self._emit_args(meta),
            self._emit_select(meta),
            self._emit_fetch(meta),
        ]
        blocks.extend(self._emit_child_fill(info, f) for f in info.children)
        blocks.extend(self._emit_parent_fill(info, f) for f in info.parents)
        blocks.append(self._emit_fill(info))
        for block in blocks:
            lines.append("")
            lines.append(f"{_I}@staticmethod")
            lines.extend(f"{_I}{line}" if line else line for line in block)
        return lines

    # ===================================================================
    # 5. Accessor mixin
    # ===================================================================

    def _emit_stamp(self, info: TableGenInfo, target: str, indent: str, created: bool) -> List[str]:
        lines: List[str] = []
        cols: List[ColumnMeta] = []
        if created and info.created_at is not None:
            cols.append(info.created_at)
        if info.updated_at is not None and info.updated_at not in cols:
            cols.append(info.updated_at)
        for col in cols:
            tz: bool = col.type_info.has_timezone
            lines.append(f"{indent}{target}.{col.field_name} = adapters.timestamp_for(now, {tz})")
        return lines

    def _emit_accessors(self, info: TableGenInfo) -> List[str]:
        meta: TableMeta = info.meta
        cls: str = meta.class_name
        snake: str = meta.snake_name
        table: str = meta.name
        ns: str = self._namespace(meta)
        pk: ColumnMeta = meta.pkey
        pk_type: str = pk.type_info.name
        pk_index: int = pk.ordinal
        count: int = len(meta.columns)
        scan_pk: str = f"{ns}.SCANNERS[{pk_index}]"
        has_stamp: bool = info.created_at is not None or info.updated_at is not None
        set_updated: str = ""
        if info.updated_at is not None:
            set_updated = (
                f"field_mask = field_mask.set({info.updated_at.ordinal})  # {info.updated_at.name}"
            )

        lines: List[str] = [
            "",
            "",
            f"class _{cls}Accessors(BaseClient):",
            f'{_I}"""Accessors for table \'{table}\'."""',
            "",
            # get / list
            f"{_I}def get_{snake}(self, key: {pk_type}) -> {cls}:",
            f'{_II}"""Fetch one record by primary key; ``CountMismatchError`` if it does not exist."""',
            f'{_II}with annotate_errors("get_{snake}", "{table}"), self._connect() as conn:',
            f'{_III}return {ns}.fetch(self, conn, [key], "get_{snake}")[0]',
            "",
            f"{_I}def list_{snake}(self, keys: Sequence[{pk_type}]) -> List[{cls}]:",
            f'{_II}"""',
            f"{_II}Fetch the records for *keys*, duplicates dropped, in key order.",
            "",
            f"{_II}Raises ``CountMismatchError`` unless every distinct key is found.",
            f'{_II}"""',
            f"{_II}unique_keys = adapters.distinct(keys)",
            f"{_II}if not unique_keys:",
            f"{_III}return []",
            f'{_II}with annotate_errors("list_{snake}", "{table}"), self._connect() as conn:',
            f'{_III}return {ns}.fetch(self, conn, unique_keys, "list_{snake}")',
            "",
            # insert
            f"{_I}def insert_{snake}(self, value: {cls}, include_pkey: bool = False) -> {pk_type}:",
            f"{_II}return self.bulk_insert_{snake}([value], include_pkey=include_pkey)[0]",
            "",
            f"{_I}def bulk_insert_{snake}(",
            f"{_II}self,",
            f"{_II}values: Sequence[{cls}],",
            f"{_II}include_pkey: bool = False,",
            f"{_I}) -> List[{pk_type}]:",
            f'{_II}"""',
            f"{_II}Insert *values*; returns their keys in the order the database reports them.",
            "",
            f"{_II}The primary key is left to the database unless *include_pkey* is set.",
        ]
        if has_stamp:
            lines.append(f"{_II}Timestamp columns are stamped on the records before writing.")
        lines.extend([
            f'{_II}"""',
            f"{_II}if not values:",
            f"{_III}return []",
        ])
        if has_stamp:
            lines.append(f"{_II}now = adapters.utc_now()")
            lines.append(f"{_II}for value in values:")
            lines.extend(self._emit_stamp(info, "value", _III, created=True))
        lines.extend([
            f"{_II}sql, params = stmts.bulk_insert(",
            f'{_III}"{table}",',
            f"{_III}{ns}.FIELDS,",
            f"{_III}{pk_index},",
            f"{_III}[{ns}.args(v) for v in values],",
            f"{_III}include_pkey=include_pkey,",
            f"{_II})",
            f'{_II}with annotate_errors("bulk_insert_{snake}", "{table}"), self._connect() as conn:',
            f"{_III}rows = conn.execute(sql, params).all()",
            f"{_II}return [{scan_pk}(row[0]) for row in rows]",
            "",
        ])

        # update
        lines.extend([
            f"{_I}def update_{snake}(self, value: {cls}, field_mask: FieldSet) -> {pk_type}:",
            f'{_II}"""',
            f"{_II}Write the columns selected by *field_mask*; returns the key.",
            "",
            f"{_II}The primary key bit must be set.  ``CountMismatchError`` if no row has the key.",
            f'{_II}"""',
            f'{_II}check_field_mask(field_mask.size, {count}, "update_{snake}", "{table}")',
            f"{_II}if not field_mask.test({pk_index}):",
            f'{_III}raise MissingPrimaryKeyError("update_{snake}", "{table}")',
        ])
        if info.updated_at is not None:
            lines.append(f"{_II}now = adapters.utc_now()")
            lines.extend(self._emit_stamp(info, "value", _II, created=False))
            lines.append(f"{_II}{set_updated}")
        lines.extend([
            f"{_II}sql, params = stmts.update(",
            f'{_III}"{table}", {ns}.FIELDS, {pk_index}, field_mask, {ns}.args(value)',
            f"{_II})",
            f'{_II}with annotate_errors("update_{snake}", "{table}"), self._connect() as conn:',
            f"{_III}row = conn.execute(sql, params).first()",
            f"{_III}if row is None:",
            f'{_IIII}raise CountMismatchError("update_{snake}", "{table}", expected=1, found=0)',
            f"{_II}return {scan_pk}(row[0])",
            "",
        ])

        # upsert
        lines.extend([
            f"{_I}def upsert_{snake}(",
            f"{_II}self,",
            f"{_II}value: {cls},",
            f"{_II}field_mask: FieldSet,",
            f"{_II}constraint_names: Optional[Sequence[str]] = None,",
            f"{_I}) -> Optional[{pk_type}]:",
            f'{_II}"""',
            f"{_II}Upsert one record; see ``bulk_upsert_{snake}``.",
            "",
            f"{_II}When nothing was written (empty mask, row already present) the",
            f"{_II}record's own key is returned, which may be ``None``.",
            f'{_II}"""',
            f"{_II}keys = self.bulk_upsert_{snake}([value], field_mask, constraint_names)",
            f"{_II}if keys:",
            f"{_III}return keys[0]",
            f"{_II}return value.{pk.field_name}",
            "",
            f"{_I}def bulk_upsert_{snake}(",
            f"{_II}self,",
            f"{_II}values: Sequence[{cls}],",
            f"{_II}field_mask: FieldSet,",
            f"{_II}constraint_names: Optional[Sequence[str]] = None,",
            f"{_I}) -> List[{pk_type}]:",
            f'{_II}"""',
            f"{_II}Insert *values*, resolving conflicts on *constraint_names* (column",
            f"{_II}names; the primary key by default).",
            "",
            f"{_II}On conflict the masked columns other than the key and the conflict",
            f"{_II}columns are overwritten.  The key itself is inserted only when its",
            f"{_II}bit is set.",
            "",
            f"{_II}If *field_mask* has no bits set, or selects nothing to overwrite, the",
            f"{_II}statement uses ``ON CONFLICT DO NOTHING``: rows that already existed",
            f"{_II}are neither updated nor returned, so the result can be shorter than",
            f"{_II}*values* and its positions need not line up with them.",
            f'{_II}"""',
            f"{_II}if not values:",
            f"{_III}return []",
            f'{_II}check_field_mask(field_mask.size, {count}, "bulk_upsert_{snake}", "{table}")',
        ])
        if has_stamp:
            lines.append(f"{_II}now = adapters.utc_now()")
            lines.append(f"{_II}for value in values:")
            lines.extend(self._emit_stamp(info, "value", _III, created=True))
        if info.updated_at is not None:
            lines.extend([
                f"{_II}if field_mask.count_set_bits() > 0:",
                f"{_III}{set_updated}",
            ])
        lines.extend([
            f"{_II}sql, params = stmts.bulk_upsert(",
            f'{_III}"{table}",',
            f"{_III}{ns}.FIELDS,",
            f"{_III}{pk_index},",
            f"{_III}[{ns}.args(v) for v in values],",
            f"{_III}constraint_names,",
            f"{_III}field_mask,",
            f"{_II})",
            f'{_II}with annotate_errors("bulk_upsert_{snake}", "{table}"), self._connect() as conn:',
            f"{_III}rows = conn.execute(sql, params).all()",
            f"{_II}return [{scan_pk}(row[0]) for row in rows]",
            "",
        ])

        # delete
        lines.extend([
            f"{_I}def delete_{snake}(self, key: {pk_type}) -> None:",
            f'{_II}self._delete_{snake}([key], "delete_{snake}")',
            "",
            f"{_I}def bulk_delete_{snake}(self, keys: Sequence[{pk_type}]) -> None:",
            f'{_II}"""Delete the records for *keys*; ``CountMismatchError`` unless all of them existed."""',
            f'{_II}self._delete_{snake}(adapters.distinct(keys), "bulk_delete_{snake}")',
            "",
            f"{_I}def _delete_{snake}(self, keys: List[Any], op: str) -> None:",
            f"{_II}if not keys:",
            f"{_III}return",
            f'{_II}stmt = stmts.delete_by_keys("{table}", "{pk.name}")',
            f'{_II}with annotate_errors(op, "{table}"), self._connect() as conn:',
            f"{_III}result = conn.execute(stmt, {{stmts.KEYS_PARAM: {self._key_args(pk, 'keys')}}})",
            f"{_III}if result.rowcount != len(keys):",
            f"{_IIII}raise CountMismatchError(",
            f'{_IIII}{_I}op, "{table}", expected=len(keys), found=result.rowcount',
            f"{_IIII})",
            "",
        ])

        # include fill
        lines.extend([
            f"{_I}def {snake}_fill_includes(self, rec: {cls}, includes: IncludeSpec) -> None:",
            f"{_II}self.{snake}_bulk_fill_includes([rec], includes)",
            "",
            f"{_I}def {snake}_bulk_fill_includes(",
            f"{_II}self,",
            f"{_II}recs: Sequence[{cls}],",
            f"{_II}includes: IncludeSpec,",
            f"{_I}) -> None:",
            f'{_II}"""',
            f"{_II}Load the related records *includes* asks for and attach them.",
            "",
            f"{_II}The spec is checked before any query; records reachable along",
            f"{_II}several paths are loaded once and shared.",
            f'{_II}"""',
            f'{_II}includes.check("{table}", _INCLUDE_GRAPH)',
            f"{_II}if not recs:",
            f"{_III}return",
            f'{_II}with annotate_errors("{snake}_bulk_fill_includes", "{table}"), self._connect() as conn:',
            f"{_III}{ns}.fill(self, conn, list(recs), includes, LoadedRecordCache())",
        ])
        return lines

    # ===================================================================
    # 6. Table section & client classes
    # ===================================================================

    def generate_table_section(self, info: TableGenInfo) -> str:
        lines: List[str] = [
            "",
            "",
            _BANNER,
            f"# {info.name}",
            _BANNER,
        ]
        lines.extend(self._emit_constants(info))
        lines.extend(self._emit_record(info))
        lines.extend(self._emit_table_namespace(info))
        lines.extend(self._emit_accessors(info))
        return "\n".join(lines)

    def _emit_clients(self) -> List[str]:
        mixins: str = "".join(f"_{info.meta.class_name}Accessors, " for info in self._infos.values())
        return [
            "",
            "",
            _BANNER,
            "# Clients",
            _BANNER,
            "",
            "",
            f"class TxPGClient({mixins}TxClient):",
            f'{_I}"""Client bound to one transaction; obtain it from ``PGClient.begin_tx()``."""',
            "",
            "",
            f"class PGClient({mixins}PoolClient):",
            f'{_I}"""Pool-backed client: every call runs in its own transaction."""',
            "",
            f"{_I}tx_client_class = TxPGClient",
        ]

    def generate_module(self) -> str:
        """Complete source text of the data-access module."""
        lines: List[str] = []
        lines.extend(self._emit_header())
        lines.extend(self._emit_include_graph())
        for info in self._infos.values():
            lines.append(self.generate_table_section(info))
        lines.extend(self._emit_clients())
        content: str = "\n".join(lines) + "\n"
        logger.debug(
            "Generated module for %d table(s): %d lines.",
            len(self._infos),
            content.count("\n"),
        )
        return content


__all__: List[str] = [
    "GENERATED_HEADER",
    "TemplateGenerator",
]

logger.debug("accessgen.templates loaded.")
