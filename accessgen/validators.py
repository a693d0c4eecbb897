# File: accessgen/validators.py
"""
accessgen - Configuration Validators
=====================================
Pydantic already checks the config's structure.  This module adds the
cross-entry checks that can be done before touching the database: duplicate
tables, identifiers that cannot name a table, belongs-to entries pointing
outside the configured set, and suspicious timestamp or type-override setups.

Catalog-dependent checks (missing columns, key types) happen later in
``accessgen.metadata`` and ``accessgen.relationships``.

Usage:
    from accessgen.validators import validate_full
    result = validate_full(config)
    if result.has_errors:
        print(result.format_report())
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from accessgen.config import CodegenConfig
from accessgen.types import normalize_type_name

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("accessgen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight error descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationError`` instances produced by the pipeline."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def add_info(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def all_items(self) -> List[ValidationError]:
        return list(self._items)

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def has_warnings(self) -> bool:
        return any(e.is_warning for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def codes(self) -> Set[str]:
        return {e.code for e in self._items}

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {
                "error": "ERROR",
                "warning": "WARN ",
                "info": "INFO ",
            }.get(item.level, "-")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            if item.context:
                for k, v in item.context.items():
                    lines.append(f"       {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_SNAKE_CASE_RE: re.Pattern[str] = re.compile(r"^[a-z][a-z0-9]*(_[a-z0-9]+)*$")


# ---------------------------------------------------------------------------
# Individual validation functions
# ---------------------------------------------------------------------------


def validate_table_names(config: CodegenConfig) -> ValidationResult:
    """
    Validate configured table names for:
    - No duplicates
    - Valid identifier format (quoted names with spaces are not supported)
    - snake_case convention (warning only)
    """
    result: ValidationResult = ValidationResult()
    seen: Set[str] = set()

    if not config.tables:
        result.add_warning("NO_TABLES", "No tables configured; the generated module is empty.")

    for table in config.tables:
        name: str = table.name
        ctx: Dict[str, Any] = {"table": name}

        if name in seen:
            result.add_error(
                "DUPLICATE_TABLE_NAME",
                f"Table '{name}' is configured more than once.",
                ctx,
            )
        seen.add(name)

        if not _IDENTIFIER_RE.match(name):
            result.add_error(
                "INVALID_TABLE_NAME",
                f"Table name '{name}' is not a valid identifier.",
                ctx,
            )
            continue

        if not _SNAKE_CASE_RE.match(name):
            result.add_warning(
                "TABLE_NAME_NOT_SNAKE_CASE",
                f"Table name '{name}' is not snake_case. "
                f"Generated class name may look odd.",
                ctx,
            )

    logger.debug(
        "validate_table_names: checked %d tables, %d issue(s).",
        len(config.tables),
        len(result),
    )
    return result


def validate_belongs_to(config: CodegenConfig) -> ValidationResult:
    """
    Every belongs_to target must be a configured table, and a key column may
    carry at most one belongs_to entry.
    """
    result: ValidationResult = ValidationResult()
    configured: Set[str] = set(config.table_names())

    for table in config.tables:
        keys: Set[str] = set()
        for entry in table.belongs_to:
            ctx: Dict[str, Any] = {"table": table.name, "key_field": entry.key_field}
            if entry.table not in configured:
                result.add_error(
                    "BELONGS_TO_UNKNOWN_TABLE",
                    f"'{table.name}' belongs_to '{entry.table}', which is not configured.",
                    ctx,
                )
            if entry.key_field in keys:
                result.add_error(
                    "BELONGS_TO_DUPLICATE_KEY",
                    f"'{table.name}.{entry.key_field}' has more than one belongs_to entry.",
                    ctx,
                )
            keys.add(entry.key_field)
            if entry.table == table.name:
                result.add_warning(
                    "BELONGS_TO_SELF",
                    f"'{table.name}' belongs_to itself; self references are not eager-loadable.",
                    ctx,
                )
    return result


def validate_timestamps(config: CodegenConfig) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    for table in config.tables:
        created: Optional[str] = table.created_at_field
        updated: Optional[str] = table.updated_at_field
        if created is not None and created == updated:
            result.add_warning(
                "TIMESTAMP_SAME_FIELD",
                f"'{table.name}' uses '{created}' as both created_at and updated_at field.",
                {"table": table.name, "field": created},
            )
        belongs_keys: Set[str] = {e.key_field for e in table.belongs_to}
        for name in (created, updated):
            if name is not None and name in belongs_keys:
                result.add_error(
                    "TIMESTAMP_IS_KEY",
                    f"'{table.name}.{name}' is both a timestamp and a belongs_to key.",
                    {"table": table.name, "field": name},
                )
    return result


def validate_type_overrides(config: CodegenConfig) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    seen: Dict[str, str] = {}
    for override in config.type_overrides:
        key: str = normalize_type_name(override.catalog_type)
        if key in seen:
            result.add_error(
                "DUPLICATE_TYPE_OVERRIDE",
                f"Catalog type '{override.catalog_type}' is overridden more than once "
                f"(also as '{seen[key]}').",
                {"catalog_type": override.catalog_type},
            )
        seen[key] = override.catalog_type
    return result


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

_VALIDATORS: Tuple[Callable[[CodegenConfig], ValidationResult], ...] = (
    validate_table_names,
    validate_belongs_to,
    validate_timestamps,
    validate_type_overrides,
)


def validate_full(config: CodegenConfig) -> ValidationResult:
    """
    **Master validation entry point.**

    This is the single function that ``generator.py`` and ``cli.py`` call
    before starting code generation.
    """
    logger.info("Starting validation: %d table(s).", len(config.tables))
    result: ValidationResult = ValidationResult()
    for validator_fn in _VALIDATORS:
        logger.debug("Running validator: %s", validator_fn.__name__)
        result.merge(validator_fn(config))

    if result.has_errors:
        logger.error(
            "Validation FAILED with %d error(s). %s",
            result.error_count,
            result.summary(),
        )
    else:
        logger.info("Validation PASSED. %s", result.summary())
    return result


__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "validate_table_names",
    "validate_belongs_to",
    "validate_timestamps",
    "validate_type_overrides",
    "validate_full",
]

logger.debug("accessgen.validators loaded, %d public symbols.", len(__all__))
