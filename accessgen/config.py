# File: accessgen/config.py
"""
accessgen - Configuration Models & Loader
==========================================
Pydantic V2 models for the declarative generation config (which tables to
expose and how) and for the process-level settings of one generator run
(where the config lives, where output goes, which databases to try).

The config file is YAML or JSON::

    tables:
      - name: customers
      - name: orders
        created_at_field: created_at
        updated_at_field: updated_at
        belongs_to:
          - table: customers
            key_field: customer_id
    type_overrides:
      - catalog_type: citext
        type_name: str
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from accessgen.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("accessgen.config")

# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    frozen=False,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Generation config
# ---------------------------------------------------------------------------


class BelongsToConfig(BaseModel):
    """An explicit relationship: the declaring table's key points at *table*."""

    model_config = _SHARED_CONFIG

    table: str = Field(..., min_length=1, description="Referenced (parent) table.")
    key_field: str = Field(
        ..., min_length=1, description="Column of the declaring table holding the parent key."
    )
    one_to_one: bool = Field(
        default=False,
        description="At most one child row per parent; the parent gets a single attribute.",
    )


class TableConfig(BaseModel):
    """Per-table generation settings."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Catalog table name.")
    class_name: Optional[str] = Field(
        default=None,
        pattern=r"^[A-Z][A-Za-z0-9]*$",
        description=(
            "Record class name; also sets the prefix of the table's generated "
            "constants.  Derived from the table name if omitted."
        ),
    )
    no_infer_belongs_to: bool = Field(
        default=False,
        description="Ignore this table's foreign keys when inferring relationships.",
    )
    created_at_field: Optional[str] = Field(
        default=None, description="Column stamped with the insert time."
    )
    updated_at_field: Optional[str] = Field(
        default=None, description="Column stamped on every insert, update and upsert."
    )
    belongs_to: List[BelongsToConfig] = Field(default_factory=list)

    @field_validator("created_at_field", "updated_at_field")
    @classmethod
    def _blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class ImportName(BaseModel):
    model_config = _SHARED_CONFIG

    module: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class TypeOverride(BaseModel):
    """Replace the default mapping of one catalog type."""

    model_config = _SHARED_CONFIG

    catalog_type: str = Field(..., min_length=1, description="Catalog type name to remap.")
    type_name: str = Field(..., min_length=1, description="Python type for non-null columns.")
    nullable_type_name: Optional[str] = Field(
        default=None, description="Python type for nullable columns (default Optional[...])."
    )
    imports: List[ImportName] = Field(
        default_factory=list, description="Imports the type annotations need."
    )
    scan_adapter: Optional[str] = Field(
        default=None,
        description="Built-in adapter name or dotted path converting driver values.",
    )
    arg_adapter: Optional[str] = Field(
        default=None,
        description="Built-in adapter name or dotted path converting query arguments.",
    )


class CodegenConfig(BaseModel):
    """Top-level generation config: tables to expose plus type overrides."""

    model_config = _SHARED_CONFIG

    tables: List[TableConfig] = Field(default_factory=list)
    type_overrides: List[TypeOverride] = Field(default_factory=list)

    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    def get_table(self, name: str) -> Optional[TableConfig]:
        for table in self.tables:
            if table.name == name:
                return table
        return None


# ---------------------------------------------------------------------------
# Run settings
# ---------------------------------------------------------------------------


class GeneratorSettings(BaseModel):
    """Process-level settings for one generator run."""

    model_config = _SHARED_CONFIG

    config_file: Path = Field(..., description="YAML or JSON generation config.")
    output_file: Optional[Path] = Field(
        default=None, description="Where to write the generated module."
    )
    connection_strings: List[str] = Field(
        default_factory=list,
        description="Database URLs tried in order; '$NAME' reads the URL from $NAME.",
    )
    schema_name: Optional[str] = Field(
        default=None, description="Catalog schema to introspect (dialect default if unset)."
    )
    disable_vars: List[str] = Field(
        default_factory=list,
        description="Skip generation when any NAME or NAME=value pattern matches.",
    )
    enable_vars: List[str] = Field(
        default_factory=list,
        description="When given, generate only if one NAME or NAME=value pattern matches.",
    )


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------


def var_pattern_matches(pattern: str, environ: Mapping[str, str]) -> bool:
    """``NAME`` matches when NAME is set, ``NAME=value`` when it equals value."""
    name, sep, value = pattern.partition("=")
    if not sep:
        return name in environ
    return environ.get(name) == value


def generation_enabled(
    settings: GeneratorSettings,
    environ: Optional[Mapping[str, str]] = None,
) -> bool:
    env: Mapping[str, str] = os.environ if environ is None else environ
    for pattern in settings.disable_vars:
        if var_pattern_matches(pattern, env):
            logger.info("Generation disabled by '%s'.", pattern)
            return False
    if settings.enable_vars:
        if not any(var_pattern_matches(p, env) for p in settings.enable_vars):
            logger.info(
                "Generation not enabled: none of %s matched.", settings.enable_vars
            )
            return False
    return True


def expand_connection_string(
    conn_str: str,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Resolve a leading ``$NAME`` from the environment; None when unset."""
    env: Mapping[str, str] = os.environ if environ is None else environ
    if conn_str.startswith("$"):
        value: Optional[str] = env.get(conn_str[1:])
        if not value:
            logger.debug("Connection string variable %s is not set.", conn_str)
            return None
        return value
    return conn_str


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected a JSON object at top level of {path}, got {type(data).__name__}."
        )
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected a YAML mapping at top level of {path}, got {type(data).__name__}."
        )
    return data


def parse_config(raw: Mapping[str, Any]) -> CodegenConfig:
    """Validate a raw mapping into a ``CodegenConfig``."""
    try:
        return CodegenConfig.model_validate(dict(raw))
    except ValidationError as exc:
        raise ConfigurationError(f"Config validation failed: {exc}") from exc


def load_config_file(path: Path) -> CodegenConfig:
    """
    Load the generation config from a YAML or JSON file.

    Raises:
        ConfigurationError: missing file, parse error, or invalid content.
    """
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        raw: Dict[str, Any] = _load_yaml_file(path)
    elif suffix == ".json":
        raw = _load_json_file(path)
    else:
        # YAML is a superset of JSON
        logger.info("Unknown extension '%s', parsing %s as YAML.", suffix, path)
        raw = _load_yaml_file(path)

    config: CodegenConfig = parse_config(raw)
    logger.info(
        "Loaded config %s: %d table(s), %d type override(s).",
        path,
        len(config.tables),
        len(config.type_overrides),
    )
    return config


__all__: List[str] = [
    "BelongsToConfig",
    "TableConfig",
    "ImportName",
    "TypeOverride",
    "CodegenConfig",
    "GeneratorSettings",
    "var_pattern_matches",
    "generation_enabled",
    "expand_connection_string",
    "parse_config",
    "load_config_file",
]

logger.debug("accessgen.config loaded.")
