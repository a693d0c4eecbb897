# File: accessgen/__init__.py
"""
accessgen - Typed Data-Access Code Generator
=============================================

Introspects a live relational database and writes one Python module holding,
for every configured table, a record dataclass and a set of batched accessors
(get, list, insert, bulk insert, update, upsert, delete, include-fill) that run
on SQLAlchemy Core connections.

Architecture overview::

    ┌──────────────┐     ┌────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ CodeGenerator  │────▶│ TemplateGenerator│
    │   (cli.py)   │     │ (generator.py) │     │  (templates.py)  │
    └──────────────┘     └───────┬────────┘     └──────────────────┘
                                 │
           ┌──────────────┬──────┴───────┬──────────────────┐
           ▼              ▼              ▼                  ▼
     ┌──────────┐   ┌──────────┐   ┌──────────┐   ┌────────────────┐
     │validators│   │ catalog  │   │ metadata │   │ relationships  │
     └──────────┘   └──────────┘   └──────────┘   └────────────────┘

Generated modules import ``accessgen.runtime`` and nothing else from this
package.

Usage::

    # As a library
    from accessgen import generate_source, load_config_file, connect_catalog
    source = generate_source(connect_catalog([url]), load_config_file(path))

    # From the command line
    accessgen -c accessgen.yaml -o app/db_access.py --conn '$DATABASE_URL'
"""

from __future__ import annotations

__version__: str = "0.1.0"
__license__: str = "MIT"

from accessgen.catalog import CatalogIntrospector, SQLAlchemyCatalog, connect_catalog
from accessgen.config import (
    CodegenConfig,
    GeneratorSettings,
    TableConfig,
    load_config_file,
    parse_config,
)
from accessgen.errors import ConfigurationError, GenerationError, MetadataError
from accessgen.generator import CodeGenerator, GenerationReport, generate_source
from accessgen.templates import TemplateGenerator
from accessgen.validators import ValidationResult, validate_full

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Orchestration
    "CodeGenerator",
    "GenerationReport",
    "generate_source",
    "TemplateGenerator",
    # Config
    "CodegenConfig",
    "GeneratorSettings",
    "TableConfig",
    "load_config_file",
    "parse_config",
    # Catalog
    "CatalogIntrospector",
    "SQLAlchemyCatalog",
    "connect_catalog",
    # Errors
    "GenerationError",
    "ConfigurationError",
    "MetadataError",
    # Validation
    "validate_full",
    "ValidationResult",
]
