# File: accessgen/errors.py
"""
accessgen - Generation-time exceptions
=======================================

Every failure during a generation run is fatal: nothing partially emitted is
considered usable.  Errors carry the offending table (and field, where there
is one) so the message can point the user straight at their configuration or
catalog.
"""

from __future__ import annotations

import logging
from typing import List, Optional

logger: logging.Logger = logging.getLogger("accessgen.errors")


class GenerationError(Exception):
    """Base class for everything that aborts a generation run."""

    def __init__(
        self,
        message: str,
        *,
        table: Optional[str] = None,
        field: Optional[str] = None,
    ) -> None:
        self.table: Optional[str] = table
        self.field: Optional[str] = field
        prefix: str = ""
        if table is not None and field is not None:
            prefix = f"table '{table}', field '{field}': "
        elif table is not None:
            prefix = f"table '{table}': "
        super().__init__(prefix + message)


class ConfigurationError(GenerationError):
    """The configuration asks for something the catalog or type table cannot provide."""


class MetadataError(GenerationError):
    """The catalog could not be read or describes something unsupported."""


__all__: List[str] = [
    "GenerationError",
    "ConfigurationError",
    "MetadataError",
]

logger.debug("accessgen.errors loaded.")
