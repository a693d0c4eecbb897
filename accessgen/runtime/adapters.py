# File: accessgen/runtime/adapters.py
"""
Value adapters used by generated scan routines and argument builders.

Scan adapters turn a raw driver value into the record's Python type.
Argument adapters turn a record value into something the driver can bind.
Nullable columns wrap their base scan adapter with ``nullable`` so ``None``
passes through untouched and conversion only runs on a real value.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Hashable, Iterable, List
from uuid import UUID

Adapter = Callable[[Any], Any]


def identity(value: Any) -> Any:
    return value


def nullable(adapter: Adapter) -> Adapter:
    """Wrap *adapter* so ``None`` is returned as-is instead of converted."""
    if adapter is identity:
        return identity

    def convert(value: Any) -> Any:
        if value is None:
            return None
        return adapter(value)

    convert.__name__ = f"nullable_{getattr(adapter, '__name__', 'adapter')}"
    return convert


# ---------------------------------------------------------------------------
# Scan adapters
# ---------------------------------------------------------------------------


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr keeps the shortest round-tripping form, not the binary expansion
        return Decimal(repr(value))
    return Decimal(value)


def to_bool(value: Any) -> bool:
    return bool(value)


def to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return bytes(value)


def to_uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


def to_list(value: Any) -> List[Any]:
    return list(value)


# ---------------------------------------------------------------------------
# Argument adapters
# ---------------------------------------------------------------------------


def uuid_arg(value: Any) -> Any:
    if value is None:
        return None
    return str(value)


def json_arg(value: Any) -> Any:
    if value is None:
        return None
    return json.dumps(value)


def arg_list(adapter: Adapter, values: Iterable[Any]) -> List[Any]:
    """Build the list bound to an expanding ``IN`` parameter."""
    return [adapter(v) for v in values]


# ---------------------------------------------------------------------------
# Helpers shared by generated accessors
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_for(now: datetime, with_timezone: bool) -> datetime:
    """
    Stamp value for a created/updated column.

    Timezone-aware columns get *now* in local time, the rest get naive UTC.
    """
    if with_timezone:
        return now.astimezone()
    return now.astimezone(timezone.utc).replace(tzinfo=None)


def distinct(values: Iterable[Hashable]) -> List[Any]:
    """Drop duplicates from *values*, keeping first-seen order."""
    seen: Dict[Hashable, None] = {}
    for v in values:
        seen.setdefault(v, None)
    return list(seen)


SCAN_ADAPTERS: Dict[str, Adapter] = {
    "identity": identity,
    "to_decimal": to_decimal,
    "to_bool": to_bool,
    "to_bytes": to_bytes,
    "to_uuid": to_uuid,
    "to_list": to_list,
}

ARG_ADAPTERS: Dict[str, Adapter] = {
    "identity": identity,
    "uuid_arg": uuid_arg,
    "json_arg": json_arg,
}
