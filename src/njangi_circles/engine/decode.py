"""Defensive decoding of ledger field bags.

Ledger JSON is loosely typed: numbers arrive as strings, structs arrive
either wrapped in ``{"fields": {...}}`` or flat, and anything may be missing.
These helpers turn that into plain Python values or None, never a silent zero.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

log = logging.getLogger(__name__)


def parse_number(value: Any) -> Decimal | None:
    """Parse a ledger numeric value. Returns None for anything non-numeric.

    Accepts int, float, Decimal and numeric strings ("1000", " 12.5 ").
    Booleans, empty strings, NaN and infinities are treated as absent.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    if not number.is_finite():
        return None
    return number


def parse_int(value: Any) -> int | None:
    """Parse a ledger integer. Values that are not whole numbers are absent."""
    number = parse_number(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def parse_address(value: Any) -> str | None:
    """Non-empty string address, or None."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class StructShape(str, Enum):
    WRAPPED = "wrapped"  # {"value": {"fields": {...}}} or {"fields": {...}}
    FLAT = "flat"  # known keys directly present
    UNRECOGNIZED = "unrecognized"


def classify_struct(raw: Any, known_keys: Iterable[str]) -> tuple[StructShape, Mapping[str, Any] | None]:
    """Identify which of the known struct shapes ``raw`` has.

    WRAPPED covers both a dynamic-field wrapper (``value.fields``) and a
    plain Move struct (``fields``). FLAT requires at least one known key at
    the top level. Anything else is UNRECOGNIZED and yields no fields.
    """
    if not isinstance(raw, Mapping):
        return StructShape.UNRECOGNIZED, None

    inner = raw.get("value")
    if isinstance(inner, Mapping) and isinstance(inner.get("fields"), Mapping):
        return StructShape.WRAPPED, inner["fields"]

    fields = raw.get("fields")
    if isinstance(fields, Mapping):
        return StructShape.WRAPPED, fields

    keys = set(known_keys)
    if any(k in raw for k in keys):
        return StructShape.FLAT, raw

    return StructShape.UNRECOGNIZED, None


def decode_struct(raw: Any, known_keys: Iterable[str], label: str = "struct") -> Mapping[str, Any] | None:
    """Return the field bag of a WRAPPED or FLAT struct; None (fail closed) otherwise."""
    if raw is None:
        return None
    shape, fields = classify_struct(raw, known_keys)
    if shape is StructShape.UNRECOGNIZED:
        log.warning("Unrecognized %s shape, treating as absent", label)
        return None
    log.debug("Decoded %s as %s", label, shape.value)
    return fields
