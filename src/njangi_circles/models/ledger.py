"""Raw ledger shapes returned by a LedgerReader."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ObjectContent:
    """A Move object's content: its type tag and field bag."""

    object_id: str
    type: str = ""
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DynamicFieldInfo:
    """One entry of a dynamic-field listing."""

    object_id: str
    name_type: str = ""
    name_value: Any = None
    object_type: str = ""
    type: str = ""  # "DynamicField" | "DynamicObject"


@dataclass(frozen=True)
class LedgerEvent:
    """A Move event as reported by the event query."""

    event_type: str  # fully qualified: {package}::{module}::{Name}
    tx_digest: str
    event_seq: int = 0
    timestamp_ms: int | None = None
    parsed_json: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Bare event name, e.g. 'MemberJoined'."""
        return self.event_type.rsplit("::", 1)[-1]


@dataclass(frozen=True)
class EventPage:
    """A single page of event query results."""

    events: list[LedgerEvent] = field(default_factory=list)
    next_cursor: dict[str, Any] | None = None
    has_next_page: bool = False


@dataclass(frozen=True)
class TransactionInput:
    """A programmable-transaction input (pure value or object reference)."""

    kind: str  # "pure" | "object"
    value_type: str | None = None  # "u8", "u64", "vector<u8>", ...
    value: Any = None
