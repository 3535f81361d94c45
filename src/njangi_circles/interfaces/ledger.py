"""LedgerReader protocol - read-only access to Sui objects, events and transactions."""

from __future__ import annotations

from typing import Any, Protocol

from njangi_circles.models.ledger import (
    DynamicFieldInfo,
    EventPage,
    ObjectContent,
    TransactionInput,
)


class LedgerReader(Protocol):
    """Fetch primitives the resolver consumes.

    Every method raises ``FetchFailure`` on network, RPC or decoding errors,
    timeouts included.
    """

    async def get_object(self, object_id: str) -> ObjectContent | None:
        """Object content, or None if the object does not exist."""
        ...

    async def get_dynamic_fields(self, parent_id: str) -> list[DynamicFieldInfo]:
        """All dynamic fields attached to an object."""
        ...

    async def get_dynamic_field_object(
        self, parent_id: str, name_type: str, name_value: Any
    ) -> ObjectContent | None:
        """A single dynamic field by key, e.g. a row of a Move Table."""
        ...

    async def query_events(
        self,
        event_type: str,
        cursor: dict[str, Any] | None = None,
        limit: int = 50,
    ) -> EventPage:
        """One page of events of a fully qualified Move event type."""
        ...

    async def get_transaction_inputs(self, digest: str) -> list[TransactionInput]:
        """Ordered inputs of a programmable transaction block."""
        ...
