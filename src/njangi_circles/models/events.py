"""Circle event models deserialized from the Move event stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class CircleCreatedEvent:
    """Emitted once when a circle object is created.

    ``payload`` keeps the full parsed JSON: it is one of the config source
    layers and carries more fields than are modelled here.
    """

    circle_id: str
    admin: str
    payload: dict[str, Any] = field(default_factory=dict)
    tx_digest: str = ""
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class MemberJoinedEvent:
    """Emitted when a member joins a circle."""

    circle_id: str
    member: str
    tx_digest: str = ""
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class MemberApprovedEvent:
    """Emitted when the admin approves a join request."""

    circle_id: str
    member: str
    tx_digest: str = ""
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class CircleActivatedEvent:
    """Emitted when the admin activates a circle and the schedule starts."""

    circle_id: str
    tx_digest: str = ""
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class CustodyWalletCreatedEvent:
    """Emitted when the escrow wallet holding a circle's pooled funds is created."""

    circle_id: str
    wallet_id: str
    tx_digest: str = ""
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class CustodyDepositedEvent:
    """Emitted when a member deposits into the custody wallet."""

    circle_id: str
    wallet_id: str
    member: str
    amount: int  # atomic units (MIST)
    tx_digest: str = ""
    timestamp_ms: int | None = None


JoinEvent = Union[MemberJoinedEvent, MemberApprovedEvent]

CircleEvent = Union[
    CircleCreatedEvent,
    MemberJoinedEvent,
    MemberApprovedEvent,
    CircleActivatedEvent,
    CustodyWalletCreatedEvent,
    CustodyDepositedEvent,
]
