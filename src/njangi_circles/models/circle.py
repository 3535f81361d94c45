"""Resolved circle models: canonical config, membership, deposit status, snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar

from njangi_circles.models.price import PriceQuote

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CycleType(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"

    @property
    def uses_weekday(self) -> bool:
        return self in (CycleType.WEEKLY, CycleType.BIWEEKLY)


# On-chain cycle_length encoding
CYCLE_LENGTH_CODES: dict[int, CycleType] = {
    0: CycleType.WEEKLY,
    1: CycleType.MONTHLY,
    2: CycleType.QUARTERLY,
    3: CycleType.BIWEEKLY,
}


class RotationStyle(str, Enum):
    FIXED = "fixed"
    AUCTION_BASED = "auction_based"


class SourceKind(str, Enum):
    """Config source layers, highest precedence first."""

    TRANSACTION_INPUT = "transaction_input"
    CREATION_EVENT = "creation_event"
    DYNAMIC_FIELD = "dynamic_field"
    DIRECT_FIELD = "direct_field"


class AmountOrigin(str, Enum):
    LEDGER = "ledger"  # raw on-chain value passed the plausibility check
    DERIVED = "derived"  # computed from the USD amount and the rate
    RATE_UNAVAILABLE = "rate_unavailable"  # derivation needed but no usable rate


class MembershipStatus(str, Enum):
    EXACT = "exact"
    TRUNCATED = "truncated"  # event page limit reached; count is a lower bound
    APPROXIMATE = "approximate"  # event query failed; reported scalar used


class DepositMethod(str, Enum):
    MEMBER_TABLE_ENTRY = "member_table_entry"
    CUSTODY_EVENT = "custody_event"
    UNKNOWN = "unknown"


class ResolutionFlag(str, Enum):
    """Degradation markers attached to a resolved snapshot."""

    RATE_UNAVAILABLE = "rate_unavailable"
    RATE_STALE = "rate_stale"
    MEMBERSHIP_TRUNCATED = "membership_truncated"
    MEMBERSHIP_APPROXIMATE = "membership_approximate"
    SCHEDULE_UNAVAILABLE = "schedule_unavailable"
    SOURCE_UNAVAILABLE = "source_unavailable"
    SOURCE_TRUNCATED = "source_truncated"  # event scan stopped at the page limit before a match
    DEPOSIT_CHECK_INCOMPLETE = "deposit_check_incomplete"


# ---------------------------------------------------------------------------
# Resolution building blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceRecord(Generic[T]):
    """A value together with the layer it was read from."""

    value: T
    source: SourceKind


@dataclass(frozen=True)
class NativeAmount:
    """A native-token amount and how it was obtained."""

    value: Decimal
    origin: AmountOrigin

    @property
    def rate_unavailable(self) -> bool:
        return self.origin is AmountOrigin.RATE_UNAVAILABLE


# ---------------------------------------------------------------------------
# Canonical config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CircleConfig:
    """Canonical, resolved configuration for one circle.

    USD cents are the source of truth. Native amounts are derived from them
    and the rate whenever the ledger's raw value is missing or implausible.
    """

    circle_id: str
    admin: str
    cycle_type: CycleType
    cycle_day: int
    name: str = ""
    contribution_amount_usd_cents: int = 0
    contribution_amount_usd: Decimal = Decimal("0")  # dollars
    contribution_amount_native: Decimal = Decimal("0")
    security_deposit_usd_cents: int = 0
    security_deposit_usd: Decimal = Decimal("0")  # dollars
    security_deposit_native: Decimal = Decimal("0")
    max_members: int = 3
    rotation_style: RotationStyle = RotationStyle.FIXED
    is_active: bool = False
    next_payout_at: datetime | None = None
    reported_next_payout_at: datetime | None = None  # ledger's next_payout_time
    reported_member_count: int | None = None  # ledger's current_members
    members_table_id: str | None = None
    defaulted: frozenset[str] = frozenset()
    derived: frozenset[str] = frozenset()
    flags: frozenset[ResolutionFlag] = frozenset()

    @property
    def cycle_day_valid(self) -> bool:
        if self.cycle_type.uses_weekday:
            return 0 <= self.cycle_day <= 6
        return 1 <= self.cycle_day <= 28


# ---------------------------------------------------------------------------
# Membership and deposits
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MembershipSet:
    """Unique member addresses of a circle. Always contains the admin."""

    admin: str
    members: frozenset[str]
    status: MembershipStatus = MembershipStatus.EXACT
    reported_count: int | None = None

    @property
    def count(self) -> int:
        if self.status is MembershipStatus.APPROXIMATE and self.reported_count is not None:
            return self.reported_count
        return len(self.members)

    @property
    def is_exact(self) -> bool:
        return self.status is MembershipStatus.EXACT

    def __contains__(self, address: object) -> bool:
        return address in self.members

    def __len__(self) -> int:
        return self.count


@dataclass(frozen=True)
class DepositRecord:
    """Whether one address has satisfied its security-deposit obligation."""

    circle_id: str
    address: str
    paid: bool
    method: DepositMethod = DepositMethod.UNKNOWN
    incomplete: bool = False  # a detection method could not be evaluated


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class ResolvedCircle:
    """The read model handed to presentation code."""

    config: CircleConfig
    membership: MembershipSet
    current_members: int
    price: PriceQuote
    custody_wallet_id: str | None = None
    potential_next_payout_at: datetime | None = None
    deposit: DepositRecord | None = None
    flags: frozenset[ResolutionFlag] = field(default_factory=frozenset)

    @property
    def circle_id(self) -> str:
        return self.config.circle_id

    @property
    def is_full(self) -> bool:
        return self.current_members >= self.config.max_members

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable view of the snapshot."""
        cfg = self.config
        return {
            "circle_id": cfg.circle_id,
            "name": cfg.name,
            "admin": cfg.admin,
            "contribution_amount_usd_cents": cfg.contribution_amount_usd_cents,
            "contribution_amount_usd": str(cfg.contribution_amount_usd),
            "contribution_amount_native": str(cfg.contribution_amount_native),
            "security_deposit_usd_cents": cfg.security_deposit_usd_cents,
            "security_deposit_usd": str(cfg.security_deposit_usd),
            "security_deposit_native": str(cfg.security_deposit_native),
            "cycle_type": cfg.cycle_type.value,
            "cycle_day": cfg.cycle_day,
            "max_members": cfg.max_members,
            "rotation_style": cfg.rotation_style.value,
            "is_active": cfg.is_active,
            "next_payout_at": _iso(cfg.next_payout_at),
            "potential_next_payout_at": _iso(self.potential_next_payout_at),
            "current_members": self.current_members,
            "members": sorted(self.membership.members),
            "membership_status": self.membership.status.value,
            "custody_wallet_id": self.custody_wallet_id,
            "price": {
                "value": self.price.value if self.price.usable else None,
                "status": self.price.status.value,
            },
            "deposit": (
                {
                    "address": self.deposit.address,
                    "paid": self.deposit.paid,
                    "method": self.deposit.method.value,
                    "incomplete": self.deposit.incomplete,
                }
                if self.deposit is not None
                else None
            ),
            "defaulted": sorted(cfg.defaulted),
            "flags": sorted(f.value for f in self.flags),
        }
