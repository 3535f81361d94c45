"""Data models for the njangi_circles resolver."""

from njangi_circles.models.circle import (
    CYCLE_LENGTH_CODES,
    AmountOrigin,
    CircleConfig,
    CycleType,
    DepositMethod,
    DepositRecord,
    MembershipSet,
    MembershipStatus,
    NativeAmount,
    ResolutionFlag,
    ResolvedCircle,
    RotationStyle,
    SourceKind,
    SourceRecord,
)
from njangi_circles.models.config import NETWORK_RPC_URLS, ResolverConfig
from njangi_circles.models.events import (
    CircleActivatedEvent,
    CircleCreatedEvent,
    CircleEvent,
    CustodyDepositedEvent,
    CustodyWalletCreatedEvent,
    JoinEvent,
    MemberApprovedEvent,
    MemberJoinedEvent,
)
from njangi_circles.models.ledger import (
    DynamicFieldInfo,
    EventPage,
    LedgerEvent,
    ObjectContent,
    TransactionInput,
)
from njangi_circles.models.price import PriceQuote, PriceStatus

__all__ = [
    "CYCLE_LENGTH_CODES", "AmountOrigin", "CircleConfig", "CycleType",
    "DepositMethod", "DepositRecord", "MembershipSet", "MembershipStatus",
    "NativeAmount", "ResolutionFlag", "ResolvedCircle", "RotationStyle",
    "SourceKind", "SourceRecord",
    "NETWORK_RPC_URLS", "ResolverConfig",
    "CircleActivatedEvent", "CircleCreatedEvent", "CircleEvent",
    "CustodyDepositedEvent", "CustodyWalletCreatedEvent", "JoinEvent",
    "MemberApprovedEvent", "MemberJoinedEvent",
    "DynamicFieldInfo", "EventPage", "LedgerEvent", "ObjectContent", "TransactionInput",
    "PriceQuote", "PriceStatus",
]
