"""Circle event parsing - turns raw LedgerEvents into typed circle events."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from njangi_circles.engine.decode import parse_address, parse_int
from njangi_circles.models.events import (
    CircleActivatedEvent,
    CircleCreatedEvent,
    CircleEvent,
    CustodyDepositedEvent,
    CustodyWalletCreatedEvent,
    MemberApprovedEvent,
    MemberJoinedEvent,
)
from njangi_circles.models.ledger import LedgerEvent

log = logging.getLogger(__name__)

CIRCLE_CREATED = "CircleCreated"
MEMBER_JOINED = "MemberJoined"
MEMBER_APPROVED = "MemberApproved"
CIRCLE_ACTIVATED = "CircleActivated"
CUSTODY_WALLET_CREATED = "CustodyWalletCreated"
CUSTODY_DEPOSITED = "CustodyDeposited"

EVENT_NAMES = (
    CIRCLE_CREATED,
    MEMBER_JOINED,
    MEMBER_APPROVED,
    CIRCLE_ACTIVATED,
    CUSTODY_WALLET_CREATED,
    CUSTODY_DEPOSITED,
)

JOIN_EVENT_NAMES = (MEMBER_JOINED, MEMBER_APPROVED)


def parse_event(event: LedgerEvent) -> CircleEvent | None:
    """Parse a LedgerEvent into one of our circle event types.

    Returns None if the event type is unrecognized or a required field is
    missing.
    """
    data = event.parsed_json or {}
    circle_id = parse_address(data.get("circle_id"))
    if circle_id is None:
        log.debug("Event %s#%d has no circle_id", event.tx_digest, event.event_seq)
        return None

    common = {"tx_digest": event.tx_digest, "timestamp_ms": event.timestamp_ms}
    kind = event.name

    if kind == CIRCLE_CREATED:
        return CircleCreatedEvent(
            circle_id=circle_id,
            admin=parse_address(data.get("admin")) or "",
            payload=dict(data),
            **common,
        )

    if kind in JOIN_EVENT_NAMES:
        member = parse_address(data.get("member"))
        if member is None:
            log.warning("%s event %s without member", kind, event.tx_digest)
            return None
        cls = MemberJoinedEvent if kind == MEMBER_JOINED else MemberApprovedEvent
        return cls(circle_id=circle_id, member=member, **common)

    if kind == CIRCLE_ACTIVATED:
        return CircleActivatedEvent(circle_id=circle_id, **common)

    if kind == CUSTODY_WALLET_CREATED:
        wallet_id = parse_address(data.get("wallet_id"))
        if wallet_id is None:
            return None
        return CustodyWalletCreatedEvent(circle_id=circle_id, wallet_id=wallet_id, **common)

    if kind == CUSTODY_DEPOSITED:
        member = parse_address(data.get("member"))
        amount = parse_int(data.get("amount"))
        if member is None or amount is None:
            log.warning("Malformed CustodyDeposited event %s", event.tx_digest)
            return None
        return CustodyDepositedEvent(
            circle_id=circle_id,
            wallet_id=parse_address(data.get("wallet_id")) or "",
            member=member,
            amount=amount,
            **common,
        )

    log.debug("Ignoring event type %s", event.event_type)
    return None


def parse_events(events: Iterable[LedgerEvent]) -> list[CircleEvent]:
    """Parse a batch, dropping anything unrecognized."""
    parsed = []
    for event in events:
        result = parse_event(event)
        if result is not None:
            parsed.append(result)
    return parsed
