"""Membership aggregator - rebuilds a circle's member set from the event log."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from njangi_circles.interfaces.ledger import LedgerReader
from njangi_circles.models.circle import MembershipSet, MembershipStatus
from njangi_circles.models.events import (
    CircleEvent,
    CustodyWalletCreatedEvent,
    MemberApprovedEvent,
    MemberJoinedEvent,
)
from njangi_circles.models.ledger import LedgerEvent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectedEvents:
    """Events gathered across pages of one event query."""

    events: list[LedgerEvent] = field(default_factory=list)
    truncated: bool = False  # page limit hit while more pages remained
    pages: int = 0


async def collect_events(
    reader: LedgerReader,
    event_type: str,
    *,
    page_size: int = 50,
    max_pages: int = 20,
) -> CollectedEvents:
    """Page through an event query. FetchFailure from the reader propagates."""
    events: list[LedgerEvent] = []
    cursor: dict[str, Any] | None = None
    pages = 0

    while pages < max_pages:
        page = await reader.query_events(event_type, cursor=cursor, limit=page_size)
        pages += 1
        events.extend(page.events)
        if not page.has_next_page or page.next_cursor is None:
            return CollectedEvents(events=events, truncated=False, pages=pages)
        cursor = page.next_cursor

    log.warning(
        "Stopped paging %s after %d pages (%d events), more remain",
        event_type.rsplit("::", 1)[-1], pages, len(events),
    )
    return CollectedEvents(events=events, truncated=True, pages=pages)


def custody_wallet_for(events: Iterable[CircleEvent], circle_id: str) -> str | None:
    """Wallet id from the first CustodyWalletCreated event for this circle."""
    for event in events:
        if isinstance(event, CustodyWalletCreatedEvent) and event.circle_id == circle_id:
            return event.wallet_id
    return None


class MembershipAggregator:
    """Builds a deduplicated MembershipSet from join-type events.

    The set only grows: events are never interpreted as removals, and
    replays or duplicate events leave it unchanged.
    """

    def aggregate(
        self,
        admin: str,
        join_events: Iterable[CircleEvent],
        circle_id: str,
        *,
        truncated: bool = False,
    ) -> MembershipSet:
        members = {admin}
        for event in join_events:
            if not isinstance(event, (MemberJoinedEvent, MemberApprovedEvent)):
                continue
            if event.circle_id != circle_id:
                continue
            members.add(event.member)

        status = MembershipStatus.TRUNCATED if truncated else MembershipStatus.EXACT
        if truncated:
            log.info(
                "Membership of %s is a lower bound (%d members seen)",
                circle_id[:16], len(members),
            )
        return MembershipSet(admin=admin, members=frozenset(members), status=status)

    def fallback(self, admin: str, reported_count: int | None) -> MembershipSet:
        """Approximate membership when the event query failed outright."""
        count = reported_count if reported_count is not None and reported_count > 0 else 1
        log.info("Using reported member count %d for approximate membership", count)
        return MembershipSet(
            admin=admin,
            members=frozenset({admin}),
            status=MembershipStatus.APPROXIMATE,
            reported_count=count,
        )
