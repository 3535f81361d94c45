"""Circle projector - fetches every source for a circle and assembles a ResolvedCircle.

Fetching happens concurrently; a failed source degrades the snapshot (and
flags it) instead of failing the whole projection. Only an unresolvable
identity (no admin, no cycle type, no circle object) aborts, as
CircleNotFoundError.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, TypeVar

from njangi_circles.engine.config_resolver import (
    ConfigResolver,
    ConfigSources,
    creation_inputs_from_transaction,
    select_config_field,
)
from njangi_circles.engine.deposits import DepositStatusResolver, required_deposit
from njangi_circles.engine.events import (
    CIRCLE_ACTIVATED,
    CIRCLE_CREATED,
    CUSTODY_WALLET_CREATED,
    MEMBER_APPROVED,
    MEMBER_JOINED,
    parse_events,
)
from njangi_circles.engine.membership import (
    CollectedEvents,
    MembershipAggregator,
    collect_events,
    custody_wallet_for,
)
from njangi_circles.engine.schedule import potential_next_payout
from njangi_circles.exceptions import (
    CircleNotFoundError,
    ConfigInvariantViolation,
    FetchFailure,
    MissingFieldError,
)
from njangi_circles.interfaces.ledger import LedgerReader
from njangi_circles.interfaces.price import PriceSource
from njangi_circles.models.circle import DepositRecord, MembershipStatus, ResolutionFlag, ResolvedCircle
from njangi_circles.models.config import ResolverConfig
from njangi_circles.models.events import (
    CircleActivatedEvent,
    CircleCreatedEvent,
    CircleEvent,
)
from njangi_circles.models.ledger import ObjectContent
from njangi_circles.models.price import PriceQuote, PriceStatus

log = logging.getLogger(__name__)

T = TypeVar("T")

_FAILED = object()


@dataclass
class CircleInputs:
    """Everything fetched for one circle, before resolution.

    ``join_events`` is None when the join-event query failed. Source names
    that could not be fetched are listed in ``failed_sources``; those whose
    event scan hit the page limit before finding the circle's event are
    listed in ``truncated_sources``.
    """

    circle_id: str
    circle_object: ObjectContent | None = None
    config_object: ObjectContent | None = None
    creation_event: CircleCreatedEvent | None = None
    tx_input: dict[str, Any] | None = None
    join_events: list[CircleEvent] | None = field(default_factory=list)
    join_truncated: bool = False
    activated: bool | None = None
    custody_events: list[CircleEvent] = field(default_factory=list)
    price: PriceQuote = field(default_factory=PriceQuote.unavailable)
    member_table: Mapping[str, Any] | None = None
    custody_deposits: list[CircleEvent] | None = None
    failed_sources: set[str] = field(default_factory=set)
    truncated_sources: set[str] = field(default_factory=set)


class CircleProjector:
    """Single entry point for resolving a circle's state."""

    def __init__(
        self,
        reader: LedgerReader,
        price_source: PriceSource,
        config: ResolverConfig | None = None,
        resolver: ConfigResolver | None = None,
        aggregator: MembershipAggregator | None = None,
        deposits: DepositStatusResolver | None = None,
    ) -> None:
        self._reader = reader
        self._price_source = price_source
        self._config = config or ResolverConfig()
        self._resolver = resolver or ConfigResolver()
        self._aggregator = aggregator or MembershipAggregator()
        self._deposits = deposits or DepositStatusResolver(self._config)

    # ── Fetch ──────────────────────────────────────────────

    async def project(
        self,
        circle_id: str,
        member_address: str | None = None,
        now: datetime | None = None,
    ) -> ResolvedCircle:
        """Fetch all sources concurrently and resolve the circle."""
        inputs = await self.fetch(circle_id)
        snapshot = self.assemble(inputs, now=now)

        if member_address:
            record = await self._deposits.check(
                self._reader,
                circle_id,
                member_address,
                required_deposit(snapshot.config),
                members_table_id=snapshot.config.members_table_id,
                custody_wallet_id=snapshot.custody_wallet_id,
            )
            snapshot = with_deposit(snapshot, record)
        return snapshot

    async def fetch(self, circle_id: str) -> CircleInputs:
        """Gather raw inputs. FetchFailures are recorded, not raised."""
        inputs = CircleInputs(circle_id=circle_id)
        (
            circle_object,
            config_object,
            creation,
            joined,
            approved,
            activated,
            wallets,
            price,
        ) = await asyncio.gather(
            self._guard("object", inputs, self._reader.get_object(circle_id)),
            self._guard("config_field", inputs, self._fetch_config_object(circle_id)),
            self._guard("creation", inputs, self._fetch_creation(circle_id)),
            self._guard("join_events", inputs, self._collect(MEMBER_JOINED)),
            self._guard("join_events", inputs, self._collect(MEMBER_APPROVED)),
            self._guard("activation", inputs, self._collect(CIRCLE_ACTIVATED)),
            self._guard("custody_wallet", inputs, self._collect(CUSTODY_WALLET_CREATED)),
            self._fetch_price(),
        )

        if circle_object is not _FAILED:
            inputs.circle_object = circle_object
        if config_object is not _FAILED:
            inputs.config_object = config_object
        if creation is not _FAILED:
            inputs.creation_event, inputs.tx_input, creation_truncated = creation
            if creation_truncated:
                inputs.truncated_sources.add("creation")

        if joined is _FAILED or approved is _FAILED:
            inputs.join_events = None
        else:
            inputs.join_events = parse_events(joined.events) + parse_events(approved.events)
            inputs.join_truncated = joined.truncated or approved.truncated

        if activated is not _FAILED:
            seen = any(
                isinstance(e, CircleActivatedEvent) and e.circle_id == circle_id
                for e in parse_events(activated.events)
            )
            if seen or not activated.truncated:
                inputs.activated = seen
            else:
                inputs.truncated_sources.add("activation")
        if wallets is not _FAILED:
            inputs.custody_events = parse_events(wallets.events)
            if wallets.truncated and custody_wallet_for(inputs.custody_events, circle_id) is None:
                inputs.truncated_sources.add("custody_wallet")

        inputs.price = price
        return inputs

    async def _guard(self, source: str, inputs: CircleInputs, coro: Awaitable[T]) -> T | object:
        try:
            return await coro
        except FetchFailure as e:
            log.warning("Source %s unavailable for %s: %s", source, inputs.circle_id[:16], e)
            inputs.failed_sources.add(source)
            return _FAILED

    async def _collect(self, name: str) -> CollectedEvents:
        return await collect_events(
            self._reader,
            self._config.event_type(name),
            page_size=self._config.event_page_size,
            max_pages=self._config.max_event_pages,
        )

    async def _fetch_config_object(self, circle_id: str) -> ObjectContent | None:
        listing = await self._reader.get_dynamic_fields(circle_id)
        info = select_config_field(listing)
        if info is None:
            return None
        return await self._reader.get_object(info.object_id)

    async def _fetch_creation(
        self, circle_id: str
    ) -> tuple[CircleCreatedEvent | None, dict[str, Any] | None, bool]:
        """Creation event, its transaction inputs, and whether the scan missed it at the page limit."""
        collected = await self._collect(CIRCLE_CREATED)
        created = next(
            (
                e
                for e in parse_events(collected.events)
                if isinstance(e, CircleCreatedEvent) and e.circle_id == circle_id
            ),
            None,
        )
        if created is None:
            if collected.truncated:
                log.warning("CircleCreated scan truncated before %s was found", circle_id[:16])
            return None, None, collected.truncated
        if not created.tx_digest:
            return created, None, False
        try:
            tx_inputs = await self._reader.get_transaction_inputs(created.tx_digest)
        except FetchFailure as e:
            log.info("Creation transaction %s unavailable: %s", created.tx_digest[:16], e)
            return created, None, False
        return created, creation_inputs_from_transaction(tx_inputs), False

    async def _fetch_price(self) -> PriceQuote:
        try:
            return await self._price_source.get_price()
        except Exception as e:
            log.warning("Price source raised %s, continuing without a rate", e)
            return PriceQuote.unavailable()

    # ── Assemble ───────────────────────────────────────────

    def assemble(
        self,
        inputs: CircleInputs,
        member_address: str | None = None,
        now: datetime | None = None,
    ) -> ResolvedCircle:
        """Resolve a snapshot from already fetched inputs. Performs no I/O."""
        circle_id = inputs.circle_id
        now = now or datetime.now(timezone.utc)
        flags: set[ResolutionFlag] = set()

        if inputs.circle_object is None and "object" not in inputs.failed_sources:
            raise CircleNotFoundError("Circle object does not exist", {"circle_id": circle_id})
        if inputs.failed_sources:
            flags.add(ResolutionFlag.SOURCE_UNAVAILABLE)
        if inputs.truncated_sources:
            flags.add(ResolutionFlag.SOURCE_TRUNCATED)

        price = inputs.price
        if not price.usable:
            flags.add(ResolutionFlag.RATE_UNAVAILABLE)
        elif price.status is PriceStatus.STALE:
            flags.add(ResolutionFlag.RATE_STALE)

        sources = ConfigSources(
            circle_id=circle_id,
            direct_fields=inputs.circle_object.fields if inputs.circle_object else {},
            tx_input=inputs.tx_input,
            creation_event=inputs.creation_event.payload if inputs.creation_event else None,
            dynamic_field_object=inputs.config_object.fields if inputs.config_object else None,
            activated=inputs.activated,
        )
        try:
            config = self._resolver.resolve(sources, price.rate)
        except MissingFieldError as e:
            raise CircleNotFoundError(
                "Circle could not be identified", {"circle_id": circle_id, "field": e.field}
            ) from e
        flags |= config.flags

        if inputs.join_events is None:
            membership = self._aggregator.fallback(config.admin, config.reported_member_count)
            flags.add(ResolutionFlag.MEMBERSHIP_APPROXIMATE)
        else:
            membership = self._aggregator.aggregate(
                config.admin, inputs.join_events, circle_id, truncated=inputs.join_truncated
            )
            if membership.status is MembershipStatus.TRUNCATED:
                flags.add(ResolutionFlag.MEMBERSHIP_TRUNCATED)

        try:
            potential = potential_next_payout(config.cycle_type, config.cycle_day, now)
        except ConfigInvariantViolation as e:
            log.warning("No payout schedule for %s: %s", circle_id[:16], e)
            potential = None
            flags.add(ResolutionFlag.SCHEDULE_UNAVAILABLE)
        config = replace(config, next_payout_at=potential if config.is_active else None)

        custody_wallet_id = custody_wallet_for(inputs.custody_events, circle_id)

        deposit = None
        if member_address and (inputs.member_table is not None or inputs.custody_deposits is not None):
            deposit = self._deposits.is_deposit_paid(
                circle_id,
                member_address,
                required_deposit(config),
                member_table=inputs.member_table,
                custody_events=inputs.custody_deposits,
                custody_wallet_id=custody_wallet_id,
            )
            if deposit.incomplete:
                flags.add(ResolutionFlag.DEPOSIT_CHECK_INCOMPLETE)

        snapshot = ResolvedCircle(
            config=config,
            membership=membership,
            current_members=membership.count,
            price=price,
            custody_wallet_id=custody_wallet_id,
            potential_next_payout_at=potential,
            deposit=deposit,
            flags=frozenset(flags),
        )
        log.info(
            "Resolved circle %s: %d/%d members, active=%s, flags=%s",
            circle_id[:16],
            snapshot.current_members,
            config.max_members,
            config.is_active,
            ",".join(sorted(f.value for f in flags)) or "-",
        )
        return snapshot


def with_deposit(snapshot: ResolvedCircle, record: DepositRecord) -> ResolvedCircle:
    """Attach a deposit record, flagging an incomplete check."""
    flags = set(snapshot.flags)
    if record.incomplete:
        flags.add(ResolutionFlag.DEPOSIT_CHECK_INCOMPLETE)
    return replace(snapshot, deposit=record, flags=frozenset(flags))
