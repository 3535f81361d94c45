"""Deposit status resolver - has a member paid the circle's security deposit?

Two independent signals are checked, first match wins:
    1. Member table: the member's row in the circle's members table has a
       positive ``deposit_balance``.
    2. Custody events: a CustodyDeposited event for the circle (or its
       custody wallet) from this member covers at least 95% of the required
       native amount. The slack absorbs fee and rounding differences.

No evidence means unpaid.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from decimal import Decimal
from typing import Any

from njangi_circles.engine.decode import decode_struct, parse_int
from njangi_circles.engine.events import CUSTODY_DEPOSITED, parse_events
from njangi_circles.engine.membership import collect_events
from njangi_circles.engine.monetary import atomic_to_native
from njangi_circles.exceptions import FetchFailure
from njangi_circles.interfaces.ledger import LedgerReader
from njangi_circles.models.circle import CircleConfig, DepositMethod, DepositRecord, ResolutionFlag
from njangi_circles.models.config import ResolverConfig
from njangi_circles.models.events import CircleEvent, CustodyDepositedEvent

log = logging.getLogger(__name__)

DEPOSIT_TOLERANCE = Decimal("0.95")

MEMBER_ENTRY_KEYS = ("deposit_balance", "joined_at", "status")


def deposit_balance(entry: Any) -> int | None:
    """deposit_balance (atomic units) from a member-table row, wrapped or flat."""
    fields = decode_struct(entry, MEMBER_ENTRY_KEYS, "member table entry")
    if fields is None:
        return None
    return parse_int(fields.get("deposit_balance"))


def required_deposit(config: CircleConfig) -> Decimal | None:
    """Native deposit to compare custody amounts against, or None if unknown.

    A deposit that had to be derived from USD without a usable rate is zero
    only as a placeholder, not a real requirement.
    """
    if (
        "security_deposit_native" in config.derived
        and ResolutionFlag.RATE_UNAVAILABLE in config.flags
    ):
        return None
    return config.security_deposit_native


class DepositStatusResolver:
    """Per-address deposit check. Holds no state between calls."""

    def __init__(
        self,
        config: ResolverConfig | None = None,
        tolerance: Decimal = DEPOSIT_TOLERANCE,
    ) -> None:
        self._config = config or ResolverConfig()
        self._tolerance = tolerance

    def is_deposit_paid(
        self,
        circle_id: str,
        address: str,
        required_native: Decimal | None,
        member_table: Mapping[str, Any] | None = None,
        custody_events: Iterable[CircleEvent] | None = None,
        custody_wallet_id: str | None = None,
    ) -> DepositRecord:
        """Decide from already fetched evidence.

        With ``required_native`` None the required amount is unknown, so
        custody amounts cannot be compared and the record is incomplete.
        """
        if member_table is not None and address in member_table:
            balance = deposit_balance(member_table[address])
            if balance is not None and balance > 0:
                return DepositRecord(
                    circle_id=circle_id,
                    address=address,
                    paid=True,
                    method=DepositMethod.MEMBER_TABLE_ENTRY,
                )

        if required_native is None:
            log.warning(
                "Deposit for %s: required amount unknown, custody events not compared", address[:16]
            )
            return DepositRecord(circle_id=circle_id, address=address, paid=False, incomplete=True)

        threshold = Decimal(required_native) * self._tolerance
        for event in custody_events or ():
            if not isinstance(event, CustodyDepositedEvent) or event.member != address:
                continue
            same_circle = event.circle_id == circle_id
            same_wallet = custody_wallet_id is not None and event.wallet_id == custody_wallet_id
            if not (same_circle or same_wallet):
                continue
            amount = atomic_to_native(event.amount)
            if amount is not None and amount > 0 and amount >= threshold:
                return DepositRecord(
                    circle_id=circle_id,
                    address=address,
                    paid=True,
                    method=DepositMethod.CUSTODY_EVENT,
                )

        return DepositRecord(circle_id=circle_id, address=address, paid=False)

    async def check(
        self,
        reader: LedgerReader,
        circle_id: str,
        address: str,
        required_native: Decimal | None,
        members_table_id: str | None = None,
        custody_wallet_id: str | None = None,
    ) -> DepositRecord:
        """Fetch both kinds of evidence concurrently, then decide.

        Both fetches are attempted even if one fails. A failed fetch marks the
        record incomplete; the answer is still unpaid unless the other method
        found a deposit. A custody scan cut off at the page limit without a
        match also marks the record incomplete.
        """
        results = await asyncio.gather(
            self._fetch_member_entry(reader, members_table_id, address),
            self._fetch_custody_events(reader),
            return_exceptions=True,
        )

        incomplete = False
        evidence: list[Any] = []
        for label, result in zip(("member table", "custody events"), results):
            if isinstance(result, FetchFailure):
                log.warning("Deposit check for %s: %s fetch failed: %s", address[:16], label, result)
                incomplete = True
                evidence.append(None)
            elif isinstance(result, BaseException):
                raise result
            else:
                evidence.append(result)

        member_table, custody = evidence
        custody_events, custody_truncated = custody if custody is not None else (None, False)
        record = self.is_deposit_paid(
            circle_id,
            address,
            required_native,
            member_table=member_table,
            custody_events=custody_events,
            custody_wallet_id=custody_wallet_id,
        )
        if custody_truncated and not record.paid:
            log.warning("Deposit check for %s: custody event scan truncated", address[:16])
            incomplete = True
        if incomplete:
            record = replace(record, incomplete=True)
        log.debug(
            "Deposit for %s in %s: paid=%s via %s",
            address[:16], circle_id[:16], record.paid, record.method.value,
        )
        return record

    async def _fetch_member_entry(
        self, reader: LedgerReader, members_table_id: str | None, address: str
    ) -> dict[str, Any] | None:
        if not members_table_id:
            return None
        content = await reader.get_dynamic_field_object(members_table_id, "address", address)
        if content is None:
            return {}
        return {address: content.fields}

    async def _fetch_custody_events(self, reader: LedgerReader) -> tuple[list[CircleEvent], bool]:
        collected = await collect_events(
            reader,
            self._config.event_type(CUSTODY_DEPOSITED),
            page_size=self._config.event_page_size,
            max_pages=self._config.max_event_pages,
        )
        return parse_events(collected.events), collected.truncated
