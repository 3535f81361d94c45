"""Tests 61-75: End-to-end projection over a mocked ledger."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from njangi_circles.engine.projector import CircleInputs, CircleProjector
from njangi_circles.exceptions import CircleNotFoundError
from njangi_circles.models.circle import (
    CycleType,
    DepositMethod,
    MembershipStatus,
    ResolutionFlag,
)
from njangi_circles.models.ledger import ObjectContent
from njangi_circles.models.price import PriceQuote, PriceStatus

from tests.conftest import (
    ADMIN,
    CIRCLE_ID,
    CUSTODY_WALLET_ID,
    MEMBER_B,
    MEMBER_C,
    MEMBERS_TABLE_ID,
    NOW,
    make_test_config,
)
from tests.factories import (
    activated_event,
    approved_event,
    created_event,
    creation_tx_inputs,
    deposited,
    deposited_event,
    joined_event,
    make_circle_object,
    make_config_field,
    make_config_object,
    make_member_entry,
    wallet_created_event,
)
from tests.mocks import MockLedgerReader, MockPriceSource

OTHER_CIRCLE = "0x" + "0f" * 32


def seed_circle(reader: MockLedgerReader, **fields) -> None:
    """A monthly circle (15th) with two joined members and a custody wallet."""
    reader.add_object(make_circle_object(**fields))
    reader.add_events(
        created_event(),
        joined_event(MEMBER_B),
        joined_event(MEMBER_B),
        approved_event(MEMBER_C),
        wallet_created_event(CUSTODY_WALLET_ID),
    )


# ── Test 61: Happy path ───────────────────────────────────────────


async def test_project_happy_path(projector, mock_reader):
    seed_circle(mock_reader)

    snapshot = await projector.project(CIRCLE_ID, now=NOW)

    assert snapshot.circle_id == CIRCLE_ID
    assert snapshot.config.admin == ADMIN
    assert snapshot.config.cycle_type is CycleType.MONTHLY
    assert snapshot.membership.members == frozenset({ADMIN, MEMBER_B, MEMBER_C})
    assert snapshot.current_members == 3
    assert snapshot.custody_wallet_id == CUSTODY_WALLET_ID
    assert snapshot.config.is_active is False
    assert snapshot.config.next_payout_at is None
    assert snapshot.potential_next_payout_at == datetime(2024, 5, 15, 12, tzinfo=timezone.utc)
    assert snapshot.price.value == 1.25
    assert snapshot.deposit is None
    assert snapshot.flags == frozenset()


async def test_project_active_circle_schedules_payout(projector, mock_reader):
    seed_circle(mock_reader)
    mock_reader.add_events(activated_event())

    snapshot = await projector.project(CIRCLE_ID, now=NOW)
    assert snapshot.config.is_active is True
    assert snapshot.config.next_payout_at == datetime(2024, 5, 15, 12, tzinfo=timezone.utc)


async def test_project_to_dict_is_json_ready(projector, mock_reader):
    seed_circle(mock_reader)
    snapshot = await projector.project(CIRCLE_ID, now=NOW)
    data = json.loads(json.dumps(snapshot.to_dict()))
    assert data["current_members"] == 3
    assert data["contribution_amount_usd"] == "50"
    assert data["price"]["status"] == "ok"


# ── Test 62: Precedence through all layers ───────────────────────


async def test_project_prefers_transaction_inputs(projector, mock_reader):
    seed_circle(mock_reader, contribution_amount_usd="2000")
    mock_reader.events[make_test_config().event_type("CircleCreated")] = []
    mock_reader.add_events(created_event(contribution_amount_usd="1000"))
    mock_reader.tx_inputs["CreateDigest"] = creation_tx_inputs(contribution_usd_cents="800")

    snapshot = await projector.project(CIRCLE_ID, now=NOW)
    assert snapshot.config.contribution_amount_usd_cents == 800


async def test_project_reads_config_dynamic_field(projector, mock_reader):
    seed_circle(mock_reader)
    mock_reader.dynamic_fields[CIRCLE_ID] = [make_config_field("0xcf01")]
    mock_reader.add_object(make_config_object("0xcf01", cycle_day="20", max_members="8"))

    snapshot = await projector.project(CIRCLE_ID, now=NOW)
    assert snapshot.config.cycle_day == 20
    assert snapshot.config.max_members == 8


# ── Test 63: Not found ────────────────────────────────────────────


async def test_project_missing_object_is_not_found(projector):
    with pytest.raises(CircleNotFoundError):
        await projector.project(CIRCLE_ID, now=NOW)


async def test_project_missing_admin_is_not_found(projector, mock_reader):
    fields = make_circle_object().fields
    del fields["admin"]
    mock_reader.add_object(ObjectContent(object_id=CIRCLE_ID, fields=fields))

    with pytest.raises(CircleNotFoundError):
        await projector.project(CIRCLE_ID, now=NOW)


# ── Test 64: Degraded sources ─────────────────────────────────────


async def test_join_query_failure_uses_reported_count(projector, mock_reader):
    seed_circle(mock_reader, current_members="4")
    mock_reader.fail.add("MemberJoined")

    snapshot = await projector.project(CIRCLE_ID, now=NOW)
    assert snapshot.membership.status is MembershipStatus.APPROXIMATE
    assert snapshot.current_members == 4
    assert ResolutionFlag.MEMBERSHIP_APPROXIMATE in snapshot.flags
    assert ResolutionFlag.SOURCE_UNAVAILABLE in snapshot.flags


async def test_truncated_membership_flagged(mock_price):
    config = make_test_config(event_page_size=1, max_event_pages=2)
    reader = MockLedgerReader(config)
    reader.add_object(make_circle_object())
    reader.add_events(*(joined_event(f"0x{i:064x}") for i in range(5)))

    snapshot = await CircleProjector(reader, mock_price, config).project(CIRCLE_ID, now=NOW)
    assert snapshot.membership.status is MembershipStatus.TRUNCATED
    assert snapshot.current_members == 3  # admin + 2 seen
    assert ResolutionFlag.MEMBERSHIP_TRUNCATED in snapshot.flags


async def test_invalid_cycle_day_is_schedule_unavailable(projector, mock_reader):
    seed_circle(mock_reader, cycle_day="31", is_active=True)

    snapshot = await projector.project(CIRCLE_ID, now=NOW)
    assert snapshot.config.next_payout_at is None
    assert snapshot.potential_next_payout_at is None
    assert ResolutionFlag.SCHEDULE_UNAVAILABLE in snapshot.flags


async def test_object_fetch_failure_still_resolves_from_event(projector, mock_reader):
    seed_circle(mock_reader)
    mock_reader.fail.add("get_object")
    mock_reader.events[make_test_config().event_type("CircleCreated")] = []
    mock_reader.add_events(created_event(cycle_length="0", cycle_day="2"))

    snapshot = await projector.project(CIRCLE_ID, now=NOW)
    assert snapshot.config.cycle_type is CycleType.WEEKLY
    assert ResolutionFlag.SOURCE_UNAVAILABLE in snapshot.flags


# ── Test 65: Price problems ───────────────────────────────────────


async def test_stale_price_is_used_and_flagged(mock_reader):
    seed_circle(mock_reader, contribution_amount="0")
    price = MockPriceSource(value=2.5, status=PriceStatus.STALE)

    snapshot = await CircleProjector(mock_reader, price, make_test_config()).project(CIRCLE_ID, now=NOW)
    assert snapshot.config.contribution_amount_native == Decimal("20")
    assert ResolutionFlag.RATE_STALE in snapshot.flags


async def test_price_source_error_yields_rate_unavailable(mock_reader):
    seed_circle(mock_reader, contribution_amount="0")
    price = MockPriceSource(raise_error=True)

    snapshot = await CircleProjector(mock_reader, price, make_test_config()).project(CIRCLE_ID, now=NOW)
    assert snapshot.config.contribution_amount_native == 0
    assert snapshot.config.contribution_amount_usd_cents == 5000
    assert ResolutionFlag.RATE_UNAVAILABLE in snapshot.flags


# ── Test 66: Deposit with member address ─────────────────────────


async def test_project_with_member_deposit(projector, mock_reader):
    seed_circle(mock_reader)
    mock_reader.field_objects[(MEMBERS_TABLE_ID, MEMBER_B)] = ObjectContent(
        object_id="0xrow", fields=make_member_entry("20000000000")
    )

    snapshot = await projector.project(CIRCLE_ID, member_address=MEMBER_B, now=NOW)
    assert snapshot.deposit is not None
    assert snapshot.deposit.paid
    assert snapshot.deposit.method is DepositMethod.MEMBER_TABLE_ENTRY


async def test_project_deposit_check_incomplete(projector, mock_reader):
    seed_circle(mock_reader)
    mock_reader.fail.add("CustodyDeposited")

    snapshot = await projector.project(CIRCLE_ID, member_address=MEMBER_C, now=NOW)
    assert not snapshot.deposit.paid
    assert snapshot.deposit.incomplete
    assert ResolutionFlag.DEPOSIT_CHECK_INCOMPLETE in snapshot.flags


# ── Test 67: Pure assembly ────────────────────────────────────────


def test_assemble_from_prefetched_inputs(test_config):
    projector = CircleProjector(MockLedgerReader(test_config), MockPriceSource(), test_config)
    inputs = CircleInputs(
        circle_id=CIRCLE_ID,
        circle_object=make_circle_object(),
        join_events=[],
        price=PriceQuote(value=1.25),
        custody_deposits=[deposited(MEMBER_B, 19_000_000_000)],
        member_table={},
    )
    snapshot = projector.assemble(inputs, member_address=MEMBER_B, now=NOW)
    assert snapshot.current_members == 1
    assert snapshot.deposit.paid  # 19 of 20 SUI is exactly 95%
    assert snapshot.deposit.method is DepositMethod.CUSTODY_EVENT


async def test_project_fetches_concurrently_once_each(projector, mock_reader):
    seed_circle(mock_reader)
    await projector.project(CIRCLE_ID, now=NOW)
    assert mock_reader.call_count("get_object") == 1
    assert mock_reader.call_count("get_dynamic_fields") == 1
    assert mock_reader.call_count("get_transaction_inputs") == 1


# ── Test 68: Deposit without a usable rate ───────────────────────


async def test_derived_deposit_without_rate_is_not_compared(mock_reader):
    seed_circle(mock_reader, security_deposit="0")
    mock_reader.add_events(deposited_event(MEMBER_B, 1))
    price = MockPriceSource(value=0.0)

    snapshot = await CircleProjector(mock_reader, price, make_test_config()).project(
        CIRCLE_ID, member_address=MEMBER_B, now=NOW
    )
    assert not snapshot.deposit.paid
    assert snapshot.deposit.incomplete
    assert ResolutionFlag.RATE_UNAVAILABLE in snapshot.flags
    assert ResolutionFlag.DEPOSIT_CHECK_INCOMPLETE in snapshot.flags


def test_assemble_derived_deposit_without_rate(test_config):
    projector = CircleProjector(MockLedgerReader(test_config), MockPriceSource(), test_config)
    inputs = CircleInputs(
        circle_id=CIRCLE_ID,
        circle_object=make_circle_object(security_deposit="0"),
        custody_deposits=[deposited(MEMBER_B, 1)],
    )
    snapshot = projector.assemble(inputs, member_address=MEMBER_B, now=NOW)
    assert not snapshot.deposit.paid
    assert ResolutionFlag.DEPOSIT_CHECK_INCOMPLETE in snapshot.flags


# ── Test 69: Truncated event scans ───────────────────────────────


async def test_truncated_scans_flag_missing_creation_and_wallet(mock_price):
    config = make_test_config(event_page_size=1, max_event_pages=1)
    reader = MockLedgerReader(config)
    reader.add_object(make_circle_object(contribution_amount_usd="2000"))
    reader.add_events(
        created_event(circle_id=OTHER_CIRCLE),
        created_event(contribution_amount_usd="1000"),
        wallet_created_event("0xother", circle_id=OTHER_CIRCLE),
        wallet_created_event(CUSTODY_WALLET_ID),
    )

    snapshot = await CircleProjector(reader, mock_price, config).project(CIRCLE_ID, now=NOW)
    assert snapshot.config.contribution_amount_usd_cents == 2000  # direct field only
    assert snapshot.custody_wallet_id is None
    assert ResolutionFlag.SOURCE_TRUNCATED in snapshot.flags


async def test_truncated_activation_scan_falls_back_to_direct_field(mock_price):
    config = make_test_config(event_page_size=1, max_event_pages=1)
    reader = MockLedgerReader(config)
    reader.add_object(make_circle_object(is_active=True))
    reader.add_events(activated_event(OTHER_CIRCLE), activated_event())

    snapshot = await CircleProjector(reader, mock_price, config).project(CIRCLE_ID, now=NOW)
    assert snapshot.config.is_active is True
    assert ResolutionFlag.SOURCE_TRUNCATED in snapshot.flags


async def test_truncated_scan_that_found_the_circle_is_not_flagged(mock_price):
    config = make_test_config(event_page_size=1, max_event_pages=1)
    reader = MockLedgerReader(config)
    reader.add_object(make_circle_object())
    reader.add_events(
        created_event(contribution_amount_usd="1000"),
        created_event(circle_id=OTHER_CIRCLE),
        wallet_created_event(CUSTODY_WALLET_ID),
        wallet_created_event("0xother", circle_id=OTHER_CIRCLE),
    )

    snapshot = await CircleProjector(reader, mock_price, config).project(CIRCLE_ID, now=NOW)
    assert snapshot.config.contribution_amount_usd_cents == 1000
    assert snapshot.custody_wallet_id == CUSTODY_WALLET_ID
    assert ResolutionFlag.SOURCE_TRUNCATED not in snapshot.flags
