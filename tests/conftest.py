"""Shared fixtures for njangi_circles tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pytest_metadata.plugin import metadata_key

from njangi_circles.engine.config_resolver import ConfigResolver
from njangi_circles.engine.deposits import DepositStatusResolver
from njangi_circles.engine.membership import MembershipAggregator
from njangi_circles.engine.projector import CircleProjector
from njangi_circles.models.config import ResolverConfig

from tests.mocks import MockLedgerReader, MockPriceSource

PACKAGE_ID = "0x7a3ff93488ea8899e51aa26d97478c1850aab288bab23989b46e374999ca6bce"

CIRCLE_ID = "0x" + "c1" * 32
ADMIN = "0x" + "a0" * 32
MEMBER_B = "0x" + "b0" * 32
MEMBER_C = "0x" + "c0" * 32
MEMBERS_TABLE_ID = "0x" + "7a" * 32
CUSTODY_WALLET_ID = "0x" + "e5" * 32

# Wednesday 2024-05-15 10:30 UTC
NOW = datetime(2024, 5, 15, 10, 30, tzinfo=timezone.utc)

EXPLORER_BASE = "https://suiscan.xyz/testnet"


def suiscan_link(kind: str, id: str, label: str | None = None) -> str:
    """Build an HTML anchor to suiscan for the report."""
    url = f"{EXPLORER_BASE}/{kind}/{id}"
    text = label or f"{id[:8]}...{id[-4:]}"
    return f'<a href="{url}" target="_blank">{text}</a>'


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add network info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Sui Testnet (mocked)"
    meta["Package"] = PACKAGE_ID


def pytest_html_results_summary(prefix, summary, postfix):
    """Inject the package explorer link into the report summary."""
    prefix.append(
        '<div style="margin:8px 0;padding:10px;background:#f8f9fa;border:1px solid #dee2e6;'
        'border-radius:4px;font-family:monospace;font-size:13px;">'
        "<strong>Sui Testnet Explorer</strong><br/>"
        f'Package: {suiscan_link("object", PACKAGE_ID, PACKAGE_ID)}'
        "</div>"
    )


def make_test_config(**overrides) -> ResolverConfig:
    """Build a ResolverConfig suitable for testing."""
    defaults = dict(
        network="testnet",
        rpc_url="http://127.0.0.1:9199",
        package_id=PACKAGE_ID,
        module="njangi_circle",
        request_timeout=2.0,
        event_page_size=50,
        max_event_pages=5,
        price_api_url="http://127.0.0.1:9199/simple/price",
        price_cache_ttl=60,
    )
    defaults.update(overrides)
    return ResolverConfig(**defaults)


@pytest.fixture
def test_config():
    """Default ResolverConfig for tests."""
    return make_test_config()


@pytest.fixture
def resolver():
    return ConfigResolver()


@pytest.fixture
def aggregator():
    return MembershipAggregator()


@pytest.fixture
def deposits(test_config):
    return DepositStatusResolver(test_config)


@pytest.fixture
def mock_reader(test_config):
    return MockLedgerReader(test_config)


@pytest.fixture
def mock_price():
    return MockPriceSource(value=1.25)


@pytest.fixture
def projector(mock_reader, mock_price, test_config):
    """CircleProjector wired to mocked collaborators."""
    return CircleProjector(mock_reader, mock_price, test_config)
