"""PriceSource protocol - quotes the native token's USD price."""

from __future__ import annotations

from typing import Protocol

from njangi_circles.models.price import PriceQuote


class PriceSource(Protocol):
    """Returns a single native-token/USD quote with a freshness status.

    Implementations own their caching. They should not raise: a failed
    refresh is reported through ``PriceQuote.status``.
    """

    async def get_price(self) -> PriceQuote:
        """Current (or last known) price."""
        ...
