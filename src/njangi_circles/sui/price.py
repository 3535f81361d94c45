"""CoinGecko price source - SUI/USD quote with a TTL cache."""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timezone
from typing import Callable

import httpx

from njangi_circles.models.price import PriceQuote, PriceStatus

log = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CoinGeckoPriceSource:
    """Fetches the native token's USD price from the CoinGecko simple-price API.

    A fresh quote is cached for ``cache_ttl`` seconds. When a refresh fails
    the last good quote is served with status STALE; with nothing cached the
    quote is unavailable (status ERROR). Never raises.
    """

    def __init__(
        self,
        api_url: str = "https://api.coingecko.com/api/v3/simple/price?ids=sui&vs_currencies=usd",
        coin_id: str = "sui",
        cache_ttl: int = 3600,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api_url = api_url
        self._coin_id = coin_id
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._clock = clock
        self._cached: PriceQuote | None = None
        self._cached_at: float = 0.0

    async def get_price(self) -> PriceQuote:
        if self._cached is not None and self._clock() - self._cached_at < self._cache_ttl:
            return self._cached

        try:
            value = await self._fetch()
        except Exception as exc:
            log.warning("Price refresh failed: %s", exc)
            if self._cached is not None:
                return PriceQuote(
                    value=self._cached.value,
                    status=PriceStatus.STALE,
                    fetched_at=self._cached.fetched_at,
                )
            return PriceQuote.unavailable()

        quote = PriceQuote(value=value, status=PriceStatus.OK, fetched_at=_now_iso())
        self._cached = quote
        self._cached_at = self._clock()
        log.info("SUI price updated: $%.4f", value)
        return quote

    async def _fetch(self) -> float:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(self._api_url)
            resp.raise_for_status()
            data = resp.json()

        price = (data.get(self._coin_id) or {}).get("usd")
        value = float(price)
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"Unusable price {price!r}")
        return value
