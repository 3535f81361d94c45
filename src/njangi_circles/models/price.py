"""Exchange-rate quote model."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class PriceStatus(str, Enum):
    """Freshness of a price quote as reported by the price source."""

    OK = "ok"
    STALE = "stale"  # served from cache after a failed refresh
    ERROR = "error"  # nothing usable


@dataclass(frozen=True)
class PriceQuote:
    """Native-token price in USD."""

    value: float
    status: PriceStatus = PriceStatus.OK
    fetched_at: str = ""  # ISO 8601

    @property
    def usable(self) -> bool:
        """True if value can be used as a conversion rate, regardless of staleness."""
        try:
            return math.isfinite(self.value) and self.value > 0
        except TypeError:
            return False

    @property
    def rate(self) -> float | None:
        return self.value if self.usable else None

    @classmethod
    def unavailable(cls) -> "PriceQuote":
        return cls(value=math.nan, status=PriceStatus.ERROR)
