"""Monetary converter - USD cents (canonical) to native SUI (derived) and back."""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Any

from njangi_circles.engine.decode import parse_number
from njangi_circles.exceptions import RateUnavailableError
from njangi_circles.models.circle import AmountOrigin, NativeAmount

log = logging.getLogger(__name__)

SUI_DECIMALS = 9
ATOMIC_PER_NATIVE = Decimal(10) ** SUI_DECIMALS  # MIST per SUI
CENTS_PER_DOLLAR = Decimal(100)

# Raw native amounts above this are taken to be wrongly scaled (atomic units
# read as tokens) and are re-derived from the USD amount.
IMPLAUSIBLE_NATIVE_CEILING = Decimal(10) ** 6

_ZERO = Decimal(0)


def _usable_rate(rate: Any) -> Decimal | None:
    """Positive, finite rate as Decimal; None otherwise."""
    number = parse_number(rate)
    if number is None or number <= 0:
        return None
    return number


def cents_to_dollars(usd_cents: int) -> Decimal:
    """The single cents-to-dollars division."""
    return Decimal(usd_cents) / CENTS_PER_DOLLAR


def atomic_to_native(atomic: Any) -> Decimal | None:
    """Convert atomic units (MIST) to SUI. None if not numeric."""
    number = parse_number(atomic)
    if number is None:
        return None
    return number / ATOMIC_PER_NATIVE


def native_to_atomic(native: Decimal | int | float | str) -> int:
    """Convert SUI to atomic units, rounding down like the on-chain client does."""
    number = parse_number(native)
    if number is None:
        raise ValueError(f"Not a native amount: {native!r}")
    return int((number * ATOMIC_PER_NATIVE).to_integral_value(rounding=ROUND_DOWN))


def to_native(usd_cents: int, rate: Any) -> NativeAmount:
    """Derive a native amount from USD cents at ``rate`` (USD per SUI).

    An unusable rate yields zero with origin RATE_UNAVAILABLE.
    """
    r = _usable_rate(rate)
    if r is None:
        log.warning("No usable exchange rate (%r), native amount unavailable", rate)
        return NativeAmount(value=_ZERO, origin=AmountOrigin.RATE_UNAVAILABLE)
    return NativeAmount(value=cents_to_dollars(usd_cents) / r, origin=AmountOrigin.DERIVED)


def to_usd(native: Decimal | int | float | str, rate: Any) -> int:
    """Convert a native amount to USD cents (half-up)."""
    r = _usable_rate(rate)
    if r is None:
        raise RateUnavailableError("Cannot convert to USD without a rate", {"rate": rate})
    number = parse_number(native)
    if number is None:
        raise ValueError(f"Not a native amount: {native!r}")
    cents = (number * r * CENTS_PER_DOLLAR).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(cents)


def is_plausible_native(amount: Decimal | None) -> bool:
    return amount is not None and _ZERO < amount <= IMPLAUSIBLE_NATIVE_CEILING


def reconcile(raw_native: Any, usd_cents: int, rate: Any) -> NativeAmount:
    """Keep a plausible raw native amount, otherwise derive it from USD.

    Zero, missing or above-ceiling raw values are discarded.
    """
    raw = parse_number(raw_native)
    if is_plausible_native(raw):
        return NativeAmount(value=raw, origin=AmountOrigin.LEDGER)
    if raw is not None and raw > IMPLAUSIBLE_NATIVE_CEILING:
        log.info("Discarding implausible native amount %s, deriving from USD", raw)
    return to_native(usd_cents, rate)


# ── Display ────────────────────────────────────────────────


def format_usd(dollars: Decimal | int | float) -> str:
    """Two-decimal currency string, e.g. '$1,234.50'."""
    value = Decimal(str(dollars)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def native_precision(amount: Decimal | int | float) -> int:
    """Decimal places used to display a native amount of this magnitude."""
    value = abs(Decimal(str(amount)))
    if value >= 1000:
        return 0
    if value >= 100:
        return 1
    return 2


def format_native(amount: Decimal | int | float, symbol: str | None = None) -> str:
    """Magnitude-adaptive native amount: '1,235', '150.5', '12.34'."""
    value = Decimal(str(amount))
    places = native_precision(value)
    quantum = Decimal(1).scaleb(-places)
    rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
    text = f"{rounded:,.0f}" if places == 0 else f"{rounded:.{places}f}"
    return f"{text} {symbol}" if symbol else text
