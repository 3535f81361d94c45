"""Schedule calculator - next payout instant for each cycle type.

Weekly and bi-weekly payouts land at midnight UTC on the target weekday
(Monday = 0). Monthly and quarterly payouts land at noon UTC on the target
day of month (1-28). Quarterly cycles pay out in the quarter start months
(January, April, July, October).

Bi-weekly uses the same weekday arithmetic as weekly; the fortnight only
matters for contribution bookkeeping, not for this date.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone

from njangi_circles.exceptions import ConfigInvariantViolation
from njangi_circles.models.circle import CycleType

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

WEEKDAY_RANGE = (0, 6)
MONTH_DAY_RANGE = (1, 28)

WEEKLY_PAYOUT_TIME = time(0, 0, tzinfo=timezone.utc)
MONTHLY_PAYOUT_TIME = time(12, 0, tzinfo=timezone.utc)

_CYCLE_LABELS = {
    CycleType.WEEKLY: "Weekly",
    CycleType.BIWEEKLY: "Bi-Weekly",
    CycleType.MONTHLY: "Monthly",
    CycleType.QUARTERLY: "Quarterly",
}


def day_range(cycle_type: CycleType | str) -> tuple[int, int]:
    """Inclusive (low, high) bounds of cycle_day for a cycle type."""
    return WEEKDAY_RANGE if CycleType(cycle_type).uses_weekday else MONTH_DAY_RANGE


def validate_cycle_day(cycle_type: CycleType | str, cycle_day: int) -> int:
    """Return cycle_day if it is valid for cycle_type, else raise ConfigInvariantViolation."""
    ctype = CycleType(cycle_type)
    low, high = day_range(ctype)
    if isinstance(cycle_day, bool) or not isinstance(cycle_day, int) or not low <= cycle_day <= high:
        raise ConfigInvariantViolation(
            f"cycle_day out of range for {ctype.value} cycle",
            {"cycle_day": cycle_day, "allowed": f"{low}-{high}"},
        )
    return cycle_day


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = month - 1 + months
    return year + index // 12, index % 12 + 1


def _clamp_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def _month_day_at_noon(year: int, month: int, day: int) -> datetime:
    return datetime.combine(date(year, month, _clamp_day(year, month, day)), MONTHLY_PAYOUT_TIME)


def _next_weekly(cycle_day: int, now: datetime) -> datetime:
    today = now.date()
    days_ahead = (cycle_day - today.weekday()) % 7
    candidate = datetime.combine(today + timedelta(days=days_ahead), WEEKLY_PAYOUT_TIME)
    if candidate < now:
        candidate += timedelta(days=7)
    return candidate


def _next_month_day(cycle_day: int, now: datetime, step: int) -> datetime:
    year, month = now.year, now.month
    if step == 3:
        month = (month - 1) // 3 * 3 + 1  # quarter start
    candidate = _month_day_at_noon(year, month, cycle_day)
    if candidate < now:
        year, month = _add_months(year, month, step)
        candidate = _month_day_at_noon(year, month, cycle_day)
    return candidate


def potential_next_payout(
    cycle_type: CycleType | str, cycle_day: int, from_: datetime
) -> datetime:
    """Next payout instant at or after ``from_``, whether or not the circle is active.

    Naive datetimes are read as UTC. Returns ``from_`` itself only when it
    falls exactly on the payout instant.
    """
    ctype = CycleType(cycle_type)
    validate_cycle_day(ctype, cycle_day)
    now = _as_utc(from_)

    if ctype.uses_weekday:
        return _next_weekly(cycle_day, now)
    if ctype is CycleType.MONTHLY:
        return _next_month_day(cycle_day, now, step=1)
    return _next_month_day(cycle_day, now, step=3)


def next_payout(
    cycle_type: CycleType | str, cycle_day: int, from_: datetime, is_active: bool
) -> datetime | None:
    """Scheduled payout instant. None for inactive circles (nothing is scheduled)."""
    instant = potential_next_payout(cycle_type, cycle_day, from_)
    return instant if is_active else None


# ── Display ────────────────────────────────────────────────


def ordinal(n: int) -> str:
    """1 -> '1st', 2 -> '2nd', 11 -> '11th', 22 -> '22nd'."""
    if 11 <= n % 100 <= 13:
        return f"{n}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def describe_cycle(cycle_type: CycleType | str, cycle_day: int) -> str:
    """Human readable cycle, e.g. 'Weekly (Monday)' or 'Quarterly (15th)'.

    Out-of-range days are shown as the first valid day.
    """
    ctype = CycleType(cycle_type)
    low, high = day_range(ctype)
    day = cycle_day if low <= cycle_day <= high else low
    label = _CYCLE_LABELS[ctype]
    if ctype.uses_weekday:
        return f"{label} ({WEEKDAYS[day]})"
    return f"{label} ({ordinal(day)})"
