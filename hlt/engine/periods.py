"""
hlt.engine.periods — Clock / Period Calculator
===============================================

Maps an instant to the four calendar window keys used by the point ledger:

* ``day``   — the UTC calendar date (``2026-10-18``)
* ``week``  — the Monday that starts the ISO week (``2026-10-12``)
* ``month`` — the first day of the month (``2026-10-01``)
* ``year``  — the first day of the year (``2026-01-01``)

Every key is an ISO date string, so equality is enough to tell whether a
stored counter belongs to the current window.  Pure: no I/O, no errors.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

__all__ = ["Period", "PeriodKeys", "period_keys", "utc_now", "utc_today"]


class Period(enum.StrEnum):
    """Leaderboard / counter windows."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def parse(cls, raw: str) -> Period:
        """Accept ``day`` as well as the adjective form ``daily``.

        Raises ``ValueError`` for anything else.
        """
        value = raw.strip().lower()
        value = _ALIASES.get(value, value)
        return cls(value)


_ALIASES: dict[str, str] = {
    "daily": "day",
    "weekly": "week",
    "monthly": "month",
    "yearly": "year",
}


@dataclass(frozen=True, slots=True)
class PeriodKeys:
    """Window keys for one instant."""

    day: str
    week: str
    month: str
    year: str

    def for_period(self, period: Period) -> str:
        return getattr(self, period.value)


def utc_now() -> datetime:
    """Default clock for services."""
    return datetime.now(UTC)


def utc_today(instant: datetime) -> date:
    """Calendar date of *instant* in UTC.  Naive datetimes are taken as UTC."""
    if instant.tzinfo is None:
        return instant.date()
    return instant.astimezone(UTC).date()


def period_keys(instant: datetime) -> PeriodKeys:
    """Return the day / week / month / year keys containing *instant*."""
    today = utc_today(instant)
    week_start = today - timedelta(days=today.weekday())  # Monday == 0
    return PeriodKeys(
        day=today.isoformat(),
        week=week_start.isoformat(),
        month=today.replace(day=1).isoformat(),
        year=today.replace(month=1, day=1).isoformat(),
    )
