"""
hlt.engine.points — Point Arithmetic
=====================================

Pure functions behind the ledger and the check-in store.  No DB I/O.

* One point per non-empty answer (help / learn / thank), so 0–3 per day.
* A period counter is *stale* when its stored window key differs from the
  current one; stale counters read as 0 (lazy rollover).
* A delta hits ``total_points`` and all four period counters at once.
"""

from __future__ import annotations

from hlt.database.entities import UserAccount
from hlt.engine.periods import Period, PeriodKeys

__all__ = ["add_points", "clean_answer", "count_points", "roll_over"]


def clean_answer(value: str | None) -> str | None:
    """Trim an answer; whitespace-only counts as no answer."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def count_points(help: str | None, learn: str | None, thank: str | None) -> int:
    return sum(1 for answer in (help, learn, thank) if clean_answer(answer))


def roll_over(account: UserAccount, keys: PeriodKeys) -> UserAccount:
    """Zero every counter whose window has passed and stamp the new keys.

    Returns *account* itself when nothing is stale.
    """
    changes: dict[str, object] = {}
    for period in Period:
        current_key = keys.for_period(period)
        if getattr(account, f"last_reset_{period.value}") != current_key:
            changes[f"{period.value}_points"] = 0
            changes[f"last_reset_{period.value}"] = current_key
    if not changes:
        return account
    return account.model_copy(update=changes)


def add_points(account: UserAccount, delta: int) -> UserAccount:
    """Apply *delta* to the lifetime total and every period counter.

    Period counters floor at 0 (a negative edit can land in a window that
    never saw the original points); the total is never clamped.
    """
    changes: dict[str, object] = {"total_points": account.total_points + delta}
    for period in Period:
        field = f"{period.value}_points"
        changes[field] = max(0, getattr(account, field) + delta)
    return account.model_copy(update=changes)
