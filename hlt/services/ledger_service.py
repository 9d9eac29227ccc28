"""
hlt.services.ledger_service — Point Ledger
===========================================

Per-user counters (lifetime total + day/week/month/year) with **lazy
rollover**: nothing resets counters on a schedule.  Every read through
:meth:`PointLedger.get_current` compares the stored window keys with the
current ones, zeroes stale counters and writes the corrected account back,
so the next reader (a leaderboard, say) already sees clean numbers.

Both operations are optimistic read-modify-writes on ``user:{uid}``
(see :func:`hlt.database.repository.mutate`); two concurrent check-ins
cannot overwrite each other's delta.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from hlt.constants import DEFAULT_CAS_ATTEMPTS
from hlt.database import keys, repository
from hlt.database.entities import UserAccount
from hlt.database.store import KeyValueStore
from hlt.engine.periods import PeriodKeys, period_keys, utc_now
from hlt.engine.points import add_points, roll_over

logger = logging.getLogger(__name__)


class PointLedger:
    """Lazy-rollover point counters stored in the key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], datetime] = utc_now,
        cas_attempts: int = DEFAULT_CAS_ATTEMPTS,
    ) -> None:
        self.store = store
        self.clock = clock
        self.cas_attempts = cas_attempts

    def current_keys(self) -> PeriodKeys:
        return period_keys(self.clock())

    def get_current(self, user_id: str) -> UserAccount:
        """Load the account with every stale counter reset (and persisted).

        Raises ``NotFoundError`` if the user never signed up.
        """
        keys_now = self.current_keys()

        def _correct(account: UserAccount) -> UserAccount:
            corrected = roll_over(account, keys_now)
            if corrected is not account:
                logger.debug("Rolled over stale counters for %s", user_id)
            return corrected

        return self._mutate(user_id, _correct)

    def peek(self, user_id: str) -> UserAccount | None:
        """Read-only view for display: rollover applied in memory, nothing written."""
        account = repository.get(self.store, keys.user(user_id), UserAccount)
        if account is None:
            return None
        return roll_over(account, self.current_keys())

    def apply_delta(
        self,
        user_id: str,
        delta: int,
        *,
        checkin_date: str | None = None,
    ) -> UserAccount:
        """Roll over, then add *delta* to the total and all four period counters.

        *checkin_date*, when given, is stamped as ``last_checkin_date``.
        """
        keys_now = self.current_keys()

        def _apply(account: UserAccount) -> UserAccount:
            updated = add_points(roll_over(account, keys_now), delta)
            if checkin_date is not None:
                updated = updated.model_copy(update={"last_checkin_date": checkin_date})
            return updated

        account = self._mutate(user_id, _apply)
        logger.info("Applied %+d points to %s (total %d)", delta, user_id, account.total_points)
        return account

    def _mutate(
        self, user_id: str, change: Callable[[UserAccount], UserAccount]
    ) -> UserAccount:
        return repository.mutate(
            self.store,
            keys.user(user_id),
            UserAccount,
            change,
            missing=f"No account for user {user_id}",
            attempts=self.cas_attempts,
        )
