"""
hlt.services.leaderboard_service — Leaderboard Builder
=======================================================

Enumerates users (everyone, or a group's member list), reads each one
through :meth:`PointLedger.get_current` so stale period counters are reset
before they are compared, and ranks them by position
(see :mod:`hlt.engine.leaderboard`).

Enumeration order is the tie-break: key order (``user:{uid}``) for the
global board, member-list order for a group board.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from hlt.database import keys
from hlt.engine.leaderboard import LeaderboardEntry, LeaderboardRow, rank_entries
from hlt.engine.periods import Period
from hlt.errors import NotFoundError
from hlt.services.ledger_service import PointLedger

logger = logging.getLogger(__name__)


def all_user_ids(ledger: PointLedger) -> list[str]:
    """Every account id, in key order."""
    prefix_len = len(keys.USER_PREFIX)
    return [key[prefix_len:] for key, _ in ledger.store.scan_prefix(keys.USER_PREFIX)]


def build(
    ledger: PointLedger,
    period: Period,
    member_filter: Iterable[str] | None = None,
) -> list[LeaderboardEntry]:
    """Rank users by their current *period* points.

    Ids without an account (deleted between enumeration and read) are skipped.
    """
    user_ids = list(member_filter) if member_filter is not None else all_user_ids(ledger)

    rows: list[LeaderboardRow] = []
    for user_id in user_ids:
        try:
            account = ledger.get_current(user_id)
        except NotFoundError:
            logger.warning("Leaderboard skipped %s: no account", user_id)
            continue
        rows.append(LeaderboardRow(
            user_id=account.id,
            username=account.username,
            points=account.period_points(period),
        ))
    return rank_entries(rows)
