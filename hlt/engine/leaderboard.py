"""
hlt.engine.leaderboard — Position Ranking
==========================================

Turns ``(user_id, username, points)`` rows into ranked entries.

Ranking is by *position*: rows are stable-sorted by points descending and
rank is the 1-based index in that order.  Equal points do **not** share a
rank — the earlier row in enumeration order wins the better rank.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass

__all__ = ["LeaderboardEntry", "LeaderboardRow", "rank_entries"]


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    user_id: str
    username: str
    points: int


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    user_id: str
    username: str
    points: int
    rank: int

    def to_dict(self) -> dict:
        return asdict(self)


def rank_entries(rows: Iterable[LeaderboardRow]) -> list[LeaderboardEntry]:
    ordered = sorted(rows, key=lambda row: row.points, reverse=True)  # stable
    return [
        LeaderboardEntry(
            user_id=row.user_id,
            username=row.username,
            points=row.points,
            rank=position,
        )
        for position, row in enumerate(ordered, start=1)
    ]
