"""
hlt.api.routes.leaderboard — Global leaderboard
================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from hlt.api.deps import Config, CurrentUser, Ledger
from hlt.config import HLTConfig
from hlt.database.engine import run_db
from hlt.engine.periods import Period
from hlt.errors import ValidationError
from hlt.services import leaderboard_service

router = APIRouter(tags=["leaderboard"])


def parse_period(raw: str | None, config: HLTConfig) -> Period:
    """Query-string period, falling back to ``config.default_period``."""
    try:
        return Period.parse(raw or config.default_period)
    except ValueError:
        raise ValidationError(
            f"Unknown period '{raw}'; expected day, week, month or year"
        ) from None


@router.get("/leaderboard")
async def get_leaderboard(
    user_id: CurrentUser,
    ledger: Ledger,
    config: Config,
    period: str | None = Query(None),
):
    chosen = parse_period(period, config)
    entries = await run_db(leaderboard_service.build, ledger, chosen)
    return {"period": chosen.value, "entries": [e.to_dict() for e in entries]}
