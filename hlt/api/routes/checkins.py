"""
hlt.api.routes.checkins — Today's check-in and history
=======================================================

The calendar day is always taken from the server clock (UTC), so end
users can only create, edit or query today's record.
"""

from __future__ import annotations

from fastapi import APIRouter, status
from pydantic import BaseModel

from hlt.api.deps import CurrentUser, Ledger
from hlt.database.engine import run_db
from hlt.database.entities import CheckInRecord
from hlt.services import checkin_service
from hlt.services.checkin_service import CheckInResult

router = APIRouter(tags=["checkins"])


class CheckInBody(BaseModel):
    help: str | None = None
    learn: str | None = None
    thank: str | None = None


def checkin_dict(record: CheckInRecord) -> dict:
    return record.model_dump(mode="json", exclude={"kind"})


def _result_dict(result: CheckInResult) -> dict:
    return {
        "checkin": checkin_dict(result.checkin),
        "points": result.points,
        "total_points": result.account.total_points,
    }


@router.post("/checkin", status_code=status.HTTP_201_CREATED)
async def submit_checkin(body: CheckInBody, user_id: CurrentUser, ledger: Ledger):
    result = await run_db(
        checkin_service.submit,
        ledger,
        user_id,
        help=body.help,
        learn=body.learn,
        thank=body.thank,
    )
    return _result_dict(result)


@router.put("/checkin")
async def edit_checkin(body: CheckInBody, user_id: CurrentUser, ledger: Ledger):
    result = await run_db(
        checkin_service.edit,
        ledger,
        user_id,
        help=body.help,
        learn=body.learn,
        thank=body.thank,
    )
    return _result_dict(result)


@router.get("/checkin-status")
async def checkin_status(user_id: CurrentUser, ledger: Ledger):
    """Whether the principal has checked in today (and the record if so)."""
    record = await run_db(checkin_service.status, ledger, user_id)
    return {
        "has_checked_in": record is not None,
        "checkin": checkin_dict(record) if record is not None else None,
    }


@router.get("/checkins")
async def list_checkins(user_id: CurrentUser, ledger: Ledger):
    records = await run_db(checkin_service.history, ledger, user_id)
    return [checkin_dict(r) for r in records]
