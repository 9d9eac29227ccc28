"""
hlt.api.routes.invites — Pending invites and responses
=======================================================
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from hlt.api.deps import CurrentUser, Ledger
from hlt.api.routes.groups import invite_dict
from hlt.database.engine import run_db
from hlt.services import group_service

router = APIRouter(prefix="/invites", tags=["invites"])


class InviteResponse(BaseModel):
    action: Literal["accept", "decline"]


@router.get("")
async def pending_invites(user_id: CurrentUser, ledger: Ledger):
    invites = await run_db(group_service.list_pending_invites, ledger, user_id)
    return [invite_dict(i) for i in invites]


@router.post("/{invite_id}/respond")
async def respond(invite_id: str, body: InviteResponse, user_id: CurrentUser, ledger: Ledger):
    invite = await run_db(
        group_service.respond, ledger, user_id, invite_id, body.action == "accept"
    )
    return invite_dict(invite)
