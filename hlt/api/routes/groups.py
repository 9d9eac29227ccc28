"""
hlt.api.routes.groups — Groups, membership administration, group leaderboard
=============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from hlt.api.deps import Config, CurrentUser, Ledger
from hlt.api.routes.leaderboard import parse_period
from hlt.database.engine import run_db
from hlt.database.entities import Group, Invite
from hlt.services import group_service

router = APIRouter(prefix="/groups", tags=["groups"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class GroupCreate(BaseModel):
    name: str
    description: str | None = None


class GroupUpdate(BaseModel):
    name: str | None = None
    description: str | None = None


class InviteCreate(BaseModel):
    username: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def group_dict(group: Group) -> dict:
    return group.model_dump(mode="json", exclude={"kind"})


def invite_dict(invite: Invite) -> dict:
    return invite.model_dump(mode="json", exclude={"kind"})


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_group(body: GroupCreate, user_id: CurrentUser, ledger: Ledger, config: Config):
    group = await run_db(
        group_service.create_group,
        ledger,
        user_id,
        body.name,
        body.description,
        name_max_length=config.group_name_max_length,
    )
    return group_dict(group)


@router.get("")
async def list_groups(user_id: CurrentUser, ledger: Ledger):
    groups = await run_db(group_service.list_groups, ledger, user_id)
    return [
        {**group_dict(g), "is_admin": g.is_admin(user_id), "member_count": len(g.members)}
        for g in groups
    ]


@router.get("/{group_id}")
async def get_group(group_id: str, user_id: CurrentUser, ledger: Ledger):
    details = await run_db(group_service.get_group, ledger, user_id, group_id)
    return {
        **group_dict(details.group),
        "is_admin": details.viewer_is_admin,
        "member_details": [m.to_dict() for m in details.members],
    }


@router.put("/{group_id}")
async def update_group(
    group_id: str, body: GroupUpdate, user_id: CurrentUser, ledger: Ledger, config: Config
):
    group = await run_db(
        group_service.update_group,
        ledger,
        user_id,
        group_id,
        name=body.name,
        description=body.description,
        name_max_length=config.group_name_max_length,
    )
    return group_dict(group)


@router.delete("/{group_id}")
async def delete_group(group_id: str, user_id: CurrentUser, ledger: Ledger):
    await run_db(group_service.delete_group, ledger, user_id, group_id)
    return {"deleted": group_id}


@router.post("/{group_id}/leave")
async def leave_group(group_id: str, user_id: CurrentUser, ledger: Ledger):
    await run_db(group_service.leave_group, ledger, user_id, group_id)
    return {"left": group_id}


@router.get("/{group_id}/leaderboard")
async def group_leaderboard(
    group_id: str,
    user_id: CurrentUser,
    ledger: Ledger,
    config: Config,
    period: str | None = Query(None),
):
    chosen = parse_period(period, config)
    entries = await run_db(group_service.group_leaderboard, ledger, user_id, group_id, chosen)
    return {"period": chosen.value, "entries": [e.to_dict() for e in entries]}


# ---------------------------------------------------------------------------
# Membership administration
# ---------------------------------------------------------------------------
@router.post("/{group_id}/invite", status_code=status.HTTP_201_CREATED)
async def invite_user(group_id: str, body: InviteCreate, user_id: CurrentUser, ledger: Ledger):
    invite = await run_db(group_service.invite, ledger, user_id, group_id, body.username)
    return invite_dict(invite)


@router.delete("/{group_id}/members/{target_id}")
async def remove_member(group_id: str, target_id: str, user_id: CurrentUser, ledger: Ledger):
    group = await run_db(group_service.remove_member, ledger, user_id, group_id, target_id)
    return group_dict(group)


@router.post("/{group_id}/ban/{target_id}")
async def ban_user(group_id: str, target_id: str, user_id: CurrentUser, ledger: Ledger):
    group = await run_db(group_service.ban, ledger, user_id, group_id, target_id)
    return group_dict(group)


@router.post("/{group_id}/unban/{target_id}")
async def unban_user(group_id: str, target_id: str, user_id: CurrentUser, ledger: Ledger):
    group = await run_db(group_service.unban, ledger, user_id, group_id, target_id)
    return group_dict(group)


@router.post("/{group_id}/admins/{target_id}")
async def promote_admin(group_id: str, target_id: str, user_id: CurrentUser, ledger: Ledger):
    group = await run_db(group_service.promote_admin, ledger, user_id, group_id, target_id)
    return group_dict(group)


@router.delete("/{group_id}/admins/{target_id}")
async def demote_admin(group_id: str, target_id: str, user_id: CurrentUser, ledger: Ledger):
    group = await run_db(group_service.demote_admin, ledger, user_id, group_id, target_id)
    return group_dict(group)
