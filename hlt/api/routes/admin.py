"""
hlt.api.routes.admin — Superadmin endpoints
============================================

Every route resolves the principal, then checks the ``superadmin`` role
on its account before doing anything else.
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from hlt.api.deps import CurrentUser, Ledger
from hlt.api.routes.accounts import account_dict
from hlt.api.routes.groups import group_dict
from hlt.database.engine import run_db
from hlt.services import admin_service

router = APIRouter(prefix="/admin", tags=["admin"])


async def _require_superadmin(ledger, user_id: str) -> None:
    await run_db(admin_service.require_superadmin, ledger, user_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("/leaderboard")
async def unified_leaderboard(user_id: CurrentUser, ledger: Ledger):
    await _require_superadmin(ledger, user_id)
    rows = await run_db(admin_service.unified_leaderboard, ledger)
    return [r.to_dict() for r in rows]


@router.get("/users")
async def list_users(user_id: CurrentUser, ledger: Ledger):
    await _require_superadmin(ledger, user_id)
    accounts = await run_db(admin_service.list_users, ledger)
    return [account_dict(a) for a in accounts]


@router.get("/groups")
async def list_groups(user_id: CurrentUser, ledger: Ledger):
    await _require_superadmin(ledger, user_id)
    groups = await run_db(admin_service.list_all_groups, ledger)
    return [group_dict(g) for g in groups]


@router.get("/checkins")
async def list_checkins(user_id: CurrentUser, ledger: Ledger):
    await _require_superadmin(ledger, user_id)
    views = await run_db(admin_service.list_checkins, ledger)
    return [v.to_dict() for v in views]


@router.get("/audit")
async def get_audit_log(
    user_id: CurrentUser,
    ledger: Ledger,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
):
    """Paginated superadmin audit log."""
    await _require_superadmin(ledger, user_id)
    result = await run_db(admin_service.audit_log, ledger, page=page, page_size=page_size)
    return {
        "total": result.total,
        "page": result.page,
        "page_size": result.page_size,
        "entries": result.entries,
    }


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
@router.delete("/users/{target_id}")
async def delete_user(target_id: str, user_id: CurrentUser, ledger: Ledger):
    await _require_superadmin(ledger, user_id)
    await run_db(admin_service.delete_user, ledger, user_id, target_id)
    return {"deleted": target_id}


@router.delete("/groups/{group_id}")
async def delete_group(group_id: str, user_id: CurrentUser, ledger: Ledger):
    await _require_superadmin(ledger, user_id)
    await run_db(admin_service.delete_group, ledger, user_id, group_id)
    return {"deleted": group_id}


@router.post("/users/{target_id}/superadmin")
async def grant_superadmin(target_id: str, user_id: CurrentUser, ledger: Ledger):
    await _require_superadmin(ledger, user_id)
    account = await run_db(admin_service.grant_superadmin, ledger, user_id, target_id)
    return account_dict(account)


@router.delete("/users/{target_id}/superadmin")
async def revoke_superadmin(target_id: str, user_id: CurrentUser, ledger: Ledger):
    await _require_superadmin(ledger, user_id)
    account = await run_db(admin_service.revoke_superadmin, ledger, user_id, target_id)
    return account_dict(account)
