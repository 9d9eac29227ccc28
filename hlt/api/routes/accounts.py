"""
hlt.api.routes.accounts — Signup record, current account, profile stats
========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, status
from pydantic import BaseModel

from hlt.api.deps import Config, CurrentUser, Ledger
from hlt.database.engine import run_db
from hlt.database.entities import UserAccount
from hlt.services import account_service, checkin_service

router = APIRouter(tags=["accounts"])


class AccountCreate(BaseModel):
    username: str


def account_dict(account: UserAccount) -> dict:
    return account.model_dump(mode="json", exclude={"kind"})


@router.post("/accounts", status_code=status.HTTP_201_CREATED)
async def create_account(
    body: AccountCreate, user_id: CurrentUser, ledger: Ledger, config: Config
):
    """Create the account record for the authenticated principal."""
    account = await run_db(
        account_service.register,
        ledger,
        user_id,
        body.username,
        max_length=config.username_max_length,
    )
    return account_dict(account)


@router.get("/me")
async def get_me(user_id: CurrentUser, ledger: Ledger):
    account = await run_db(ledger.get_current, user_id)
    return account_dict(account)


@router.get("/profile")
async def get_profile(user_id: CurrentUser, ledger: Ledger):
    stats = await run_db(checkin_service.profile, ledger, user_id)
    return {"username": stats.account.username, **stats.to_dict()}
