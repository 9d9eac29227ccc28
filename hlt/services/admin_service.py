"""
hlt.services.admin_service — Superadmin Operations
===================================================

Privilege is the ``"superadmin"`` entry in ``UserAccount.roles``.  It is
granted and revoked only here, by another superadmin or by the operator
CLI (``python -m hlt.manage``, which acts with ``actor_id=None``).

Every mutation follows the same pattern:
  1. Read the "before" snapshot
  2. Apply the change to the key-value store
  3. Write an ``admin_log`` row with before/after JSON

Reads (all users, all groups, all check-ins, the unified leaderboard) are
plain scans; accounts are passed through the ledger so the period
counters shown are current.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select

from hlt.constants import NO_GROUP_LABEL, ROLE_SUPERADMIN
from hlt.database import keys, repository
from hlt.database.engine import get_session
from hlt.database.entities import CheckInRecord, Group, Invite, UserAccount
from hlt.database.models import AdminLog
from hlt.errors import ConflictError, ForbiddenError, NotFoundError
from hlt.services import group_service
from hlt.services.ledger_service import PointLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnifiedRow:
    """One (user, group) pairing of the unified leaderboard."""

    account: UserAccount
    group_id: str | None
    group_name: str

    def to_dict(self) -> dict:
        return {
            "user_id": self.account.id,
            "username": self.account.username,
            "group_id": self.group_id,
            "group_name": self.group_name,
            "total_points": self.account.total_points,
            "day_points": self.account.day_points,
            "week_points": self.account.week_points,
            "month_points": self.account.month_points,
            "year_points": self.account.year_points,
            "last_checkin_date": self.account.last_checkin_date,
        }


@dataclass(frozen=True, slots=True)
class CheckInView:
    checkin: CheckInRecord
    username: str

    def to_dict(self) -> dict:
        return {
            **self.checkin.model_dump(mode="json", exclude={"kind"}),
            "username": self.username,
        }


@dataclass(frozen=True, slots=True)
class AuditPage:
    total: int
    page: int
    page_size: int
    entries: list[dict]


# ---------------------------------------------------------------------------
# Audit helpers
# ---------------------------------------------------------------------------
def _log_admin_action(
    ledger: PointLedger,
    *,
    actor_id: str | None,
    action_type: str,
    target_kind: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Append one row to ``admin_log``."""
    with get_session(ledger.store.engine) as session:
        session.add(AdminLog(
            actor_id=actor_id,
            action_type=action_type,
            target_kind=target_kind,
            target_id=target_id,
            before_snapshot=before,
            after_snapshot=after,
            reason=reason,
        ))


def _log_entry_to_dict(row: AdminLog) -> dict[str, Any]:
    return {
        "id": row.id,
        "actor_id": row.actor_id,
        "action_type": row.action_type,
        "target_kind": row.target_kind,
        "target_id": row.target_id,
        "before_snapshot": row.before_snapshot,
        "after_snapshot": row.after_snapshot,
        "reason": row.reason,
        "timestamp": row.timestamp.isoformat() if isinstance(row.timestamp, datetime) else None,
    }


def audit_log(ledger: PointLedger, *, page: int = 1, page_size: int = 25) -> AuditPage:
    """Newest-first page of the audit trail."""
    with get_session(ledger.store.engine) as session:
        total = session.scalar(select(func.count()).select_from(AdminLog)) or 0
        rows = session.scalars(
            select(AdminLog)
            .order_by(AdminLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        entries = [_log_entry_to_dict(r) for r in rows]
    return AuditPage(total=total, page=page, page_size=page_size, entries=entries)


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------
def require_superadmin(ledger: PointLedger, actor_id: str) -> UserAccount:
    account = ledger.peek(actor_id)
    if account is None or not account.is_superadmin:
        raise ForbiddenError("Superadmin access required")
    return account


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_users(ledger: PointLedger) -> list[UserAccount]:
    """Every account, with counters corrected for the current windows."""
    accounts = repository.scan(ledger.store, keys.USER_PREFIX, UserAccount)
    return [ledger.get_current(a.id) for a in accounts]


def list_all_groups(ledger: PointLedger) -> list[Group]:
    return repository.scan(ledger.store, keys.GROUP_PREFIX, Group)


def list_checkins(ledger: PointLedger) -> list[CheckInView]:
    """Every check-in, newest day first, annotated with the author's username."""
    usernames = {
        a.id: a.username
        for a in repository.scan(ledger.store, keys.USER_PREFIX, UserAccount)
    }
    records = repository.scan(ledger.store, keys.CHECKIN_PREFIX, CheckInRecord)
    records.sort(key=lambda r: r.date, reverse=True)
    return [
        CheckInView(checkin=r, username=usernames.get(r.user_id, "Unknown"))
        for r in records
    ]


def unified_leaderboard(ledger: PointLedger) -> list[UnifiedRow]:
    """One row per (user, group), or one ``No Group`` row for ungrouped users.

    Sorted by lifetime total, highest first.
    """
    groups = list_all_groups(ledger)
    rows: list[UnifiedRow] = []
    for account in list_users(ledger):
        memberships = [g for g in groups if g.is_member(account.id)]
        if not memberships:
            rows.append(UnifiedRow(account=account, group_id=None, group_name=NO_GROUP_LABEL))
            continue
        rows.extend(
            UnifiedRow(account=account, group_id=g.id, group_name=g.name)
            for g in memberships
        )
    rows.sort(key=lambda r: r.account.total_points, reverse=True)
    return rows


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def delete_user(ledger: PointLedger, actor_id: str, user_id: str) -> UserAccount:
    """Remove an account and everything hanging off it.

    Raises
    ------
    NotFoundError
        No such account.
    ForbiddenError
        The target is a superadmin.
    ConflictError
        The target still created groups (delete those first).
    """
    store = ledger.store
    account = repository.require(store, keys.user(user_id), UserAccount, "User not found")
    if account.is_superadmin:
        raise ForbiddenError("Cannot delete a superadmin")

    groups = list_all_groups(ledger)
    if any(g.created_by == user_id for g in groups):
        raise ConflictError("User still owns groups; delete them first")

    for group in groups:
        if not (group.is_member(user_id) or group.is_banned(user_id)):
            continue
        repository.mutate(
            store,
            keys.group(group.id),
            Group,
            lambda g: g.without_member(user_id).without_ban(user_id),
            missing="Group not found",
            attempts=ledger.cas_attempts,
        )

    for index_key, _ in store.scan_prefix(keys.user_groups(user_id)):
        store.delete(index_key)
    for checkin_key, _ in store.scan_prefix(keys.user_checkins(user_id)):
        store.delete(checkin_key)
    for invite in repository.scan(store, keys.INVITE_PREFIX, Invite):
        if user_id not in (invite.invitee_id, invite.inviter_id):
            continue
        store.delete(keys.user_invite(invite.invitee_id, invite.id))
        group_service.release_pending_slot(store, invite.group_id, invite.invitee_id, invite.id)
        store.delete(keys.invite(invite.id))

    store.delete(keys.user(user_id))
    store.delete(keys.username(account.username))

    _log_admin_action(
        ledger,
        actor_id=actor_id,
        action_type="DELETE",
        target_kind="user",
        target_id=user_id,
        before=repository.dump(account),
        after=None,
    )
    logger.info("User %s (%r) deleted by %s", user_id, account.username, actor_id)
    return account


def delete_group(ledger: PointLedger, actor_id: str, group_id: str) -> Group:
    group = group_service.delete_group(ledger, actor_id, group_id, as_superadmin=True)
    _log_admin_action(
        ledger,
        actor_id=actor_id,
        action_type="DELETE",
        target_kind="group",
        target_id=group_id,
        before=repository.dump(group),
        after=None,
    )
    return group


def _set_superadmin(
    ledger: PointLedger, actor_id: str | None, user_id: str, granted: bool
) -> UserAccount:
    loaded = repository.load(ledger.store, keys.user(user_id), UserAccount)
    if loaded is None:
        raise NotFoundError("User not found")
    before = loaded.entity

    def _change(account: UserAccount) -> UserAccount:
        roles = [r for r in account.roles if r != ROLE_SUPERADMIN]
        if granted:
            roles.append(ROLE_SUPERADMIN)
        return account.model_copy(update={"roles": roles})

    after = repository.mutate(
        ledger.store,
        keys.user(user_id),
        UserAccount,
        _change,
        missing="User not found",
        attempts=ledger.cas_attempts,
    )
    if after.roles != before.roles:
        _log_admin_action(
            ledger,
            actor_id=actor_id,
            action_type="GRANT_SUPERADMIN" if granted else "REVOKE_SUPERADMIN",
            target_kind="user",
            target_id=user_id,
            before={"roles": before.roles},
            after={"roles": after.roles},
        )
        logger.info(
            "Superadmin %s %s by %s",
            "granted to" if granted else "revoked from",
            user_id,
            actor_id or "operator",
        )
    return after


def grant_superadmin(ledger: PointLedger, actor_id: str | None, user_id: str) -> UserAccount:
    return _set_superadmin(ledger, actor_id, user_id, granted=True)


def revoke_superadmin(ledger: PointLedger, actor_id: str | None, user_id: str) -> UserAccount:
    """Drop the role.  The last remaining superadmin cannot be revoked."""
    superadmins = [
        a.id
        for a in repository.scan(ledger.store, keys.USER_PREFIX, UserAccount)
        if a.is_superadmin
    ]
    if superadmins == [user_id]:
        raise ConflictError("Cannot revoke the last superadmin")
    return _set_superadmin(ledger, actor_id, user_id, granted=False)
