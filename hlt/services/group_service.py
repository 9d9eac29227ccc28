"""
hlt.services.group_service — Groups, Roles & Invites
=====================================================

Owns ``group:{gid}`` and ``invite:{iid}`` plus their indexes.

Group invariants (validated on every load and write by
:class:`~hlt.database.entities.Group`)::

    created_by ∈ admins ⊆ members        banned_users ∩ members = ∅

Roles:
* **creator** — permanent; cannot be removed, banned, demoted, or leave.
* **admin** — invite, remove, ban/unban, promote/demote, edit details.
* **member** — view the group and its leaderboard, leave.

Invite lifecycle::

    pending ──accept──▶ accepted
       └────decline──▶ declined        (no way back out of either)

Concurrency:
* Every group change is an optimistic mutate of ``group:{gid}``; the
  authorization check runs inside the mutation against fresh state.
* "At most one pending invite per (group, invitee)" is the
  ``pending_invite:{gid}:{uid}`` slot, claimed with create-if-absent and
  released (version-guarded) when the invite is answered.
* An invite leaves ``pending`` through a compare-and-set, so a double
  accept adds the member exactly once.  If the group then refuses the
  member (a ban landed meanwhile), the invite is put back to pending.
* Cross-key order is fixed: group record first, then the ``user_groups``
  index.  Index entries that disagree with the group record are dropped
  when read.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from hlt.constants import GROUP_DESCRIPTION_MAX_LENGTH, GROUP_NAME_MAX_LENGTH
from hlt.database import keys, repository
from hlt.database.entities import Group, Invite, InviteStatus
from hlt.database.store import KeyValueStore
from hlt.engine.leaderboard import LeaderboardEntry
from hlt.engine.periods import Period
from hlt.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from hlt.services import account_service, leaderboard_service
from hlt.services.ledger_service import PointLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MemberView:
    id: str
    username: str
    total_points: int
    is_admin: bool
    is_creator: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "total_points": self.total_points,
            "is_admin": self.is_admin,
            "is_creator": self.is_creator,
        }


@dataclass(frozen=True, slots=True)
class GroupDetails:
    group: Group
    members: list[MemberView]
    viewer_is_admin: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _clean_name(raw: str | None, max_length: int) -> str:
    name = (raw or "").strip()
    if not name:
        raise ValidationError("Group name is required")
    if len(name) > max_length:
        raise ValidationError(f"Group name must be at most {max_length} characters")
    return name


def _clean_description(raw: str | None) -> str:
    description = (raw or "").strip()
    if len(description) > GROUP_DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be at most {GROUP_DESCRIPTION_MAX_LENGTH} characters"
        )
    return description


def _require_admin(group: Group, actor_id: str, action: str) -> None:
    if not group.is_admin(actor_id):
        raise ForbiddenError(f"Only admins can {action}")


def _require_member(group: Group, actor_id: str) -> None:
    if not group.is_member(actor_id):
        raise ForbiddenError("Not a member of this group")


def load_group(ledger: PointLedger, group_id: str) -> Group:
    return repository.require(ledger.store, keys.group(group_id), Group, "Group not found")


def _mutate_group(
    ledger: PointLedger, group_id: str, change: Callable[[Group], Group | None]
) -> Group:
    return repository.mutate(
        ledger.store,
        keys.group(group_id),
        Group,
        change,
        missing="Group not found",
        attempts=ledger.cas_attempts,
    )


def _claim_pending_slot(
    store: KeyValueStore, group_id: str, user_id: str, invite_id: str
) -> bool:
    """Point the (group, user) pending slot at *invite_id* if no live invite holds it."""
    slot = keys.pending_invite(group_id, user_id)
    if store.create_if_absent(slot, invite_id):
        return True

    found = store.get_versioned(slot)
    if found is None:
        return store.create_if_absent(slot, invite_id)
    holder = repository.get(store, keys.invite(found.value), Invite)
    if holder is not None and holder.is_pending:
        return False
    logger.warning("Reclaiming stale pending-invite slot %s", slot)
    return store.compare_and_set(slot, invite_id, found.version)


def release_pending_slot(
    store: KeyValueStore, group_id: str, user_id: str, invite_id: str
) -> None:
    """Free the (group, user) pending slot, but only while it still points at *invite_id*."""
    slot = keys.pending_invite(group_id, user_id)
    found = store.get_versioned(slot)
    if found is not None and found.value == invite_id:
        store.compare_and_delete(slot, found.version)


# ---------------------------------------------------------------------------
# Group lifecycle
# ---------------------------------------------------------------------------
def create_group(
    ledger: PointLedger,
    owner_id: str,
    name: str | None,
    description: str | None = None,
    *,
    name_max_length: int = GROUP_NAME_MAX_LENGTH,
) -> Group:
    """Create a group owned (and administered) by *owner_id*."""
    clean_name = _clean_name(name, name_max_length)
    clean_description = _clean_description(description)
    ledger.get_current(owner_id)  # owner must have an account

    group = Group(
        id=uuid.uuid4().hex,
        name=clean_name,
        description=clean_description,
        created_by=owner_id,
        created_at=ledger.clock(),
        admins=[owner_id],
        members=[owner_id],
    )
    if not repository.create(ledger.store, keys.group(group.id), group):
        raise ConflictError("Group id collision; try again")
    ledger.store.set(keys.user_group(owner_id, group.id), group.id)
    logger.info("Group %s (%r) created by %s", group.id, group.name, owner_id)
    return group


def list_groups(ledger: PointLedger, user_id: str) -> list[Group]:
    """Groups *user_id* belongs to, per the membership index."""
    groups: list[Group] = []
    for index_key, group_id in ledger.store.scan_prefix(keys.user_groups(user_id)):
        group = repository.get(ledger.store, keys.group(group_id), Group)
        if group is None or not group.is_member(user_id):
            logger.warning("Dropping stale membership index %s", index_key)
            ledger.store.delete(index_key)
            continue
        groups.append(group)
    return groups


def get_group(ledger: PointLedger, actor_id: str, group_id: str) -> GroupDetails:
    """Group record plus member rows.  Members only."""
    group = load_group(ledger, group_id)
    _require_member(group, actor_id)

    members: list[MemberView] = []
    for member_id in group.members:
        account = ledger.peek(member_id)
        if account is None:
            continue
        members.append(MemberView(
            id=member_id,
            username=account.username,
            total_points=account.total_points,
            is_admin=group.is_admin(member_id),
            is_creator=member_id == group.created_by,
        ))
    return GroupDetails(
        group=group, members=members, viewer_is_admin=group.is_admin(actor_id)
    )


def update_group(
    ledger: PointLedger,
    actor_id: str,
    group_id: str,
    *,
    name: str | None = None,
    description: str | None = None,
    name_max_length: int = GROUP_NAME_MAX_LENGTH,
) -> Group:
    """Partial update of name / description.  Admins only."""
    clean_name = _clean_name(name, name_max_length) if name is not None else None
    clean_description = _clean_description(description) if description is not None else None
    now = ledger.clock()

    def _update(group: Group) -> Group:
        _require_admin(group, actor_id, "edit the group")
        return group.with_details(
            name=clean_name, description=clean_description, updated_at=now
        )

    return _mutate_group(ledger, group_id, _update)


def delete_group(
    ledger: PointLedger,
    actor_id: str | None,
    group_id: str,
    *,
    as_superadmin: bool = False,
) -> Group:
    """Delete a group with its membership index and invites.

    Only the creator may do this, unless *as_superadmin*.
    """
    store = ledger.store
    group = load_group(ledger, group_id)
    if not as_superadmin and actor_id != group.created_by:
        raise ForbiddenError("Only the group creator can delete the group")

    store.delete(keys.group(group_id))
    for member_id in group.members:
        store.delete(keys.user_group(member_id, group_id))

    for stale in repository.scan(store, keys.INVITE_PREFIX, Invite):
        if stale.group_id != group_id:
            continue
        store.delete(keys.user_invite(stale.invitee_id, stale.id))
        store.delete(keys.invite(stale.id))
    for slot_key, _ in store.scan_prefix(f"{keys.PENDING_INVITE_PREFIX}{group_id}:"):
        store.delete(slot_key)

    logger.info("Group %s deleted by %s", group_id, actor_id or "operator")
    return group


def leave_group(ledger: PointLedger, actor_id: str, group_id: str) -> Group:
    """Leave a group.  The creator cannot leave."""

    def _leave(group: Group) -> Group:
        _require_member(group, actor_id)
        if actor_id == group.created_by:
            raise ConflictError("The group creator cannot leave; delete the group instead")
        return group.without_member(actor_id)

    group = _mutate_group(ledger, group_id, _leave)
    ledger.store.delete(keys.user_group(actor_id, group_id))
    logger.info("%s left group %s", actor_id, group_id)
    return group


# ---------------------------------------------------------------------------
# Membership administration
# ---------------------------------------------------------------------------
def remove_member(
    ledger: PointLedger, actor_id: str, group_id: str, target_id: str
) -> Group:
    def _remove(group: Group) -> Group:
        _require_admin(group, actor_id, "remove members")
        if target_id == group.created_by:
            raise ConflictError("Cannot remove the group creator")
        if not group.is_member(target_id):
            raise NotFoundError("User is not a member of this group")
        return group.without_member(target_id)

    group = _mutate_group(ledger, group_id, _remove)
    ledger.store.delete(keys.user_group(target_id, group_id))
    logger.info("%s removed %s from group %s", actor_id, target_id, group_id)
    return group


def ban(ledger: PointLedger, actor_id: str, group_id: str, target_id: str) -> Group:
    """Remove *target_id* (if a member) and bar future invites."""

    def _ban(group: Group) -> Group:
        _require_admin(group, actor_id, "ban users")
        if target_id == group.created_by:
            raise ConflictError("Cannot ban the group creator")
        return group.with_ban(target_id)

    group = _mutate_group(ledger, group_id, _ban)
    ledger.store.delete(keys.user_group(target_id, group_id))
    logger.info("%s banned %s from group %s", actor_id, target_id, group_id)
    return group


def unban(ledger: PointLedger, actor_id: str, group_id: str, target_id: str) -> Group:
    """Lift a ban.  Membership is not restored."""

    def _unban(group: Group) -> Group:
        _require_admin(group, actor_id, "unban users")
        return group.without_ban(target_id)

    return _mutate_group(ledger, group_id, _unban)


def promote_admin(
    ledger: PointLedger, actor_id: str, group_id: str, target_id: str
) -> Group:
    def _promote(group: Group) -> Group:
        _require_admin(group, actor_id, "promote admins")
        if not group.is_member(target_id):
            raise NotFoundError("User is not a member of this group")
        return group.with_admin(target_id)

    return _mutate_group(ledger, group_id, _promote)


def demote_admin(
    ledger: PointLedger, actor_id: str, group_id: str, target_id: str
) -> Group:
    def _demote(group: Group) -> Group:
        _require_admin(group, actor_id, "demote admins")
        if target_id == group.created_by:
            raise ConflictError("Cannot demote the group creator")
        return group.without_admin(target_id)

    return _mutate_group(ledger, group_id, _demote)


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------
def invite(
    ledger: PointLedger, actor_id: str, group_id: str, invitee_username: str | None
) -> Invite:
    """Invite a user (by username) to a group.  Admins only.

    Raises
    ------
    NotFoundError
        Unknown group or username.
    ForbiddenError
        Actor is not an admin.
    ConflictError
        Invitee already a member, banned, or already holding a pending invite.
    """
    store = ledger.store
    name = (invitee_username or "").strip()
    if not name:
        raise ValidationError("Username is required")

    group = load_group(ledger, group_id)
    _require_admin(group, actor_id, "invite users")
    invitee_id = account_service.resolve_username(ledger, name)
    if group.is_member(invitee_id):
        raise ConflictError("User is already a member")
    if group.is_banned(invitee_id):
        raise ConflictError("User is banned from this group")

    inviter = ledger.peek(actor_id)
    record = Invite(
        id=uuid.uuid4().hex,
        group_id=group_id,
        group_name=group.name,
        inviter_id=actor_id,
        inviter_username=inviter.username if inviter else "Unknown",
        invitee_id=invitee_id,
        invitee_username=name,
        created_at=ledger.clock(),
    )
    if not repository.create(store, keys.invite(record.id), record):
        raise ConflictError("Invite id collision; try again")
    if not _claim_pending_slot(store, group_id, invitee_id, record.id):
        store.delete(keys.invite(record.id))
        raise ConflictError("Invite already sent")
    store.set(keys.user_invite(invitee_id, record.id), record.id)

    logger.info("%s invited %s to group %s (%s)", actor_id, invitee_id, group_id, record.id)
    return record


def list_pending_invites(ledger: PointLedger, user_id: str) -> list[Invite]:
    store = ledger.store
    pending: list[Invite] = []
    for _, invite_id in store.scan_prefix(keys.user_invites(user_id)):
        record = repository.get(store, keys.invite(invite_id), Invite)
        if record is not None and record.is_pending:
            pending.append(record)
    return pending


def _reopen_invite(ledger: PointLedger, invite_id: str, answered_at: datetime) -> None:
    # Undo our own accept when the group refused the member; the slot is still held.
    def _reopen(current: Invite) -> Invite | None:
        if current.status != InviteStatus.ACCEPTED or current.responded_at != answered_at:
            return None
        return current.model_copy(update={"status": InviteStatus.PENDING, "responded_at": None})

    logger.warning("Accept of invite %s rejected by the group; reopening it", invite_id)
    try:
        repository.mutate(
            ledger.store,
            keys.invite(invite_id),
            Invite,
            _reopen,
            missing="Invite not found",
            attempts=ledger.cas_attempts,
        )
    except NotFoundError:
        # A group deletion took its invites with it.
        pass


def respond(
    ledger: PointLedger, principal_id: str, invite_id: str, accept: bool
) -> Invite:
    """Accept or decline an invite addressed to *principal_id*.

    Raises
    ------
    NotFoundError
        Unknown invite, or (on accept) the group no longer exists.
    ForbiddenError
        The invite is addressed to someone else.
    ConflictError
        The invite was already answered, or (on accept) the principal is
        banned from the group.
    """
    store = ledger.store
    record = repository.require(store, keys.invite(invite_id), Invite, "Invite not found")
    if record.invitee_id != principal_id:
        raise ForbiddenError("Not your invite")
    if not record.is_pending:
        raise ConflictError("Invite already responded to")

    group_id = record.group_id
    if accept:
        group = load_group(ledger, group_id)
        if group.is_banned(principal_id):
            raise ConflictError("You are banned from this group")

    new_status = InviteStatus.ACCEPTED if accept else InviteStatus.DECLINED
    now = ledger.clock()

    def _answer(current: Invite) -> Invite:
        if not current.is_pending:
            raise ConflictError("Invite already responded to")
        return current.model_copy(update={"status": new_status, "responded_at": now})

    answered = repository.mutate(
        store,
        keys.invite(invite_id),
        Invite,
        _answer,
        missing="Invite not found",
        attempts=ledger.cas_attempts,
    )

    if accept:
        def _admit(group: Group) -> Group:
            if group.is_banned(principal_id):
                raise ConflictError("You are banned from this group")
            return group.with_member(principal_id)

        try:
            _mutate_group(ledger, group_id, _admit)
        except (ConflictError, NotFoundError):
            _reopen_invite(ledger, invite_id, now)
            raise
        store.set(keys.user_group(principal_id, group_id), group_id)

    release_pending_slot(store, group_id, principal_id, invite_id)
    logger.info("%s %s invite %s", principal_id, new_status.value, invite_id)
    return answered


# ---------------------------------------------------------------------------
# Group leaderboard
# ---------------------------------------------------------------------------
def group_leaderboard(
    ledger: PointLedger, actor_id: str, group_id: str, period: Period
) -> list[LeaderboardEntry]:
    group = load_group(ledger, group_id)
    _require_member(group, actor_id)
    return leaderboard_service.build(ledger, period, group.members)
