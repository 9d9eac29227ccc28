"""
tests/test_group_service.py — Group & Invite Manager
=====================================================
Role checks, creator protection, the invite lifecycle (including the
one-pending-invite rule and double responses), membership indexes and
group leaderboards.
"""

from __future__ import annotations

import pytest

from hlt.database import keys, repository
from hlt.database.entities import Group, Invite, InviteStatus
from hlt.engine.periods import Period
from hlt.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from hlt.services import group_service as gs


@pytest.fixture
def people(make_user):
    return {name: make_user(name) for name in ("owner", "alice", "bob", "mallory")}


@pytest.fixture
def group(ledger, people) -> Group:
    return gs.create_group(ledger, people["owner"], "Readers", "Book club")


def _join(ledger, group: Group, inviter: str, username: str, invitee: str) -> Invite:
    invite = gs.invite(ledger, inviter, group.id, username)
    return gs.respond(ledger, invitee, invite.id, accept=True)


def _stored(ledger, group_id: str) -> Group:
    return repository.get(ledger.store, keys.group(group_id), Group)


# ===========================================================================
# Creation & details
# ===========================================================================
class TestCreateGroup:
    def test_owner_is_admin_and_member(self, ledger, people, group):
        assert group.created_by == people["owner"]
        assert group.admins == [people["owner"]]
        assert group.members == [people["owner"]]
        assert [g.id for g in gs.list_groups(ledger, people["owner"])] == [group.id]

    @pytest.mark.parametrize("name", ["", "   ", None, "x" * 81])
    def test_bad_name(self, ledger, people, name):
        with pytest.raises(ValidationError):
            gs.create_group(ledger, people["owner"], name)

    def test_owner_needs_account(self, ledger):
        with pytest.raises(NotFoundError):
            gs.create_group(ledger, "ghost", "Readers")

    def test_update_is_partial_and_admin_only(self, ledger, people, group):
        updated = gs.update_group(ledger, people["owner"], group.id, description="New")
        assert updated.name == "Readers"
        assert updated.description == "New"
        assert updated.updated_at is not None
        with pytest.raises(ForbiddenError):
            gs.update_group(ledger, people["mallory"], group.id, name="Pwned")

    def test_get_group_members_only(self, ledger, people, group):
        ledger.apply_delta(people["owner"], 2)
        details = gs.get_group(ledger, people["owner"], group.id)
        assert details.viewer_is_admin
        assert [m.to_dict() for m in details.members] == [{
            "id": people["owner"],
            "username": "owner",
            "total_points": 2,
            "is_admin": True,
            "is_creator": True,
        }]
        with pytest.raises(ForbiddenError):
            gs.get_group(ledger, people["alice"], group.id)

    def test_unknown_group(self, ledger, people):
        with pytest.raises(NotFoundError):
            gs.get_group(ledger, people["owner"], "nope")


# ===========================================================================
# Invites
# ===========================================================================
class TestInvite:
    def test_accept_adds_exactly_one_membership(self, ledger, people, group):
        invite = gs.invite(ledger, people["owner"], group.id, "alice")
        assert invite.status is InviteStatus.PENDING
        assert [i.id for i in gs.list_pending_invites(ledger, people["alice"])] == [invite.id]

        answered = gs.respond(ledger, people["alice"], invite.id, accept=True)

        assert answered.status is InviteStatus.ACCEPTED
        assert answered.responded_at is not None
        assert _stored(ledger, group.id).members == [people["owner"], people["alice"]]
        assert [g.id for g in gs.list_groups(ledger, people["alice"])] == [group.id]
        assert gs.list_pending_invites(ledger, people["alice"]) == []

    def test_second_respond_conflicts_and_keeps_membership(self, ledger, people, group):
        invite = gs.invite(ledger, people["owner"], group.id, "alice")
        gs.respond(ledger, people["alice"], invite.id, accept=True)
        with pytest.raises(ConflictError):
            gs.respond(ledger, people["alice"], invite.id, accept=False)
        with pytest.raises(ConflictError):
            gs.respond(ledger, people["alice"], invite.id, accept=True)
        assert _stored(ledger, group.id).members == [people["owner"], people["alice"]]

    def test_decline_changes_no_group_state(self, ledger, people, group):
        invite = gs.invite(ledger, people["owner"], group.id, "alice")
        answered = gs.respond(ledger, people["alice"], invite.id, accept=False)
        assert answered.status is InviteStatus.DECLINED
        assert _stored(ledger, group.id) == group

    def test_only_admins_invite(self, ledger, people, group):
        with pytest.raises(ForbiddenError):
            gs.invite(ledger, people["mallory"], group.id, "alice")

    def test_unknown_username(self, ledger, people, group):
        with pytest.raises(NotFoundError):
            gs.invite(ledger, people["owner"], group.id, "nobody")

    def test_member_cannot_be_invited(self, ledger, people, group):
        with pytest.raises(ConflictError, match="already a member"):
            gs.invite(ledger, people["owner"], group.id, "owner")

    def test_banned_user_cannot_be_invited(self, ledger, people, group):
        gs.ban(ledger, people["owner"], group.id, people["mallory"])
        with pytest.raises(ConflictError, match="banned"):
            gs.invite(ledger, people["owner"], group.id, "mallory")

    def test_one_pending_invite_per_pair(self, ledger, people, group):
        gs.invite(ledger, people["owner"], group.id, "alice")
        with pytest.raises(ConflictError, match="Invite already sent"):
            gs.invite(ledger, people["owner"], group.id, "alice")
        assert len(repository.scan(ledger.store, keys.INVITE_PREFIX, Invite)) == 1

    def test_reinvite_after_decline(self, ledger, people, group):
        first = gs.invite(ledger, people["owner"], group.id, "alice")
        gs.respond(ledger, people["alice"], first.id, accept=False)
        second = gs.invite(ledger, people["owner"], group.id, "alice")
        assert second.id != first.id

    def test_stale_pending_slot_is_reclaimed(self, ledger, people, group):
        ledger.store.set(keys.pending_invite(group.id, people["alice"]), "vanished")
        invite = gs.invite(ledger, people["owner"], group.id, "alice")
        assert ledger.store.get(keys.pending_invite(group.id, people["alice"])) == invite.id

    def test_respond_only_by_invitee(self, ledger, people, group):
        invite = gs.invite(ledger, people["owner"], group.id, "alice")
        with pytest.raises(ForbiddenError):
            gs.respond(ledger, people["bob"], invite.id, accept=True)

    def test_respond_unknown_invite(self, ledger, people):
        with pytest.raises(NotFoundError):
            gs.respond(ledger, people["alice"], "nope", accept=True)

    def test_accept_after_ban_conflicts(self, ledger, people, group):
        invite = gs.invite(ledger, people["owner"], group.id, "alice")
        gs.ban(ledger, people["owner"], group.id, people["alice"])
        with pytest.raises(ConflictError):
            gs.respond(ledger, people["alice"], invite.id, accept=True)
        assert not _stored(ledger, group.id).is_member(people["alice"])

    def test_ban_racing_accept_leaves_invite_pending(self, ledger, people, group, monkeypatch):
        invite = gs.invite(ledger, people["owner"], group.id, "bob")
        real_load_group = gs.load_group

        def load_then_ban(ledger_, group_id):
            loaded = real_load_group(ledger_, group_id)
            gs.ban(ledger_, people["owner"], group_id, people["bob"])
            return loaded

        monkeypatch.setattr(gs, "load_group", load_then_ban)
        with pytest.raises(ConflictError):
            gs.respond(ledger, people["bob"], invite.id, accept=True)
        monkeypatch.undo()

        stored = repository.get(ledger.store, keys.invite(invite.id), Invite)
        assert stored.status == InviteStatus.PENDING
        assert stored.responded_at is None
        assert not _stored(ledger, group.id).is_member(people["bob"])
        assert ledger.store.get(keys.user_group(people["bob"], group.id)) is None
        assert ledger.store.get(keys.pending_invite(group.id, people["bob"])) == invite.id

    def test_group_record_gone_during_accept(self, ledger, people, group, monkeypatch):
        invite = gs.invite(ledger, people["owner"], group.id, "bob")
        real_load_group = gs.load_group

        def load_then_drop(ledger_, group_id):
            loaded = real_load_group(ledger_, group_id)
            ledger_.store.delete(keys.group(group_id))
            return loaded

        monkeypatch.setattr(gs, "load_group", load_then_drop)
        with pytest.raises(NotFoundError, match="Group not found"):
            gs.respond(ledger, people["bob"], invite.id, accept=True)
        monkeypatch.undo()

        stored = repository.get(ledger.store, keys.invite(invite.id), Invite)
        assert stored.status == InviteStatus.PENDING
        assert gs.list_groups(ledger, people["bob"]) == []


# ===========================================================================
# Membership administration
# ===========================================================================
class TestMembership:
    def test_creator_cannot_be_removed_or_banned(self, ledger, people, group):
        _join(ledger, group, people["owner"], "alice", people["alice"])
        gs.promote_admin(ledger, people["owner"], group.id, people["alice"])
        with pytest.raises(ConflictError):
            gs.remove_member(ledger, people["alice"], group.id, people["owner"])
        with pytest.raises(ConflictError):
            gs.ban(ledger, people["alice"], group.id, people["owner"])
        with pytest.raises(ConflictError):
            gs.demote_admin(ledger, people["alice"], group.id, people["owner"])

    def test_remove_strips_member_and_admin(self, ledger, people, group):
        _join(ledger, group, people["owner"], "alice", people["alice"])
        gs.promote_admin(ledger, people["owner"], group.id, people["alice"])
        result = gs.remove_member(ledger, people["owner"], group.id, people["alice"])
        assert people["alice"] not in result.members
        assert people["alice"] not in result.admins
        assert gs.list_groups(ledger, people["alice"]) == []

    def test_remove_non_member(self, ledger, people, group):
        with pytest.raises(NotFoundError):
            gs.remove_member(ledger, people["owner"], group.id, people["bob"])

    def test_non_admin_cannot_remove_or_ban(self, ledger, people, group):
        _join(ledger, group, people["owner"], "alice", people["alice"])
        _join(ledger, group, people["owner"], "bob", people["bob"])
        with pytest.raises(ForbiddenError):
            gs.remove_member(ledger, people["alice"], group.id, people["bob"])
        with pytest.raises(ForbiddenError):
            gs.ban(ledger, people["alice"], group.id, people["bob"])

    def test_ban_then_unban_does_not_restore_membership(self, ledger, people, group):
        _join(ledger, group, people["owner"], "alice", people["alice"])
        banned = gs.ban(ledger, people["owner"], group.id, people["alice"])
        assert banned.banned_users == [people["alice"]]
        assert not banned.is_member(people["alice"])

        unbanned = gs.unban(ledger, people["owner"], group.id, people["alice"])
        assert unbanned.banned_users == []
        assert not unbanned.is_member(people["alice"])

    def test_pre_emptive_ban(self, ledger, people, group):
        result = gs.ban(ledger, people["owner"], group.id, people["bob"])
        assert result.is_banned(people["bob"])

    def test_promote_requires_membership(self, ledger, people, group):
        with pytest.raises(NotFoundError):
            gs.promote_admin(ledger, people["owner"], group.id, people["bob"])

    def test_demote(self, ledger, people, group):
        _join(ledger, group, people["owner"], "alice", people["alice"])
        gs.promote_admin(ledger, people["owner"], group.id, people["alice"])
        result = gs.demote_admin(ledger, people["owner"], group.id, people["alice"])
        assert result.admins == [people["owner"]]
        assert result.is_member(people["alice"])

    def test_leave(self, ledger, people, group):
        _join(ledger, group, people["owner"], "alice", people["alice"])
        gs.leave_group(ledger, people["alice"], group.id)
        assert not _stored(ledger, group.id).is_member(people["alice"])
        assert gs.list_groups(ledger, people["alice"]) == []
        with pytest.raises(ForbiddenError):
            gs.leave_group(ledger, people["alice"], group.id)

    def test_creator_cannot_leave(self, ledger, people, group):
        with pytest.raises(ConflictError):
            gs.leave_group(ledger, people["owner"], group.id)

    def test_stale_index_is_dropped(self, ledger, people, group):
        ledger.store.set(keys.user_group(people["bob"], group.id), group.id)
        assert gs.list_groups(ledger, people["bob"]) == []
        assert ledger.store.get(keys.user_group(people["bob"], group.id)) is None


# ===========================================================================
# Deletion & leaderboard
# ===========================================================================
class TestDeleteGroup:
    def test_creator_deletes_everything(self, ledger, people, group):
        _join(ledger, group, people["owner"], "alice", people["alice"])
        pending = gs.invite(ledger, people["owner"], group.id, "bob")

        gs.delete_group(ledger, people["owner"], group.id)

        store = ledger.store
        assert store.get(keys.group(group.id)) is None
        assert gs.list_groups(ledger, people["alice"]) == []
        assert store.get(keys.invite(pending.id)) is None
        assert store.get(keys.pending_invite(group.id, people["bob"])) is None
        assert gs.list_pending_invites(ledger, people["bob"]) == []

    def test_admin_who_is_not_creator_cannot_delete(self, ledger, people, group):
        _join(ledger, group, people["owner"], "alice", people["alice"])
        gs.promote_admin(ledger, people["owner"], group.id, people["alice"])
        with pytest.raises(ForbiddenError):
            gs.delete_group(ledger, people["alice"], group.id)


class TestGroupLeaderboard:
    def test_only_members_ranked(self, ledger, people, group):
        _join(ledger, group, people["owner"], "alice", people["alice"])
        ledger.apply_delta(people["alice"], 3)
        ledger.apply_delta(people["bob"], 10)

        entries = gs.group_leaderboard(ledger, people["owner"], group.id, Period.DAY)

        assert [(e.username, e.points, e.rank) for e in entries] == [
            ("alice", 3, 1), ("owner", 0, 2),
        ]

    def test_outsiders_forbidden(self, ledger, people, group):
        with pytest.raises(ForbiddenError):
            gs.group_leaderboard(ledger, people["bob"], group.id, Period.DAY)
