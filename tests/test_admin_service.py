"""
tests/test_admin_service.py — Superadmin operations & audit trail
==================================================================
Role grant/revoke (including the last-superadmin guard), account deletion
cleanup, the unified leaderboard, and admin_log rows.
"""

from __future__ import annotations

import pytest

from hlt.constants import NO_GROUP_LABEL
from hlt.database import keys
from hlt.errors import ConflictError, ForbiddenError, NotFoundError
from hlt.services import admin_service, checkin_service
from hlt.services import group_service as gs


@pytest.fixture
def root(ledger, make_user) -> str:
    uid = make_user("root")
    admin_service.grant_superadmin(ledger, None, uid)
    return uid


class TestRoles:
    def test_grant_sets_role_and_logs(self, ledger, root):
        assert ledger.get_current(root).is_superadmin
        page = admin_service.audit_log(ledger)
        assert page.total == 1
        entry = page.entries[0]
        assert entry["action_type"] == "GRANT_SUPERADMIN"
        assert entry["actor_id"] is None
        assert entry["after_snapshot"] == {"roles": ["user", "superadmin"]}

    def test_grant_twice_is_a_no_op(self, ledger, root):
        admin_service.grant_superadmin(ledger, root, root)
        assert ledger.get_current(root).roles == ["user", "superadmin"]
        assert admin_service.audit_log(ledger).total == 1

    def test_require_superadmin(self, ledger, root, make_user):
        alice = make_user("alice")
        assert admin_service.require_superadmin(ledger, root).id == root
        with pytest.raises(ForbiddenError):
            admin_service.require_superadmin(ledger, alice)
        with pytest.raises(ForbiddenError):
            admin_service.require_superadmin(ledger, "ghost")

    def test_cannot_revoke_last_superadmin(self, ledger, root):
        with pytest.raises(ConflictError):
            admin_service.revoke_superadmin(ledger, None, root)

    def test_revoke_when_another_remains(self, ledger, root, make_user):
        alice = make_user("alice")
        admin_service.grant_superadmin(ledger, root, alice)
        account = admin_service.revoke_superadmin(ledger, alice, root)
        assert not account.is_superadmin

    def test_grant_unknown_user(self, ledger):
        with pytest.raises(NotFoundError):
            admin_service.grant_superadmin(ledger, None, "ghost")


class TestReads:
    def test_unified_leaderboard(self, ledger, root, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        g1 = gs.create_group(ledger, alice, "One")
        g2 = gs.create_group(ledger, alice, "Two")
        ledger.apply_delta(alice, 5)
        ledger.apply_delta(bob, 2)

        rows = [r.to_dict() for r in admin_service.unified_leaderboard(ledger)]

        assert [r["username"] for r in rows] == ["alice", "alice", "bob", "root"]
        assert {r["group_id"] for r in rows[:2]} == {g1.id, g2.id}
        assert [r["group_name"] for r in rows[2:]] == [NO_GROUP_LABEL, NO_GROUP_LABEL]
        assert rows[0]["week_points"] == 5

    def test_list_checkins_with_usernames(self, ledger, clock, root, make_user):
        alice = make_user("alice")
        checkin_service.submit(ledger, alice, help="a")
        clock.advance(days=1)
        checkin_service.submit(ledger, root, thank="t")
        views = [v.to_dict() for v in admin_service.list_checkins(ledger)]
        assert [(v["username"], v["date"]) for v in views] == [
            ("root", "2026-10-15"), ("alice", "2026-10-14"),
        ]

    def test_list_users_are_corrected(self, ledger, clock, root):
        ledger.apply_delta(root, 2)
        clock.advance(days=1)
        [account] = admin_service.list_users(ledger)
        assert account.day_points == 0
        assert account.total_points == 2


class TestDeleteUser:
    def test_removes_account_and_dependents(self, ledger, root, make_user):
        owner, alice = make_user("owner"), make_user("alice")
        group = gs.create_group(ledger, owner, "Club")
        invite = gs.invite(ledger, owner, group.id, "alice")
        gs.respond(ledger, alice, invite.id, accept=True)
        other = gs.create_group(ledger, owner, "Other")
        pending = gs.invite(ledger, owner, other.id, "alice")
        checkin_service.submit(ledger, alice, help="a")

        admin_service.delete_user(ledger, root, alice)

        store = ledger.store
        assert store.get(keys.user(alice)) is None
        assert store.get(keys.username("alice")) is None
        assert store.scan_prefix(keys.user_checkins(alice)) == []
        assert store.scan_prefix(keys.user_groups(alice)) == []
        assert store.get(keys.invite(pending.id)) is None
        assert store.get(keys.pending_invite(other.id, alice)) is None
        assert not gs.load_group(ledger, group.id).is_member(alice)
        assert admin_service.audit_log(ledger).entries[0]["action_type"] == "DELETE"

    def test_answered_invite_does_not_free_anothers_slot(self, ledger, root, make_user):
        owner, deputy, carol = make_user("owner"), make_user("deputy"), make_user("carol")
        group = gs.create_group(ledger, owner, "Club")
        joined = gs.invite(ledger, owner, group.id, "deputy")
        gs.respond(ledger, deputy, joined.id, accept=True)
        gs.promote_admin(ledger, owner, group.id, deputy)

        declined = gs.invite(ledger, deputy, group.id, "carol")
        gs.respond(ledger, carol, declined.id, accept=False)
        live = gs.invite(ledger, owner, group.id, "carol")

        admin_service.delete_user(ledger, root, deputy)

        assert ledger.store.get(keys.pending_invite(group.id, carol)) == live.id
        with pytest.raises(ConflictError, match="Invite already sent"):
            gs.invite(ledger, owner, group.id, "carol")
        assert [i.id for i in gs.list_pending_invites(ledger, carol)] == [live.id]

    def test_username_can_be_reused(self, ledger, root, make_user):
        alice = make_user("alice")
        admin_service.delete_user(ledger, root, alice)
        assert make_user("alice", user_id="new-alice") == "new-alice"

    def test_group_owner_conflicts(self, ledger, root, make_user):
        owner = make_user("owner")
        gs.create_group(ledger, owner, "Club")
        with pytest.raises(ConflictError):
            admin_service.delete_user(ledger, root, owner)

    def test_superadmin_target_forbidden(self, ledger, root):
        with pytest.raises(ForbiddenError):
            admin_service.delete_user(ledger, root, root)

    def test_unknown_user(self, ledger, root):
        with pytest.raises(NotFoundError):
            admin_service.delete_user(ledger, root, "ghost")


class TestDeleteGroup:
    def test_superadmin_deletes_any_group(self, ledger, root, make_user):
        owner = make_user("owner")
        group = gs.create_group(ledger, owner, "Club")
        admin_service.delete_group(ledger, root, group.id)
        assert ledger.store.get(keys.group(group.id)) is None
        entry = admin_service.audit_log(ledger).entries[0]
        assert (entry["target_kind"], entry["target_id"]) == ("group", group.id)
        assert entry["before_snapshot"]["name"] == "Club"
