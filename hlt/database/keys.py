"""
hlt.database.keys — Key Layout
===============================

::

    user:{uid}                     UserAccount
    user_by_username:{username}    uid (username claim)
    checkin:{uid}:{YYYY-MM-DD}     CheckInRecord
    group:{gid}                    Group
    user_groups:{uid}:{gid}        gid (membership index)
    invite:{iid}                   Invite
    pending_invite:{gid}:{uid}     iid (at most one pending invite per pair)
    user_invites:{uid}:{iid}       iid (invitee index)
"""

from __future__ import annotations

from hlt.constants import KEY_SEPARATOR

USER_PREFIX = "user:"
USERNAME_PREFIX = "user_by_username:"
CHECKIN_PREFIX = "checkin:"
GROUP_PREFIX = "group:"
USER_GROUPS_PREFIX = "user_groups:"
INVITE_PREFIX = "invite:"
PENDING_INVITE_PREFIX = "pending_invite:"
USER_INVITES_PREFIX = "user_invites:"


def is_valid_segment(value: str) -> bool:
    """True if *value* can be embedded in a key without ambiguity."""
    return bool(value) and KEY_SEPARATOR not in value


def user(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def username(name: str) -> str:
    return f"{USERNAME_PREFIX}{name}"


def checkin(user_id: str, day: str) -> str:
    return f"{CHECKIN_PREFIX}{user_id}:{day}"


def user_checkins(user_id: str) -> str:
    return f"{CHECKIN_PREFIX}{user_id}:"


def group(group_id: str) -> str:
    return f"{GROUP_PREFIX}{group_id}"


def user_group(user_id: str, group_id: str) -> str:
    return f"{USER_GROUPS_PREFIX}{user_id}:{group_id}"


def user_groups(user_id: str) -> str:
    return f"{USER_GROUPS_PREFIX}{user_id}:"


def invite(invite_id: str) -> str:
    return f"{INVITE_PREFIX}{invite_id}"


def pending_invite(group_id: str, user_id: str) -> str:
    return f"{PENDING_INVITE_PREFIX}{group_id}:{user_id}"


def user_invite(user_id: str, invite_id: str) -> str:
    return f"{USER_INVITES_PREFIX}{user_id}:{invite_id}"


def user_invites(user_id: str) -> str:
    return f"{USER_INVITES_PREFIX}{user_id}:"
