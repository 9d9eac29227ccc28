"""
hlt.database.entities — Tagged Entities Persisted in the Key-Value Store
=========================================================================

Every value written to ``kv_store`` is one of these pydantic models, dumped
with ``model_dump(mode="json")`` and tagged with a ``kind`` literal.  Loads
go through ``model_validate`` so a malformed or mistagged payload fails
loudly at the store boundary instead of leaking half-typed dicts into the
services.

Entities:
- UserAccount    — identity reference, username, lifetime + period counters
- CheckInRecord  — one reflection per (user, calendar day)
- Group          — owner, admins ⊆ members, banned set disjoint from members
- Invite         — pending → accepted | declined, never back
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hlt.constants import ROLE_SUPERADMIN, ROLE_USER
from hlt.engine.periods import Period


class _Entity(BaseModel):
    """Shared config: unknown fields are a schema error, not silently kept."""

    model_config = ConfigDict(extra="forbid")

    def _evolve(self, **changes: Any):
        """Return a re-validated copy with *changes* applied."""
        return type(self).model_validate({**self.model_dump(), **changes})


# ---------------------------------------------------------------------------
# UserAccount — one per signed-up principal
# ---------------------------------------------------------------------------
class UserAccount(_Entity):
    kind: Literal["user"] = "user"

    id: str
    username: str
    created_at: datetime

    total_points: int = 0
    day_points: int = 0
    week_points: int = 0
    month_points: int = 0
    year_points: int = 0

    # Window key each period counter was last reset for (see engine.periods)
    last_reset_day: str
    last_reset_week: str
    last_reset_month: str
    last_reset_year: str

    last_checkin_date: str | None = None
    roles: list[str] = Field(default_factory=lambda: [ROLE_USER])

    @property
    def is_superadmin(self) -> bool:
        return ROLE_SUPERADMIN in self.roles

    def period_points(self, period: Period) -> int:
        return getattr(self, f"{period.value}_points")


# ---------------------------------------------------------------------------
# CheckInRecord — keyed by (user_id, date)
# ---------------------------------------------------------------------------
class CheckInRecord(_Entity):
    kind: Literal["checkin"] = "checkin"

    user_id: str
    date: str  # ISO calendar date, immutable part of the key
    help: str | None = None
    learn: str | None = None
    thank: str | None = None
    points: int = Field(ge=0, le=3)
    created_at: datetime
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Group — creator ∈ admins ⊆ members, banned ∩ members = ∅
# ---------------------------------------------------------------------------
class Group(_Entity):
    kind: Literal["group"] = "group"

    id: str
    name: str
    description: str = ""
    created_by: str
    created_at: datetime
    updated_at: datetime | None = None

    # Lists keep insertion order (group leaderboards break ties by it).
    admins: list[str]
    members: list[str]
    banned_users: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_roles(self) -> Group:
        for field_name in ("admins", "members", "banned_users"):
            values = getattr(self, field_name)
            if len(values) != len(set(values)):
                raise ValueError(f"duplicate ids in {field_name}")
        if self.created_by not in self.admins:
            raise ValueError("group creator must be an admin")
        if not set(self.admins) <= set(self.members):
            raise ValueError("every admin must be a member")
        if set(self.banned_users) & set(self.members):
            raise ValueError("a banned user cannot be a member")
        return self

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admins

    def is_member(self, user_id: str) -> bool:
        return user_id in self.members

    def is_banned(self, user_id: str) -> bool:
        return user_id in self.banned_users

    # -- copy-on-write transitions (each result is re-validated) ----------
    def with_member(self, user_id: str) -> Group:
        if self.is_member(user_id):
            return self
        return self._evolve(members=[*self.members, user_id])

    def without_member(self, user_id: str) -> Group:
        return self._evolve(
            members=[m for m in self.members if m != user_id],
            admins=[a for a in self.admins if a != user_id],
        )

    def with_admin(self, user_id: str) -> Group:
        if self.is_admin(user_id):
            return self
        return self._evolve(admins=[*self.admins, user_id])

    def without_admin(self, user_id: str) -> Group:
        return self._evolve(admins=[a for a in self.admins if a != user_id])

    def with_ban(self, user_id: str) -> Group:
        banned = self.banned_users if self.is_banned(user_id) else [*self.banned_users, user_id]
        return self._evolve(
            members=[m for m in self.members if m != user_id],
            admins=[a for a in self.admins if a != user_id],
            banned_users=banned,
        )

    def without_ban(self, user_id: str) -> Group:
        return self._evolve(banned_users=[b for b in self.banned_users if b != user_id])

    def with_details(
        self,
        *,
        name: str | None,
        description: str | None,
        updated_at: datetime,
    ) -> Group:
        return self._evolve(
            name=self.name if name is None else name,
            description=self.description if description is None else description,
            updated_at=updated_at,
        )


# ---------------------------------------------------------------------------
# Invite — status is monotonic: pending → accepted | declined
# ---------------------------------------------------------------------------
class InviteStatus(enum.StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Invite(_Entity):
    kind: Literal["invite"] = "invite"

    id: str
    group_id: str
    group_name: str
    inviter_id: str
    inviter_username: str
    invitee_id: str
    invitee_username: str
    status: InviteStatus = InviteStatus.PENDING
    created_at: datetime
    responded_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == InviteStatus.PENDING
