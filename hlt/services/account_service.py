"""
hlt.services.account_service — Account Records
===============================================

Creates the ``UserAccount`` a principal needs before it can check in,
and resolves usernames for invites.  Credentials and token issuance are
handled by the identity provider; this module only sees the principal id.

Usernames are unique and immutable.  Uniqueness is a create-if-absent on
``user_by_username:{name}``, so two signups racing for one name cannot
both win.
"""

from __future__ import annotations

import logging

from hlt.constants import ROLE_USER, USERNAME_MAX_LENGTH
from hlt.database import keys, repository
from hlt.database.entities import UserAccount
from hlt.errors import ConflictError, NotFoundError, ValidationError
from hlt.services.ledger_service import PointLedger

logger = logging.getLogger(__name__)


def normalize_username(raw: str | None, *, max_length: int = USERNAME_MAX_LENGTH) -> str:
    """Trim and validate a username.  Raises ``ValidationError``."""
    name = (raw or "").strip()
    if not name:
        raise ValidationError("Username is required")
    if len(name) > max_length:
        raise ValidationError(f"Username must be at most {max_length} characters")
    if not keys.is_valid_segment(name) or any(ch.isspace() for ch in name):
        raise ValidationError("Username may not contain spaces or ':'")
    return name


def register(
    ledger: PointLedger,
    user_id: str,
    username: str,
    *,
    max_length: int = USERNAME_MAX_LENGTH,
) -> UserAccount:
    """Create the account for *user_id* under *username*.

    Raises
    ------
    ValidationError
        Bad username or principal id.
    ConflictError
        Username taken, or the principal already has an account.
    """
    name = normalize_username(username, max_length=max_length)
    if not keys.is_valid_segment(user_id):
        raise ValidationError("Invalid user id")

    if not ledger.store.create_if_absent(keys.username(name), user_id):
        raise ConflictError("Username already exists")

    now = ledger.clock()
    window = ledger.current_keys()
    account = UserAccount(
        id=user_id,
        username=name,
        created_at=now,
        last_reset_day=window.day,
        last_reset_week=window.week,
        last_reset_month=window.month,
        last_reset_year=window.year,
        roles=[ROLE_USER],
    )
    if not repository.create(ledger.store, keys.user(user_id), account):
        ledger.store.delete(keys.username(name))
        raise ConflictError("Account already exists for this user")

    logger.info("Registered account %s as %r", user_id, name)
    return account


def resolve_username(ledger: PointLedger, username: str) -> str:
    """Return the user id behind *username*.  Raises ``NotFoundError``."""
    name = (username or "").strip()
    user_id = ledger.store.get(keys.username(name)) if name else None
    if not user_id:
        raise NotFoundError("User not found")
    return user_id
