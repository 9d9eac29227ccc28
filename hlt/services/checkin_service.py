"""
hlt.services.checkin_service — Daily Check-Ins
===============================================

One record per (user, calendar day) at ``checkin:{uid}:{date}``.

State machine per key::

    absent ──submit──▶ present(points=P) ──edit──▶ present(points=P′) ──edit──▶ …

* ``submit`` claims the key with create-if-absent, so two racing
  submissions for the same day award points exactly once; the loser gets
  ``ConflictError``.  If crediting the points fails, the record is
  withdrawn again before the error propagates.
* ``edit`` is a compare-and-set on the record; the ledger receives
  ``new_points - old_points`` computed against the version actually
  overwritten.
* ``status`` is read-only; absence is a normal answer, not an error.

Invariant kept across any sequence of submits and edits:
``account.total_points == sum(record.points for the user's records)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from hlt.constants import ANSWER_MAX_LENGTH
from hlt.database import keys, repository
from hlt.database.entities import CheckInRecord, UserAccount
from hlt.engine.periods import utc_today
from hlt.engine.points import clean_answer, count_points
from hlt.errors import ConflictError, HLTError, ValidationError
from hlt.services.ledger_service import PointLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckInResult:
    """A stored check-in plus the account totals after the ledger update."""

    checkin: CheckInRecord
    account: UserAccount

    @property
    def points(self) -> int:
        return self.checkin.points


@dataclass(frozen=True, slots=True)
class ProfileStats:
    account: UserAccount
    total_checkins: int
    total_helps: int
    total_learns: int
    total_thanks: int

    def to_dict(self) -> dict:
        return {
            "total_points": self.account.total_points,
            "total_checkins": self.total_checkins,
            "total_helps": self.total_helps,
            "total_learns": self.total_learns,
            "total_thanks": self.total_thanks,
            "last_checkin_date": self.account.last_checkin_date,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _resolve_day(ledger: PointLedger, day: date | None) -> str:
    return (day or utc_today(ledger.clock())).isoformat()


def _clean_answers(
    help: str | None, learn: str | None, thank: str | None
) -> dict[str, str | None]:
    answers = {
        "help": clean_answer(help),
        "learn": clean_answer(learn),
        "thank": clean_answer(thank),
    }
    for name, value in answers.items():
        if value is not None and len(value) > ANSWER_MAX_LENGTH:
            raise ValidationError(
                f"Answer '{name}' is longer than {ANSWER_MAX_LENGTH} characters"
            )
    return answers


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------
def submit(
    ledger: PointLedger,
    user_id: str,
    *,
    day: date | None = None,
    help: str | None = None,
    learn: str | None = None,
    thank: str | None = None,
) -> CheckInResult:
    """Create the day's check-in and credit its points.

    Raises
    ------
    NotFoundError
        If the user has no account.
    ConflictError
        If a check-in for that day already exists.
    ValidationError
        If an answer is too long.
    ConcurrencyError
        If the account kept changing under the credit; nothing is stored.
    """
    day_key = _resolve_day(ledger, day)
    answers = _clean_answers(help, learn, thank)

    # Fail on a missing account before anything is written.
    ledger.get_current(user_id)

    record = CheckInRecord(
        user_id=user_id,
        date=day_key,
        points=count_points(**answers),
        created_at=ledger.clock(),
        **answers,
    )
    checkin_key = keys.checkin(user_id, day_key)
    if not repository.create(ledger.store, checkin_key, record):
        raise ConflictError(f"Already checked in for {day_key}")

    try:
        account = ledger.apply_delta(user_id, record.points, checkin_date=day_key)
    except HLTError:
        # The points never landed, so the record must not stay either.
        if not ledger.store.compare_and_delete(checkin_key, 1):
            logger.error("Could not withdraw check-in %s after a failed credit", checkin_key)
        raise
    logger.info("Check-in %s/%s created (%d points)", user_id, day_key, record.points)
    return CheckInResult(checkin=record, account=account)


def edit(
    ledger: PointLedger,
    user_id: str,
    *,
    day: date | None = None,
    help: str | None = None,
    learn: str | None = None,
    thank: str | None = None,
) -> CheckInResult:
    """Replace the answers of an existing check-in and settle the point difference.

    Raises ``NotFoundError`` if there is no check-in for that day.
    """
    day_key = _resolve_day(ledger, day)
    answers = _clean_answers(help, learn, thank)
    new_points = count_points(**answers)
    previous_points = 0

    def _rewrite(record: CheckInRecord) -> CheckInRecord:
        nonlocal previous_points
        previous_points = record.points
        return record.model_copy(
            update={**answers, "points": new_points, "updated_at": ledger.clock()}
        )

    record = repository.mutate(
        ledger.store,
        keys.checkin(user_id, day_key),
        CheckInRecord,
        _rewrite,
        missing=f"No check-in found for {day_key}",
        attempts=ledger.cas_attempts,
    )

    delta = new_points - previous_points
    if delta != 0:
        account = ledger.apply_delta(user_id, delta)
    else:
        account = ledger.get_current(user_id)
    logger.info("Check-in %s/%s edited (%+d points)", user_id, day_key, delta)
    return CheckInResult(checkin=record, account=account)


def status(
    ledger: PointLedger, user_id: str, *, day: date | None = None
) -> CheckInRecord | None:
    """The check-in for *day* (default: today), or ``None``.  No ledger side effects."""
    return repository.get(
        ledger.store, keys.checkin(user_id, _resolve_day(ledger, day)), CheckInRecord
    )


def history(ledger: PointLedger, user_id: str) -> list[CheckInRecord]:
    """All of a user's check-ins, oldest first."""
    return repository.scan(ledger.store, keys.user_checkins(user_id), CheckInRecord)


def profile(ledger: PointLedger, user_id: str) -> ProfileStats:
    """Corrected account plus lifetime answer counts."""
    account = ledger.get_current(user_id)
    records = history(ledger, user_id)
    return ProfileStats(
        account=account,
        total_checkins=len(records),
        total_helps=sum(1 for r in records if r.help),
        total_learns=sum(1 for r in records if r.learn),
        total_thanks=sum(1 for r in records if r.thank),
    )
