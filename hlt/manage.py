"""
hlt.manage — Operator CLI
==========================

Run with::

    python -m hlt.manage init-db
    python -m hlt.manage grant-superadmin alice
    python -m hlt.manage revoke-superadmin alice

The superadmin commands act without an actor; the audit log records them
with ``actor_id = NULL``.
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from hlt.database.engine import create_db_engine, init_db
from hlt.database.store import KeyValueStore
from hlt.errors import HLTError
from hlt.services import account_service, admin_service
from hlt.services.ledger_service import PointLedger

logger = logging.getLogger("hlt.manage")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Help Learn Thank operator commands")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create missing tables (dev/test; use alembic in production)")

    grant = sub.add_parser("grant-superadmin", help="Give an account the superadmin role")
    grant.add_argument("username", help="Username of the account")

    revoke = sub.add_parser("revoke-superadmin", help="Remove the superadmin role")
    revoke.add_argument("username", help="Username of the account")

    return parser.parse_args(argv)


def run(args: argparse.Namespace, ledger: PointLedger) -> str:
    """Execute one parsed command and return a human-readable summary."""
    if args.command == "init-db":
        init_db(ledger.store.engine)
        return "Tables verified / created."

    user_id = account_service.resolve_username(ledger, args.username)
    if args.command == "grant-superadmin":
        admin_service.grant_superadmin(ledger, None, user_id)
        return f"{args.username} is now a superadmin."
    admin_service.revoke_superadmin(ledger, None, user_id)
    return f"{args.username} is no longer a superadmin."


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    args = _parse_args(argv)
    load_dotenv()
    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        raise SystemExit(str(exc)) from exc

    try:
        print(run(args, PointLedger(KeyValueStore(engine))))
    except HLTError as exc:
        logger.error(exc.message)
        sys.exit(1)
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
