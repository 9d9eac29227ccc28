"""
hlt.database.store — Versioned Key-Value Store
===============================================

The persistence primitive every service is written against.  Keys are
opaque strings, values are JSON documents, and each row carries a
``version`` that increases on every write.

Besides plain ``get`` / ``set`` / ``delete`` / ``scan_prefix`` the store
offers the two conditional writes the domain needs to stay race-free
without multi-key transactions:

* :meth:`KeyValueStore.create_if_absent` — INSERT, losing cleanly to an
  existing row (primary-key ``IntegrityError``).
* :meth:`KeyValueStore.compare_and_set` — UPDATE guarded by the version
  that was read; succeeds for exactly one of several concurrent writers.

:meth:`KeyValueStore.compare_and_delete` is the matching guarded delete.

Each call runs in its own short transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Engine, delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hlt.database.models import KVEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Versioned:
    """A stored value together with the version it was read at."""

    value: Any
    version: int


class KeyValueStore:
    """Key-value access on top of the ``kv_store`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, key: str) -> Any | None:
        found = self.get_versioned(key)
        return found.value if found is not None else None

    def get_versioned(self, key: str) -> Versioned | None:
        with Session(self._engine) as session:
            row = session.execute(
                select(KVEntry.value, KVEntry.version).where(KVEntry.key == key)
            ).first()
        if row is None:
            return None
        return Versioned(value=row.value, version=row.version)

    def scan_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        """All ``(key, value)`` pairs whose key starts with *prefix*, key-ordered."""
        with Session(self._engine) as session:
            rows = session.execute(
                select(KVEntry.key, KVEntry.value)
                .where(KVEntry.key.startswith(prefix, autoescape=True))
                .order_by(KVEntry.key)
            ).all()
        # LIKE is case-insensitive on SQLite; keys are not.
        return [(row.key, row.value) for row in rows if row.key.startswith(prefix)]

    # ------------------------------------------------------------------
    # Unconditional writes
    # ------------------------------------------------------------------
    def set(self, key: str, value: Any) -> None:
        """Write *value* under *key* whatever is there (upsert)."""
        with Session(self._engine) as session:
            result = session.execute(
                update(KVEntry)
                .where(KVEntry.key == key)
                .values(value=value, version=KVEntry.version + 1)
            )
            session.commit()
        if result.rowcount == 0 and not self.create_if_absent(key, value):
            # Another writer inserted between our UPDATE and INSERT; overwrite it.
            self.set(key, value)

    def delete(self, key: str) -> bool:
        """Remove *key*.  Returns False if it was not there."""
        with Session(self._engine) as session:
            result = session.execute(delete(KVEntry).where(KVEntry.key == key))
            session.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Conditional writes
    # ------------------------------------------------------------------
    def create_if_absent(self, key: str, value: Any) -> bool:
        """Insert *key* only if no row exists.  Returns True if this call created it."""
        with Session(self._engine) as session:
            try:
                session.execute(insert(KVEntry).values(key=key, value=value, version=1))
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
        return True

    def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        """Overwrite *key* only if it is still at *expected_version*."""
        with Session(self._engine) as session:
            result = session.execute(
                update(KVEntry)
                .where(KVEntry.key == key, KVEntry.version == expected_version)
                .values(value=value, version=KVEntry.version + 1)
            )
            session.commit()
        if result.rowcount != 1:
            logger.debug("CAS miss on %s (expected v%d)", key, expected_version)
            return False
        return True

    def compare_and_delete(self, key: str, expected_version: int) -> bool:
        """Delete *key* only if it is still at *expected_version*."""
        with Session(self._engine) as session:
            result = session.execute(
                delete(KVEntry).where(
                    KVEntry.key == key, KVEntry.version == expected_version
                )
            )
            session.commit()
        return result.rowcount == 1
