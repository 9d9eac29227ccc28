"""
hlt.database.repository — Typed Access to the Key-Value Store
==============================================================

Glue between :class:`~hlt.database.store.KeyValueStore` (JSON in, JSON out)
and the pydantic entities.  Every load validates, every write dumps.

:func:`mutate` is the one read-modify-write primitive the services use.
It never does check-then-set: the mutation is applied to the version that
was read and written back with compare-and-set, re-reading on a lost race.
Mutations are pure functions of the fresh entity, so a re-run after a lost
race re-checks authorization and invariants against the winner's state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

from hlt.constants import DEFAULT_CAS_ATTEMPTS
from hlt.database.store import KeyValueStore
from hlt.errors import ConcurrencyError, NotFoundError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class Loaded(Generic[M]):
    entity: M
    version: int


def dump(entity: BaseModel) -> dict:
    return entity.model_dump(mode="json")


def load(store: KeyValueStore, key: str, model: type[M]) -> Loaded[M] | None:
    found = store.get_versioned(key)
    if found is None:
        return None
    return Loaded(entity=model.model_validate(found.value), version=found.version)


def get(store: KeyValueStore, key: str, model: type[M]) -> M | None:
    loaded = load(store, key, model)
    return loaded.entity if loaded is not None else None


def require(store: KeyValueStore, key: str, model: type[M], missing: str) -> M:
    """Like :func:`get` but raises ``NotFoundError(missing)`` when absent."""
    entity = get(store, key, model)
    if entity is None:
        raise NotFoundError(missing)
    return entity


def create(store: KeyValueStore, key: str, entity: BaseModel) -> bool:
    """Persist *entity* under *key* only if the key is free."""
    return store.create_if_absent(key, dump(entity))


def scan(store: KeyValueStore, prefix: str, model: type[M]) -> list[M]:
    return [model.model_validate(value) for _, value in store.scan_prefix(prefix)]


def mutate(
    store: KeyValueStore,
    key: str,
    model: type[M],
    change: Callable[[M], M | None],
    *,
    missing: str,
    attempts: int = DEFAULT_CAS_ATTEMPTS,
) -> M:
    """Optimistically apply *change* to the entity at *key*.

    *change* receives the freshly loaded entity and returns the new entity,
    or ``None`` / an equal entity for "nothing to write".  It may raise any
    domain error after inspecting the fresh state.

    Returns the entity as stored after the call.

    Raises
    ------
    NotFoundError
        If *key* does not exist (message *missing*).
    ConcurrencyError
        If every one of *attempts* compare-and-set writes lost a race.
    """
    for attempt in range(1, attempts + 1):
        loaded = load(store, key, model)
        if loaded is None:
            raise NotFoundError(missing)
        updated = change(loaded.entity)
        if updated is None or updated == loaded.entity:
            return loaded.entity
        if store.compare_and_set(key, dump(updated), loaded.version):
            return updated
        logger.warning("Lost optimistic write on %s (attempt %d/%d)", key, attempt, attempts)
    raise ConcurrencyError(f"Too much concurrent activity on {key}; try again")
