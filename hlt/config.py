"""
hlt.config — YAML Configuration Loader
=======================================

Reads ``config.yaml`` for the **soft** settings of the service (display
name, port, field limits, optimistic-write budget).  Secrets such as
``DATABASE_URL`` and ``JWT_SECRET`` stay in the environment (``.env``).

Usage::

    from hlt.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.app_name)          # "Help Learn Thank"
    print(cfg.default_period)    # "day"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from hlt.constants import (
    DEFAULT_CAS_ATTEMPTS,
    GROUP_NAME_MAX_LENGTH,
    USERNAME_MAX_LENGTH,
)
from hlt.engine.periods import Period


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HLTConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str

    # API
    api_port: int

    # Leaderboards
    default_period: str = "day"

    # Field limits
    username_max_length: int = USERNAME_MAX_LENGTH
    group_name_max_length: int = GROUP_NAME_MAX_LENGTH

    # Optimistic concurrency: re-read/re-apply budget per mutation
    cas_max_attempts: int = DEFAULT_CAS_ATTEMPTS


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> HLTConfig:
    """Read *path* and return a :class:`HLTConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``default_period`` is not a known leaderboard period.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    default_period = Period.parse(str(raw.get("default_period", "day"))).value

    return HLTConfig(
        app_name=raw["app_name"],
        api_port=int(raw["api_port"]),
        default_period=default_period,
        username_max_length=int(raw.get("username_max_length", USERNAME_MAX_LENGTH)),
        group_name_max_length=int(
            raw.get("group_name_max_length", GROUP_NAME_MAX_LENGTH)
        ),
        cas_max_attempts=int(raw.get("cas_max_attempts", DEFAULT_CAS_ATTEMPTS)),
    )
