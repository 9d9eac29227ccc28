"""
hlt.constants — Shared Constants
=================================

Single source of truth for roles, field limits and the optimistic-write
budget.  Import from here instead of repeating literals in services.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Roles stored on UserAccount.roles
# ---------------------------------------------------------------------------
ROLE_USER = "user"
ROLE_SUPERADMIN = "superadmin"

# ---------------------------------------------------------------------------
# Field limits
# ---------------------------------------------------------------------------
USERNAME_MAX_LENGTH = 32
GROUP_NAME_MAX_LENGTH = 80
GROUP_DESCRIPTION_MAX_LENGTH = 500
ANSWER_MAX_LENGTH = 2000

# Key segments are joined with ":" so identifiers may not contain it.
KEY_SEPARATOR = ":"

# ---------------------------------------------------------------------------
# Optimistic concurrency
# ---------------------------------------------------------------------------
DEFAULT_CAS_ATTEMPTS = 8

# Label used by the unified leaderboard for users outside every group.
NO_GROUP_LABEL = "No Group"
