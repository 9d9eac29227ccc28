"""
hlt — Help · Learn · Thank
===========================
A daily reflection tracker.  Members answer three prompts once a day
("who did you help?", "what did you learn?", "who do you thank?"), earn a
point per answer, and compete on rolling day/week/month/year leaderboards,
globally or inside the groups they create and invite friends to.

Package layout::

    hlt/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Roles, field limits, CAS budget
    ├── errors.py          # Typed error taxonomy (maps onto HTTP status)
    ├── manage.py          # Operator CLI (init-db, superadmin grants)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # ORM: kv_store + admin_log
    │   ├── store.py       # Versioned key-value store on top of kv_store
    │   ├── entities.py    # Tagged pydantic entities persisted in the store
    │   ├── keys.py        # Key layout
    │   └── repository.py  # Typed load / create / optimistic mutate
    ├── engine/
    │   ├── periods.py     # Day / ISO week / month / year window keys
    │   ├── points.py      # Point counting + rollover arithmetic
    │   └── leaderboard.py # Position ranking
    ├── services/
    │   ├── ledger_service.py      # Lazy-rollover point ledger
    │   ├── checkin_service.py     # Daily check-ins + profile stats
    │   ├── leaderboard_service.py # Global + group leaderboards
    │   ├── account_service.py     # Signup-time account records
    │   ├── group_service.py       # Groups, roles, invites, bans
    │   └── admin_service.py       # Superadmin operations + audit log
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → principal, engine/config/store providers
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"
