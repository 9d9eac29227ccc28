"""
hlt.api.__main__ — Entry point for ``python -m hlt.api``
=========================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings; port).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Serve :data:`hlt.api.main.app` with uvicorn.
"""

from __future__ import annotations

import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

from hlt.config import load_config
from hlt.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("hlt")


def main() -> None:
    """Bootstrap and serve the hlt API."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    try:
        config = load_config(os.getenv("HLT_CONFIG", "config.yaml"))
    except FileNotFoundError as exc:
        logger.error(str(exc))
        sys.exit(1)

    # 3. Database.
    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        logger.error(str(exc))
        sys.exit(1)
    init_db(engine)
    engine.dispose()

    # 4. Serve.
    logger.info("Starting %s on port %d", config.app_name, config.api_port)
    uvicorn.run("hlt.api.main:app", host="0.0.0.0", port=config.api_port)


if __name__ == "__main__":
    main()
