"""
hlt.api.main — FastAPI application entry point
===============================================

Run with::

    uvicorn hlt.api.main:app --reload --port 8000

or ``python -m hlt.api`` (port from ``config.yaml``).
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from hlt import __version__  # noqa: E402
from hlt.api.deps import get_engine  # noqa: E402
from hlt.api.routes.accounts import router as accounts_router  # noqa: E402
from hlt.api.routes.admin import router as admin_router  # noqa: E402
from hlt.api.routes.checkins import router as checkins_router  # noqa: E402
from hlt.api.routes.groups import router as groups_router  # noqa: E402
from hlt.api.routes.invites import router as invites_router  # noqa: E402
from hlt.api.routes.leaderboard import router as leaderboard_router  # noqa: E402
from hlt.errors import HLTError  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    logger.info("hlt API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("hlt API shutting down")


app = FastAPI(
    title="Help Learn Thank API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HLTError)
async def _domain_error(request: Request, exc: HLTError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# Mount routers
app.include_router(accounts_router, prefix="/api")
app.include_router(checkins_router, prefix="/api")
app.include_router(leaderboard_router, prefix="/api")
app.include_router(groups_router, prefix="/api")
app.include_router(invites_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
