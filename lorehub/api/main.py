"""
lorehub.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn lorehub.api.main:app --reload --port 8000
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import Engine

load_dotenv()

from lorehub.api.deps import get_config, get_engine  # noqa: E402
from lorehub.api.errors import setup_error_handlers  # noqa: E402
from lorehub.api.routes.achievements import router as achievements_router  # noqa: E402
from lorehub.api.routes.admin import router as admin_router  # noqa: E402
from lorehub.api.routes.posts import router as posts_router  # noqa: E402
from lorehub.api.routes.quests import router as quests_router  # noqa: E402
from lorehub.api.routes.shop import router as shop_router  # noqa: E402
from lorehub.api.routes.users import router as users_router  # noqa: E402
from lorehub.database.engine import init_db, run_db  # noqa: E402
from lorehub.services import quest_service  # noqa: E402

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


async def quest_sweep_loop(engine: Engine, interval_minutes: int) -> None:
    """Delete expired quests every *interval_minutes* until cancelled."""
    while True:
        try:
            await run_db(quest_service.reset_daily_quests, engine)
        except Exception:
            logger.exception("Quest sweep failed; retrying next interval")
        await asyncio.sleep(interval_minutes * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — schema check, seeds, quest sweep task."""
    engine = get_engine()
    cfg = get_config()
    await run_db(init_db, engine)

    sweep = asyncio.create_task(
        quest_sweep_loop(engine, cfg.quest_sweep_interval_minutes)
    )
    logger.info("Lorehub API started — %s (%s)", cfg.community_name, engine.url.database)
    yield
    sweep.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweep
    logger.info("Lorehub API shutting down")


app = FastAPI(
    title="Lorehub API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_error_handlers(app)

# Mount routers
app.include_router(quests_router, prefix="/api")
app.include_router(achievements_router, prefix="/api")
app.include_router(shop_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(posts_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
