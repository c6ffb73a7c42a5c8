"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import v1_router
from app.core.cache import ExpiringKeyValueCache
from app.core.config import get_settings
from app.core.database import async_session_factory, dispose_db, init_db
from app.models.base import utcnow
from app.services.notifications import NotificationBus

_settings = get_settings()

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup: ensure tables exist (use Alembic in production)
    await init_db()
    logger.info("Disaster response API started")
    yield
    await dispose_db()


app = FastAPI(
    title="Relief Cache",
    version="0.1.0",
    description="Disaster-coordination API with a database-backed expiring cache",
    lifespan=lifespan,
)

# One cache client and one bus per process, injected via app.api.deps
app.state.cache = ExpiringKeyValueCache(async_session_factory)
app.state.bus = NotificationBus()

# ── CORS ─────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── API routes ───────────────────────────────────────────────
app.include_router(v1_router)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    return {"status": "ok", "timestamp": utcnow().isoformat()}
