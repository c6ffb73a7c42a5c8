"""System health endpoint — database connectivity and cache table state."""

import time

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from app.api.deps import Cache, Session
from app.core.cache import STORAGE_ERRORS
from app.models.cache_entry import CacheStats

router = APIRouter(prefix="/system", tags=["system"])


class ServiceHealth(BaseModel):
    status: str  # "ok" or "error"
    detail: str | None = None
    version: str | None = None
    latency_ms: int | None = None


class HealthResponse(BaseModel):
    status: str
    database: ServiceHealth
    cache: CacheStats | None = None


class PurgeResponse(BaseModel):
    removed: int


@router.get("/health", response_model=HealthResponse)
async def system_health(session: Session, cache: Cache) -> HealthResponse:
    """Check database connectivity and report cache row counts."""
    db = await _check_database(session)
    try:
        stats = await cache.stats()
    except STORAGE_ERRORS:
        stats = None

    overall = "ok" if db.status == "ok" and stats is not None else "degraded"
    return HealthResponse(status=overall, database=db, cache=stats)


@router.post("/cache/purge", response_model=PurgeResponse)
async def purge_cache(cache: Cache) -> PurgeResponse:
    """Remove logically expired cache rows now instead of on next read."""
    return PurgeResponse(removed=await cache.purge_expired())


async def _check_database(session) -> ServiceHealth:
    try:
        t0 = time.monotonic()
        await session.execute(text("SELECT 1"))
        latency = int((time.monotonic() - t0) * 1000)
        # Works on PostgreSQL, fails on SQLite
        version_short = None
        try:
            result = await session.execute(text("SELECT version()"))
            version_str = result.scalar_one_or_none() or ""
            version_short = version_str.split(",")[0] if version_str else None
        except STORAGE_ERRORS:
            await session.rollback()
        return ServiceHealth(status="ok", version=version_short, latency_ms=latency)
    except STORAGE_ERRORS as exc:
        return ServiceHealth(status="error", detail=str(exc)[:200])
