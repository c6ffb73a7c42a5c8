"""Expiring key/value cache stored in the relational database.

Memoizes expensive or rate-limited external lookups (geocoding, LLM
analysis, scraped update batches). Expiry is enforced lazily: a read that
finds an expired row deletes it and reports a miss. There is no background
sweeper, so logically expired rows may linger until the next read of the
same key or an explicit ``purge_expired()``.

The cache is advisory. Storage failures are logged and reduced to a miss
(``get``) or ``False`` (``set`` / ``delete``); only caller bugs such as an
empty key or a non-positive TTL raise.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.cache_entry import CacheEntry, CacheStats

logger = logging.getLogger(__name__)

# Errors that mean "the backing store is unreachable or misbehaving".
STORAGE_ERRORS = (SQLAlchemyError, OSError, TimeoutError)


class InvalidCacheArgument(ValueError):
    """Raised for caller bugs: empty key, bad TTL, unserializable value."""


class ExpiringKeyValueCache:
    """Database-backed key/value cache with per-call TTL in minutes.

    Args:
        session_factory: Callable returning a fresh ``AsyncSession``. Each
            operation opens its own session and commits independently of
            any request-scoped session.
        clock: Returns the current naive-UTC time. Injected so expiry can
            be tested without sleeping.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` on miss, expiry or error."""
        _check_key(key)
        now = self._clock()
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(CacheEntry.value, CacheEntry.expires_at).where(
                        CacheEntry.key == key
                    )
                )
                row = result.one_or_none()
        except STORAGE_ERRORS:
            logger.exception("Cache get failed for key %s", key)
            return default

        if row is None:
            logger.debug("Cache MISS: %s", key)
            return default

        raw_value, expires_at = row
        if expires_at < now:
            logger.debug("Cache EXPIRED: %s", key)
            await self._evict_expired(key, now)
            return default

        try:
            value = json.loads(raw_value)
        except (TypeError, ValueError):
            logger.warning("Cache entry %s holds malformed JSON, treating as miss", key)
            return default

        logger.debug("Cache HIT: %s", key)
        return value

    async def set(self, key: str, value: Any, ttl_minutes: int) -> bool:
        """Upsert ``value`` under ``key`` for ``ttl_minutes``. Returns success."""
        _check_key(key)
        if isinstance(ttl_minutes, bool) or not isinstance(ttl_minutes, int):
            raise InvalidCacheArgument(
                f"ttl_minutes must be an int, got {type(ttl_minutes).__name__}"
            )
        if ttl_minutes <= 0:
            raise InvalidCacheArgument(f"ttl_minutes must be positive, got {ttl_minutes}")
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise InvalidCacheArgument(f"Value for key {key!r} is not JSON-serializable") from exc

        expires_at = self._clock() + timedelta(minutes=ttl_minutes)
        try:
            async with self._session_factory() as session:
                stmt = _upsert_statement(
                    session.get_bind().dialect.name, key, payload, expires_at
                )
                if stmt is not None:
                    await session.execute(stmt)
                else:
                    await session.merge(
                        CacheEntry(key=key, value=payload, expires_at=expires_at)
                    )
                await session.commit()
        except STORAGE_ERRORS:
            logger.exception("Cache set failed for key %s", key)
            return False

        logger.debug("Cache SET: %s (TTL: %sm)", key, ttl_minutes)
        return True

    async def delete(self, key: str) -> bool:
        """Remove ``key``. Deleting a missing key is still a success."""
        _check_key(key)
        try:
            async with self._session_factory() as session:
                await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
                await session.commit()
        except STORAGE_ERRORS:
            logger.exception("Cache delete failed for key %s", key)
            return False

        logger.debug("Cache DELETE: %s", key)
        return True

    async def purge_expired(self) -> int:
        """Delete every logically expired row in one statement.

        Not scheduled anywhere; an operator may call it to bound table growth.
        Returns the number of rows removed, or 0 when the store is unavailable.
        """
        now = self._clock()
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(CacheEntry).where(CacheEntry.expires_at < now)
                )
                await session.commit()
        except STORAGE_ERRORS:
            logger.exception("Cache purge failed")
            return 0

        removed = result.rowcount or 0
        logger.info("Cache purge removed %d expired entries", removed)
        return removed

    async def stats(self) -> CacheStats:
        """Row counts for health reporting. Raises on storage errors."""
        now = self._clock()
        async with self._session_factory() as session:
            total = (await session.execute(
                select(func.count()).select_from(CacheEntry)
            )).scalar_one()
            expired = (await session.execute(
                select(func.count())
                .select_from(CacheEntry)
                .where(CacheEntry.expires_at < now)
            )).scalar_one()
        return CacheStats(total_entries=total, expired_entries=expired)

    async def _evict_expired(self, key: str, now: datetime) -> None:
        # Only remove the row if it is still expired; a concurrent set may
        # already have refreshed it.
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(CacheEntry).where(
                        CacheEntry.key == key,
                        CacheEntry.expires_at < now,
                    )
                )
                await session.commit()
        except STORAGE_ERRORS:
            logger.warning("Cache eviction failed for expired key %s", key)


# ── Internal helpers ─────────────────────────────────────────


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise InvalidCacheArgument("Cache key must be a non-empty string")


def _upsert_statement(dialect: str, key: str, payload: str, expires_at: datetime):
    """Native single-row upsert for dialects that support ON CONFLICT."""
    if dialect == "postgresql":
        insert = pg_insert
    elif dialect == "sqlite":
        insert = sqlite_insert
    else:
        return None

    stmt = insert(CacheEntry.__table__).values(  # type: ignore[attr-defined]
        key=key, value=payload, expires_at=expires_at
    )
    return stmt.on_conflict_do_update(
        index_elements=["key"],
        set_={"value": stmt.excluded["value"], "expires_at": stmt.excluded["expires_at"]},
    )
