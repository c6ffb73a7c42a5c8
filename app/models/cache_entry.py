"""Cache entry model: one row per memoized external lookup."""

from datetime import datetime

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel


class CacheEntry(SQLModel, table=True):
    __tablename__ = "cache"

    key: str = Field(primary_key=True, max_length=1024)
    value: str = Field(sa_column=Column(Text, nullable=False))  # JSON-encoded payload
    expires_at: datetime = Field(nullable=False, index=True)


# ── Pydantic schemas ─────────────────────────────────────────


class CacheStats(SQLModel):
    total_entries: int
    expired_entries: int
