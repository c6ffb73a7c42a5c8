"""Import all models so SQLModel.metadata picks them up."""

from app.models.cache_entry import CacheEntry, CacheStats

__all__ = [
    "CacheEntry",
    "CacheStats",
]
