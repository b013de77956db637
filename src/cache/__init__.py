"""
Cache d'identité

Règles couvertes:
- CACHE_001-003
"""

from .interfaces import IIdentityCache, CacheEntry, CacheStats
from .identity_cache import IdentityCache

__all__ = [
    "IIdentityCache",
    "CacheEntry",
    "CacheStats",
    "IdentityCache",
]
