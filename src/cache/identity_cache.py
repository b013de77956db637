"""
Cache: Identity Cache Implementation

Cache local email -> identifiant distributeur avec TTL vérifié à la lecture.

Invariants:
    CACHE_001: Entrée plus vieille que TTL (5 min) traitée comme absente
    CACHE_002: Jamais utilisé pour dériver rôle ou statut
    CACHE_003: Accès concurrent sans corruption (verrou)
"""

import asyncio
import threading
import time
from typing import Awaitable, Callable, Dict, Optional

from .interfaces import CacheEntry, CacheStats, IIdentityCache


class IdentityCache(IIdentityCache):
    """
    Cache d'identité injectable, une instance par processus (ou par test).

    Le verrou n'est tenu que le temps d'une opération dict: le chargement
    store d'un miss s'exécute hors verrou. Deux requêtes concurrentes sur le
    même miss peuvent charger deux fois, la dernière écriture gagne.

    Conformité:
        CACHE_001: TTL vérifié paresseusement à chaque lecture
        CACHE_003: threading.Lock, utilisable depuis threads et event loop

    Example:
        cache = IdentityCache(ttl_seconds=300)
        distributor_id = await cache.get_or_load(email, lambda: store.find_distributor_id_by_email(email))
    """

    def __init__(
        self,
        ttl_seconds: float = IIdentityCache.DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            ttl_seconds: Durée de vie d'une entrée
            clock: Horloge monotone en secondes (injectable pour tests)
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @staticmethod
    def normalize_key(key: str) -> str:
        return key.strip().lower()

    def get(self, key: str) -> Optional[str]:
        if not key:
            return None
        normalized = self.normalize_key(key)
        now = self._clock()

        with self._lock:
            entry = self._entries.get(normalized)
            if entry is None:
                self._misses += 1
                return None

            # CACHE_001: expiré = absent, même si physiquement présent
            if not self._is_within_ttl(entry, now):
                del self._entries[normalized]
                self._evictions += 1
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    def set(self, key: str, value: str) -> None:
        if not key or not value:
            raise ValueError("key et value obligatoires")
        normalized = self.normalize_key(key)
        entry = CacheEntry(key=normalized, value=value, inserted_at=self._clock())
        with self._lock:
            self._entries[normalized] = entry

    def invalidate(self, key: str) -> bool:
        if not key:
            return False
        with self._lock:
            return self._entries.pop(self.normalize_key(key), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    async def get_or_load(
        self, key: str, loader: Callable[[], Awaitable[Optional[str]]]
    ) -> Optional[str]:
        """
        Lecture cache puis repli sur le store.

        Un résultat store absent (None) n'est pas mis en cache. Les erreurs
        du loader (ex: StoreUnavailable) sont propagées telles quelles.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        value = await loader()
        if value is not None:
            self.set(key, value)
        return value

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if not self._is_within_ttl(e, now)]
            for key in expired:
                del self._entries[key]
            self._evictions += len(expired)
        return len(expired)

    async def sweep_periodically(self, interval_seconds: float, stop: asyncio.Event) -> None:
        """Boucle de purge optionnelle, arrêtée par stop.set()."""
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                self.sweep()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                ttl_seconds=self.ttl_seconds,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_within_ttl(self, entry: CacheEntry, now: float) -> bool:
        return (now - entry.inserted_at) < self.ttl_seconds
