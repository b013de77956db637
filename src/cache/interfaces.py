"""
Cache - Interfaces

Cache d'identité à TTL court (email -> identifiant distributeur).

Invariants:
    CACHE_001: Entrée plus vieille que TTL traitée comme absente
    CACHE_002: Jamais utilisé pour dériver rôle ou statut
    CACHE_003: Accès concurrent sans corruption
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional


@dataclass(frozen=True)
class CacheEntry:
    """Entrée de cache horodatée (horloge monotone, secondes)."""

    key: str
    value: str
    inserted_at: float


@dataclass(frozen=True)
class CacheStats:
    """Statistiques cache pour monitoring."""

    size: int
    hits: int
    misses: int
    evictions: int
    ttl_seconds: float


class IIdentityCache(ABC):
    """Interface cache d'identité."""

    DEFAULT_TTL_SECONDS: float = 300.0  # CACHE_001: 5 minutes

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Valeur si présente et dans le TTL, sinon None."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def invalidate(self, key: str) -> bool:
        """Invalide explicitement (écriture sur l'enregistrement source)."""
        pass

    @abstractmethod
    async def get_or_load(
        self, key: str, loader: Callable[[], Awaitable[Optional[str]]]
    ) -> Optional[str]:
        """Lecture cache, sinon chargement store puis peuplement."""
        pass

    @abstractmethod
    def sweep(self) -> int:
        """Purge des entrées expirées (hygiène mémoire uniquement)."""
        pass
