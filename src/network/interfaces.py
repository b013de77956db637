"""
Réseau - Interfaces

Bornage des appels aux stores externes par le timeout de la requête.

Invariants:
    ACL_005: Store indisponible = erreur interne, jamais une autorisation
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


@dataclass
class TimeoutConfig:
    """Configuration des timeouts d'appels store (secondes)."""

    request_timeout: float = 5.0


class ITimeoutManager(ABC):
    """Interface gestion des timeouts."""

    @abstractmethod
    def get_timeout(self, operation: Optional[str] = None) -> float:
        """Timeout applicable (spécifique à l'opération ou défaut)."""
        pass

    @abstractmethod
    async def run(self, awaitable: Awaitable[T], operation: str) -> T:
        """
        Exécute un appel store borné par le timeout.

        Raises:
            StoreUnavailable: Timeout ou panne du store
        """
        pass
