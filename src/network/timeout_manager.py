"""
Réseau - Timeout Manager

Borne chaque appel aux stores (Credential Store, Resource Store) par le
timeout de la requête appelante. Un dépassement ou une panne du store
remonte en StoreUnavailable (réessayable), jamais en refus ou accord
d'autorisation.

Invariants:
    ACL_004: Fail-closed
    ACL_005: Store indisponible = erreur interne, jamais une autorisation
"""

import asyncio
from typing import Awaitable, Dict, List, Optional, TypeVar

from .interfaces import ITimeoutManager, TimeoutConfig
from ..core.errors import PortalError, StoreUnavailable

T = TypeVar("T")


class InvalidTimeoutError(Exception):
    """Configuration timeout invalide."""

    pass


class StoreError(Exception):
    """Panne remontée par une implémentation de store (connexion, I/O)."""

    pass


class TimeoutManager(ITimeoutManager):
    """
    Gestion centralisée des timeouts d'appels store.

    Example:
        timeouts = TimeoutManager(TimeoutConfig(request_timeout=5.0))
        record = await timeouts.run(store.find_by_email(email), "find_by_email")
    """

    MAX_REQUEST_TIMEOUT: float = 30.0

    def __init__(self, default_config: Optional[TimeoutConfig] = None) -> None:
        self._default = default_config or TimeoutConfig()
        self._operation_timeouts: Dict[str, float] = {}
        self._validate(self._default.request_timeout)

    def _validate(self, value: float) -> None:
        if value <= 0:
            raise InvalidTimeoutError("request_timeout must be positive")
        if value > self.MAX_REQUEST_TIMEOUT:
            raise InvalidTimeoutError(
                f"request_timeout ({value}s) exceeds maximum ({self.MAX_REQUEST_TIMEOUT}s)"
            )

    def get_timeout(self, operation: Optional[str] = None) -> float:
        if operation and operation in self._operation_timeouts:
            return self._operation_timeouts[operation]
        return self._default.request_timeout

    def set_operation_timeout(self, operation: str, timeout: float) -> None:
        """
        Configure un timeout spécifique à une opération.

        Raises:
            InvalidTimeoutError: Si valeur hors limites
            ValueError: Si operation vide
        """
        if not operation or not operation.strip():
            raise ValueError("operation cannot be empty")
        self._validate(timeout)
        self._operation_timeouts[operation] = timeout

    def get_all_operations(self) -> List[str]:
        return list(self._operation_timeouts.keys())

    async def run(self, awaitable: Awaitable[T], operation: str) -> T:
        """
        Exécute l'appel store avec timeout.

        Les PortalError levées par le store (ex: NotFound) passent telles
        quelles. Timeout, StoreError, ConnectionError et OSError deviennent
        StoreUnavailable. Toute autre exception remonte telle quelle et
        finit en erreur interne.
        """
        timeout = self.get_timeout(operation)
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            raise StoreUnavailable(f"{operation}: timeout after {timeout}s")
        except PortalError:
            raise
        except (StoreError, ConnectionError, OSError) as e:
            raise StoreUnavailable(f"{operation}: {e}")
