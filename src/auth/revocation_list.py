"""
Authentification: Revocation List

Révocation des tokens à la déconnexion. Sans elle, un token déconnecté
reste cryptographiquement valide jusqu'à son expiration s'il est rejoué.

Les entrées sont purgées une fois le token expiré: au-delà, la vérification
d'expiration du codec suffit.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Revocation:
    """Token révoqué."""

    token_id: str
    revoked_at: datetime
    expires_at: datetime
    reason: str = "logout"


class RevocationList:
    """
    Ensemble token_id -> révocation, protégé par verrou.

    Example:
        revocations = RevocationList()
        revocations.revoke(claims.token_id, claims.exp)
        assert revocations.is_revoked(claims.token_id)
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._lock = threading.Lock()
        self._revoked: Dict[str, Revocation] = {}

    def revoke(self, token_id: str, expires_at: datetime, reason: str = "logout") -> Revocation:
        """
        Révoque immédiatement un token.

        Les révocations de tokens déjà expirés sont retirées au passage:
        la liste reste bornée par les sessions encore valides.

        Raises:
            ValueError: token_id vide
        """
        if not token_id:
            raise ValueError("token_id cannot be empty")
        revocation = Revocation(
            token_id=token_id,
            revoked_at=self._clock(),
            expires_at=expires_at,
            reason=reason,
        )
        with self._lock:
            self._drop_expired(revocation.revoked_at)
            self._revoked[token_id] = revocation
        return revocation

    def is_revoked(self, token_id: str) -> bool:
        with self._lock:
            return token_id in self._revoked

    def get(self, token_id: str) -> Optional[Revocation]:
        with self._lock:
            return self._revoked.get(token_id)

    def purge_expired(self) -> int:
        """
        Retire les révocations de tokens déjà expirés.

        Returns:
            Nombre d'entrées retirées
        """
        now = self._clock()
        with self._lock:
            return self._drop_expired(now)

    def _drop_expired(self, now: datetime) -> int:
        expired = [tid for tid, rev in self._revoked.items() if now > rev.expires_at]
        for token_id in expired:
            del self._revoked[token_id]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._revoked)
