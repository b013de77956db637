"""
Authentification: Credential Verifier

Hachage bcrypt salé et vérification temps constant.

Invariant:
    AUTH_006: Mots de passe hachés bcrypt salé, jamais en clair
"""

from typing import Optional

import bcrypt

from .interfaces import ICredentialVerifier


class CredentialVerifier(ICredentialVerifier):
    """
    Vérificateur de mots de passe bcrypt.

    bcrypt ne considère que les 72 premiers octets: le secret est tronqué
    sur une frontière UTF-8 avant hachage et vérification.

    Example:
        verifier = CredentialVerifier(rounds=10)
        digest = verifier.hash("s3cret")
        assert verifier.verify("s3cret", digest)
    """

    MAX_SECRET_BYTES: int = 72
    DEFAULT_ROUNDS: int = 10

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        """
        Args:
            rounds: Facteur de coût bcrypt (4-31)
        """
        if rounds < 4 or rounds > 31:
            raise ValueError(f"bcrypt rounds must be 4-31, got {rounds}")
        self.rounds = rounds
        self._dummy_digest: Optional[str] = None

    def hash(self, secret: str) -> str:
        """
        Hache un secret.

        Raises:
            ValueError: Secret vide
        """
        if not secret:
            raise ValueError("secret cannot be empty")
        digest = bcrypt.hashpw(self._normalize(secret), bcrypt.gensalt(rounds=self.rounds))
        return digest.decode("ascii")

    def verify(self, secret: str, digest: str) -> bool:
        """
        Vérifie un secret contre un hash stocké.

        Un hash malformé donne False, jamais une exception.
        """
        if not secret or not digest:
            return False
        try:
            return bcrypt.checkpw(self._normalize(secret), digest.encode("ascii"))
        except (ValueError, TypeError, UnicodeError):
            return False

    def burn(self, secret: str) -> bool:
        """
        Vérification factice pour un compte inconnu.

        Égalise le temps de réponse avec un vrai échec (AUTH_004).
        Retourne toujours False.
        """
        if self._dummy_digest is None:
            self._dummy_digest = self.hash("dummy-password-for-timing")
        self.verify(secret or "x", self._dummy_digest)
        return False

    def _normalize(self, secret: str) -> bytes:
        raw = secret.encode("utf-8")[: self.MAX_SECRET_BYTES]
        return raw.decode("utf-8", errors="ignore").encode("utf-8")
