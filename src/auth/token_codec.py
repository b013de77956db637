"""
Authentification: Token Codec

Encodage/décodage du token de session signé (JWT HS256).

Invariants:
    AUTH_001: Token signé HMAC-SHA256 avec secret serveur
    AUTH_002: Comparaison signature en temps constant
    AUTH_003: Expiration absolue embarquée dans le token
"""

import base64
import binascii
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict

import jwt

from .interfaces import AccountStatus, Identity, ITokenCodec, Role, TokenClaims
from ..core.errors import EncodingError, Expired, InvalidToken


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec(ITokenCodec):
    """
    Codec de token de session.

    Les échecs de parse sont opaques: InvalidToken pour tout défaut de
    structure ou de signature, Expired seulement une fois la signature
    vérifiée. Aucun détail sur le contrôle qui a échoué n'est exposé.

    Example:
        codec = TokenCodec(secret)
        token = codec.issue(identity, ttl_seconds=604800)
        claims = codec.parse(token)
    """

    ALGORITHM: str = "HS256"
    REQUIRED_CLAIMS = ["sub", "email", "role", "status", "iat", "exp", "jti"]

    def __init__(self, secret: str, clock: Callable[[], datetime] = _utcnow):
        """
        Args:
            secret: Secret HMAC serveur
            clock: Horloge UTC (injectable pour tests)
        """
        if not secret:
            raise ValueError("Token secret cannot be empty")
        self._secret = secret
        self._clock = clock

    def issue(self, identity: Identity, ttl_seconds: int) -> str:
        """
        Émet un token signé pour l'identité.

        Raises:
            ValueError: ttl_seconds <= 0
            EncodingError: Échec de sérialisation
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        iat = int(self._clock().timestamp())
        payload: Dict[str, Any] = {
            "sub": identity.user_id,
            "email": identity.email,
            "role": identity.role.value,
            "name": identity.full_name,
            "status": identity.status.value,
            "iat": iat,
            "exp": iat + int(ttl_seconds),
            "jti": uuid.uuid4().hex,
        }

        try:
            return jwt.encode(payload, self._secret, algorithm=self.ALGORITHM)
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Token serialization failed: {e}")

    def parse(self, token: str) -> TokenClaims:
        """
        Vérifie signature puis expiration.

        Raises:
            InvalidToken: Token malformé ou signature invalide
            Expired: now > exp
        """
        if not isinstance(token, str) or not token:
            raise InvalidToken("empty token")

        # Segment signature canonique: sinon un bit de padding base64 modifiable passe
        if not self._has_canonical_signature(token):
            raise InvalidToken("non canonical signature segment")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.ALGORITHM],
                options={
                    "require": self.REQUIRED_CLAIMS,
                    "verify_signature": True,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidTokenError:
            raise InvalidToken("token rejected")
        except (ValueError, TypeError):
            raise InvalidToken("token rejected")

        claims = self._to_claims(payload)

        # AUTH_003: valide tant que now <= exp
        if self._clock() > claims.exp:
            raise Expired("token expired")

        return claims

    def _to_claims(self, payload: Dict[str, Any]) -> TokenClaims:
        try:
            identity = Identity(
                user_id=str(payload["sub"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
                full_name=str(payload.get("name") or ""),
                status=AccountStatus(payload["status"]),
            )
            return TokenClaims(
                identity=identity,
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                token_id=str(payload["jti"]),
            )
        except (KeyError, ValueError, TypeError, OverflowError, OSError):
            raise InvalidToken("invalid claims")

    @staticmethod
    def _has_canonical_signature(token: str) -> bool:
        parts = token.split(".")
        if len(parts) != 3 or not parts[2]:
            return False
        segment = parts[2]
        try:
            raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        except (ValueError, binascii.Error):
            return False
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") == segment
