"""
Portail Distribution PDF - Taxonomie d'erreurs

Types d'erreurs fermés, transportés structurellement et dispatchés par
type à la frontière (jamais par recherche de texte dans le message).

Invariants:
    ACL_001: 401 sans session valide, 403 rôle ou propriété insuffisants
    ACL_002: 404 pour ressource inexistante
    ACL_005: Store indisponible = erreur interne, jamais une autorisation
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Types d'erreur exposés à la frontière."""

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @property
    def http_status(self) -> int:
        """Statut HTTP associé au type."""
        return _HTTP_STATUS[self]

    @property
    def public_message(self) -> str:
        """Message générique, sans détail interne."""
        return _PUBLIC_MESSAGES[self]

    @property
    def retryable(self) -> bool:
        """True si l'appelant peut réessayer."""
        return self is ErrorKind.STORE_UNAVAILABLE


_HTTP_STATUS = {
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.TOKEN_EXPIRED: 401,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.STORE_UNAVAILABLE: 503,
    ErrorKind.INTERNAL_ERROR: 500,
}

_PUBLIC_MESSAGES = {
    ErrorKind.INVALID_CREDENTIALS: "Invalid email or password",
    ErrorKind.INVALID_TOKEN: "Invalid or expired token",
    ErrorKind.TOKEN_EXPIRED: "Invalid or expired token",
    ErrorKind.UNAUTHORIZED: "Unauthorized: Please login",
    ErrorKind.FORBIDDEN: "Forbidden - Insufficient permissions",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.VALIDATION_ERROR: "Invalid input",
    ErrorKind.STORE_UNAVAILABLE: "Service temporarily unavailable",
    ErrorKind.INTERNAL_ERROR: "Internal server error",
}


class PortalError(Exception):
    """
    Erreur métier du portail.

    Attributes:
        kind: Type d'erreur (dispatch à la frontière)
        detail: Détail interne (logs serveur uniquement)
    """

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(self, detail: Optional[str] = None, kind: Optional[ErrorKind] = None):
        if kind is not None:
            self.kind = kind
        self.detail = detail
        super().__init__(detail or self.kind.public_message)

    @property
    def public_message(self) -> str:
        """Message exposable au client."""
        return self.kind.public_message


class InvalidCredentials(PortalError):
    """Login refusé (compte inconnu, inactif ou mot de passe faux)."""

    kind = ErrorKind.INVALID_CREDENTIALS


class InvalidToken(PortalError):
    """Token malformé, signature invalide ou révoqué."""

    kind = ErrorKind.INVALID_TOKEN


class Expired(InvalidToken):
    """Token expiré."""

    kind = ErrorKind.TOKEN_EXPIRED


class EncodingError(PortalError):
    """Échec de sérialisation d'un token (fatal)."""

    kind = ErrorKind.INTERNAL_ERROR


class Unauthorized(PortalError):
    """Aucune session valide."""

    kind = ErrorKind.UNAUTHORIZED


class Forbidden(PortalError):
    """Session valide mais rôle ou propriété insuffisants."""

    kind = ErrorKind.FORBIDDEN


class NotFound(PortalError):
    """Ressource absente."""

    kind = ErrorKind.NOT_FOUND


class ValidationFailed(PortalError):
    """Entrée invalide."""

    kind = ErrorKind.VALIDATION_ERROR


class StoreUnavailable(PortalError):
    """Faute d'infrastructure transitoire (timeout, connexion), réessayable."""

    kind = ErrorKind.STORE_UNAVAILABLE
