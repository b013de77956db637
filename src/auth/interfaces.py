"""
Authentification & Session - Interfaces

Définit les contrats pour l'authentification et l'autorisation.
Toute implémentation DOIT respecter ces interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Collection, List, Mapping, Optional


class Role(Enum):
    """Rôle porté par l'identité."""

    ADMIN = "ADMIN"
    DISTRIBUTOR = "DISTRIBUTOR"


class AccountStatus(Enum):
    """Statut du compte."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


@dataclass(frozen=True)
class Identity:
    """
    Acteur authentifié.

    Rôle et statut sont figés pour la durée d'une session: ils viennent
    toujours des claims du token, jamais du cache (CACHE_002).
    """

    user_id: str
    email: str
    role: Role
    full_name: str = ""
    status: AccountStatus = AccountStatus.ACTIVE

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_distributor(self) -> bool:
        return self.role == Role.DISTRIBUTOR


@dataclass(frozen=True)
class TokenClaims:
    """
    Claims extraits et validés du token de session.

    Attributes:
        identity: Identité embarquée
        iat: Date émission
        exp: Date expiration absolue
        token_id: Identifiant unique du token (jti), clé de révocation
    """

    identity: Identity
    iat: datetime
    exp: datetime
    token_id: str

    def __post_init__(self):
        if self.exp <= self.iat:
            raise ValueError("exp must be after iat")


@dataclass
class CredentialRecord:
    """Enregistrement du Credential Store."""

    user_id: str
    email: str
    role: Role
    password_hash: str
    full_name: str = ""
    status: AccountStatus = AccountStatus.ACTIVE
    last_login: Optional[datetime] = None

    def to_identity(self) -> Identity:
        return Identity(
            user_id=self.user_id,
            email=self.email,
            role=self.role,
            full_name=self.full_name,
            status=self.status,
        )


@dataclass(frozen=True)
class SessionCookie:
    """
    Directive Set-Cookie émise à la frontière.

    Conformité:
        SESS_001: HttpOnly SameSite=Lax Path=/
        SESS_002: Secure en production
        SESS_003: Pas de Max-Age/Expires au login
        SESS_004: Max-Age=0 au logout
    """

    name: str
    value: str
    http_only: bool = True
    secure: bool = False
    same_site: str = "Lax"
    path: str = "/"
    max_age: Optional[int] = None
    expires: Optional[str] = None

    def to_header(self) -> str:
        """Valeur du header Set-Cookie."""
        parts: List[str] = [f"{self.name}={self.value}"]
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age}")
        if self.expires is not None:
            parts.append(f"Expires={self.expires}")
        parts.append(f"Path={self.path}")
        parts.append(f"SameSite={self.same_site}")
        if self.http_only:
            parts.append("HttpOnly")
        if self.secure:
            parts.append("Secure")
        return "; ".join(parts)


@dataclass(frozen=True)
class LoginResult:
    """Résultat d'un login réussi."""

    identity: Identity
    token: str
    expires_at: datetime
    cookie: SessionCookie
    last_login: Optional[datetime] = None


class ICredentialStore(ABC):
    """Store externe des comptes et hashes de mots de passe."""

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[CredentialRecord]:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[CredentialRecord]:
        pass

    @abstractmethod
    async def update_status(self, user_id: str, status: AccountStatus) -> None:
        pass

    @abstractmethod
    async def record_login(self, user_id: str, at: datetime) -> None:
        """Met à jour la date de dernier login."""
        pass


class ITokenCodec(ABC):
    """
    Interface encodage/décodage token de session.

    Invariants:
        AUTH_001: Signature HMAC-SHA256
        AUTH_002: Comparaison temps constant
        AUTH_003: Expiration absolue
    """

    @abstractmethod
    def issue(self, identity: Identity, ttl_seconds: int) -> str:
        """
        Raises:
            EncodingError: Échec de sérialisation
        """
        pass

    @abstractmethod
    def parse(self, token: str) -> TokenClaims:
        """
        Raises:
            InvalidToken: Token malformé ou signature invalide
            Expired: Token expiré
        """
        pass


class ICredentialVerifier(ABC):
    """Interface hachage et vérification de mots de passe (AUTH_006)."""

    @abstractmethod
    def hash(self, secret: str) -> str:
        pass

    @abstractmethod
    def verify(self, secret: str, digest: str) -> bool:
        pass


class ISessionManager(ABC):
    """Interface cycle de vie de session (login, lecture, logout)."""

    @abstractmethod
    async def login(self, email: str, secret: str) -> LoginResult:
        """
        Raises:
            InvalidCredentials: Compte inconnu, inactif ou mot de passe faux
            StoreUnavailable: Credential Store indisponible
        """
        pass

    @abstractmethod
    def get_session(
        self,
        cookies: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[Identity]:
        """Retourne l'identité ou None (anonyme)."""
        pass

    @abstractmethod
    async def logout(self, token: Optional[str] = None) -> SessionCookie:
        """Retourne la directive d'effacement du cookie."""
        pass


class IAuthorizationGuard(ABC):
    """
    Interface vérification des rôles et de la propriété.

    Invariants:
        ACL_001: Unauthorized (401) vs Forbidden (403) distinguables
        ACL_003: Propriété évaluée à chaque requête
        ACL_004: Fail-closed
    """

    @abstractmethod
    def require_role(self, session: Optional[Identity], allowed: Collection[Role]) -> Identity:
        """
        Raises:
            Unauthorized: Aucune session
            Forbidden: Rôle hors de allowed
        """
        pass

    @abstractmethod
    def require_authenticated(self, session: Optional[Identity]) -> Identity:
        pass

    @abstractmethod
    def require_admin(self, session: Optional[Identity]) -> Identity:
        pass

    @abstractmethod
    def require_distributor(self, session: Optional[Identity]) -> Identity:
        pass

    @abstractmethod
    def require_ownership(self, identity: Identity, resource: object, distributor_id: Optional[str]) -> bool:
        pass
