"""
Authentification: Session Manager

Login, lecture de session depuis cookie ou header Bearer, logout avec
révocation, et administration du statut des comptes.

Invariants:
    AUTH_004: Échec de login indiscernable (compte inconnu, inactif, mot de passe faux)
    AUTH_005: Compte INACTIVE refusé même avec bon mot de passe
    CACHE_002: Rôle et statut lus dans les claims uniquement
    SESS_001: Cookie HttpOnly, SameSite=Lax, Path=/
    SESS_002: Secure en production
    SESS_003: Cookie de session (pas de Max-Age ni Expires au login)
    SESS_004: Logout = Max-Age=0 et Expires epoch
    SESS_005: Cookie et header Bearer résolvent la même identité
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from .authorization_guard import AuthorizationGuard
from .credential_verifier import CredentialVerifier
from .interfaces import (
    AccountStatus,
    CredentialRecord,
    ICredentialStore,
    Identity,
    ISessionManager,
    ITokenCodec,
    LoginResult,
    SessionCookie,
    TokenClaims,
)
from .revocation_list import RevocationList
from ..audit import AuditEmitterError, AuditEventType, IAuditEmitter
from ..cache import IIdentityCache
from ..core.errors import InvalidCredentials, InvalidToken, NotFound, ValidationFailed
from ..core.interfaces import PortalSettings
from ..logging import StructuredLogger
from ..network import ITimeoutManager, TimeoutManager, TimeoutConfig


EPOCH_EXPIRES = "Thu, 01 Jan 1970 00:00:00 GMT"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager(ISessionManager):
    """
    Gestionnaire de sessions sans état côté serveur.

    Une session est un token signé porté par cookie (ou header Bearer).
    Sa validité est: signature + expiration + absence de révocation.

    Conformité:
        AUTH_004: Même InvalidCredentials pour tous les refus de login,
                  bcrypt factice exécuté si le compte est inconnu
        SESS_004: jti révoqué au logout si revocation_enabled

    Note:
        Sans liste de révocation, un token déconnecté rejoué reste valide
        jusqu'à son expiration (7 jours par défaut).

    Example:
        result = await session_manager.login("dist@example.com", "s3cret")
        response.headers["Set-Cookie"] = result.cookie.to_header()
        identity = session_manager.get_session(cookies=request.cookies)
    """

    def __init__(
        self,
        codec: ITokenCodec,
        verifier: CredentialVerifier,
        credential_store: ICredentialStore,
        settings: Optional[PortalSettings] = None,
        timeouts: Optional[ITimeoutManager] = None,
        revocations: Optional[RevocationList] = None,
        identity_cache: Optional[IIdentityCache] = None,
        guard: Optional[AuthorizationGuard] = None,
        audit: Optional[IAuditEmitter] = None,
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            codec: Codec de token
            verifier: Vérificateur bcrypt
            credential_store: Store des comptes
            settings: Configuration (TTL, cookie, révocation)
            timeouts: Bornage des appels store
            revocations: Liste de révocation (créée si revocation_enabled)
            identity_cache: Cache invalidé lors d'un changement de statut
            guard: Garde pour les opérations d'administration
            audit: Émetteur d'audit optionnel
            logger: Logger structuré
            clock: Horloge UTC (injectable pour tests)
        """
        self.settings = settings or PortalSettings()
        self._codec = codec
        self._verifier = verifier
        self._store = credential_store
        self._timeouts = timeouts or TimeoutManager(
            TimeoutConfig(request_timeout=self.settings.store_timeout_seconds)
        )
        if revocations is None and self.settings.revocation_enabled:
            revocations = RevocationList(clock=clock)
        self._revocations = revocations if self.settings.revocation_enabled else None
        self._cache = identity_cache
        self._guard = guard or AuthorizationGuard()
        self._audit = audit
        self._logger = logger or StructuredLogger("session-manager")
        self._clock = clock

    @property
    def revocations(self) -> Optional[RevocationList]:
        return self._revocations

    # ══════════════════════════════════════════════════════════════════════════
    # LOGIN
    # ══════════════════════════════════════════════════════════════════════════

    async def login(self, email: str, secret: str) -> LoginResult:
        """
        Authentifie un compte et émet un token de session.

        Args:
            email: Email du compte (espaces retirés)
            secret: Mot de passe (espaces retirés)

        Returns:
            LoginResult avec identité, token, expiration et directive cookie

        Raises:
            InvalidCredentials: Champ vide, compte inconnu, inactif ou mot de passe faux
            StoreUnavailable: Credential Store indisponible ou trop lent
            EncodingError: Échec d'émission du token
        """
        email = (email or "").strip()
        secret = (secret or "").strip()
        if not email or not secret:
            raise InvalidCredentials("missing email or secret")

        record = await self._timeouts.run(self._store.find_by_email(email), "find_by_email")

        if record is None:
            await asyncio.to_thread(self._verifier.burn, secret)
            await self._reject_login(email, "unknown_account")

        # Vérification bcrypt avant le statut: même coût pour tous les refus.
        # bcrypt libère le GIL: hors de la boucle d'événements.
        secret_ok = await asyncio.to_thread(self._verifier.verify, secret, record.password_hash)
        if record.status != AccountStatus.ACTIVE:
            await self._reject_login(email, "inactive_account", record.user_id)
        if not secret_ok:
            await self._reject_login(email, "wrong_secret", record.user_id)

        identity = record.to_identity()
        token = self._codec.issue(identity, self.settings.token_ttl_seconds)
        claims = self._codec.parse(token)

        await self._record_login(record)

        self._logger.info("Login succeeded", actor_id=identity.user_id, role=identity.role.value)
        await self._emit(
            AuditEventType.USER_LOGIN,
            identity.user_id,
            "login_success",
            metadata={"email": identity.email, "role": identity.role.value},
        )

        return LoginResult(
            identity=identity,
            token=token,
            expires_at=claims.exp,
            cookie=self.build_cookie(token),
            last_login=record.last_login,
        )

    async def _reject_login(self, email: str, reason: str, user_id: Optional[str] = None) -> None:
        # Raison interne journalisée, jamais exposée (AUTH_004)
        self._logger.warn("Login rejected", reason=reason, email=email)
        await self._emit(
            AuditEventType.FAILED_AUTH,
            user_id or "anonymous",
            "login_failure",
            metadata={"email": email, "reason": reason},
        )
        raise InvalidCredentials(reason)

    async def _record_login(self, record: CredentialRecord) -> None:
        """Mise à jour last_login, best effort."""
        try:
            await self._timeouts.run(
                self._store.record_login(record.user_id, self._clock()), "record_login"
            )
        except Exception as e:
            self._logger.error("Failed to record last login", actor_id=record.user_id, error=str(e))

    def build_cookie(self, token: str) -> SessionCookie:
        """SESS_001-003: cookie de session sans Max-Age ni Expires."""
        return SessionCookie(
            name=self.settings.cookie_name,
            value=token,
            secure=self.settings.use_secure_cookies,
        )

    # ══════════════════════════════════════════════════════════════════════════
    # SESSION
    # ══════════════════════════════════════════════════════════════════════════

    def extract_token(
        self,
        cookies: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        """Token du cookie, sinon du header Authorization: Bearer."""
        if cookies:
            token = cookies.get(self.settings.cookie_name)
            if token:
                return token

        if headers:
            authorization = _header(headers, "authorization")
            if authorization:
                scheme, _, value = authorization.strip().partition(" ")
                if scheme.lower() == "bearer" and value.strip():
                    return value.strip()
        return None

    def get_claims(self, token: Optional[str]) -> Optional[TokenClaims]:
        """Claims d'un token valide et non révoqué, sinon None."""
        if not token:
            return None
        try:
            claims = self._codec.parse(token)
        except InvalidToken as e:
            self._logger.debug("Session token rejected", kind=e.kind.value)
            return None

        if self._revocations is not None and self._revocations.is_revoked(claims.token_id):
            self._logger.debug("Revoked session token presented", actor_id=claims.identity.user_id)
            return None
        return claims

    def get_session(
        self,
        cookies: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[Identity]:
        """
        Identité de la requête.

        Returns:
            Identity issue des claims (CACHE_002), ou None si anonyme
        """
        claims = self.get_claims(self.extract_token(cookies, headers))
        return claims.identity if claims else None

    # ══════════════════════════════════════════════════════════════════════════
    # LOGOUT
    # ══════════════════════════════════════════════════════════════════════════

    async def logout(self, token: Optional[str] = None) -> SessionCookie:
        """
        Efface le cookie et révoque le token présenté.

        Returns:
            Directive Set-Cookie Max-Age=0 (SESS_004)
        """
        claims = self.get_claims(token)
        if claims is not None:
            if self._revocations is not None:
                self._revocations.revoke(claims.token_id, claims.exp, reason="logout")
            self._logger.info("Logout", actor_id=claims.identity.user_id)
            await self._emit(AuditEventType.USER_LOGOUT, claims.identity.user_id, "logout")

        return SessionCookie(
            name=self.settings.cookie_name,
            value="",
            secure=self.settings.use_secure_cookies,
            max_age=0,
            expires=EPOCH_EXPIRES,
        )

    # ══════════════════════════════════════════════════════════════════════════
    # ADMINISTRATION DES COMPTES
    # ══════════════════════════════════════════════════════════════════════════

    async def set_status(
        self,
        session: Optional[Identity],
        user_id: str,
        status: AccountStatus,
    ) -> CredentialRecord:
        """
        Change le statut d'un compte (ADMIN uniquement).

        Les sessions déjà émises restent valides jusqu'à expiration: le
        statut est figé dans le token.

        Raises:
            Unauthorized: Aucune session
            Forbidden: Appelant non ADMIN
            ValidationFailed: user_id vide
            NotFound: Compte inexistant
        """
        admin = self._guard.require_admin(session)
        if not user_id or not user_id.strip():
            raise ValidationFailed("user_id is required")

        record = await self._find_record(user_id.strip())
        previous = record.status
        await self._timeouts.run(self._store.update_status(record.user_id, status), "update_status")
        record.status = status

        if self._cache is not None:
            self._cache.invalidate(record.email)

        self._logger.info(
            "Account status changed",
            actor_id=admin.user_id,
            target_user_id=record.user_id,
            previous=previous.value,
            status=status.value,
        )
        await self._emit(
            AuditEventType.USER_STATUS_CHANGE,
            admin.user_id,
            f"status_change:{previous.value}->{status.value}",
            resource_id=record.user_id,
            metadata={"email": record.email},
        )
        return record

    async def toggle_status(self, session: Optional[Identity], user_id: str) -> CredentialRecord:
        """Bascule ACTIVE <-> INACTIVE."""
        self._guard.require_admin(session)
        record = await self._find_record(user_id)
        target = AccountStatus.INACTIVE if record.status == AccountStatus.ACTIVE else AccountStatus.ACTIVE
        return await self.set_status(session, record.user_id, target)

    async def _find_record(self, user_id: str) -> CredentialRecord:
        record = await self._timeouts.run(self._store.find_by_id(user_id), "find_by_id")
        if record is None:
            raise NotFound(f"user {user_id} not found")
        return record

    async def _emit(
        self,
        event_type: AuditEventType,
        actor_id: str,
        action: str,
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self._audit is None:
            return
        try:
            await self._audit.emit_event(event_type, actor_id, action, resource_id, metadata)
        except AuditEmitterError as e:
            self._logger.error("Audit event dropped", action=action, error=str(e))


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Lecture de header insensible à la casse."""
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None
