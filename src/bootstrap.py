"""
Portail Distribution PDF - Bootstrap

Assemble les composants du portail. Seul endroit où le cache d'identité
est construit: tous les consommateurs reçoivent la même instance.
"""

from dataclasses import dataclass
from typing import Optional

from .audit import AuditEmitter
from .auth import (
    AuthorizationGuard,
    CredentialVerifier,
    ICredentialStore,
    RevocationList,
    SessionManager,
    TokenCodec,
)
from .boundary import PortalApi
from .cache import IdentityCache
from .core.config_loader import ConfigIntegrityError, ConfigLoader
from .core.crypto_provider import CryptoProvider
from .core.interfaces import PortalSettings
from .distribution import DistributionStateMachine, IResourceStore
from .logging import LogConfig, StructuredLogger
from .network import TimeoutConfig, TimeoutManager
from .stores import InMemoryCredentialStore, InMemoryResourceStore


@dataclass
class Portal:
    """Composants assemblés."""

    settings: PortalSettings
    logger: StructuredLogger
    credential_store: ICredentialStore
    resource_store: IResourceStore
    codec: TokenCodec
    verifier: CredentialVerifier
    identity_cache: IdentityCache
    revocations: Optional[RevocationList]
    audit: AuditEmitter
    guard: AuthorizationGuard
    sessions: SessionManager
    distribution: DistributionStateMachine
    api: PortalApi


def build_portal(
    settings: Optional[PortalSettings] = None,
    credential_store: Optional[ICredentialStore] = None,
    resource_store: Optional[IResourceStore] = None,
    log_config: Optional[LogConfig] = None,
    logger: Optional[StructuredLogger] = None,
) -> Portal:
    """
    Construit le portail.

    Args:
        settings: Configuration (chargée via ConfigLoader si absente)
        credential_store: Store des comptes (en mémoire par défaut)
        resource_store: Store des ressources (en mémoire par défaut)
        log_config: Configuration de journalisation
        logger: Logger racine (stderr par défaut)

    Raises:
        ConfigIntegrityError: Configuration invalide
    """
    if settings is None:
        settings = ConfigLoader().load()
    if not settings.token_secret:
        raise ConfigIntegrityError("token_secret manquant")

    root = logger or StructuredLogger("portal", config=log_config)
    credential_store = credential_store or InMemoryCredentialStore()
    resource_store = resource_store or InMemoryResourceStore()

    timeouts = TimeoutManager(TimeoutConfig(request_timeout=settings.store_timeout_seconds))
    codec = TokenCodec(settings.token_secret)
    verifier = CredentialVerifier(rounds=settings.bcrypt_rounds)
    identity_cache = IdentityCache(ttl_seconds=settings.identity_cache_ttl_seconds)
    revocations = RevocationList() if settings.revocation_enabled else None
    audit = AuditEmitter(CryptoProvider())
    guard = AuthorizationGuard(logger=root.child("authorization-guard"))

    sessions = SessionManager(
        codec,
        verifier,
        credential_store,
        settings=settings,
        timeouts=timeouts,
        revocations=revocations,
        identity_cache=identity_cache,
        guard=guard,
        audit=audit,
        logger=root.child("session-manager"),
    )
    distribution = DistributionStateMachine(
        resource_store,
        guard,
        identity_cache,
        timeouts=timeouts,
        audit=audit,
        logger=root.child("distribution"),
    )
    api = PortalApi(sessions, distribution, guard, logger=root.child("portal-api"))

    root.info(
        "Portal initialized",
        environment=settings.environment.value,
        revocation_enabled=settings.revocation_enabled,
        secure_cookies=settings.use_secure_cookies,
    )

    return Portal(
        settings=settings,
        logger=root,
        credential_store=credential_store,
        resource_store=resource_store,
        codec=codec,
        verifier=verifier,
        identity_cache=identity_cache,
        revocations=revocations,
        audit=audit,
        guard=guard,
        sessions=sessions,
        distribution=distribution,
        api=api,
    )
