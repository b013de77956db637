"""
Authentification & Autorisation

Invariants couverts:
- AUTH_001-006 (Token, mots de passe, login)
- SESS_001-005 (Cookie de session, logout, révocation)
- ACL_001, ACL_003, ACL_004 (Rôles, propriété, fail-closed)
"""

from .interfaces import (
    # Enums
    Role,
    AccountStatus,
    # Data classes
    Identity,
    TokenClaims,
    CredentialRecord,
    SessionCookie,
    LoginResult,
    # Interfaces
    ICredentialStore,
    ITokenCodec,
    ICredentialVerifier,
    ISessionManager,
    IAuthorizationGuard,
)
from .token_codec import TokenCodec
from .credential_verifier import CredentialVerifier
from .revocation_list import RevocationList, Revocation
from .authorization_guard import AuthorizationGuard
from .session_manager import SessionManager, EPOCH_EXPIRES

__all__ = [
    # Enums
    "Role",
    "AccountStatus",
    # Data classes
    "Identity",
    "TokenClaims",
    "CredentialRecord",
    "SessionCookie",
    "LoginResult",
    "Revocation",
    # Interfaces
    "ICredentialStore",
    "ITokenCodec",
    "ICredentialVerifier",
    "ISessionManager",
    "IAuthorizationGuard",
    # Implementations
    "TokenCodec",
    "CredentialVerifier",
    "RevocationList",
    "AuthorizationGuard",
    "SessionManager",
    # Constants
    "EPOCH_EXPIRES",
]
