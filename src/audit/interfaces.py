"""
Audit - Interfaces

Contrats du journal d'audit des actions du portail (connexions,
téléchargements, changements de statut, affectations).

Invariants:
    AUD_001: Événements d'audit hachés SHA-384
    AUD_002: Événements d'audit signés ECDSA-P384
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class AuditEventType(Enum):
    """Types d'événements d'audit."""

    # Session
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    FAILED_AUTH = "failed_auth"
    SESSION_REVOKED = "session_revoked"

    # Comptes
    USER_STATUS_CHANGE = "user_status_change"

    # Distribution
    PDF_ASSIGNED = "pdf_assigned"
    PDF_DOWNLOADED = "pdf_downloaded"
    NOTIFICATION_READ = "notification_read"

    # Refus d'accès
    ACCESS_DENIED = "access_denied"


@dataclass(frozen=True)
class AuditEvent:
    """
    Événement d'audit signé.

    Immutable pour garantir intégrité après signature.
    """
    event_id: str
    event_type: AuditEventType
    timestamp: datetime
    actor_id: str
    action: str
    resource_id: Optional[str]
    metadata: Dict[str, Any]
    signature: Optional[str] = None  # ECDSA-P384 base64
    hash_value: Optional[str] = None  # SHA-384 hex


class IAuditEmitter(ABC):
    """
    Interface émetteur d'événements d'audit.

    Responsabilités:
        - Création événements audit
        - Hachage SHA-384 (AUD_001)
        - Signature cryptographique (AUD_002)
    """

    @abstractmethod
    async def emit_event(
        self,
        event_type: AuditEventType,
        actor_id: str,
        action: str,
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """
        Émet un événement d'audit signé.

        Raises:
            AuditEmitterError: Erreur création/signature
        """
        pass

    @abstractmethod
    def verify_event_signature(self, event: AuditEvent) -> bool:
        pass

    @abstractmethod
    def compute_event_hash(self, event: AuditEvent) -> str:
        pass

    @abstractmethod
    def get_events(self, event_type: Optional[AuditEventType] = None) -> List[AuditEvent]:
        """Piste d'audit en mémoire, filtrable par type."""
        pass
