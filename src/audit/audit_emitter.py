"""
Audit: Audit Emitter Implementation

Émetteur d'événements d'audit avec signature cryptographique.

Invariants:
    AUD_001: Immutabilité par hachage SHA-384
    AUD_002: Signature ECDSA-P384
"""

import base64
import hashlib
import json
import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from .interfaces import AuditEvent, AuditEventType, IAuditEmitter
from ..core.interfaces import ICryptoProvider


class AuditEmitterError(Exception):
    """Erreur émission événement audit."""

    pass


class AuditEmitter(IAuditEmitter):
    """
    Émetteur d'événements d'audit avec signature cryptographique.

    Les événements émis sont conservés dans une piste bornée en mémoire.

    Example:
        emitter = AuditEmitter(crypto_provider)
        event = await emitter.emit_event(
            AuditEventType.USER_LOGIN,
            "user-123",
            "login_success",
        )
    """

    KEY_ID: str = "audit_key"

    def __init__(self, crypto_provider: ICryptoProvider, max_events: int = 10000):
        """
        Args:
            crypto_provider: Fournisseur cryptographique pour signature
            max_events: Taille max de la piste en mémoire
        """
        self.crypto_provider = crypto_provider
        self._lock = threading.Lock()
        self._events: Deque[AuditEvent] = deque(maxlen=max_events)

    async def emit_event(
        self,
        event_type: AuditEventType,
        actor_id: str,
        action: str,
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        if not actor_id or not action:
            raise AuditEmitterError("actor_id et action sont obligatoires")

        if not isinstance(event_type, AuditEventType):
            raise AuditEmitterError(f"Type événement invalide: {event_type}")

        try:
            preliminary_event = AuditEvent(
                event_id=str(uuid.uuid4()),
                event_type=event_type,
                timestamp=datetime.now(timezone.utc),
                actor_id=actor_id,
                action=action,
                resource_id=resource_id,
                metadata=self._sanitize_metadata(metadata or {}),
            )

            # AUD_001
            event_hash = self.compute_event_hash(preliminary_event)

            # AUD_002
            signature_bytes = self.crypto_provider.sign(
                self._canonical(preliminary_event).encode("utf-8"), self.KEY_ID
            )

            signed_event = AuditEvent(
                event_id=preliminary_event.event_id,
                event_type=event_type,
                timestamp=preliminary_event.timestamp,
                actor_id=actor_id,
                action=action,
                resource_id=resource_id,
                metadata=preliminary_event.metadata,
                signature=base64.b64encode(signature_bytes).decode("utf-8"),
                hash_value=event_hash,
            )
        except AuditEmitterError:
            raise
        except Exception as e:
            raise AuditEmitterError(f"Erreur création événement audit: {str(e)}")

        with self._lock:
            self._events.append(signed_event)

        return signed_event

    def verify_event_signature(self, event: AuditEvent) -> bool:
        if not event.signature:
            return False
        try:
            signature_bytes = base64.b64decode(event.signature)
        except (ValueError, TypeError):
            return False
        return self.crypto_provider.verify_signature(
            self._canonical(event).encode("utf-8"), signature_bytes, self.KEY_ID
        )

    def compute_event_hash(self, event: AuditEvent) -> str:
        return hashlib.sha384(self._canonical(event).encode("utf-8")).hexdigest()

    def get_events(self, event_type: Optional[AuditEventType] = None) -> List[AuditEvent]:
        with self._lock:
            events = list(self._events)
        if event_type is None:
            return events
        return [e for e in events if e.event_type == event_type]

    def _sanitize_metadata(self, metadata: Dict[str, Any]) -> Dict[str, Any]:
        """Ne garde que des scalaires et listes de scalaires, tailles bornées."""
        clean: Dict[str, Any] = {}
        for key, value in metadata.items():
            if not isinstance(key, str) or len(key) > 100:
                continue
            if isinstance(value, str):
                clean[key] = value[:1000]
            elif isinstance(value, (int, float, bool)) or value is None:
                clean[key] = value
            elif isinstance(value, (list, tuple)):
                clean[key] = [v for v in list(value)[:50] if isinstance(v, (str, int, float, bool))]
        return clean

    def _canonical(self, event: AuditEvent) -> str:
        # Ordre fixe, hors signature et hash
        data = {
            "event_id": event.event_id,
            "event_type": event.event_type.value,
            "timestamp": event.timestamp.isoformat(),
            "actor_id": event.actor_id,
            "action": event.action,
            "resource_id": event.resource_id,
            "metadata": event.metadata,
        }
        return json.dumps(data, sort_keys=True, separators=(",", ":"))
