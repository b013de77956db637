"""
Audit & Traçabilité

Règles couvertes:
- AUD_001 (Hachage SHA-384)
- AUD_002 (Signature ECDSA-P384)
"""
from .interfaces import IAuditEmitter, AuditEvent, AuditEventType
from .audit_emitter import AuditEmitter, AuditEmitterError

__all__ = [
    # Interfaces
    "IAuditEmitter",
    # Data classes
    "AuditEvent",
    "AuditEventType",
    # Implementations
    "AuditEmitter",
    # Exceptions
    "AuditEmitterError",
]
