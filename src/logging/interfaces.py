"""
Journalisation - Interfaces

Interfaces pour logging structuré.

Invariants:
    LOG_001: Format JSON structuré obligatoire
    LOG_002: Champs obligatoires: timestamp, level, correlation_id, component, message
    LOG_003: Timestamp format ISO 8601 avec timezone UTC
    LOG_004: Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL
    LOG_005: Données sensibles JAMAIS en clair (masquées)
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LogLevel(Enum):
    """
    LOG_004: Niveaux de log standard.

    Ordre de sévérité: DEBUG < INFO < WARN < ERROR < CRITICAL
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def get_priority(cls, level: "LogLevel") -> int:
        """Retourne la priorité du niveau (plus haut = plus sévère)."""
        priorities = {
            cls.DEBUG: 0,
            cls.INFO: 1,
            cls.WARN: 2,
            cls.ERROR: 3,
            cls.CRITICAL: 4,
        }
        return priorities.get(level, 0)


@dataclass
class LogEntry:
    """LOG_002: Structure log avec champs obligatoires."""

    timestamp: str  # LOG_003: ISO 8601 UTC
    level: LogLevel  # LOG_004
    correlation_id: str
    component: str
    message: str
    extra: Dict[str, Any] = field(default_factory=dict)
    actor_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convertit en dictionnaire."""
        result = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "correlation_id": self.correlation_id,
            "component": self.component,
            "message": self.message,
        }
        if self.actor_id:
            result["actor_id"] = self.actor_id
        if self.extra:
            result["extra"] = self.extra
        return result

    def to_json(self) -> str:
        """LOG_001: Convertit en JSON structuré."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass
class LogConfig:
    """Configuration du logger structuré."""

    min_level: LogLevel = LogLevel.INFO
    include_extra: bool = True
    mask_sensitive: bool = True  # LOG_005
    max_captured_entries: int = 1000
    default_correlation_id: Optional[str] = None


class IStructuredLogger(ABC):
    """Interface logger structuré."""

    @abstractmethod
    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        LOG_001-004: Log structuré JSON.

        Returns:
            LogEntry créé ou None si filtré par niveau
        """
        pass

    @abstractmethod
    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def get_entries(self) -> List[LogEntry]:
        """Retourne les entrées de log capturées (pour tests)."""
        pass


class ISensitiveMasker(ABC):
    """
    Interface masquage données sensibles.

    Invariant:
        LOG_005: Données sensibles JAMAIS en clair
    """

    SENSITIVE_PATTERNS: List[str] = [
        "password",
        "passwd",
        "secret",
        "token",
        "jwt",
        "cookie",
        "authorization",
        "bearer",
        "credential",
        "hash",
        "api_key",
        "private_key",
    ]

    MASK_VALUE: str = "***MASKED***"

    @abstractmethod
    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """LOG_005: Masque données sensibles dans un dictionnaire."""
        pass

    @abstractmethod
    def is_sensitive_key(self, key: str) -> bool:
        """Vérifie si clé contient un pattern sensible."""
        pass
