"""
Journalisation - Structured Logger

Logger JSON structuré avec champs obligatoires.

Invariants:
    LOG_001: Format JSON structuré obligatoire
    LOG_002: Champs obligatoires: timestamp, level, correlation_id, component, message
    LOG_003: Timestamp format ISO 8601 avec timezone UTC
    LOG_004: Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL
    LOG_005: Données sensibles JAMAIS en clair (masquées)
"""

import sys
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from .interfaces import (
    ISensitiveMasker,
    IStructuredLogger,
    LogConfig,
    LogEntry,
    LogLevel,
)
from .sensitive_masker import SensitiveMasker


class MissingRequiredFieldError(Exception):
    """Champ obligatoire manquant - LOG_002."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Required field missing: {field_name} - LOG_002")


def _stderr_handler(line: str) -> None:
    print(line, file=sys.stderr)


class StructuredLogger(IStructuredLogger):
    """
    Logger JSON structuré avec champs obligatoires.

    Les entrées sont écrites via output_handler (stderr par défaut) et
    gardées dans un tampon borné pour les tests.

    Example:
        logger = StructuredLogger("session-manager")
        logger.info("Login succeeded", user_id="u-789")
    """

    def __init__(
        self,
        component: str,
        config: Optional[LogConfig] = None,
        masker: Optional[ISensitiveMasker] = None,
        output_handler: Optional[Callable[[str], None]] = _stderr_handler,
    ) -> None:
        """
        Args:
            component: Nom du composant émetteur
            config: Configuration optionnelle
            masker: Masker pour données sensibles (LOG_005)
            output_handler: Handler de sortie, None pour capture seule

        Raises:
            ValueError: Si component vide
        """
        if not component or not component.strip():
            raise ValueError("Logger component cannot be empty")

        self._component = component.strip()
        self._config = config or LogConfig()
        self._masker = masker or SensitiveMasker()
        self._output_handler = output_handler
        self._entries: Deque[LogEntry] = deque(maxlen=self._config.max_captured_entries)
        self._default_correlation_id: Optional[str] = self._config.default_correlation_id

    @property
    def component(self) -> str:
        return self._component

    @property
    def config(self) -> LogConfig:
        return self._config

    def set_default_correlation(self, correlation_id: str) -> None:
        self._default_correlation_id = correlation_id

    def child(self, component: str) -> "StructuredLogger":
        """Logger d'un sous-composant partageant config, masker et sortie."""
        child = StructuredLogger(
            component,
            config=self._config,
            masker=self._masker,
            output_handler=self._output_handler,
        )
        child._entries = self._entries
        child._default_correlation_id = self._default_correlation_id
        return child

    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        LOG_001-005: Crée log structuré JSON.

        Processus:
            1. Vérifie niveau >= min_level
            2. Génère timestamp ISO 8601 UTC (LOG_003)
            3. Résout correlation_id
            4. Masque données sensibles dans extra (LOG_005)
            5. Output JSON (LOG_001)

        Raises:
            MissingRequiredFieldError: Si message vide
        """
        if not self._should_log(level):
            return None

        if not message:
            raise MissingRequiredFieldError("message")

        resolved_correlation = correlation_id or self._default_correlation_id or str(uuid.uuid4())

        masked_extra: Dict[str, Any] = {}
        if extra and self._config.include_extra:
            if self._config.mask_sensitive:
                masked_extra = self._masker.mask(dict(extra))
            else:
                masked_extra = dict(extra)

        entry = LogEntry(
            timestamp=self._generate_timestamp(),
            level=level,
            correlation_id=resolved_correlation,
            component=self._component,
            message=message,
            extra=masked_extra,
            actor_id=actor_id,
        )

        self._entries.append(entry)

        if self._output_handler:
            self._output_handler(entry.to_json())

        return entry

    def _generate_timestamp(self) -> str:
        """LOG_003: Format 2024-12-04T14:30:00.123Z"""
        now = datetime.now(timezone.utc)
        return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

    def _should_log(self, level: LogLevel) -> bool:
        return LogLevel.get_priority(level) >= LogLevel.get_priority(self._config.min_level)

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)

    def get_entries(self) -> List[LogEntry]:
        """Entrées capturées (tests et débogage)."""
        return list(self._entries)

    def clear_entries(self) -> None:
        self._entries.clear()

    def get_entries_by_level(self, level: LogLevel) -> List[LogEntry]:
        return [e for e in self._entries if e.level == level]

    def with_context(
        self,
        correlation_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> "ContextualLogger":
        """Crée un logger avec contexte de requête pré-défini."""
        return ContextualLogger(
            self,
            correlation_id=correlation_id or self._default_correlation_id or str(uuid.uuid4()),
            actor_id=actor_id,
        )


class ContextualLogger:
    """
    Logger avec contexte pré-défini.

    Fixe correlation_id et actor_id pour toute une requête.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        correlation_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> None:
        self._logger = logger
        self._correlation_id = correlation_id
        self._actor_id = actor_id

    @property
    def correlation_id(self) -> Optional[str]:
        return self._correlation_id

    def log(self, level: LogLevel, message: str, **extra: Any) -> Optional[LogEntry]:
        return self._logger.log(
            level,
            message,
            correlation_id=self._correlation_id,
            actor_id=self._actor_id,
            **extra,
        )

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)
