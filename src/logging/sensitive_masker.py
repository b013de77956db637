"""
Journalisation - Sensitive Masker

Masquage automatique des données sensibles.

Invariant:
    LOG_005: Données sensibles JAMAIS en clair (masquées)
"""

import re
from typing import Any, Dict, List, Optional

from .interfaces import ISensitiveMasker


# Valeurs ressemblant à un JWT (header.payload.signature) ou à un hash bcrypt
_JWT_PATTERN = re.compile(r"^[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}$")
_BCRYPT_PATTERN = re.compile(r"^\$2[abxy]?\$\d{2}\$[./A-Za-z0-9]{53}$")


class SensitiveMasker(ISensitiveMasker):
    """
    Masquage récursif des données sensibles.

    Masque par nom de clé, et aussi toute valeur qui a la forme d'un token
    signé ou d'un hash de mot de passe, quelle que soit la clé.

    Example:
        masker = SensitiveMasker()
        safe_data = masker.mask({"password": "secret123", "email": "a@b.fr"})
        # {"password": "***MASKED***", "email": "a@b.fr"}
    """

    def __init__(self, additional_patterns: Optional[List[str]] = None) -> None:
        self._patterns: List[str] = [p.lower() for p in self.SENSITIVE_PATTERNS]
        for pattern in additional_patterns or []:
            if pattern and pattern.lower() not in self._patterns:
                self._patterns.append(pattern.lower())

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        LOG_005: Masque récursivement toutes les données sensibles.

        Args:
            data: Dictionnaire à masquer

        Returns:
            Copie avec données sensibles masquées
        """
        if not isinstance(data, dict):
            return data

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if self.is_sensitive_key(str(key)):
                result[key] = self.MASK_VALUE
            else:
                result[key] = self._mask_value(value)
        return result

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self.mask(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        if isinstance(value, str) and self.looks_like_secret(value):
            return self.MASK_VALUE
        return value

    def looks_like_secret(self, value: str) -> bool:
        """True si la valeur a la forme d'un JWT ou d'un hash bcrypt."""
        return bool(_JWT_PATTERN.match(value) or _BCRYPT_PATTERN.match(value))

    def is_sensitive_key(self, key: str) -> bool:
        """Vérification case-insensitive par sous-chaîne."""
        if not key:
            return False
        key_lower = key.lower()
        return any(pattern in key_lower for pattern in self._patterns)
