"""
Portail Distribution PDF - Core Interfaces
Contrats à implémenter pour le module Core.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class Environment(Enum):
    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


class PortalSettings(BaseModel):
    """Configuration du portail (fichier YAML + surcharges environnement)."""

    environment: Environment = Environment.DEVELOPMENT
    token_secret: Optional[str] = None
    token_ttl_seconds: int = Field(default=7 * 24 * 3600, gt=0)  # AUTH_003: 7 jours
    cookie_name: str = "auth_token"
    secure_cookies: Optional[bool] = None  # None = Secure seulement en production
    identity_cache_ttl_seconds: float = Field(default=300.0, gt=0)  # CACHE_001: 5 min
    store_timeout_seconds: float = Field(default=5.0, gt=0, le=30.0)
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)
    revocation_enabled: bool = True

    @field_validator("cookie_name")
    @classmethod
    def _cookie_name_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("cookie_name cannot be empty")
        return value.strip()

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def use_secure_cookies(self) -> bool:
        """SESS_002: Secure en production sauf configuration explicite."""
        if self.secure_cookies is not None:
            return self.secure_cookies
        return self.is_production


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge la configuration du portail."""

    @abstractmethod
    def load(self, name: str = "portal") -> PortalSettings:
        """
        Charge et valide la configuration.

        Raises:
            ConfigIntegrityError: Si fichier absent ou contenu invalide
        """
        pass

    @abstractmethod
    def load_raw(self, name: str = "portal") -> dict[str, Any]:
        """Charge le YAML brut sans validation."""
        pass


class ICryptoProvider(ABC):
    """Opérations cryptographiques (signature des événements d'audit)."""

    @abstractmethod
    def sign(self, data: bytes, key_id: str) -> bytes:
        """
        Signe des données avec ECDSA-P384.

        Args:
            data: Données à signer
            key_id: ID de la clé

        Returns:
            Signature DER-encoded
        """
        pass

    @abstractmethod
    def verify_signature(self, data: bytes, signature: bytes, key_id: str) -> bool:
        """Vérifie une signature ECDSA-P384."""
        pass

    @abstractmethod
    def hash(self, data: bytes) -> str:
        """
        Calcule hash SHA-384.

        Returns:
            Hash hex string (96 caractères)
        """
        pass
