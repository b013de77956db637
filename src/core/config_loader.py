"""
Portail Distribution PDF - Config Loader Implementation
Charge la configuration depuis fichiers YAML et variables d'environnement.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from .interfaces import Environment, IConfigLoader, PortalSettings


# Secret de repli, refusé en production
FALLBACK_TOKEN_SECRET = "fallback-secret-key-change-in-production"

ENV_TOKEN_SECRET = "PORTAL_TOKEN_SECRET"
ENV_ENVIRONMENT = "PORTAL_ENV"


class ConfigIntegrityError(Exception):
    """Erreur d'intégrité de configuration."""

    pass


class ConfigLoader(IConfigLoader):
    """Chargement de la configuration depuis fichiers YAML."""

    def __init__(self, configs_path: str = "config", environ: Optional[Mapping[str, str]] = None):
        self.configs_path = Path(configs_path)
        self._environ = environ if environ is not None else os.environ

    def load_raw(self, name: str = "portal") -> Dict[str, Any]:
        """
        Charge le YAML brut.

        Un fichier absent donne une configuration vide (valeurs par défaut).

        Raises:
            ConfigIntegrityError: Si YAML illisible ou pas un objet
        """
        config_file = self.configs_path / f"{name}.yaml"

        if not config_file.exists():
            return {}

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigIntegrityError(f"Erreur de parsing YAML: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"Erreur de lecture fichier: {e}")

        if config is None:
            return {}

        if not isinstance(config, dict):
            raise ConfigIntegrityError("Configuration doit être un objet YAML")

        return config

    def load(self, name: str = "portal") -> PortalSettings:
        """
        Charge et valide la configuration.

        Ordre de priorité: variables d'environnement > fichier YAML > défauts.

        Raises:
            ConfigIntegrityError: Si contenu invalide ou secret absent en production
        """
        raw = self.load_raw(name)
        raw.update(self._environment_overrides())

        try:
            settings = PortalSettings(**raw)
        except ValidationError as e:
            raise ConfigIntegrityError(f"Configuration invalide: {e}")

        return self._resolve_secret(settings)

    def _environment_overrides(self) -> Dict[str, Any]:
        """Extrait les surcharges depuis l'environnement."""
        overrides: Dict[str, Any] = {}

        secret = self._environ.get(ENV_TOKEN_SECRET)
        if secret:
            overrides["token_secret"] = secret

        environment = self._environ.get(ENV_ENVIRONMENT)
        if environment:
            overrides["environment"] = environment.strip().lower()

        return overrides

    def _resolve_secret(self, settings: PortalSettings) -> PortalSettings:
        """AUTH_001: Secret obligatoire en production, repli ailleurs."""
        if settings.token_secret:
            return settings

        if settings.environment == Environment.PRODUCTION:
            raise ConfigIntegrityError(f"{ENV_TOKEN_SECRET} obligatoire en production")

        return settings.model_copy(update={"token_secret": FALLBACK_TOKEN_SECRET})
