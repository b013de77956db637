"""
Portail Distribution PDF - Règles de sécurité
Ces règles sont IMMUABLES et ne peuvent être modifiées par configuration.
"""

from enum import Enum
from typing import Final


class Severity(Enum):
    """Criticité d'une règle."""

    BLOCKING = "blocking"
    WARNING = "warning"


class Invariant:
    """Définition d'une règle de sécurité."""

    def __init__(self, id: str, rule: str, severity: Severity = Severity.BLOCKING):
        self.id = id
        self.rule = rule
        self.severity = severity

    def __repr__(self) -> str:
        return f"Invariant({self.id})"


# ══════════════════════════════════════════════════════════════════════════════
# AUTHENTIFICATION (AUTH_001-006)
# ══════════════════════════════════════════════════════════════════════════════

AUTH_001 = Invariant("AUTH_001", "Token signé HMAC-SHA256 avec secret serveur")
AUTH_002 = Invariant("AUTH_002", "Comparaison signature en temps constant")
AUTH_003 = Invariant("AUTH_003", "Expiration absolue embarquée dans le token (7 jours)")
AUTH_004 = Invariant("AUTH_004", "Erreur identique pour compte inconnu et mot de passe faux")
AUTH_005 = Invariant("AUTH_005", "Compte INACTIVE refusé même avec bon mot de passe")
AUTH_006 = Invariant("AUTH_006", "Mots de passe hachés bcrypt salé, jamais en clair")

# ══════════════════════════════════════════════════════════════════════════════
# SESSION (SESS_001-005)
# ══════════════════════════════════════════════════════════════════════════════

SESS_001 = Invariant("SESS_001", "Cookie session HttpOnly SameSite=Lax Path=/")
SESS_002 = Invariant("SESS_002", "Cookie Secure en production")
SESS_003 = Invariant("SESS_003", "Pas de Max-Age ni Expires au login (cookie de session navigateur)")
SESS_004 = Invariant("SESS_004", "Logout: cookie écrasé avec Max-Age=0")
SESS_005 = Invariant("SESS_005", "Header Bearer et cookie résolvent la même identité")

# ══════════════════════════════════════════════════════════════════════════════
# CACHE (CACHE_001-003)
# ══════════════════════════════════════════════════════════════════════════════

CACHE_001 = Invariant("CACHE_001", "Entrée plus vieille que TTL (5 min) traitée comme absente")
CACHE_002 = Invariant("CACHE_002", "Cache jamais utilisé pour dériver rôle ou statut")
CACHE_003 = Invariant("CACHE_003", "Accès concurrent sans corruption (verrou)")

# ══════════════════════════════════════════════════════════════════════════════
# CONTRÔLE D'ACCÈS (ACL_001-005)
# ══════════════════════════════════════════════════════════════════════════════

ACL_001 = Invariant("ACL_001", "401 sans session valide, 403 rôle ou propriété insuffisants")
ACL_002 = Invariant("ACL_002", "404 pour ressource inexistante quel que soit le rôle")
ACL_003 = Invariant("ACL_003", "Prédicat de propriété évalué à chaque requête, jamais caché")
ACL_004 = Invariant("ACL_004", "Fail-closed: toute incertitude refuse l'accès")
ACL_005 = Invariant("ACL_005", "Store indisponible = erreur interne, jamais une autorisation")

# ══════════════════════════════════════════════════════════════════════════════
# DISTRIBUTION (DIST_001-005)
# ══════════════════════════════════════════════════════════════════════════════

DIST_001 = Invariant("DIST_001", "PENDING vers DONE une seule fois au premier téléchargement autorisé")
DIST_002 = Invariant("DIST_002", "Notification jamais repassée de lue à non lue")
DIST_003 = Invariant("DIST_003", "Groupe ALL dérivé, visible par tout distributeur, sans lignes de jointure")
DIST_004 = Invariant("DIST_004", "Statut DONE et notifications lues appliqués atomiquement")
DIST_005 = Invariant("DIST_005", "Marquage lu limité au distributeur propriétaire (sinon 404)")

# ══════════════════════════════════════════════════════════════════════════════
# JOURNALISATION (LOG_001-005)
# ══════════════════════════════════════════════════════════════════════════════

LOG_001 = Invariant("LOG_001", "Format JSON structuré")
LOG_002 = Invariant("LOG_002", "Champs timestamp level correlation_id component message")
LOG_003 = Invariant("LOG_003", "Timestamp ISO 8601 UTC")
LOG_004 = Invariant("LOG_004", "Niveaux DEBUG INFO WARN ERROR CRITICAL")
LOG_005 = Invariant("LOG_005", "Données sensibles masquées")

# ══════════════════════════════════════════════════════════════════════════════
# AUDIT (AUD_001-002)
# ══════════════════════════════════════════════════════════════════════════════

AUD_001 = Invariant("AUD_001", "Événements d'audit hachés SHA-384")
AUD_002 = Invariant("AUD_002", "Événements d'audit signés ECDSA-P384", Severity.WARNING)


ALL_INVARIANTS: Final[dict[str, Invariant]] = {
    # AUTH (6)
    "AUTH_001": AUTH_001,
    "AUTH_002": AUTH_002,
    "AUTH_003": AUTH_003,
    "AUTH_004": AUTH_004,
    "AUTH_005": AUTH_005,
    "AUTH_006": AUTH_006,
    # SESS (5)
    "SESS_001": SESS_001,
    "SESS_002": SESS_002,
    "SESS_003": SESS_003,
    "SESS_004": SESS_004,
    "SESS_005": SESS_005,
    # CACHE (3)
    "CACHE_001": CACHE_001,
    "CACHE_002": CACHE_002,
    "CACHE_003": CACHE_003,
    # ACL (5)
    "ACL_001": ACL_001,
    "ACL_002": ACL_002,
    "ACL_003": ACL_003,
    "ACL_004": ACL_004,
    "ACL_005": ACL_005,
    # DIST (5)
    "DIST_001": DIST_001,
    "DIST_002": DIST_002,
    "DIST_003": DIST_003,
    "DIST_004": DIST_004,
    "DIST_005": DIST_005,
    # LOG (5)
    "LOG_001": LOG_001,
    "LOG_002": LOG_002,
    "LOG_003": LOG_003,
    "LOG_004": LOG_004,
    "LOG_005": LOG_005,
    # AUD (2)
    "AUD_001": AUD_001,
    "AUD_002": AUD_002,
}

# Comptage attendu par section
EXPECTED_COUNTS: Final[dict[str, int]] = {
    "AUTH": 6,
    "SESS": 5,
    "CACHE": 3,
    "ACL": 5,
    "DIST": 5,
    "LOG": 5,
    "AUD": 2,
}

TOTAL_INVARIANTS: Final[int] = len(ALL_INVARIANTS)
