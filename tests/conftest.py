"""
Portail Distribution PDF - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from src.auth.interfaces import AccountStatus, CredentialRecord, Role
from src.auth.credential_verifier import CredentialVerifier
from src.core.interfaces import Environment, PortalSettings
from src.logging import StructuredLogger
from src.stores import DistributorRecord, InMemoryCredentialStore, InMemoryResourceStore


TEST_SECRET = "test-secret-key-for-unit-tests-0123456789abcdef"
ADMIN_PASSWORD = "Admin#Pass2024"
DISTRIBUTOR_PASSWORD = "Dist#Pass2024"


class MutableClock:
    """Horloge UTC contrôlable."""

    def __init__(self, start: datetime = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class MonotonicClock:
    """Horloge monotone (secondes) contrôlable."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config_path() -> Path:
    """Chemin vers le dossier config du dépôt."""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def all_invariants() -> dict:
    """Retourne toutes les règles."""
    from src.invariants.rules import ALL_INVARIANTS
    return ALL_INVARIANTS


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def monotonic_clock() -> MonotonicClock:
    return MonotonicClock()


@pytest.fixture
def settings() -> PortalSettings:
    return PortalSettings(
        environment=Environment.TEST,
        token_secret=TEST_SECRET,
        bcrypt_rounds=4,
        store_timeout_seconds=1.0,
    )


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    """Logger sans sortie, entrées capturées."""
    return StructuredLogger("tests", output_handler=None)


@pytest.fixture(scope="session")
def verifier() -> CredentialVerifier:
    # Coût minimal pour garder les tests rapides
    return CredentialVerifier(rounds=4)


@pytest.fixture(scope="session")
def password_hashes(verifier):
    return {
        "admin": verifier.hash(ADMIN_PASSWORD),
        "distributor": verifier.hash(DISTRIBUTOR_PASSWORD),
    }


@pytest.fixture
def credential_store(password_hashes) -> InMemoryCredentialStore:
    store = InMemoryCredentialStore()
    store.add(CredentialRecord(
        user_id="u-admin",
        email="admin@example.com",
        role=Role.ADMIN,
        password_hash=password_hashes["admin"],
        full_name="Portal Admin",
    ))
    store.add(CredentialRecord(
        user_id="u-dist-1",
        email="dist1@example.com",
        role=Role.DISTRIBUTOR,
        password_hash=password_hashes["distributor"],
        full_name="Distributor One",
    ))
    store.add(CredentialRecord(
        user_id="u-dist-2",
        email="dist2@example.com",
        role=Role.DISTRIBUTOR,
        password_hash=password_hashes["distributor"],
        full_name="Distributor Two",
    ))
    store.add(CredentialRecord(
        user_id="u-inactive",
        email="inactive@example.com",
        role=Role.DISTRIBUTOR,
        password_hash=password_hashes["distributor"],
        full_name="Inactive Distributor",
        status=AccountStatus.INACTIVE,
    ))
    store.add(CredentialRecord(
        user_id="u-orphan",
        email="orphan@example.com",
        role=Role.DISTRIBUTOR,
        password_hash=password_hashes["distributor"],
        full_name="No Distributor Record",
    ))
    return store


@pytest.fixture
def resource_store() -> InMemoryResourceStore:
    store = InMemoryResourceStore()
    store.add_distributor(DistributorRecord("d-1", "dist1@example.com", "Distributor One"))
    store.add_distributor(DistributorRecord("d-2", "dist2@example.com", "Distributor Two"))
    store.add_distributor(DistributorRecord(
        "d-inactive", "inactive@example.com", "Inactive Distributor", AccountStatus.INACTIVE
    ))
    return store


@pytest.fixture
def portal(settings, credential_store, resource_store, quiet_logger):
    from src.bootstrap import build_portal
    return build_portal(
        settings,
        credential_store=credential_store,
        resource_store=resource_store,
        logger=quiet_logger,
    )
