"""
Stores en mémoire

Implémentations MVP des interfaces ICredentialStore et IResourceStore.
"""

from .credential_store import InMemoryCredentialStore
from .resource_store import InMemoryResourceStore, DistributorRecord

__all__ = [
    "InMemoryCredentialStore",
    "InMemoryResourceStore",
    "DistributorRecord",
]
