"""
Stores: In-Memory Credential Store

Comptes utilisateurs et hashes de mots de passe.

Note:
    Stockage en mémoire (MVP). Un store persistant implémente la même
    interface ICredentialStore.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from ..auth.interfaces import AccountStatus, CredentialRecord, ICredentialStore
from ..core.errors import NotFound, ValidationFailed


class InMemoryCredentialStore(ICredentialStore):
    """
    Credential Store en mémoire.

    Les lectures renvoient des copies: un appelant ne modifie jamais
    l'enregistrement stocké sans passer par le store.

    Example:
        store = InMemoryCredentialStore()
        store.add(CredentialRecord("u-1", "admin@example.com", Role.ADMIN, verifier.hash("pw")))
    """

    def __init__(self) -> None:
        self._records: Dict[str, CredentialRecord] = {}
        self._by_email: Dict[str, str] = {}  # email normalisé -> user_id

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    def add(self, record: CredentialRecord) -> CredentialRecord:
        """
        Ajoute un compte.

        Raises:
            ValidationFailed: user_id ou email déjà utilisé
        """
        email_key = self._normalize_email(record.email)
        if record.user_id in self._records:
            raise ValidationFailed(f"user {record.user_id} already exists")
        if email_key in self._by_email:
            raise ValidationFailed(f"email {record.email} already registered")
        self._records[record.user_id] = replace(record)
        self._by_email[email_key] = record.user_id
        return replace(record)

    def list_records(self) -> List[CredentialRecord]:
        return [replace(r) for r in self._records.values()]

    async def find_by_email(self, email: str) -> Optional[CredentialRecord]:
        if not email:
            return None
        user_id = self._by_email.get(self._normalize_email(email))
        if user_id is None:
            return None
        return replace(self._records[user_id])

    async def find_by_id(self, user_id: str) -> Optional[CredentialRecord]:
        record = self._records.get(user_id)
        return replace(record) if record else None

    async def update_status(self, user_id: str, status: AccountStatus) -> None:
        record = self._records.get(user_id)
        if record is None:
            raise NotFound(f"user {user_id} not found")
        record.status = status

    async def record_login(self, user_id: str, at: datetime) -> None:
        record = self._records.get(user_id)
        if record is None:
            raise NotFound(f"user {user_id} not found")
        record.last_login = at
