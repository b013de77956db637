"""
Stores: In-Memory Resource Store

PDF affectés, notifications et fiches distributeurs, avec transactions.

Note:
    Stockage en mémoire (MVP). Les transactions sont sérialisées par un
    asyncio.Lock et annulées (restauration d'instantané) sur exception.
"""

import asyncio
import copy
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import AsyncIterator, Dict, List, Optional, Sequence

from ..auth.interfaces import AccountStatus
from ..core.errors import NotFound, ValidationFailed
from ..distribution.interfaces import (
    Assignment,
    AssignmentStatus,
    IResourceStore,
    Notification,
)


@dataclass
class DistributorRecord:
    """Fiche distributeur (distincte du compte utilisateur)."""

    distributor_id: str
    email: str
    name: str = ""
    status: AccountStatus = AccountStatus.ACTIVE


class InMemoryResourceStore(IResourceStore):
    """
    Resource Store en mémoire.

    Example:
        store = InMemoryResourceStore()
        store.add_distributor(DistributorRecord("d-1", "dist@example.com"))
        async with store.transaction():
            await store.update_assignment_status("pdf-1", AssignmentStatus.DONE)
    """

    def __init__(self) -> None:
        self._assignments: Dict[str, Assignment] = {}
        self._notifications: Dict[str, Notification] = {}
        self._distributors: Dict[str, DistributorRecord] = {}
        self._lock = asyncio.Lock()

    # ══════════════════════════════════════════════════════════════════════════
    # TRANSACTION
    # ══════════════════════════════════════════════════════════════════════════

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            snapshot = (
                copy.deepcopy(self._assignments),
                copy.deepcopy(self._notifications),
            )
            try:
                yield
            except BaseException:
                self._assignments, self._notifications = snapshot
                raise

    # ══════════════════════════════════════════════════════════════════════════
    # DISTRIBUTEURS
    # ══════════════════════════════════════════════════════════════════════════

    def add_distributor(self, record: DistributorRecord) -> DistributorRecord:
        """
        Raises:
            ValidationFailed: Identifiant ou email déjà utilisé
        """
        email = record.email.strip().lower()
        if record.distributor_id in self._distributors:
            raise ValidationFailed(f"distributor {record.distributor_id} already exists")
        if any(d.email.strip().lower() == email for d in self._distributors.values()):
            raise ValidationFailed(f"email {record.email} already registered")
        self._distributors[record.distributor_id] = replace(record)
        return replace(record)

    def set_distributor_status(self, distributor_id: str, status: AccountStatus) -> None:
        record = self._distributors.get(distributor_id)
        if record is None:
            raise NotFound(f"distributor {distributor_id} not found")
        record.status = status

    async def find_distributor_id_by_email(self, email: str) -> Optional[str]:
        if not email:
            return None
        wanted = email.strip().lower()
        for record in self._distributors.values():
            if record.email.strip().lower() == wanted:
                return record.distributor_id
        return None

    async def list_active_distributor_ids(self) -> List[str]:
        return [
            d.distributor_id
            for d in self._distributors.values()
            if d.status == AccountStatus.ACTIVE
        ]

    # ══════════════════════════════════════════════════════════════════════════
    # AFFECTATIONS
    # ══════════════════════════════════════════════════════════════════════════

    async def find_assignment(self, pdf_id: str) -> Optional[Assignment]:
        assignment = self._assignments.get(pdf_id)
        return replace(assignment) if assignment else None

    async def list_assignments(self) -> List[Assignment]:
        return [replace(a) for a in self._assignments.values()]

    async def create_assignment(self, assignment: Assignment) -> Assignment:
        if assignment.pdf_id in self._assignments:
            raise ValidationFailed(f"pdf {assignment.pdf_id} already exists")
        self._assignments[assignment.pdf_id] = replace(assignment)
        return replace(assignment)

    async def update_assignment_status(self, pdf_id: str, status: AssignmentStatus) -> None:
        assignment = self._assignments.get(pdf_id)
        if assignment is None:
            raise NotFound(f"pdf {pdf_id} not found")
        assignment.status = status

    # ══════════════════════════════════════════════════════════════════════════
    # NOTIFICATIONS
    # ══════════════════════════════════════════════════════════════════════════

    async def find_notification(self, notification_id: str) -> Optional[Notification]:
        notification = self._notifications.get(notification_id)
        return replace(notification) if notification else None

    async def find_notifications(
        self, pdf_id: str, distributor_id: str, read_flag: Optional[bool] = False
    ) -> List[Notification]:
        return [
            replace(n)
            for n in self._notifications.values()
            if n.pdf_id == pdf_id
            and n.distributor_id == distributor_id
            and (read_flag is None or n.read_flag == read_flag)
        ]

    async def list_unread_notification_ids(self, distributor_id: Optional[str] = None) -> List[str]:
        return [
            n.notification_id
            for n in self._notifications.values()
            if not n.read_flag and (distributor_id is None or n.distributor_id == distributor_id)
        ]

    async def list_notifications(
        self, distributor_id: Optional[str], read_flag: Optional[bool] = None
    ) -> List[Notification]:
        found = [
            replace(n)
            for n in self._notifications.values()
            if (distributor_id is None or n.distributor_id == distributor_id)
            and (read_flag is None or n.read_flag == read_flag)
        ]
        return sorted(found, key=lambda n: n.created_at, reverse=True)

    async def create_notifications(self, notifications: Sequence[Notification]) -> int:
        for notification in notifications:
            if notification.notification_id in self._notifications:
                raise ValidationFailed(f"notification {notification.notification_id} already exists")
        for notification in notifications:
            self._notifications[notification.notification_id] = replace(notification)
        return len(notifications)

    async def mark_notifications_read(self, notification_ids: Sequence[str]) -> int:
        marked = 0
        for notification_id in notification_ids:
            notification = self._notifications.get(notification_id)
            if notification is not None and not notification.read_flag:
                notification.read_flag = True
                marked += 1
        return marked
