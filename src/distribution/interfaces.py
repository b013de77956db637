"""
Distribution - Interfaces

Affectation des PDF aux distributeurs et machine d'états lecture/notification.

Invariants:
    DIST_001: PENDING -> DONE une seule fois, sur téléchargement autorisé
    DIST_002: read_flag ne régresse jamais
    DIST_003: Visibilité ALL dérivée, sans lignes de jointure
    DIST_004: Transition et marquage notifications atomiques
    DIST_005: mark_read limité au distributeur propriétaire
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, AsyncContextManager, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from ..auth.interfaces import Identity


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class AssignedGroup(Enum):
    """Cible d'une affectation."""

    SINGLE = "SINGLE"
    MULTIPLE = "MULTIPLE"
    ALL = "ALL"


class AssignmentStatus(Enum):
    PENDING = "PENDING"
    DONE = "DONE"


class DistributionState(Enum):
    """État d'un couple (pdf, distributeur)."""

    NOT_VISIBLE = "NOT_VISIBLE"
    PENDING = "PENDING"
    DONE = "DONE"


@dataclass
class Assignment:
    """
    PDF affecté.

    Attributes:
        pdf_id: Identifiant du PDF
        file_name: Nom du fichier
        assigned_group: SINGLE, MULTIPLE ou ALL
        uploaded_by: user_id de l'admin émetteur
        assigned_distributor_id: Premier destinataire (SINGLE/MULTIPLE)
        recipient_ids: Tous les destinataires d'une affectation MULTIPLE
        status: PENDING jusqu'au premier téléchargement éligible
    """

    pdf_id: str
    file_name: str
    assigned_group: AssignedGroup
    uploaded_by: str
    assigned_distributor_id: Optional[str] = None
    recipient_ids: Tuple[str, ...] = ()
    status: AssignmentStatus = AssignmentStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class Notification:
    """Notification in-app d'un distributeur pour un PDF."""

    notification_id: str
    pdf_id: str
    distributor_id: str
    title: str = ""
    message: str = ""
    read_flag: bool = False
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class DownloadGrant:
    """
    Autorisation de téléchargement.

    Attributes:
        assignment: Affectation relue après transition
        identity: Acteur autorisé
        distributor_id: Distributeur résolu (None pour un admin)
        status_transitioned: True si ce téléchargement a fait PENDING -> DONE
        notifications_marked: Nombre de notifications passées à lues
    """

    assignment: Assignment
    identity: "Identity"
    distributor_id: Optional[str] = None
    status_transitioned: bool = False
    notifications_marked: int = 0


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IResourceStore(ABC):
    """Store externe des PDF, affectations, notifications et distributeurs."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """
        Unité atomique: toutes les écritures du bloc ou aucune.

        Example:
            async with store.transaction():
                await store.update_assignment_status(pdf_id, AssignmentStatus.DONE)
        """
        pass

    @abstractmethod
    async def find_assignment(self, pdf_id: str) -> Optional[Assignment]:
        pass

    @abstractmethod
    async def list_assignments(self) -> List[Assignment]:
        pass

    @abstractmethod
    async def create_assignment(self, assignment: Assignment) -> Assignment:
        pass

    @abstractmethod
    async def update_assignment_status(self, pdf_id: str, status: AssignmentStatus) -> None:
        pass

    @abstractmethod
    async def find_notification(self, notification_id: str) -> Optional[Notification]:
        pass

    @abstractmethod
    async def find_notifications(
        self, pdf_id: str, distributor_id: str, read_flag: Optional[bool] = False
    ) -> List[Notification]:
        """Notifications d'un couple (pdf, distributeur), filtrées par read_flag (None = toutes)."""
        pass

    @abstractmethod
    async def list_unread_notification_ids(self, distributor_id: Optional[str] = None) -> List[str]:
        """Notifications non lues d'un distributeur, ou de tous si None."""
        pass

    @abstractmethod
    async def list_notifications(
        self, distributor_id: Optional[str], read_flag: Optional[bool] = None
    ) -> List[Notification]:
        """
        Notifications d'un distributeur (tous si None), plus récentes d'abord.

        read_flag filtre sur l'état de lecture quand il est fourni.
        """
        pass

    @abstractmethod
    async def create_notifications(self, notifications: Sequence[Notification]) -> int:
        pass

    @abstractmethod
    async def mark_notifications_read(self, notification_ids: Sequence[str]) -> int:
        """Passe read_flag à True. Retourne le nombre effectivement modifié."""
        pass

    @abstractmethod
    async def find_distributor_id_by_email(self, email: str) -> Optional[str]:
        pass

    @abstractmethod
    async def list_active_distributor_ids(self) -> List[str]:
        pass


class IDistributionStateMachine(ABC):
    """Interface machine d'états de distribution."""

    @abstractmethod
    def state_for(self, assignment: Assignment, distributor_id: Optional[str]) -> DistributionState:
        pass

    @abstractmethod
    async def authorize_download(self, identity: "Identity", pdf_id: str) -> DownloadGrant:
        """
        Raises:
            NotFound: PDF inexistant
            Forbidden: Distributeur non éligible
            StoreUnavailable: Resource Store indisponible
        """
        pass

    @abstractmethod
    async def mark_read(self, notification_id: str, acting_distributor_id: str) -> Notification:
        """
        Raises:
            NotFound: Notification absente ou d'un autre distributeur
        """
        pass
