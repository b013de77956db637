"""
Distribution: State Machine

Éligibilité au téléchargement, transition PENDING -> DONE, cycle
lu/non lu des notifications et affectation des PDF.

Invariants:
    DIST_001: PENDING -> DONE une seule fois, sur téléchargement autorisé
    DIST_002: read_flag ne régresse jamais
    DIST_003: Visibilité ALL dérivée, sans lignes de jointure
    DIST_004: Transition et marquage notifications dans une même transaction
    DIST_005: mark_read limité au distributeur propriétaire
    ACL_002: PDF inexistant = NotFound pour tous les rôles
    ACL_003: Propriété évaluée à chaque requête
"""

import uuid
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .interfaces import (
    AssignedGroup,
    Assignment,
    AssignmentStatus,
    DistributionState,
    DownloadGrant,
    IDistributionStateMachine,
    IResourceStore,
    Notification,
)
from ..audit import AuditEmitterError, AuditEventType, IAuditEmitter
from ..auth.interfaces import IAuthorizationGuard, Identity, Role
from ..cache import IIdentityCache
from ..core.errors import Forbidden, NotFound, ValidationFailed
from ..logging import StructuredLogger
from ..network import ITimeoutManager, TimeoutManager


NOTIFICATION_TITLE = "New PDF Available"


class DistributionStateMachine(IDistributionStateMachine):
    """
    Machine d'états de distribution.

    L'identifiant distributeur d'une session est résolu par email via le
    cache d'identité (miss -> Resource Store -> insertion). Le rôle vient
    toujours de la session.

    Conformité:
        DIST_004: Relecture de l'affectation dans la transaction, la
                  transition n'a lieu que si le statut est encore PENDING
        ACL_004: Toute erreur store remonte, aucune décision par défaut

    Example:
        machine = DistributionStateMachine(store, guard, cache)
        grant = await machine.authorize_download(identity, pdf_id)
        if grant.status_transitioned:
            ...
    """

    def __init__(
        self,
        resource_store: IResourceStore,
        guard: IAuthorizationGuard,
        identity_cache: IIdentityCache,
        timeouts: Optional[ITimeoutManager] = None,
        audit: Optional[IAuditEmitter] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self._store = resource_store
        self._guard = guard
        self._cache = identity_cache
        self._timeouts = timeouts or TimeoutManager()
        self._audit = audit
        self._logger = logger or StructuredLogger("distribution")

    # ══════════════════════════════════════════════════════════════════════════
    # ÉTAT
    # ══════════════════════════════════════════════════════════════════════════

    def state_for(self, assignment: Assignment, distributor_id: Optional[str]) -> DistributionState:
        """
        État d'un couple (pdf, distributeur).

        Returns:
            NOT_VISIBLE si le distributeur n'est pas destinataire, sinon
            le statut de l'affectation
        """
        if not self._is_recipient(assignment, distributor_id):
            return DistributionState.NOT_VISIBLE
        if assignment.status == AssignmentStatus.DONE:
            return DistributionState.DONE
        return DistributionState.PENDING

    async def resolve_distributor_id(self, identity: Identity) -> Optional[str]:
        """Identifiant distributeur de la session (cache, puis store)."""
        email = identity.email
        return await self._cache.get_or_load(
            email,
            lambda: self._timeouts.run(
                self._store.find_distributor_id_by_email(email), "find_distributor_id_by_email"
            ),
        )

    # ══════════════════════════════════════════════════════════════════════════
    # TÉLÉCHARGEMENT
    # ══════════════════════════════════════════════════════════════════════════

    async def authorize_download(self, identity: Optional[Identity], pdf_id: str) -> DownloadGrant:
        """
        Autorise le téléchargement d'un PDF et applique ses effets.

        Ordre des contrôles: session, existence du PDF, rôle, propriété.
        Un ADMIN est toujours autorisé, sans effet de bord.

        Args:
            identity: Identité de la session
            pdf_id: PDF demandé

        Returns:
            DownloadGrant (transition et nombre de notifications marquées)

        Raises:
            Unauthorized: Aucune session
            NotFound: PDF inexistant (ACL_002)
            Forbidden: Rôle inconnu, pas de fiche distributeur ou non destinataire
            StoreUnavailable: Resource Store indisponible
        """
        identity = self._guard.require_authenticated(identity)

        assignment = await self._find_assignment(pdf_id)

        if identity.role == Role.ADMIN:
            return DownloadGrant(assignment=assignment, identity=identity)

        distributor_id = await self.resolve_distributor_id(identity)
        if distributor_id is None:
            await self._deny(identity, pdf_id, "no_distributor_record")

        if not self._guard.require_ownership(identity, assignment, distributor_id):
            await self._deny(identity, pdf_id, "not_a_recipient")

        async with self._store.transaction():
            current = await self._find_assignment(pdf_id)

            transitioned = False
            if current.status == AssignmentStatus.PENDING:
                await self._run(
                    self._store.update_assignment_status(pdf_id, AssignmentStatus.DONE),
                    "update_assignment_status",
                )
                current = replace(current, status=AssignmentStatus.DONE)
                transitioned = True

            unread = await self._run(
                self._store.find_notifications(pdf_id, distributor_id, read_flag=False),
                "find_notifications",
            )
            marked = 0
            if unread:
                marked = await self._run(
                    self._store.mark_notifications_read([n.notification_id for n in unread]),
                    "mark_notifications_read",
                )

        self._logger.info(
            "PDF download authorized",
            actor_id=identity.user_id,
            pdf_id=pdf_id,
            status_transitioned=transitioned,
            notifications_marked=marked,
        )
        await self._emit(
            AuditEventType.PDF_DOWNLOADED,
            identity.user_id,
            "pdf_download",
            resource_id=pdf_id,
            metadata={"distributor_id": distributor_id, "status_transitioned": transitioned},
        )

        return DownloadGrant(
            assignment=current,
            identity=identity,
            distributor_id=distributor_id,
            status_transitioned=transitioned,
            notifications_marked=marked,
        )

    async def _deny(self, identity: Identity, pdf_id: str, reason: str) -> None:
        self._logger.warn("PDF download denied", actor_id=identity.user_id, pdf_id=pdf_id, reason=reason)
        await self._emit(
            AuditEventType.ACCESS_DENIED,
            identity.user_id,
            "pdf_download_denied",
            resource_id=pdf_id,
            metadata={"reason": reason},
        )
        raise Forbidden(reason)

    # ══════════════════════════════════════════════════════════════════════════
    # NOTIFICATIONS
    # ══════════════════════════════════════════════════════════════════════════

    async def mark_read(self, notification_id: str, acting_distributor_id: str) -> Notification:
        """
        Marque une notification lue pour son propriétaire.

        Une notification d'un autre distributeur est signalée NotFound,
        sans révéler son existence (DIST_005).

        Raises:
            NotFound: Notification absente ou non possédée
        """
        if not notification_id or not acting_distributor_id:
            raise NotFound("notification not found")

        async with self._store.transaction():
            notification = await self._run(
                self._store.find_notification(notification_id), "find_notification"
            )
            if notification is None or notification.distributor_id != acting_distributor_id:
                raise NotFound(f"notification {notification_id} not found")

            if not notification.read_flag:
                await self._run(
                    self._store.mark_notifications_read([notification_id]), "mark_notifications_read"
                )

        await self._emit(
            AuditEventType.NOTIFICATION_READ,
            acting_distributor_id,
            "notification_read",
            resource_id=notification_id,
        )
        return replace(notification, read_flag=True)

    async def read_notification(self, identity: Optional[Identity], notification_id: str) -> Notification:
        """
        mark_read depuis une session.

        Un ADMIN peut marquer toute notification existante. Un distributeur
        sans fiche distributeur obtient NotFound.
        """
        identity = self._guard.require_authenticated(identity)

        if identity.role == Role.ADMIN:
            async with self._store.transaction():
                notification = await self._run(
                    self._store.find_notification(notification_id), "find_notification"
                )
                if notification is None:
                    raise NotFound(f"notification {notification_id} not found")
                if not notification.read_flag:
                    await self._run(
                        self._store.mark_notifications_read([notification_id]), "mark_notifications_read"
                    )
            return replace(notification, read_flag=True)

        distributor_id = await self.resolve_distributor_id(identity)
        if distributor_id is None:
            raise NotFound("distributor not found")
        return await self.mark_read(notification_id, distributor_id)

    async def mark_many_read(self, notification_ids: Iterable[str], distributor_id: str) -> int:
        """
        Marque lues les notifications listées appartenant au distributeur.

        Les identifiants inconnus ou d'un autre distributeur sont ignorés.

        Returns:
            Nombre de notifications passées à lues
        """
        ids = _unique(notification_ids)
        if not distributor_id:
            raise ValidationFailed("distributor_id is required")
        if not ids:
            return 0

        async with self._store.transaction():
            owned: List[str] = []
            for notification_id in ids:
                notification = await self._run(
                    self._store.find_notification(notification_id), "find_notification"
                )
                if (
                    notification is not None
                    and notification.distributor_id == distributor_id
                    and not notification.read_flag
                ):
                    owned.append(notification_id)
            marked = await self._mark(owned)

        self._logger.info("Notifications marked read", distributor_id=distributor_id, count=marked)
        return marked

    async def mark_all_read(self, distributor_id: str) -> int:
        """Marque lues toutes les notifications non lues du distributeur."""
        if not distributor_id:
            raise ValidationFailed("distributor_id is required")
        async with self._store.transaction():
            unread = await self._run(
                self._store.list_unread_notification_ids(distributor_id), "list_unread_notification_ids"
            )
            marked = await self._mark(unread)
        self._logger.info("All notifications marked read", distributor_id=distributor_id, count=marked)
        return marked

    async def mark_all_read_as_admin(self, session: Optional[Identity]) -> int:
        """Marque lues toutes les notifications non lues, tous distributeurs (ADMIN)."""
        admin = self._guard.require_admin(session)
        async with self._store.transaction():
            unread = await self._run(
                self._store.list_unread_notification_ids(None), "list_unread_notification_ids"
            )
            marked = await self._mark(unread)
        self._logger.info("All notifications marked read by admin", actor_id=admin.user_id, count=marked)
        return marked

    async def mark_many_read_as_admin(
        self, session: Optional[Identity], notification_ids: Iterable[str]
    ) -> int:
        """Marque lues les notifications listées, quel que soit le propriétaire (ADMIN)."""
        admin = self._guard.require_admin(session)
        ids = _unique(notification_ids)
        async with self._store.transaction():
            marked = await self._mark(ids)
        self._logger.info("Notifications marked read by admin", actor_id=admin.user_id, count=marked)
        return marked

    async def unread_count(self, distributor_id: str) -> int:
        unread = await self._run(
            self._store.list_unread_notification_ids(distributor_id), "list_unread_notification_ids"
        )
        return len(unread)

    async def list_notifications(
        self, session: Optional[Identity], read_flag: Optional[bool] = None
    ) -> List[Notification]:
        """
        Boîte de réception de la session, plus récentes en premier.

        Un distributeur ne voit que ses propres notifications et obtient
        NotFound sans fiche distributeur. Un ADMIN voit tout.
        """
        identity = self._guard.require_authenticated(session)

        distributor_id = None
        if identity.role != Role.ADMIN:
            distributor_id = await self.resolve_distributor_id(identity)
            if distributor_id is None:
                raise NotFound("distributor not found")

        return await self._run(
            self._store.list_notifications(distributor_id, read_flag), "list_notifications"
        )

    async def _mark(self, notification_ids: Sequence[str]) -> int:
        if not notification_ids:
            return 0
        return await self._run(
            self._store.mark_notifications_read(list(notification_ids)), "mark_notifications_read"
        )

    # ══════════════════════════════════════════════════════════════════════════
    # AFFECTATION
    # ══════════════════════════════════════════════════════════════════════════

    async def assign(
        self,
        session: Optional[Identity],
        pdf_id: str,
        file_name: str,
        group: AssignedGroup,
        distributor_ids: Iterable[str] = (),
    ) -> Assignment:
        """
        Affecte un PDF et crée les notifications in-app (ADMIN).

        ALL cible les distributeurs ACTIVE au moment de l'affectation; la
        visibilité reste dérivée pour ceux créés ensuite (DIST_003).
        MULTIPLE conserve tous les destinataires dans recipient_ids.

        Raises:
            Unauthorized: Aucune session
            Forbidden: Appelant non ADMIN
            ValidationFailed: Champs manquants, cibles incohérentes ou PDF déjà affecté
        """
        admin = self._guard.require_admin(session)

        pdf_id = (pdf_id or "").strip()
        file_name = (file_name or "").strip()
        if not pdf_id or not file_name:
            raise ValidationFailed("pdf_id and file_name are required")
        if not isinstance(group, AssignedGroup):
            raise ValidationFailed(f"invalid group: {group}")

        targets = _unique(distributor_ids)
        if group == AssignedGroup.SINGLE and len(targets) != 1:
            raise ValidationFailed("SINGLE assignment requires exactly one distributor")
        if group == AssignedGroup.MULTIPLE and not targets:
            raise ValidationFailed("MULTIPLE assignment requires at least one distributor")

        async with self._store.transaction():
            existing = await self._run(self._store.find_assignment(pdf_id), "find_assignment")
            if existing is not None:
                raise ValidationFailed(f"pdf {pdf_id} already assigned")

            if group == AssignedGroup.ALL:
                targets = await self._run(
                    self._store.list_active_distributor_ids(), "list_active_distributor_ids"
                )
                assignment = Assignment(
                    pdf_id=pdf_id,
                    file_name=file_name,
                    assigned_group=group,
                    uploaded_by=admin.user_id,
                )
            else:
                assignment = Assignment(
                    pdf_id=pdf_id,
                    file_name=file_name,
                    assigned_group=group,
                    uploaded_by=admin.user_id,
                    assigned_distributor_id=targets[0],
                    recipient_ids=tuple(targets) if group == AssignedGroup.MULTIPLE else (),
                )

            created = await self._run(self._store.create_assignment(assignment), "create_assignment")
            await self._run(
                self._store.create_notifications(
                    [self._new_notification(pdf_id, file_name, d) for d in targets]
                ),
                "create_notifications",
            )

        self._logger.info(
            "PDF assigned",
            actor_id=admin.user_id,
            pdf_id=pdf_id,
            group=group.value,
            recipients=len(targets),
        )
        await self._emit(
            AuditEventType.PDF_ASSIGNED,
            admin.user_id,
            f"pdf_assigned:{group.value}",
            resource_id=pdf_id,
            metadata={"file_name": file_name, "recipients": len(targets)},
        )
        return created

    async def list_visible(
        self, session: Optional[Identity], status: Optional[AssignmentStatus] = None
    ) -> List[Assignment]:
        """
        Affectations visibles par la session, plus récentes en premier.

        Un distributeur sans fiche distributeur ne voit rien.
        """
        identity = self._guard.require_authenticated(session)
        assignments = await self._run(self._store.list_assignments(), "list_assignments")

        if identity.role != Role.ADMIN:
            distributor_id = await self.resolve_distributor_id(identity)
            if distributor_id is None:
                return []
            assignments = [
                a for a in assignments if self._guard.require_ownership(identity, a, distributor_id)
            ]

        if status is not None:
            assignments = [a for a in assignments if a.status == status]
        return sorted(assignments, key=lambda a: a.created_at, reverse=True)

    # ══════════════════════════════════════════════════════════════════════════
    # INTERNES
    # ══════════════════════════════════════════════════════════════════════════

    async def _find_assignment(self, pdf_id: str) -> Assignment:
        if not pdf_id:
            raise NotFound("pdf not found")
        assignment = await self._run(self._store.find_assignment(pdf_id), "find_assignment")
        if assignment is None:
            raise NotFound(f"pdf {pdf_id} not found")
        return assignment

    async def _run(self, awaitable, operation: str):
        return await self._timeouts.run(awaitable, operation)

    @staticmethod
    def _is_recipient(assignment: Assignment, distributor_id: Optional[str]) -> bool:
        if assignment.assigned_group == AssignedGroup.ALL:
            return True
        if not distributor_id:
            return False
        if assignment.assigned_distributor_id == distributor_id:
            return True
        return (
            assignment.assigned_group == AssignedGroup.MULTIPLE
            and distributor_id in assignment.recipient_ids
        )

    @staticmethod
    def _new_notification(pdf_id: str, file_name: str, distributor_id: str) -> Notification:
        return Notification(
            notification_id=uuid.uuid4().hex,
            pdf_id=pdf_id,
            distributor_id=distributor_id,
            title=NOTIFICATION_TITLE,
            message=f"{file_name} has been shared with you",
        )

    async def _emit(
        self,
        event_type: AuditEventType,
        actor_id: str,
        action: str,
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self._audit is None:
            return
        try:
            await self._audit.emit_event(event_type, actor_id, action, resource_id, metadata)
        except AuditEmitterError as e:
            self._logger.error("Audit event dropped", action=action, error=str(e))


def _unique(values: Iterable[str]) -> List[str]:
    """Dédoublonne en conservant l'ordre, ignore les vides."""
    seen = set()
    result: List[str] = []
    for value in values or ():
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result
