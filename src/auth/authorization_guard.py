"""
Autorisation: Authorization Guard

Vérification des rôles et de la propriété des ressources, à chaque requête.

Invariants:
    ACL_001: Sans session = Unauthorized (401), rôle insuffisant = Forbidden (403)
    ACL_003: Propriété évaluée à chaque requête, jamais mise en cache
    ACL_004: Fail-closed, toute erreur inattendue = refus
"""

from typing import Collection, Optional

from .interfaces import IAuthorizationGuard, Identity, Role
from ..core.errors import Forbidden, Unauthorized
from ..distribution.interfaces import AssignedGroup, Assignment
from ..logging import StructuredLogger


class AuthorizationGuard(IAuthorizationGuard):
    """
    Garde d'autorisation sans état.

    Le rôle vient exclusivement de l'identité issue des claims du token
    (jamais du cache d'identité).

    Example:
        guard = AuthorizationGuard()
        admin = guard.require_admin(session)
        if not guard.require_ownership(identity, assignment, distributor_id):
            raise Forbidden()
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self._logger = logger or StructuredLogger("authorization-guard")

    def require_role(self, session: Optional[Identity], allowed: Collection[Role]) -> Identity:
        """
        Exige une session dont le rôle est dans allowed.

        Args:
            session: Identité de la requête (None = anonyme)
            allowed: Rôles acceptés

        Returns:
            L'identité, inchangée

        Raises:
            Unauthorized: Aucune session
            Forbidden: Rôle hors de allowed
        """
        if session is None:
            raise Unauthorized("no session")
        if session.role not in allowed:
            self._logger.warn(
                "Role rejected",
                actor_id=session.user_id,
                role=session.role.value,
                allowed=[r.value for r in allowed],
            )
            raise Forbidden(f"role {session.role.value} not allowed")
        return session

    def require_authenticated(self, session: Optional[Identity]) -> Identity:
        return self.require_role(session, (Role.ADMIN, Role.DISTRIBUTOR))

    def require_admin(self, session: Optional[Identity]) -> Identity:
        return self.require_role(session, (Role.ADMIN,))

    def require_distributor(self, session: Optional[Identity]) -> Identity:
        return self.require_role(session, (Role.DISTRIBUTOR,))

    def require_ownership(
        self,
        identity: Identity,
        resource: Assignment,
        distributor_id: Optional[str],
    ) -> bool:
        """
        Prédicat de propriété d'une affectation.

        Vrai si ADMIN, ou groupe ALL, ou distributeur désigné, ou
        (MULTIPLE) distributeur parmi les destinataires.
        """
        try:
            if identity.role == Role.ADMIN:
                return True
            if identity.role != Role.DISTRIBUTOR:
                return False
            if resource.assigned_group == AssignedGroup.ALL:
                return True
            if not distributor_id:
                return False
            if resource.assigned_distributor_id == distributor_id:
                return True
            if resource.assigned_group == AssignedGroup.MULTIPLE:
                return distributor_id in (resource.recipient_ids or ())
            return False
        except Exception as e:
            # ACL_004
            self._logger.error(
                "Ownership check failed, access denied",
                actor_id=getattr(identity, "user_id", None),
                error=str(e),
            )
            return False
