"""
Frontière: Portal API

Contrôleurs indépendants du framework web: chaque opération reçoit une
PortalRequest et retourne une HttpResponse (statut, corps JSON, headers).

Les erreurs sont traduites par type (ErrorKind), jamais par lecture du
message. Le détail interne n'est écrit que dans les logs serveur.

Invariants:
    ACL_001: 401 sans session valide, 403 rôle ou propriété insuffisants
    ACL_002: 404 ressource inexistante
    ACL_005: 503 store indisponible
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from .payloads import AssignPayload, LoginPayload, MarkReadPayload, parse_payload
from .responses import ApiResponse, ErrorResponse, HttpResponse, PortalRequest
from ..auth.authorization_guard import AuthorizationGuard
from ..auth.interfaces import Identity, Role, SessionCookie
from ..auth.session_manager import SessionManager
from ..core.errors import ErrorKind, NotFound, PortalError
from ..distribution.interfaces import Assignment, Notification
from ..distribution.state_machine import DistributionStateMachine
from ..logging import StructuredLogger


class PortalApi:
    """
    Contrôleurs du portail.

    Example:
        api = build_portal(settings).api
        response = await api.login(PortalRequest(body={"email": e, "password": p}))
        assert response.status == 200
        set_cookie = response.header("Set-Cookie")
    """

    def __init__(
        self,
        sessions: SessionManager,
        distribution: DistributionStateMachine,
        guard: AuthorizationGuard,
        logger: Optional[StructuredLogger] = None,
    ):
        self._sessions = sessions
        self._distribution = distribution
        self._guard = guard
        self._logger = logger or StructuredLogger("portal-api")

    # ══════════════════════════════════════════════════════════════════════════
    # AUTHENTIFICATION
    # ══════════════════════════════════════════════════════════════════════════

    async def login(self, request: PortalRequest) -> HttpResponse:
        async def action() -> HttpResponse:
            payload = parse_payload(LoginPayload, request.body)
            result = await self._sessions.login(payload.email, payload.password)
            data = {
                "user": _user(result.identity),
                "expiresAt": result.expires_at.isoformat(),
                "lastLogin": result.last_login.isoformat() if result.last_login else None,
            }
            return self._ok(request, data, cookie=result.cookie)

        return await self._dispatch(request, "login", action)

    async def logout(self, request: PortalRequest) -> HttpResponse:
        async def action() -> HttpResponse:
            token = self._sessions.extract_token(request.cookies, request.headers)
            cookie = await self._sessions.logout(token)
            return self._ok(request, {"message": "Logged out successfully"}, cookie=cookie)

        return await self._dispatch(request, "logout", action)

    async def me(self, request: PortalRequest) -> HttpResponse:
        async def action() -> HttpResponse:
            identity = self._guard.require_authenticated(self._session(request))
            return self._ok(request, {"user": _user(identity)})

        return await self._dispatch(request, "me", action)

    async def toggle_user_status(self, request: PortalRequest, user_id: str) -> HttpResponse:
        async def action() -> HttpResponse:
            record = await self._sessions.toggle_status(self._session(request), user_id)
            return self._ok(request, {"user": _user(record.to_identity())})

        return await self._dispatch(request, "toggle_user_status", action)

    # ══════════════════════════════════════════════════════════════════════════
    # PDF
    # ══════════════════════════════════════════════════════════════════════════

    async def download_pdf(self, request: PortalRequest, pdf_id: str) -> HttpResponse:
        async def action() -> HttpResponse:
            grant = await self._distribution.authorize_download(self._session(request), pdf_id)
            data = {
                "pdf": _assignment(grant.assignment),
                "statusTransitioned": grant.status_transitioned,
                "notificationsMarked": grant.notifications_marked,
            }
            return self._ok(request, data)

        return await self._dispatch(request, "download_pdf", action)

    async def list_pdfs(self, request: PortalRequest) -> HttpResponse:
        async def action() -> HttpResponse:
            identity = self._session(request)
            assignments = await self._distribution.list_visible(identity)
            return self._ok(request, {"pdfs": [_assignment(a) for a in assignments]})

        return await self._dispatch(request, "list_pdfs", action)

    async def assign_pdf(self, request: PortalRequest) -> HttpResponse:
        async def action() -> HttpResponse:
            identity = self._guard.require_admin(self._session(request))
            payload = parse_payload(AssignPayload, request.body)
            assignment = await self._distribution.assign(
                identity,
                payload.pdf_id,
                payload.file_name,
                payload.assigned_group,
                payload.distributor_ids,
            )
            return self._ok(request, {"pdf": _assignment(assignment)}, status=201)

        return await self._dispatch(request, "assign_pdf", action)

    # ══════════════════════════════════════════════════════════════════════════
    # NOTIFICATIONS
    # ══════════════════════════════════════════════════════════════════════════

    async def mark_notification_read(self, request: PortalRequest, notification_id: str) -> HttpResponse:
        async def action() -> HttpResponse:
            notification = await self._distribution.read_notification(
                self._session(request), notification_id
            )
            return self._ok(request, {"notification": _notification(notification)})

        return await self._dispatch(request, "mark_notification_read", action)

    async def mark_notifications_read(self, request: PortalRequest) -> HttpResponse:
        """Marquage en lot: notificationIds ou markAll."""

        async def action() -> HttpResponse:
            identity = self._guard.require_authenticated(self._session(request))
            payload = parse_payload(MarkReadPayload, request.body)

            if identity.role == Role.ADMIN:
                if payload.mark_all:
                    count = await self._distribution.mark_all_read_as_admin(identity)
                else:
                    count = await self._distribution.mark_many_read_as_admin(
                        identity, payload.notification_ids
                    )
                return self._ok(request, {"marked": count})

            distributor_id = await self._require_distributor_id(identity)
            if payload.mark_all:
                count = await self._distribution.mark_all_read(distributor_id)
            else:
                count = await self._distribution.mark_many_read(payload.notification_ids, distributor_id)
            return self._ok(request, {"marked": count})

        return await self._dispatch(request, "mark_notifications_read", action)

    async def unread_count(self, request: PortalRequest) -> HttpResponse:
        async def action() -> HttpResponse:
            identity = self._guard.require_distributor(self._session(request))
            distributor_id = await self._require_distributor_id(identity)
            count = await self._distribution.unread_count(distributor_id)
            return self._ok(request, {"unread": count})

        return await self._dispatch(request, "unread_count", action)

    async def list_notifications(self, request: PortalRequest, read_flag: Optional[bool] = None) -> HttpResponse:
        async def action() -> HttpResponse:
            notifications = await self._distribution.list_notifications(self._session(request), read_flag)
            return self._ok(request, {"notifications": [_notification(n) for n in notifications]})

        return await self._dispatch(request, "list_notifications", action)

    # ══════════════════════════════════════════════════════════════════════════
    # INTERNES
    # ══════════════════════════════════════════════════════════════════════════

    def _session(self, request: PortalRequest) -> Optional[Identity]:
        return self._sessions.get_session(request.cookies, request.headers)

    async def _require_distributor_id(self, identity: Identity) -> str:
        distributor_id = await self._distribution.resolve_distributor_id(identity)
        if distributor_id is None:
            raise NotFound("distributor not found")
        return distributor_id

    async def _dispatch(
        self,
        request: PortalRequest,
        operation: str,
        action: Callable[[], Awaitable[HttpResponse]],
    ) -> HttpResponse:
        log = self._logger.with_context(correlation_id=request.request_id)
        try:
            return await action()
        except PortalError as e:
            if e.kind.http_status >= 500:
                log.error("Request failed", operation=operation, kind=e.kind.value, detail=e.detail)
            else:
                log.info("Request rejected", operation=operation, kind=e.kind.value, detail=e.detail)
            body = ErrorResponse.from_error(e, request.request_id)
            return HttpResponse(status=e.kind.http_status, body=body.model_dump())
        except Exception as e:
            log.error("Unhandled error", operation=operation, error_type=type(e).__name__, detail=str(e))
            return self._error(request, ErrorKind.INTERNAL_ERROR)

    def _ok(
        self,
        request: PortalRequest,
        data: Dict[str, Any],
        status: int = 200,
        cookie: Optional[SessionCookie] = None,
    ) -> HttpResponse:
        body = ApiResponse(data=data)
        body.meta.request_id = request.request_id
        headers = [("Set-Cookie", cookie.to_header())] if cookie else []
        return HttpResponse(status=status, body=body.model_dump(), headers=headers)

    def _error(self, request: PortalRequest, kind: ErrorKind) -> HttpResponse:
        body = ErrorResponse.from_kind(kind, request.request_id)
        return HttpResponse(status=kind.http_status, body=body.model_dump())


def _user(identity: Identity) -> Dict[str, Any]:
    return {
        "id": identity.user_id,
        "email": identity.email,
        "role": identity.role.value,
        "fullName": identity.full_name,
        "status": identity.status.value,
    }


def _assignment(assignment: Assignment) -> Dict[str, Any]:
    return {
        "id": assignment.pdf_id,
        "fileName": assignment.file_name,
        "assignedGroup": assignment.assigned_group.value,
        "assignedDistributorId": assignment.assigned_distributor_id,
        "recipientIds": list(assignment.recipient_ids),
        "status": assignment.status.value,
        "uploadedBy": assignment.uploaded_by,
        "createdAt": assignment.created_at.isoformat(),
    }


def _notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.notification_id,
        "pdfId": notification.pdf_id,
        "distributorId": notification.distributor_id,
        "title": notification.title,
        "message": notification.message,
        "readFlag": notification.read_flag,
        "createdAt": notification.created_at.isoformat(),
    }
