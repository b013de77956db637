"""
Frontière HTTP

Règles couvertes:
- ACL_001 (401 vs 403)
- ACL_002 (404)
- ACL_005 (503 store indisponible)
"""

from .responses import (
    ApiResponse,
    ErrorResponse,
    ErrorBody,
    ResponseMeta,
    PortalRequest,
    HttpResponse,
)
from .payloads import LoginPayload, AssignPayload, MarkReadPayload, parse_payload
from .portal_api import PortalApi

__all__ = [
    # Réponses
    "ApiResponse",
    "ErrorResponse",
    "ErrorBody",
    "ResponseMeta",
    "PortalRequest",
    "HttpResponse",
    # Corps de requête
    "LoginPayload",
    "AssignPayload",
    "MarkReadPayload",
    "parse_payload",
    # Implementations
    "PortalApi",
]
