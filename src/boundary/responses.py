"""
Frontière - Réponses

Enveloppes de réponse client (pydantic) et réponse HTTP neutre vis-à-vis
du framework web.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from ..core.errors import ErrorKind, PortalError


def _timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:16]}"


class ResponseMeta(BaseModel):
    timestamp: str = Field(default_factory=_timestamp)
    request_id: Optional[str] = None


class ErrorBody(BaseModel):
    """Erreur exposée au client: code et message générique uniquement."""

    code: str
    message: str


class ApiResponse(BaseModel):
    success: bool = True
    data: Any = None
    meta: ResponseMeta = Field(default_factory=ResponseMeta)


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody
    meta: ResponseMeta = Field(default_factory=ResponseMeta)

    @classmethod
    def from_kind(cls, kind: ErrorKind, request_id: Optional[str] = None) -> "ErrorResponse":
        return cls(
            error=ErrorBody(code=kind.value, message=kind.public_message),
            meta=ResponseMeta(request_id=request_id),
        )

    @classmethod
    def from_error(cls, error: PortalError, request_id: Optional[str] = None) -> "ErrorResponse":
        # detail jamais exposé
        return cls.from_kind(error.kind, request_id)


@dataclass
class PortalRequest:
    """Requête entrante réduite à ce que la frontière consomme."""

    cookies: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)
    request_id: str = field(default_factory=new_request_id)


@dataclass
class HttpResponse:
    """
    Réponse HTTP à traduire par l'adaptateur web.

    Attributes:
        status: Code HTTP
        body: Corps JSON sérialisable
        headers: Liste (nom, valeur), Set-Cookie peut être répété
    """

    status: int
    body: Dict[str, Any]
    headers: List[Tuple[str, str]] = field(default_factory=list)

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None
