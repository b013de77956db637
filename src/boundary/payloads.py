"""
Frontière - Corps de requête

Modèles pydantic des corps JSON acceptés. Les noms de champ camelCase
du client sont acceptés en alias.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.errors import ValidationFailed
from ..distribution.interfaces import AssignedGroup


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LoginPayload(_Payload):
    email: str = ""
    password: str = ""


class AssignPayload(_Payload):
    pdf_id: str = Field(alias="pdfId", min_length=1)
    file_name: str = Field(alias="fileName", min_length=1)
    assigned_group: AssignedGroup = Field(alias="assignedGroup")
    distributor_ids: List[str] = Field(default_factory=list, alias="distributorIds")


class MarkReadPayload(_Payload):
    notification_ids: List[str] = Field(default_factory=list, alias="notificationIds")
    mark_all: bool = Field(default=False, alias="markAll")


def parse_payload(model: type, body: object):
    """
    Valide un corps de requête.

    Raises:
        ValidationFailed: Corps absent ou invalide
    """
    try:
        return model.model_validate(body if body is not None else {})
    except ValidationError as e:
        raise ValidationFailed(f"{model.__name__}: {e.error_count()} invalid field(s)")
