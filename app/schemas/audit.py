"""Audit trail schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from app.schemas.common import CamelModel


class AuditLogResponse(CamelModel):
    id: UUID
    actor: str
    action: str
    resource_type: str
    resource_id: UUID | None
    details: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime
