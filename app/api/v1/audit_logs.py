"""Merchant audit trail endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from app.api.deps import CurrentMerchant, DbSession
from app.schemas.audit import AuditLogResponse
from app.schemas.common import ApiResponse
from app.services.audit_service import audit_service

router = APIRouter()


@router.get("", response_model=ApiResponse[list[AuditLogResponse]])
async def list_audit_logs(
    merchant: CurrentMerchant,
    db: DbSession,
    limit: Annotated[int, Query(ge=1, le=50)] = 50,
) -> ApiResponse[list[AuditLogResponse]]:
    """The merchant's most recent audit entries, newest first."""
    logs = await audit_service.list_for_merchant(db, merchant.id, limit=limit)
    return ApiResponse(data=[AuditLogResponse.model_validate(log) for log in logs])
