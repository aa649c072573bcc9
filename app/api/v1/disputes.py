"""Dispute and chargeback endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Request, status

from app.api.deps import CurrentAdmin, CurrentMerchant, DbSession
from app.core.background_tasks import commit_and_dispatch
from app.core.middleware import get_client_ip
from app.schemas.common import ApiResponse
from app.schemas.dispute import DisputeCreate, DisputeResolve, DisputeRespond, DisputeResponse
from app.services.dispute_service import dispute_service

router = APIRouter()


@router.get("", response_model=ApiResponse[list[DisputeResponse]])
async def list_disputes(
    merchant: CurrentMerchant,
    db: DbSession,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> ApiResponse[list[DisputeResponse]]:
    """The merchant's disputes, newest first."""
    disputes = await dispute_service.list_disputes(db, merchant_id=merchant.id, status=status_filter)
    return ApiResponse(data=[DisputeResponse.model_validate(d) for d in disputes])


@router.post("", response_model=ApiResponse[DisputeResponse], status_code=status.HTTP_201_CREATED)
async def open_dispute(
    data: DisputeCreate,
    merchant: CurrentMerchant,
    db: DbSession,
) -> ApiResponse[DisputeResponse]:
    """Open a dispute against a successful transaction."""
    dispute = await dispute_service.open_dispute(
        db,
        merchant_id=merchant.id,
        transaction_id=data.transaction_id,
        reason=data.reason,
        customer_message=data.customer_message,
    )
    await commit_and_dispatch(db)
    return ApiResponse(message="Dispute created", data=DisputeResponse.model_validate(dispute))


@router.get("/{dispute_id}", response_model=ApiResponse[DisputeResponse])
async def get_dispute(
    dispute_id: UUID,
    merchant: CurrentMerchant,
    db: DbSession,
) -> ApiResponse[DisputeResponse]:
    """Get dispute details."""
    dispute = await dispute_service.get_dispute(db, dispute_id, merchant_id=merchant.id)
    return ApiResponse(data=DisputeResponse.model_validate(dispute))


@router.post("/{dispute_id}/respond", response_model=ApiResponse[DisputeResponse])
async def respond_to_dispute(
    dispute_id: UUID,
    data: DisputeRespond,
    request: Request,
    merchant: CurrentMerchant,
    db: DbSession,
) -> ApiResponse[DisputeResponse]:
    """Submit the merchant's response and evidence."""
    dispute = await dispute_service.respond(
        db,
        merchant_id=merchant.id,
        dispute_id=dispute_id,
        merchant_response=data.merchant_response,
        evidence=data.evidence.model_dump(by_alias=True) if data.evidence else None,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    await commit_and_dispatch(db)
    return ApiResponse(message="Response submitted", data=DisputeResponse.model_validate(dispute))


@router.post("/{dispute_id}/resolve", response_model=ApiResponse[DisputeResponse])
async def resolve_dispute(
    dispute_id: UUID,
    data: DisputeResolve,
    admin: CurrentAdmin,
    db: DbSession,
) -> ApiResponse[DisputeResponse]:
    """Resolve a dispute (admin only)."""
    dispute = await dispute_service.resolve(
        db,
        dispute_id=dispute_id,
        decision=data.decision,
        resolved_by=admin.email,
        notes=data.notes,
    )
    await commit_and_dispatch(db)
    return ApiResponse(message="Dispute resolved", data=DisputeResponse.model_validate(dispute))
