"""Admin panel endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from app.api.deps import CurrentAdmin, DbSession
from app.core.background_tasks import commit_and_dispatch
from app.schemas.common import ApiResponse
from app.schemas.dispute import DisputeResponse
from app.schemas.payment import ManualSettlement, TransactionResponse
from app.services.dispute_service import dispute_service
from app.services.payment_service import payment_service

router = APIRouter()


# ============ DISPUTES ============


@router.get("/disputes", response_model=ApiResponse[list[DisputeResponse]])
async def list_all_disputes(
    admin: CurrentAdmin,
    db: DbSession,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> ApiResponse[list[DisputeResponse]]:
    """Disputes across all merchants."""
    disputes = await dispute_service.list_disputes(db, status=status_filter, limit=limit)
    return ApiResponse(data=[DisputeResponse.model_validate(d) for d in disputes])


# ============ TRANSACTIONS ============


@router.get("/transactions", response_model=ApiResponse[list[TransactionResponse]])
async def list_all_transactions(
    admin: CurrentAdmin,
    db: DbSession,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> ApiResponse[list[TransactionResponse]]:
    """Transactions across all merchants."""
    transactions = await payment_service.list_transactions(db, status=status_filter, limit=limit)
    return ApiResponse(data=[TransactionResponse.model_validate(t) for t in transactions])


@router.post(
    "/transactions/{order_id}/settle",
    response_model=ApiResponse[TransactionResponse],
)
async def settle_transaction(
    order_id: str,
    data: ManualSettlement,
    admin: CurrentAdmin,
    db: DbSession,
) -> ApiResponse[TransactionResponse]:
    """Force a pending transaction to success or failed."""
    transaction = await payment_service.settle(db, order_id, data.status, actor=admin.email)
    await commit_and_dispatch(db)
    return ApiResponse(
        message=f"Transaction marked as {transaction.status}",
        data=TransactionResponse.model_validate(transaction),
    )
