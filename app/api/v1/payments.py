"""Payment endpoints."""

from typing import Annotated

from fastapi import APIRouter, Header, Query, status

from app.api.deps import CurrentMerchant, DbSession
from app.core.background_tasks import commit_and_dispatch
from app.core.idempotency import check_idempotency, generate_idempotency_key, store_idempotency_result
from app.schemas.common import ApiResponse
from app.schemas.payment import (
    PaymentCreate,
    PaymentCreated,
    PaymentStatusResponse,
    PaymentVerify,
    PaymentVerifyResponse,
    RefundCreate,
    RefundResult,
    TransactionResponse,
)
from app.services.payment_service import payment_service

router = APIRouter()


@router.post(
    "/create",
    response_model=ApiResponse[PaymentCreated],
    status_code=status.HTTP_201_CREATED,
)
async def create_payment(
    data: PaymentCreate,
    merchant: CurrentMerchant,
    db: DbSession,
) -> ApiResponse[PaymentCreated]:
    """Open a pending payment order for checkout."""
    transaction = await payment_service.create_payment(
        db,
        merchant_id=merchant.id,
        amount=data.amount,
        method=data.method,
        customer_email=data.customer_email,
        currency=data.currency,
    )
    await commit_and_dispatch(db)
    return ApiResponse(
        message="Payment order created successfully",
        data=PaymentCreated.model_validate(transaction),
    )


@router.post("/verify", response_model=PaymentVerifyResponse)
async def verify_payment(
    data: PaymentVerify,
    db: DbSession,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
) -> PaymentVerifyResponse:
    """Settle a pending checkout to success or failed.

    A transaction settles once. Clients that retry may send an
    Idempotency-Key header; a replay with the same key returns the original
    outcome instead of an error.
    """
    idem_key = None
    if idempotency_key:
        idem_key = generate_idempotency_key(
            "payment_verify", data.order_id, {"key": idempotency_key}
        )
        cached = check_idempotency(idem_key)
        if cached:
            return PaymentVerifyResponse(**cached)

    transaction = await payment_service.verify_payment(db, data.order_id)
    await commit_and_dispatch(db)

    response = PaymentVerifyResponse(status=transaction.status, order_id=transaction.order_id)
    if idem_key:
        store_idempotency_result(idem_key, response.model_dump())
    return response


@router.post("/refund", response_model=ApiResponse[RefundResult])
async def refund_payment(
    data: RefundCreate,
    merchant: CurrentMerchant,
    db: DbSession,
) -> ApiResponse[RefundResult]:
    """Refund one of the merchant's successful transactions."""
    transaction = await payment_service.refund(
        db,
        order_id=data.order_id,
        amount=data.amount,
        reason=data.reason,
        merchant_id=merchant.id,
    )
    await commit_and_dispatch(db)
    return ApiResponse(
        message="Refund processed",
        data=RefundResult.model_validate(transaction),
    )


@router.get("/status/{order_id}", response_model=ApiResponse[PaymentStatusResponse])
async def get_payment_status(order_id: str, db: DbSession) -> ApiResponse[PaymentStatusResponse]:
    """Public status lookup used by the checkout pages."""
    transaction = await payment_service.get_by_order_id(db, order_id)
    return ApiResponse(data=PaymentStatusResponse.model_validate(transaction))


@router.get("/transactions", response_model=ApiResponse[list[TransactionResponse]])
async def list_transactions(
    merchant: CurrentMerchant,
    db: DbSession,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> ApiResponse[list[TransactionResponse]]:
    """The merchant's transactions, newest first."""
    transactions = await payment_service.list_transactions(
        db, merchant_id=merchant.id, status=status_filter, limit=limit
    )
    return ApiResponse(data=[TransactionResponse.model_validate(t) for t in transactions])
