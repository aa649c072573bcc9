"""Merchant webhook registration endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import CurrentMerchant, DbSession
from app.core.background_tasks import commit_and_dispatch
from app.schemas.common import ApiResponse
from app.schemas.webhook import WebhookCreate, WebhookResponse, WebhookTestResult
from app.services.webhook_service import webhook_service

router = APIRouter()


@router.get("", response_model=ApiResponse[list[WebhookResponse]])
async def list_webhooks(merchant: CurrentMerchant, db: DbSession) -> ApiResponse[list[WebhookResponse]]:
    webhooks = await webhook_service.list_webhooks(db, merchant.id)
    return ApiResponse(data=[WebhookResponse.model_validate(w) for w in webhooks])


@router.post("", response_model=ApiResponse[WebhookResponse], status_code=status.HTTP_201_CREATED)
async def create_webhook(
    data: WebhookCreate,
    merchant: CurrentMerchant,
    db: DbSession,
) -> ApiResponse[WebhookResponse]:
    """Register an endpoint for payment events."""
    webhook = await webhook_service.create_webhook(db, merchant.id, data.url, data.events)
    await commit_and_dispatch(db)
    return ApiResponse(
        message="Webhook created successfully",
        data=WebhookResponse.model_validate(webhook),
    )


@router.delete("/{webhook_id}", response_model=ApiResponse[None])
async def delete_webhook(webhook_id: UUID, merchant: CurrentMerchant, db: DbSession) -> ApiResponse[None]:
    await webhook_service.delete_webhook(db, merchant.id, webhook_id)
    await commit_and_dispatch(db)
    return ApiResponse(message="Webhook deleted", data=None)


@router.post("/{webhook_id}/test", response_model=ApiResponse[WebhookTestResult])
async def send_test_event(
    webhook_id: UUID,
    merchant: CurrentMerchant,
    db: DbSession,
) -> ApiResponse[WebhookTestResult]:
    """Queue a sample event to one endpoint."""
    delivery = await webhook_service.send_test(db, merchant.id, webhook_id)
    await commit_and_dispatch(db)
    return ApiResponse(message="Test event queued", data=WebhookTestResult.model_validate(delivery))
