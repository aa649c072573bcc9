"""Pydantic schemas for API validation."""

from app.schemas.audit import AuditLogResponse
from app.schemas.common import ApiResponse, CamelModel, Money
from app.schemas.dispute import (
    DisputeCreate,
    DisputeEvidence,
    DisputeResolve,
    DisputeResolution,
    DisputeRespond,
    DisputeResponse,
)
from app.schemas.payment import (
    ManualSettlement,
    PaymentCreate,
    PaymentCreated,
    PaymentStatusResponse,
    PaymentVerify,
    PaymentVerifyResponse,
    RefundCreate,
    RefundResult,
    TransactionResponse,
)
from app.schemas.webhook import WebhookCreate, WebhookResponse, WebhookTestResult

__all__ = [
    "ApiResponse",
    "CamelModel",
    "AuditLogResponse",
    "Money",
    "DisputeCreate",
    "DisputeEvidence",
    "DisputeResolve",
    "DisputeResolution",
    "DisputeRespond",
    "DisputeResponse",
    "ManualSettlement",
    "PaymentCreate",
    "PaymentCreated",
    "PaymentStatusResponse",
    "PaymentVerify",
    "PaymentVerifyResponse",
    "RefundCreate",
    "RefundResult",
    "TransactionResponse",
    "WebhookCreate",
    "WebhookResponse",
    "WebhookTestResult",
]
