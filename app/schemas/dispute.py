"""Dispute schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel, Money


class DisputeCreate(CamelModel):
    transaction_id: UUID
    reason: str
    customer_message: str = Field(..., min_length=1, max_length=5000)


class DisputeEvidence(CamelModel):
    """Evidence bundle submitted with a merchant response."""

    description: str | None = Field(default=None, max_length=5000)
    documents: list[str] = Field(default_factory=list, max_length=20)
    shipping_tracking: str | None = Field(default=None, max_length=255)
    refund_policy: str | None = Field(default=None, max_length=5000)


class DisputeRespond(CamelModel):
    merchant_response: str = Field(..., min_length=1, max_length=5000)
    evidence: DisputeEvidence | None = None


class DisputeResolve(CamelModel):
    decision: str
    notes: str | None = Field(default=None, max_length=5000)


class DisputeResolution(CamelModel):
    decision: str
    resolved_by: str | None
    resolved_at: datetime | None
    notes: str


class DisputeResponse(CamelModel):
    """Schema for dispute response."""

    id: UUID
    transaction_id: UUID
    merchant_id: UUID
    order_id: str
    amount: Money
    customer_email: str
    reason: str
    status: str
    customer_message: str
    merchant_response: str | None
    evidence: dict[str, Any] | None
    responded_at: datetime | None
    resolution: DisputeResolution | None
    created_at: datetime
    updated_at: datetime
