"""Payment-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel, Money

PaymentMethod = Literal["card", "upi", "wallet", "netbanking"]


class PaymentCreate(CamelModel):
    """Schema for opening a payment order."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    method: PaymentMethod
    customer_email: str = Field(..., min_length=3, max_length=255)
    currency: str = Field(default="INR", min_length=3, max_length=3)


class PaymentCreated(CamelModel):
    order_id: str
    status: str
    amount: Money
    currency: str
    method: str
    customer_email: str
    is_test_mode: bool


class PaymentVerify(CamelModel):
    """Schema for settling a checkout."""

    order_id: str = Field(..., pattern=r"^order_")


class PaymentVerifyResponse(CamelModel):
    success: bool = True
    status: str
    order_id: str


class RefundCreate(CamelModel):
    """Schema for refund request."""

    order_id: str = Field(..., pattern=r"^order_")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    reason: str | None = Field(default=None, max_length=500)


class RefundResult(CamelModel):
    order_id: str
    refunded_amount: Money
    refund_reason: str | None


class PaymentStatusResponse(CamelModel):
    """Public status lookup."""

    order_id: str
    status: str
    amount: Money
    currency: str
    method: str


class TransactionResponse(CamelModel):
    """Schema for transaction response."""

    id: UUID
    order_id: str
    merchant_id: UUID
    amount: Money
    currency: str
    method: str
    status: str
    customer_email: str
    is_test_mode: bool
    has_dispute: bool
    refunded_amount: Money
    refund_reason: str | None
    refund_date: datetime | None
    created_at: datetime
    updated_at: datetime


class ManualSettlement(CamelModel):
    """Admin override of a pending transaction's outcome."""

    status: Literal["success", "failed"]
