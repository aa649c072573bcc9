"""Transaction ledger model."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Transaction(Base):
    """A payment attempt and its outcome."""

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    merchant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("merchants.id"), nullable=False, index=True
    )

    # Amount (fixed at creation)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    method: Mapped[str] = mapped_column(String(20), nullable=False)  # card, upi, wallet, netbanking

    # Status: pending → success | failed, success → refunded
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)

    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    is_test_mode: Mapped[bool] = mapped_column(Boolean, default=False)
    has_dispute: Mapped[bool] = mapped_column(Boolean, default=False)

    # Refund (populated only when status == refunded)
    refunded_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    refund_reason: Mapped[str | None] = mapped_column(Text)
    refund_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
