"""Dispute (chargeback) ledger model."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Dispute(Base):
    """A customer dispute against exactly one transaction."""

    __tablename__ = "disputes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("transactions.id"), nullable=False, unique=True
    )
    merchant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("merchants.id"), nullable=False, index=True
    )

    # Denormalized from the transaction for display
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)

    # fraudulent, unrecognized, duplicate, product_not_received,
    # product_unacceptable, credit_not_processed, other
    reason: Mapped[str] = mapped_column(String(40), nullable=False)
    customer_message: Mapped[str] = mapped_column(Text, nullable=False)

    # Status: open → under_review → won | lost ("resolved" is legacy)
    status: Mapped[str] = mapped_column(String(20), default="open", index=True)

    # Merchant response
    merchant_response: Mapped[str | None] = mapped_column(Text)
    evidence: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Resolution
    resolution_decision: Mapped[str | None] = mapped_column(String(20))  # merchant, customer
    resolved_by: Mapped[str | None] = mapped_column(String(255))
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolution_notes: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    @property
    def resolution(self) -> dict[str, Any] | None:
        """Resolution record, present only once the dispute is won or lost."""
        if self.resolution_decision is None:
            return None
        return {
            "decision": self.resolution_decision,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at,
            "notes": self.resolution_notes or "",
        }
