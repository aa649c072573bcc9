"""Merchant directory model."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Merchant(Base):
    """A merchant account; owns transactions, disputes and webhooks."""

    __tablename__ = "merchants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    # API keys
    public_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    secret_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    # New transactions inherit this as their test-mode flag
    sandbox_mode: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
