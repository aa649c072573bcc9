"""Webhook registration schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class WebhookCreate(CamelModel):
    url: str = Field(..., min_length=1, max_length=2048)
    events: list[str]


class WebhookResponse(CamelModel):
    """Registration as shown to its merchant, signing secret included."""

    id: UUID
    url: str
    events: list[str]
    secret: str
    created_at: datetime


class WebhookTestResult(CamelModel):
    delivery_id: UUID = Field(validation_alias="id")
    event: str
    status: str
