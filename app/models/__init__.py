"""Database models."""

from app.models.audit import AuditLog
from app.models.dispute import Dispute
from app.models.merchant import Merchant
from app.models.transaction import Transaction
from app.models.webhook import WebhookDelivery, WebhookRegistration

__all__ = [
    # Merchant
    "Merchant",
    # Payments
    "Transaction",
    # Disputes
    "Dispute",
    # Webhooks
    "WebhookRegistration",
    "WebhookDelivery",
    # Audit
    "AuditLog",
]
