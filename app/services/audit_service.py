"""Payment and dispute audit trail service."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog

SYSTEM_ACTOR = "system"


class AuditService:
    """Service for append-only audit logging."""

    # Actions recorded by the payment core
    ACTIONS = {
        "PAYMENT_CREATED",
        "PAYMENT_SETTLED",
        "PAYMENT_MANUALLY_SETTLED",
        "PAYMENT_REFUNDED",
        "DISPUTE_CREATED",
        "DISPUTE_RESPONSE_SUBMITTED",
        "DISPUTE_RESOLVED",
        "WEBHOOK_CREATED",
        "WEBHOOK_DELETED",
    }

    async def log_action(
        self,
        db: AsyncSession,
        actor: str,
        action: str,
        resource_type: str,
        resource_id: UUID | None,
        merchant_id: UUID | None = None,
        details: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Append an audit entry to the current session.

        Args:
            db: Database session (the entry commits with the change it describes)
            actor: Merchant id, admin email or "system"
            action: Action name (e.g., "PAYMENT_REFUNDED")
            resource_type: Resource type (e.g., "transaction", "dispute")
            resource_id: Resource ID
            merchant_id: Owning merchant, if any
            details: JSON-safe description of the change
            ip_address: Client IP
            user_agent: Client user agent

        Returns:
            Created audit log entry
        """
        if action not in self.ACTIONS:
            raise ValueError(f"Unknown audit action: {action}")

        audit = AuditLog(
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            merchant_id=merchant_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(audit)
        return audit

    async def log_transaction_action(
        self,
        db: AsyncSession,
        actor: str,
        action: str,
        transaction,
        old_status: str | None,
        extra: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Log a transaction status change."""
        details: dict[str, Any] = {
            "order_id": transaction.order_id,
            "old_status": old_status,
            "new_status": transaction.status,
            "amount": str(transaction.amount),
        }
        if extra:
            details.update(extra)
        return await self.log_action(
            db,
            actor=actor,
            action=action,
            resource_type="transaction",
            resource_id=transaction.id,
            merchant_id=transaction.merchant_id,
            details=details,
        )

    async def log_dispute_action(
        self,
        db: AsyncSession,
        actor: str,
        action: str,
        dispute,
        old_status: str | None,
        extra: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Log dispute action."""
        details: dict[str, Any] = {
            "order_id": dispute.order_id,
            "old_status": old_status,
            "new_status": dispute.status,
        }
        if extra:
            details.update(extra)
        return await self.log_action(
            db,
            actor=actor,
            action=action,
            resource_type="dispute",
            resource_id=dispute.id,
            merchant_id=dispute.merchant_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def list_for_merchant(
        self,
        db: AsyncSession,
        merchant_id: UUID,
        limit: int = 50,
    ) -> list[AuditLog]:
        """A merchant's most recent audit entries, newest first."""
        result = await db.execute(
            select(AuditLog)
            .where(AuditLog.merchant_id == merchant_id)
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


audit_service = AuditService()
