"""Dispute and chargeback service."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from app.domain.dispute_state import (
    DISPUTE_REASONS,
    DISPUTE_STATUSES,
    RESOLVABLE_DISPUTE_STATUSES,
    assert_dispute_transition,
    assert_resolvable,
    can_respond_to_dispute,
    status_for_decision,
)
from app.domain.events import DisputeResolved, EventBus, event_bus
from app.models.dispute import Dispute
from app.models.merchant import Merchant
from app.models.transaction import Transaction
from app.services.audit_service import audit_service
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)


class DisputeService:
    """Service for dispute and chargeback lifecycle."""

    def __init__(self, bus: EventBus | None = None) -> None:
        self.bus = bus or event_bus

    async def open_dispute(
        self,
        db: AsyncSession,
        merchant_id: UUID,
        transaction_id: UUID,
        reason: str,
        customer_message: str,
    ) -> Dispute:
        """Open a dispute against one of the merchant's successful transactions.

        Raises:
            ValidationError: unknown reason or empty message
            NotFoundError: transaction missing or owned by another merchant
            ConflictError: the transaction already has a dispute
            InvalidStateError: the transaction is not in success
        """
        if reason not in DISPUTE_REASONS:
            raise ValidationError(
                f"Invalid dispute reason. Must be one of: {', '.join(DISPUTE_REASONS)}"
            )
        if not customer_message or not customer_message.strip():
            raise ValidationError("Customer message is required")

        transaction = await db.get(Transaction, transaction_id)
        if not transaction or transaction.merchant_id != merchant_id:
            raise NotFoundError("Transaction", str(transaction_id))
        if transaction.has_dispute:
            raise ConflictError("A dispute already exists for this transaction")
        if transaction.status != "success":
            raise InvalidStateError("Only successful transactions can be disputed")

        # Claim the transaction; a concurrent opener loses here
        result = await db.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction.id,
                Transaction.has_dispute.is_(False),
                Transaction.status == "success",
            )
            .values(has_dispute=True, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.refresh(transaction)
            if transaction.has_dispute:
                raise ConflictError("A dispute already exists for this transaction")
            raise InvalidStateError("Only successful transactions can be disputed")
        await db.refresh(transaction)

        dispute = Dispute(
            transaction_id=transaction.id,
            merchant_id=merchant_id,
            order_id=transaction.order_id,
            amount=transaction.amount,
            customer_email=transaction.customer_email,
            reason=reason,
            customer_message=customer_message.strip(),
            status="open",
        )
        db.add(dispute)
        await db.flush()

        await audit_service.log_dispute_action(
            db,
            actor=str(merchant_id),
            action="DISPUTE_CREATED",
            dispute=dispute,
            old_status=None,
            extra={"reason": reason},
        )
        await self._email_merchant(
            db,
            merchant_id,
            notification_service.DISPUTE_CREATED,
            dispute,
            {"reason": reason, "customer_message": dispute.customer_message},
        )
        logger.info(f"Dispute {dispute.id} opened on {transaction.order_id} ({reason})")
        return dispute

    async def respond(
        self,
        db: AsyncSession,
        merchant_id: UUID,
        dispute_id: UUID,
        merchant_response: str,
        evidence: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Dispute:
        """Record the merchant's response and move the dispute under review."""
        if not merchant_response or not merchant_response.strip():
            raise ValidationError("Merchant response is required")

        dispute = await self.get_dispute(db, dispute_id, merchant_id)
        can_respond, error = can_respond_to_dispute(dispute.status)
        if not can_respond:
            raise InvalidStateError(error)
        assert_dispute_transition(dispute.status, "under_review")

        result = await db.execute(
            update(Dispute)
            .where(Dispute.id == dispute.id, Dispute.status == "open")
            .values(
                status="under_review",
                merchant_response=merchant_response.strip(),
                evidence=evidence or {},
                responded_at=datetime.now(UTC),
                updated_at=datetime.now(UTC),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidStateError("A response has already been submitted for this dispute")
        await db.refresh(dispute)

        await audit_service.log_dispute_action(
            db,
            actor=str(merchant_id),
            action="DISPUTE_RESPONSE_SUBMITTED",
            dispute=dispute,
            old_status="open",
            extra={"evidence_documents": len((evidence or {}).get("documents") or [])},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(f"Dispute {dispute.id} moved under review")
        return dispute

    async def resolve(
        self,
        db: AsyncSession,
        dispute_id: UUID,
        decision: str,
        resolved_by: str,
        notes: str | None = None,
    ) -> Dispute:
        """Close a dispute for the merchant (won) or the customer (lost).

        Publishes DisputeResolved; subscribers run in this session, so a
        customer-win refund commits together with the resolution.

        Raises:
            ValidationError: decision is not merchant or customer
            NotFoundError: unknown dispute
            ConflictError: dispute already resolved
        """
        new_status = status_for_decision(decision)
        dispute = await self.get_dispute(db, dispute_id)
        assert_resolvable(dispute.status)
        assert_dispute_transition(dispute.status, new_status)

        old_status = dispute.status
        now = datetime.now(UTC)
        result = await db.execute(
            update(Dispute)
            .where(Dispute.id == dispute.id, Dispute.status.in_(RESOLVABLE_DISPUTE_STATUSES))
            .values(
                status=new_status,
                resolution_decision=decision,
                resolved_by=resolved_by,
                resolved_at=now,
                resolution_notes=notes or "",
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError("Dispute already resolved")
        await db.refresh(dispute)

        await audit_service.log_dispute_action(
            db,
            actor=resolved_by,
            action="DISPUTE_RESOLVED",
            dispute=dispute,
            old_status=old_status,
            extra={"decision": decision},
        )
        logger.info(f"Dispute {dispute.id} resolved: {old_status} -> {new_status} by {resolved_by}")

        await self.bus.publish(
            db,
            DisputeResolved(
                dispute_id=dispute.id,
                transaction_id=dispute.transaction_id,
                merchant_id=dispute.merchant_id,
                decision=decision,
                amount=dispute.amount,
                reason=dispute.reason,
                resolved_by=resolved_by,
            ),
        )

        await self._email_merchant(
            db,
            dispute.merchant_id,
            notification_service.DISPUTE_RESOLVED,
            dispute,
            {"decision": decision, "notes": notes or ""},
        )
        return dispute

    async def get_dispute(
        self,
        db: AsyncSession,
        dispute_id: UUID,
        merchant_id: UUID | None = None,
    ) -> Dispute:
        """Get dispute by ID or raise NotFoundError."""
        query = select(Dispute).where(Dispute.id == dispute_id)
        if merchant_id is not None:
            query = query.where(Dispute.merchant_id == merchant_id)
        result = await db.execute(query)
        dispute = result.scalar_one_or_none()
        if not dispute:
            raise NotFoundError("Dispute", str(dispute_id))
        return dispute

    async def list_disputes(
        self,
        db: AsyncSession,
        merchant_id: UUID | None = None,
        status: str | None = None,
        limit: int = 100,
    ) -> list[Dispute]:
        if status is not None and status not in DISPUTE_STATUSES:
            raise ValidationError(f"Invalid status filter: {status}")

        query = select(Dispute)
        if merchant_id is not None:
            query = query.where(Dispute.merchant_id == merchant_id)
        if status is not None:
            query = query.where(Dispute.status == status)
        result = await db.execute(query.order_by(Dispute.created_at.desc()).limit(limit))
        return list(result.scalars().all())

    async def _email_merchant(
        self,
        db: AsyncSession,
        merchant_id: UUID,
        template: str,
        dispute: Dispute,
        context: dict[str, Any],
    ) -> None:
        merchant = await db.get(Merchant, merchant_id)
        if not merchant:
            return
        notification_service.queue_email(
            db,
            template,
            merchant.email,
            {
                "order_id": dispute.order_id,
                "amount": dispute.amount,
                "currency": settings.default_currency,
                **context,
            },
        )


dispute_service = DisputeService()
