"""Payment lifecycle service: create, settle, refund.

Every status change is a compare-and-set UPDATE guarded on the expected
current status, so two concurrent requests can never both move the same
transaction. Webhook outbox rows, audit entries and deferred emails join the
same session and commit with the change.
"""

import logging
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.domain.payment_state import (
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    SETTLEMENT_OUTCOMES,
    STATUS_EVENTS,
    RandomSettlementPolicy,
    SettlementPolicy,
    assert_payment_transition,
    can_refund,
    can_settle,
)
from app.models.merchant import Merchant
from app.models.transaction import Transaction
from app.services.audit_service import SYSTEM_ACTOR, audit_service
from app.services.notification_service import notification_service
from app.services.webhook_service import webhook_service
from app.utils.references import generate_order_id
from app.utils.validators import validate_email

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DEFAULT_REFUND_REASON = "Refund requested by merchant"


def to_amount(value) -> Decimal:
    """Coerce an input amount to a two-place Decimal, or raise ValidationError."""
    try:
        amount = Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Amount must be a number")
    if not amount.is_finite():
        raise ValidationError("Amount must be a number")
    return amount


class PaymentService:
    """Service for the transaction state machine."""

    def __init__(self, settlement_policy: SettlementPolicy | None = None) -> None:
        self._settlement_policy = settlement_policy

    @property
    def settlement_policy(self) -> SettlementPolicy:
        if self._settlement_policy is None:
            self._settlement_policy = RandomSettlementPolicy(settings.mock_success_rate)
        return self._settlement_policy

    @settlement_policy.setter
    def settlement_policy(self, policy: SettlementPolicy | None) -> None:
        self._settlement_policy = policy

    # ==================== CREATE ====================

    async def create_payment(
        self,
        db: AsyncSession,
        merchant_id: UUID,
        amount,
        method: str,
        customer_email: str,
        currency: str | None = None,
    ) -> Transaction:
        """Open a pending transaction for a merchant.

        Raises:
            ValidationError: non-positive amount, unknown method, bad email or currency
            NotFoundError: merchant does not exist
        """
        amount = to_amount(amount)
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        if method not in PAYMENT_METHODS:
            raise ValidationError(
                f"Invalid payment method. Must be one of: {', '.join(PAYMENT_METHODS)}"
            )
        if not customer_email or not validate_email(customer_email):
            raise ValidationError("Invalid customer email")
        currency = (currency or settings.default_currency).upper()
        if currency != settings.default_currency:
            raise ValidationError(f"Only {settings.default_currency} payments are supported")

        merchant = await db.get(Merchant, merchant_id)
        if not merchant:
            raise NotFoundError("Merchant", str(merchant_id))

        transaction = Transaction(
            order_id=generate_order_id(),
            merchant_id=merchant.id,
            amount=amount,
            currency=currency,
            method=method,
            status="pending",
            customer_email=customer_email,
            is_test_mode=merchant.sandbox_mode,
            has_dispute=False,
            refunded_amount=Decimal("0"),
        )
        db.add(transaction)
        await db.flush()

        await audit_service.log_transaction_action(
            db,
            actor=str(merchant.id),
            action="PAYMENT_CREATED",
            transaction=transaction,
            old_status=None,
            extra={"method": method},
        )
        logger.info(f"Created {transaction.order_id} for merchant {merchant.id}: {currency} {amount}")
        return transaction

    # ==================== LOOKUP ====================

    async def get_by_order_id(
        self,
        db: AsyncSession,
        order_id: str,
        merchant_id: UUID | None = None,
    ) -> Transaction:
        """Get a transaction by order reference, optionally scoped to a merchant."""
        query = select(Transaction).where(Transaction.order_id == order_id)
        if merchant_id is not None:
            query = query.where(Transaction.merchant_id == merchant_id)
        result = await db.execute(query)
        transaction = result.scalar_one_or_none()
        if not transaction:
            raise NotFoundError("Transaction", order_id)
        return transaction

    async def list_transactions(
        self,
        db: AsyncSession,
        merchant_id: UUID | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        """Newest first; all merchants when merchant_id is None."""
        if status is not None and status not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid status filter: {status}")

        query = select(Transaction)
        if merchant_id is not None:
            query = query.where(Transaction.merchant_id == merchant_id)
        if status is not None:
            query = query.where(Transaction.status == status)
        query = query.order_by(Transaction.created_at.desc()).offset(offset).limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())

    # ==================== SETTLEMENT ====================

    async def verify_payment(self, db: AsyncSession, order_id: str) -> Transaction:
        """Settle a pending transaction with the configured settlement policy."""
        transaction = await self.get_by_order_id(db, order_id)
        self._check_settleable(transaction)
        outcome = self.settlement_policy.decide(order_id)
        return await self._settle(db, transaction, outcome, SYSTEM_ACTOR, "PAYMENT_SETTLED")

    async def settle(
        self,
        db: AsyncSession,
        order_id: str,
        outcome: str,
        actor: str,
    ) -> Transaction:
        """Admin override: settle a pending transaction to a chosen outcome."""
        if outcome not in SETTLEMENT_OUTCOMES:
            raise ValidationError("Invalid status. Must be 'success' or 'failed'")
        transaction = await self.get_by_order_id(db, order_id)
        self._check_settleable(transaction)
        return await self._settle(db, transaction, outcome, actor, "PAYMENT_MANUALLY_SETTLED")

    def _check_settleable(self, transaction: Transaction) -> None:
        ok, error = can_settle(transaction.status)
        if not ok:
            raise InvalidStateError(error)

    async def _settle(
        self,
        db: AsyncSession,
        transaction: Transaction,
        outcome: str,
        actor: str,
        action: str,
    ) -> Transaction:
        assert_payment_transition(transaction.status, outcome)

        result = await db.execute(
            update(Transaction)
            .where(Transaction.id == transaction.id, Transaction.status == "pending")
            .values(status=outcome, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Another verifier got there first
            raise InvalidStateError("This payment has already been processed.")
        await db.refresh(transaction)

        await webhook_service.enqueue_event(db, STATUS_EVENTS[outcome], transaction)
        notification_service.queue_email(
            db,
            notification_service.PAYMENT_SUCCESS if outcome == "success" else notification_service.PAYMENT_FAILED,
            transaction.customer_email,
            {
                "order_id": transaction.order_id,
                "amount": transaction.amount,
                "currency": transaction.currency,
                "method": transaction.method,
            },
        )
        await audit_service.log_transaction_action(
            db, actor=actor, action=action, transaction=transaction, old_status="pending"
        )
        logger.info(f"Settled {transaction.order_id}: pending -> {outcome}")
        return transaction

    # ==================== REFUNDS ====================

    async def refund(
        self,
        db: AsyncSession,
        order_id: str,
        amount,
        reason: str | None = None,
        merchant_id: UUID | None = None,
    ) -> Transaction:
        """Refund a successful transaction, fully or partially.

        A transaction is refunded at most once; the refunded amount may not
        exceed the original amount.

        Raises:
            ValidationError: non-positive amount or amount above the original
            InvalidStateError: transaction is not in success
            NotFoundError: unknown order (or not this merchant's)
        """
        amount = to_amount(amount)
        if amount <= 0:
            raise ValidationError("Refund amount must be positive")

        transaction = await self.get_by_order_id(db, order_id, merchant_id)
        ok, error = can_refund(transaction.status)
        if not ok:
            raise InvalidStateError(error)
        if amount > transaction.amount:
            raise ValidationError("Refund amount exceeds transaction amount")

        actor = str(merchant_id) if merchant_id else SYSTEM_ACTOR
        if not await self._apply_refund(db, transaction, amount, reason or "", actor):
            raise InvalidStateError("Transaction has already been refunded")
        return transaction

    async def refund_for_dispute(
        self,
        db: AsyncSession,
        transaction_id: UUID,
        amount: Decimal,
        reason: str,
    ) -> Transaction | None:
        """Refund driven by a customer-won dispute.

        Unlike refund(), a transaction that is no longer in success is left
        untouched and None is returned.
        """
        transaction = await db.get(Transaction, transaction_id)
        if transaction is None:
            logger.warning(f"Dispute refund skipped: transaction {transaction_id} not found")
            return None
        if transaction.status != "success":
            logger.info(
                f"Dispute refund skipped for {transaction.order_id}: status is {transaction.status}"
            )
            return None

        amount = min(to_amount(amount), transaction.amount)
        if not await self._apply_refund(db, transaction, amount, reason, SYSTEM_ACTOR):
            logger.info(f"Dispute refund skipped for {transaction.order_id}: refunded concurrently")
            return None
        return transaction

    async def _apply_refund(
        self,
        db: AsyncSession,
        transaction: Transaction,
        amount: Decimal,
        reason: str,
        actor: str,
    ) -> bool:
        """Compare-and-set success -> refunded. Returns False if the row moved."""
        assert_payment_transition(transaction.status, "refunded")

        now = datetime.now(UTC)
        result = await db.execute(
            update(Transaction)
            .where(Transaction.id == transaction.id, Transaction.status == "success")
            .values(
                status="refunded",
                refunded_amount=amount,
                refund_reason=reason,
                refund_date=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return False
        await db.refresh(transaction)

        await webhook_service.enqueue_event(db, STATUS_EVENTS["refunded"], transaction)
        notification_service.queue_email(
            db,
            notification_service.REFUND_PROCESSED,
            transaction.customer_email,
            {
                "order_id": transaction.order_id,
                "refunded_amount": amount,
                "currency": transaction.currency,
                "reason": reason or DEFAULT_REFUND_REASON,
            },
        )
        await audit_service.log_transaction_action(
            db,
            actor=actor,
            action="PAYMENT_REFUNDED",
            transaction=transaction,
            old_status="success",
            extra={"refunded_amount": str(amount), "reason": reason},
        )
        logger.info(f"Refunded {transaction.order_id}: {transaction.currency} {amount}")
        return True


payment_service = PaymentService()
