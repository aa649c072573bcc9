"""Domain event subscribers."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.events import DisputeResolved, EventBus
from app.services.payment_service import PaymentService, payment_service

logger = logging.getLogger(__name__)


def dispute_refund_reason(event: DisputeResolved) -> str:
    return f"Dispute {event.dispute_id} resolved in favor of customer: {event.reason}"


def make_refund_on_customer_win(payments: PaymentService):
    """Build the DisputeResolved handler bound to a payment service."""

    async def refund_on_customer_win(db: AsyncSession, event: DisputeResolved) -> None:
        """Refund the disputed amount when the customer wins.

        No-op for merchant wins, and for transactions that already left
        success (for example, refunded by the merchant while disputed).
        """
        if event.decision != "customer":
            return
        transaction = await payments.refund_for_dispute(
            db,
            event.transaction_id,
            event.amount,
            dispute_refund_reason(event),
        )
        if transaction is not None:
            logger.info(
                f"Dispute {event.dispute_id} refunded {transaction.order_id} "
                f"({transaction.currency} {transaction.refunded_amount})"
            )

    return refund_on_customer_win


refund_on_customer_win = make_refund_on_customer_win(payment_service)


def register_event_handlers(bus: EventBus) -> None:
    """Attach the application's handlers; repeated calls are harmless."""
    bus.subscribe(DisputeResolved, refund_on_customer_win)
