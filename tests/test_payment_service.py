"""Payment lifecycle: create, settle, refund."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.core.background_tasks import commit_and_dispatch
from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.domain.payment_state import FixedSettlementPolicy
from app.models.audit import AuditLog
from app.services.payment_service import PaymentService


async def test_create_payment_opens_pending_transaction(session, merchant, payments):
    transaction = await payments.create_payment(
        session, merchant.id, "1000", "upi", "buyer@example.com"
    )

    assert transaction.status == "pending"
    assert transaction.order_id.startswith("order_")
    assert len(transaction.order_id) == len("order_") + 32
    assert transaction.amount == Decimal("1000.00")
    assert transaction.currency == "INR"
    assert transaction.is_test_mode is True
    assert transaction.has_dispute is False
    assert transaction.refunded_amount == Decimal("0")
    assert transaction.refund_reason is None


@pytest.mark.parametrize(
    "amount,method,email",
    [
        (Decimal("0"), "card", "buyer@example.com"),
        (Decimal("-10"), "card", "buyer@example.com"),
        (Decimal("10"), "cheque", "buyer@example.com"),
        (Decimal("10"), "card", "not-an-email"),
        ("ten", "card", "buyer@example.com"),
    ],
)
async def test_create_payment_rejects_bad_input(session, merchant, payments, amount, method, email):
    with pytest.raises(ValidationError):
        await payments.create_payment(session, merchant.id, amount, method, email)


async def test_create_payment_only_supports_inr(session, merchant, payments):
    with pytest.raises(ValidationError):
        await payments.create_payment(
            session, merchant.id, Decimal("10"), "card", "buyer@example.com", currency="USD"
        )


async def test_create_payment_for_unknown_merchant(session, payments):
    with pytest.raises(NotFoundError):
        await payments.create_payment(session, uuid4(), Decimal("10"), "card", "buyer@example.com")


async def test_order_ids_are_unique(session, merchant, payments):
    ids = {
        (await payments.create_payment(session, merchant.id, Decimal("1"), "card", "a@b.co")).order_id
        for _ in range(20)
    }
    assert len(ids) == 20


async def test_verify_settles_with_policy(session, merchant):
    declining = PaymentService(FixedSettlementPolicy("failed"))
    transaction = await declining.create_payment(session, merchant.id, Decimal("75"), "wallet", "a@b.co")

    settled = await declining.verify_payment(session, transaction.order_id)

    assert settled.status == "failed"


async def test_verify_twice_fails(session, paid_transaction, payments):
    with pytest.raises(InvalidStateError, match="already been processed"):
        await payments.verify_payment(session, paid_transaction.order_id)


async def test_verify_unknown_order(session, payments):
    with pytest.raises(NotFoundError):
        await payments.verify_payment(session, "order_" + "0" * 32)


async def test_concurrent_verifier_loses(database, merchant, payments):
    async with database.session() as setup:
        transaction = await payments.create_payment(setup, merchant.id, Decimal("10"), "card", "a@b.co")
        await setup.commit()

    async with database.session() as first, database.session() as second:
        # Both verifiers see the transaction as pending
        await payments.get_by_order_id(first, transaction.order_id)
        await first.commit()

        await payments.verify_payment(second, transaction.order_id)
        await second.commit()

        with pytest.raises(InvalidStateError):
            await payments.verify_payment(first, transaction.order_id)


async def test_settle_outcome_is_validated(session, merchant, payments):
    transaction = await payments.create_payment(session, merchant.id, Decimal("10"), "card", "a@b.co")
    with pytest.raises(ValidationError):
        await payments.settle(session, transaction.order_id, "refunded", actor="admin@zeropay.com")


async def test_manual_settle_is_audited(session, merchant, payments):
    transaction = await payments.create_payment(session, merchant.id, Decimal("10"), "card", "a@b.co")
    await payments.settle(session, transaction.order_id, "failed", actor="admin@zeropay.com")
    await session.commit()

    result = await session.execute(
        select(AuditLog).where(AuditLog.action == "PAYMENT_MANUALLY_SETTLED")
    )
    entry = result.scalar_one()
    assert entry.actor == "admin@zeropay.com"
    assert entry.details["new_status"] == "failed"


async def test_settlement_queues_customer_email(session, merchant, payments, dispatched):
    transaction = await payments.create_payment(session, merchant.id, Decimal("10"), "card", "a@b.co")
    await payments.verify_payment(session, transaction.order_id)
    await commit_and_dispatch(session)

    emails = [kwargs for name, kwargs in dispatched if name == "app.tasks.send_email"]
    assert emails == [
        {
            "template": "payment_success",
            "to_email": "a@b.co",
            "context": {
                "order_id": transaction.order_id,
                "amount": "10.00",
                "currency": "INR",
                "method": "card",
            },
        }
    ]


# ==================== REFUNDS ====================


async def test_refund_pending_transaction_fails(session, merchant, payments):
    transaction = await payments.create_payment(session, merchant.id, Decimal("10"), "card", "a@b.co")
    with pytest.raises(InvalidStateError):
        await payments.refund(session, transaction.order_id, Decimal("5"), "changed mind")


async def test_refund_failed_transaction_fails(session, merchant):
    declining = PaymentService(FixedSettlementPolicy("failed"))
    transaction = await declining.create_payment(session, merchant.id, Decimal("10"), "card", "a@b.co")
    await declining.verify_payment(session, transaction.order_id)

    with pytest.raises(InvalidStateError):
        await declining.refund(session, transaction.order_id, Decimal("5"))


async def test_refund_above_original_amount_fails(session, paid_transaction, payments):
    with pytest.raises(ValidationError):
        await payments.refund(session, paid_transaction.order_id, Decimal("500.01"))
    assert paid_transaction.status == "success"


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
async def test_refund_amount_must_be_positive(session, paid_transaction, payments, amount):
    with pytest.raises(ValidationError):
        await payments.refund(session, paid_transaction.order_id, amount)


async def test_full_refund(session, paid_transaction, payments):
    refunded = await payments.refund(session, paid_transaction.order_id, Decimal("500"), "damaged")

    assert refunded.status == "refunded"
    assert refunded.refunded_amount == Decimal("500.00")
    assert refunded.refund_reason == "damaged"
    assert refunded.refund_date is not None


async def test_second_refund_fails(session, paid_transaction, payments):
    await payments.refund(session, paid_transaction.order_id, Decimal("100"))
    with pytest.raises(InvalidStateError, match="already been refunded"):
        await payments.refund(session, paid_transaction.order_id, Decimal("100"))


async def test_refund_is_scoped_to_merchant(session, paid_transaction, payments):
    with pytest.raises(NotFoundError):
        await payments.refund(session, paid_transaction.order_id, Decimal("1"), merchant_id=uuid4())


async def test_concurrent_refund_loses(database, paid_transaction, payments):
    async with database.session() as first, database.session() as second:
        await payments.get_by_order_id(first, paid_transaction.order_id)
        await first.commit()

        await payments.refund(second, paid_transaction.order_id, Decimal("50"))
        await second.commit()

        with pytest.raises(InvalidStateError):
            await payments.refund(first, paid_transaction.order_id, Decimal("50"))


async def test_scenario_partial_refund_then_refund_again(session, merchant, payments):
    transaction = await payments.create_payment(session, merchant.id, Decimal("1000"), "upi", "a@b.co")
    await payments.verify_payment(session, transaction.order_id)
    assert transaction.status == "success"

    await payments.refund(session, transaction.order_id, Decimal("400"), "partial")
    assert transaction.status == "refunded"
    assert transaction.refunded_amount == Decimal("400.00")

    with pytest.raises(InvalidStateError):
        await payments.refund(session, transaction.order_id, Decimal("100"))
    assert transaction.refunded_amount == Decimal("400.00")


async def test_refund_for_dispute_is_silent_when_not_success(session, merchant, payments):
    transaction = await payments.create_payment(session, merchant.id, Decimal("10"), "card", "a@b.co")

    assert await payments.refund_for_dispute(session, transaction.id, Decimal("10"), "x") is None
    assert transaction.status == "pending"


async def test_list_transactions_filters(session, merchant, payments):
    pending = await payments.create_payment(session, merchant.id, Decimal("1"), "card", "a@b.co")
    paid = await payments.create_payment(session, merchant.id, Decimal("2"), "card", "a@b.co")
    await payments.verify_payment(session, paid.order_id)

    only_pending = await payments.list_transactions(session, merchant_id=merchant.id, status="pending")
    assert [t.order_id for t in only_pending] == [pending.order_id]

    with pytest.raises(ValidationError):
        await payments.list_transactions(session, status="bogus")
