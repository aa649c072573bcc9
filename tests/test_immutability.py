"""Ledger records that must not change once written."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.immutability import ImmutabilityViolationError
from app.models.audit import AuditLog


async def first_audit_entry(session):
    result = await session.execute(select(AuditLog).limit(1))
    return result.scalar_one()


async def test_audit_log_cannot_be_updated(session, paid_transaction):
    entry = await first_audit_entry(session)
    entry.actor = "someone-else"

    with pytest.raises(ImmutabilityViolationError):
        await session.flush()
    await session.rollback()


async def test_audit_log_cannot_be_deleted(session, paid_transaction):
    entry = await first_audit_entry(session)
    await session.delete(entry)

    with pytest.raises(ImmutabilityViolationError):
        await session.flush()
    await session.rollback()


async def test_transaction_amount_is_fixed(session, paid_transaction):
    paid_transaction.amount = Decimal("1.00")

    with pytest.raises(ImmutabilityViolationError):
        await session.flush()
    await session.rollback()


async def test_transaction_other_fields_can_change(session, paid_transaction):
    paid_transaction.customer_email = "new@example.com"
    await session.flush()


async def test_open_dispute_can_be_edited(session, merchant, paid_transaction, disputes):
    dispute = await disputes.open_dispute(session, merchant.id, paid_transaction.id, "other", "first")
    await session.commit()

    dispute.customer_message = "clarified"
    await session.flush()


async def test_resolved_dispute_is_frozen(session, merchant, paid_transaction, disputes):
    dispute = await disputes.open_dispute(session, merchant.id, paid_transaction.id, "other", "?")
    await disputes.resolve(session, dispute.id, "merchant", "admin@zeropay.com")
    await session.commit()

    dispute.resolution_notes = "rewritten"
    with pytest.raises(ImmutabilityViolationError):
        await session.flush()
    await session.rollback()


async def test_dispute_cannot_be_deleted(session, merchant, paid_transaction, disputes):
    dispute = await disputes.open_dispute(session, merchant.id, paid_transaction.id, "other", "?")
    await session.commit()

    await session.delete(dispute)
    with pytest.raises(ImmutabilityViolationError):
        await session.flush()
    await session.rollback()
