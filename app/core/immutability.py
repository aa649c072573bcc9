"""Immutability enforcement for ledger records using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event, inspect

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify an immutable record or field."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def _reject(model_name: str, operation: str, target) -> None:
    _log_immutability_violation(model_name, operation, str(target.id))
    raise ImmutabilityViolationError(model_name, operation, str(target.id))


def _committed_value(target, attribute: str):
    """Value the attribute had when loaded, before any pending change."""
    history = inspect(target).attrs[attribute].history
    if history.deleted:
        return history.deleted[0]
    return getattr(target, attribute)


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners for immutability enforcement.

    Safe to call more than once; listeners are attached on the first call.
    Compare-and-set UPDATE statements bypass these unit-of-work hooks, so the
    guards cover ORM attribute writes only.
    """
    global _registered
    if _registered:
        return

    from app.domain.dispute_state import is_terminal
    from app.models.audit import AuditLog
    from app.models.dispute import Dispute
    from app.models.transaction import Transaction

    # ============ AuditLog: Append-Only ============

    @event.listens_for(AuditLog, "before_update")
    def prevent_audit_update(mapper, connection, target):
        _reject("AuditLog", "UPDATE", target)

    @event.listens_for(AuditLog, "before_delete")
    def prevent_audit_delete(mapper, connection, target):
        _reject("AuditLog", "DELETE", target)

    # ============ Transaction: amount is fixed at creation ============

    @event.listens_for(Transaction, "before_update")
    def prevent_amount_change(mapper, connection, target):
        if inspect(target).attrs.amount.history.has_changes():
            _reject("Transaction", "change amount of", target)

    # ============ Dispute: frozen once won, lost or resolved ============

    @event.listens_for(Dispute, "before_update")
    def prevent_resolved_dispute_update(mapper, connection, target):
        if is_terminal(_committed_value(target, "status")):
            _reject("Dispute", "UPDATE", target)

    @event.listens_for(Dispute, "before_delete")
    def prevent_dispute_delete(mapper, connection, target):
        _reject("Dispute", "DELETE", target)

    _registered = True
    logger.info("Immutability enforcement registered for ledger records")
