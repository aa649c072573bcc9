"""Dispute state machine.

States: open → under_review → won | lost

"resolved" is a legacy terminal value: it may exist in stored data and is
treated as final, but no transition produces it.
"""

from app.core.exceptions import ConflictError, InvalidStateError, ValidationError

DISPUTE_REASONS = (
    "fraudulent",
    "unrecognized",
    "duplicate",
    "product_not_received",
    "product_unacceptable",
    "credit_not_processed",
    "other",
)

DISPUTE_STATUSES = ("open", "under_review", "resolved", "won", "lost")
TERMINAL_DISPUTE_STATUSES = frozenset({"resolved", "won", "lost"})
RESOLVABLE_DISPUTE_STATUSES = ("open", "under_review")

DISPUTE_TRANSITIONS: dict[str, set[str]] = {
    "open": {"under_review", "won", "lost"},
    "under_review": {"won", "lost"},
    "resolved": set(),
    "won": set(),
    "lost": set(),
}

# decision → dispute status
RESOLUTION_DECISIONS = {
    "merchant": "won",
    "customer": "lost",
}


def assert_dispute_transition(current_status: str, new_status: str) -> None:
    """Validate dispute state transition."""
    allowed = DISPUTE_TRANSITIONS.get(current_status, set())
    if new_status not in allowed:
        raise InvalidStateError(f"Invalid dispute transition: {current_status} → {new_status}")


def is_terminal(status: str) -> bool:
    return status in TERMINAL_DISPUTE_STATUSES


def can_respond_to_dispute(status: str) -> tuple[bool, str | None]:
    """Check if the merchant may still submit a response."""
    if is_terminal(status):
        return False, "Dispute already resolved"
    if status != "open":
        return False, "A response has already been submitted for this dispute"
    return True, None


def can_resolve_dispute(status: str) -> tuple[bool, str | None]:
    """Check if dispute can be resolved."""
    if is_terminal(status):
        return False, "Dispute already resolved"
    return True, None


def status_for_decision(decision: str) -> str:
    """Map a resolution decision to the dispute's terminal status."""
    try:
        return RESOLUTION_DECISIONS[decision]
    except KeyError:
        raise ValidationError("Invalid decision. Must be 'merchant' or 'customer'")


def assert_resolvable(status: str) -> None:
    can_resolve, error = can_resolve_dispute(status)
    if not can_resolve:
        raise ConflictError(error)
