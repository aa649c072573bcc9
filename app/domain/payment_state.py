"""Payment (transaction) state machine and mock settlement policy."""

import random
from typing import Protocol

from app.core.exceptions import InvalidStateError

PAYMENT_STATUSES = ("pending", "success", "failed", "refunded")
PAYMENT_METHODS = ("card", "upi", "wallet", "netbanking")

PAYMENT_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"success", "failed"},
    "success": {"refunded"},
    "failed": set(),
    "refunded": set(),
}

# Outcomes a settlement may produce, and the webhook event each one fires
SETTLEMENT_OUTCOMES = ("success", "failed")
STATUS_EVENTS = {
    "success": "payment.success",
    "failed": "payment.failed",
    "refunded": "payment.refunded",
}


def assert_payment_transition(current: str, target: str) -> None:
    allowed = PAYMENT_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidStateError(
            f"Invalid payment transition: {current} → {target}"
        )


def can_settle(status: str) -> tuple[bool, str | None]:
    """Check if a transaction can still be settled."""
    if status != "pending":
        return False, "This payment has already been processed."
    return True, None


def can_refund(status: str) -> tuple[bool, str | None]:
    """Check if a transaction can be refunded."""
    if status == "refunded":
        return False, "Transaction has already been refunded"
    if status != "success":
        return False, "Only successful transactions can be refunded"
    return True, None


class SettlementPolicy(Protocol):
    """Decides how a pending transaction settles."""

    def decide(self, order_id: str) -> str:
        """Return "success" or "failed"."""
        ...


class RandomSettlementPolicy:
    """Mock card/UPI network: succeeds with a fixed probability."""

    def __init__(self, success_rate: float = 0.8, rng: random.Random | None = None):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be between 0 and 1")
        self.success_rate = success_rate
        self._rng = rng or random.Random()

    def decide(self, order_id: str) -> str:
        return "success" if self._rng.random() < self.success_rate else "failed"


class FixedSettlementPolicy:
    """Always settles to the same outcome (admin overrides, tests)."""

    def __init__(self, outcome: str):
        if outcome not in SETTLEMENT_OUTCOMES:
            raise ValueError(f"Invalid settlement outcome: {outcome}")
        self.outcome = outcome

    def decide(self, order_id: str) -> str:
        return self.outcome
