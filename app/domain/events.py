"""Domain events and the in-process event bus.

Events are immutable facts published by a service after it has applied a
state change. Handlers run inside the publisher's database session, so
whatever they write commits (or rolls back) together with the change that
raised the event.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for domain events."""

    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC), kw_only=True)


@dataclass(frozen=True)
class DisputeResolved(DomainEvent):
    """An admin closed a dispute in favour of the merchant or the customer."""

    dispute_id: UUID
    transaction_id: UUID
    merchant_id: UUID
    decision: str  # merchant, customer
    amount: Decimal
    reason: str
    resolved_by: str


EventHandler = Callable[[AsyncSession, DomainEvent], Awaitable[None]]


class EventBus:
    """Synchronous-per-request publish/subscribe keyed by event class."""

    def __init__(self) -> None:
        self._handlers: dict[type[DomainEvent], list[EventHandler]] = {}

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def handlers_for(self, event_type: type[DomainEvent]) -> list[EventHandler]:
        return list(self._handlers.get(event_type, []))

    async def publish(self, db: AsyncSession, event: DomainEvent) -> None:
        """Run every handler for the event in subscription order.

        Handler errors propagate so the publishing operation rolls back.
        """
        handlers = self.handlers_for(type(event))
        if not handlers:
            logger.debug(f"No handlers for {type(event).__name__}")
        for handler in handlers:
            await handler(db, event)


# Application-wide bus; handlers are attached by register_event_handlers()
event_bus = EventBus()
