"""Idempotency keys for client-retried payment operations."""

import hashlib
import json
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID


class IdempotencyStore:
    """In-memory idempotency key store.

    Scoped to one process; deployments running several API workers should
    pin retries to a worker or accept that a replay may surface the state
    guard error instead of the cached result. Entries expire after ``ttl``
    and the oldest are evicted once ``max_entries`` is reached.
    """

    def __init__(self, ttl: timedelta = timedelta(hours=24), max_entries: int = 10_000):
        # key -> (expires_at, result), insertion ordered
        self._entries: dict[str, tuple[datetime, dict]] = {}
        self._ttl = ttl
        self._max_entries = max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def _evict(self, now: datetime) -> None:
        """Drop expired entries, then the oldest ones beyond capacity."""
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]
        while len(self._entries) >= self._max_entries:
            del self._entries[next(iter(self._entries))]

    def get(self, key: str) -> dict | None:
        """Stored result for a key, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, result = entry
        if expires_at <= datetime.now(UTC):
            del self._entries[key]
            return None
        return result

    def set(self, key: str, result: dict) -> None:
        now = datetime.now(UTC)
        self._entries.pop(key, None)
        self._evict(now)
        self._entries[key] = (now + self._ttl, result)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self._entries.clear()


# Global store instance
_idempotency_store = IdempotencyStore()


def generate_idempotency_key(
    operation: str,
    entity_id: UUID | str,
    params: dict[str, Any] | None = None,
) -> str:
    """Generate a deterministic idempotency key.

    Args:
        operation: Operation name (e.g., "payment_verify")
        entity_id: Primary entity ID (order reference)
        params: Additional parameters to include in key

    Returns:
        SHA256 hash of operation + entity + params
    """
    key_data = {
        "operation": operation,
        "entity_id": str(entity_id),
        "params": params or {},
    }
    key_str = json.dumps(key_data, sort_keys=True)
    return hashlib.sha256(key_str.encode()).hexdigest()


def check_idempotency(key: str) -> dict | None:
    """Check if operation was already performed.

    Returns:
        Previous result if found, None otherwise
    """
    return _idempotency_store.get(key)


def store_idempotency_result(key: str, result: dict) -> None:
    """Store operation result for idempotency."""
    _idempotency_store.set(key, result)


def reset_idempotency_store() -> None:
    _idempotency_store.clear()
