"""Shared fixtures: a throwaway SQLite database per test and task-dispatch capture."""

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from app.core import background_tasks
from app.core.idempotency import reset_idempotency_store
from app.core.immutability import register_immutability_enforcement
from app.core.security import create_admin_token, generate_api_keys
from app.database import Database
from app.domain.events import EventBus
from app.domain.payment_state import FixedSettlementPolicy
from app.models.merchant import Merchant
from app.services.dispute_service import DisputeService
from app.services.event_handlers import register_event_handlers
from app.services.payment_service import PaymentService


@pytest.fixture(autouse=True)
def dispatched(monkeypatch):
    """Record tasks instead of publishing them to a broker."""
    calls: list[tuple[str, dict]] = []
    monkeypatch.setattr(
        background_tasks, "dispatch_task", lambda name, kwargs: calls.append((name, kwargs))
    )
    return calls


@pytest.fixture(autouse=True)
def _guards():
    register_immutability_enforcement()
    reset_idempotency_store()
    yield
    reset_idempotency_store()


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def session(database):
    async with database.session() as s:
        yield s


async def make_merchant(database: Database, email: str = "store@example.com") -> Merchant:
    keys = generate_api_keys()
    merchant = Merchant(
        name="Test Store",
        email=email,
        public_key=keys["public_key"],
        secret_key=keys["secret_key"],
        sandbox_mode=True,
    )
    async with database.session() as s:
        s.add(merchant)
        await s.commit()
    return merchant


@pytest.fixture
async def merchant(database):
    return await make_merchant(database)


@pytest.fixture
async def other_merchant(database):
    return await make_merchant(database, "other@example.com")


@pytest.fixture
def payments():
    return PaymentService(FixedSettlementPolicy("success"))


@pytest.fixture
def bus():
    event_bus = EventBus()
    register_event_handlers(event_bus)
    return event_bus


@pytest.fixture
def disputes(bus):
    return DisputeService(bus)


@pytest.fixture
async def paid_transaction(session, merchant, payments):
    """A 500 INR card payment already settled to success."""
    transaction = await payments.create_payment(
        session, merchant.id, Decimal("500"), "card", "buyer@example.com"
    )
    await payments.verify_payment(session, transaction.order_id)
    await session.commit()
    return transaction


# ==================== HTTP ====================


@pytest.fixture
async def api_app(database):
    from app.main import create_application

    return create_application(database=database)


@pytest.fixture
async def client(api_app):
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as c:
        yield c


@pytest.fixture
def merchant_headers(merchant):
    return {"Authorization": f"Bearer {merchant.secret_key}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_admin_token('admin@zeropay.com')}"}
