"""
Centralized Test Configuration.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from backend.app.main import app
from backend.app.core import clock
from backend.app.core.jwt import create_access_token
from backend.app.core.reliability import CircuitBreaker
from backend.app.db.session import get_db, Base
from backend.app.domain.orders.order_service import OrderService
from backend.app.models.enums import UserRole
from backend.app.models.notification import NotificationKind
from backend.app.models.product import Product
from backend.app.models.product_enums import StockStatus
from backend.app.models.user import User
from backend.app.schemas.order import CreateOrderRequest
from backend.app.services.email_service import EmailResult, order_thread_id
from backend.app.services.notification_service import NotificationDispatcher, get_notification_dispatcher

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# January 2025, so order numbers read RW2501-...
FROZEN_AT = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class FakeEmailService:
    """Records deliveries instead of talking to SMTP. Flip ``fail`` to simulate an outage."""

    def __init__(self):
        self.sent: List[dict] = []
        self.fail = False
        self.calls = 0
        self.next_message_id: Optional[str] = None

    async def deliver(self, kind, order, recipient, payload=None) -> EmailResult:
        self.calls += 1
        if self.fail:
            return EmailResult(success=False, error="SMTP connection refused")
        message_id = f"<msg-{self.calls}@example.com>"
        if order is not None and kind == NotificationKind.ORDER_CONFIRMATION:
            message_id = order_thread_id(order.order_number)
        if self.next_message_id:
            message_id, self.next_message_id = self.next_message_id, None
        self.sent.append({
            "kind": kind,
            "order_id": order.id if order is not None else None,
            "recipient": recipient,
            "payload": payload,
            "message_id": message_id,
        })
        return EmailResult(success=True, message_id=message_id)

    def kinds(self) -> List[NotificationKind]:
        return [entry["kind"] for entry in self.sent]


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(autouse=True)
def fixed_clock():
    frozen = clock.FixedClock(FROZEN_AT)
    clock.set_clock(frozen)
    yield frozen
    clock.set_clock(None)


@pytest.fixture
def email():
    return FakeEmailService()


@pytest.fixture
def breaker():
    return CircuitBreaker(failure_threshold=3, reset_timeout=60, name="test-email")


@pytest.fixture
def dispatcher(session_factory, email, breaker):
    return NotificationDispatcher(session_factory, email=email, breaker=breaker)


@pytest.fixture
async def client(session_factory, dispatcher):
    """Async client bound to the per-test database and dispatcher."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def reload(db_session):
    """Fetch a row bypassing the identity map's cached state."""
    async def _reload(model, pk):
        return await db_session.get(model, pk, populate_existing=True)
    return _reload


@pytest.fixture
async def products(db_session):
    """Three products: plenty of stock, low stock, and none left."""
    items = [
        Product(name="Wireless Mouse", sku="MOUSE-01", price=Decimal("25.00"), stock_quantity=10, stock_status=StockStatus.IN_STOCK),
        Product(name="USB-C Cable", sku="CABLE-01", price=Decimal("8.50"), stock_quantity=2, stock_status=StockStatus.IN_STOCK),
        Product(name="Desk Lamp", sku="LAMP-01", price=Decimal("40.00"), stock_quantity=0, stock_status=StockStatus.OUT_OF_STOCK),
    ]
    db_session.add_all(items)
    await db_session.commit()
    for item in items:
        await db_session.refresh(item)
    return items


async def _make_user(db_session, email: str, name: str, role: UserRole) -> User:
    user = User(email=email, full_name=name, role=role)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def customer(db_session):
    return await _make_user(db_session, "jane@example.com", "Jane Customer", UserRole.CUSTOMER)


@pytest.fixture
async def other_customer(db_session):
    return await _make_user(db_session, "sam@example.com", "Sam Other", UserRole.CUSTOMER)


@pytest.fixture
async def admin(db_session):
    return await _make_user(db_session, "admin@example.com", "Store Admin", UserRole.ADMIN)


def _auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(customer):
    return _auth_headers(customer)


@pytest.fixture
def other_customer_headers(other_customer):
    return _auth_headers(other_customer)


@pytest.fixture
def admin_headers(admin):
    return _auth_headers(admin)


@pytest.fixture
def order_body():
    """Builds the JSON body for POST /v1/orders."""
    def _order_body(
        items: List[dict],
        country: str = "RW",
        email: str = "jane@example.com",
        phone: Optional[str] = "+250788000111",
    ) -> dict:
        return {
            "items": items,
            "country": country,
            "recipient_name": "Jane Customer",
            "recipient_email": email,
            "recipient_phone": phone,
            "shipping_address": "KG 11 Ave, House 4",
            "shipping_city": "Kigali",
            "shipping_country": "Rwanda",
        }
    return _order_body


@pytest.fixture
def line():
    """One cart line for a product id."""
    def _line(product_id: int, quantity: int, unit_price: str = "10.00", tax_amount: str = "0") -> dict:
        return {
            "product_id": product_id,
            "quantity": quantity,
            "unit_price": unit_price,
            "tax_percentage": "18" if tax_amount != "0" else "0",
            "tax_amount": tax_amount,
        }
    return _line


@pytest.fixture
def place_order(db_session, order_body):
    """Create an order through the service on the shared test session."""
    async def _place_order(items: List[dict], user_id: Optional[int] = None, **kwargs):
        request = CreateOrderRequest(**order_body(items, **kwargs))
        return await OrderService.create_order(db_session, request, user_id)
    return _place_order
