import pytest
import pytest_asyncio
from datetime import datetime, timezone
from decimal import Decimal

from httpx import ASGITransport

from ventaveloz.client import ApiClient
from ventaveloz.models import LineItem, Order, OrderStatus, Role, Table, TableStatus
from ventaveloz.storage import InMemoryStore
from ventaveloz.stub_api import create_app, seed_user

FIXED_NOW = datetime(2026, 3, 14, 21, 30, tzinfo=timezone.utc)


def _item(name, qty, price):
    price = Decimal(str(price))
    return LineItem(product_name=name, quantity=qty, unit_price=price, subtotal=price * qty)


@pytest.fixture
def make_order():
    """Factory for orders: make_order("A", [("Burger", 2, "5.00")], total="10.00")."""
    def _make(order_id, items, total=None, table_id="t5", status=OrderStatus.PENDING, server_id="w1"):
        line_items = [_item(*item) for item in items]
        if total is None:
            total = sum((li.subtotal for li in line_items), Decimal("0"))
        return Order(
            id=order_id,
            table_id=table_id,
            server_id=server_id,
            line_items=line_items,
            total=Decimal(str(total)),
            status=status,
            created_at=FIXED_NOW,
        )
    return _make


@pytest.fixture
def scenario_orders(make_order):
    """Orders A and B (non-cancelled) and C (cancelled) for table 5."""
    return {
        "A": make_order("A", [("Burger", 2, "5.00")], total="10.00"),
        "B": make_order("B", [("Burger", 1, "5.00"), ("Fries", 1, "3.00")], total="8.00"),
        "C": make_order("C", [("Soda", 1, "2.00")], total="2.00", status=OrderStatus.CANCELLED),
    }


@pytest.fixture
def store():
    """Fresh in-memory store with table 5 occupied by waiter w1."""
    s = InMemoryStore()
    s.add_table(Table(
        id="t5",
        number=5,
        capacity=4,
        location="terrace",
        status=TableStatus.OCCUPIED,
        assigned_server_id="w1",
        assigned_server_name="Lucía",
    ))
    yield s
    s.clear()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def stub_app():
    """Stub backend with one admin and one waiter."""
    app = create_app()
    seed_user(app, "Admin", "admin@ventaveloz.test", "secret", role=Role.ADMIN)
    seed_user(app, "Lucía", "lucia@ventaveloz.test", "secret", role=Role.WAITER)
    return app


@pytest_asyncio.fixture
async def anon_api(stub_app):
    """ApiClient talking to the stub backend in-process, no credential."""
    api = ApiClient(base_url="http://test/api", transport=ASGITransport(app=stub_app))
    yield api
    await api.aclose()


@pytest_asyncio.fixture
async def admin_api(anon_api):
    credentials = await anon_api.login("admin@ventaveloz.test", "secret")
    return anon_api.authenticated(credentials)


@pytest_asyncio.fixture
async def waiter_api(anon_api):
    credentials = await anon_api.login("lucia@ventaveloz.test", "secret")
    return anon_api.authenticated(credentials)
