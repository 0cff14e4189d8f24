"""
Pytest configuration and shared test fixtures.

Every test gets its own SQLite database file so stock counters, orders and
concurrent writers behave exactly as they do against a real server, while
the application under test is wired with explicit settings and database
objects instead of process-wide defaults.
"""

from decimal import Decimal
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from storefront.core.config import Settings
from storefront.core.security import create_access_token
from storefront.database.connection import Database
from storefront.database.models import Order, Product, ProductStatus
from storefront.main import create_app
from storefront.schemas.auth import UserRole

TEST_SECRET_KEY = "test-secret-key-that-is-at-least-32-characters"

SHIPPING_ADDRESS = {
    "street": "1 Market Street",
    "city": "Springfield",
    "zip": "12345",
    "country": "US",
}


@pytest.fixture
def order_payload() -> Callable[..., dict[str, Any]]:
    """Build an order request body from ``(product_id, quantity)`` pairs."""

    def _payload(*lines: tuple[Any, int], **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "items": [
                {"product_id": str(product_id), "quantity": quantity}
                for product_id, quantity in lines
            ],
            "shipping_address": dict(SHIPPING_ADDRESS),
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite database file."""
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}",
        secret_key=TEST_SECRET_KEY,
        log_level="WARNING",
        rate_limit_enabled=False,
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with the full schema created."""
    db = Database(settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def product_factory(database: Database) -> Callable[..., Awaitable[Product]]:
    """
    Factory persisting products.

    Example:
        async def test_stock(product_factory):
            product = await product_factory(on_hand=3, selling_price="9.99")
    """

    async def _create(
        on_hand: int = 10,
        selling_price: str = "19.99",
        supplier_id: str = "supplier-1",
        name: str = "Ceramic Mug",
        status: ProductStatus = ProductStatus.ACTIVE,
    ) -> Product:
        async with database.session() as session:
            product = Product(
                supplier_id=supplier_id,
                name=name,
                cost_price=Decimal("1.00"),
                selling_price=Decimal(selling_price),
                on_hand=on_hand,
                status=status,
            )
            session.add(product)
        return product

    return _create


@pytest.fixture
def stock_of(database: Database) -> Callable[[Any], Awaitable[int]]:
    """Read a product's current ``on_hand`` from the database."""

    async def _stock(product_id: Any) -> int:
        async with database.session() as session:
            result = await session.execute(
                select(Product.on_hand).where(Product.id == product_id)
            )
            return result.scalar_one()

    return _stock


@pytest.fixture
def order_count(database: Database) -> Callable[[], Awaitable[int]]:
    """Count persisted orders."""

    async def _count() -> int:
        async with database.session() as session:
            result = await session.execute(select(func.count()).select_from(Order))
            return result.scalar_one()

    return _count


@pytest.fixture
def app(settings: Settings, database: Database) -> FastAPI:
    """Application wired to the test settings and database."""
    return create_app(settings=settings, database=database)


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Asynchronous test client for the application.

    Example:
        async def test_health_endpoint(async_client):
            response = await async_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers(settings: Settings) -> Callable[..., dict[str, str]]:
    """Build an Authorization header for an account id and role."""

    def _headers(user_id: str = "user-1", role: UserRole = UserRole.USER) -> dict[str, str]:
        token = create_access_token(user_id, role.value, settings=settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers
