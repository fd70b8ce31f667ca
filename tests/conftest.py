"""Shared fixtures.

Every test gets its own SQLite database file. The schema is created
with a sync engine; services and the API use an aiosqlite engine with
NullPool so no connection outlives the event loop that opened it.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./storefront-test.db")
os.environ.setdefault("DEBUG", "false")

from collections.abc import AsyncGenerator, AsyncIterator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from storefront.api.security import Role, create_access_token
from storefront.application.cart_service import CartService
from storefront.application.checkout_service import CheckoutService
from storefront.application.order_service import OrderService
from storefront.application.payment_service import PaymentService
from storefront.domain.pricing import PricingCalculator, PricingConfig
from storefront.domain.shipping import FlatRateShipping
from storefront.domain.state_machines import StatusPolicy
from storefront.infrastructure.database import Base, get_session
from storefront.infrastructure.models import (
    AddressModel,
    CouponModel,
    ProductModel,
    ProductVariantModel,
)
from storefront.main import app

CUSTOMER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_CUSTOMER_ID = "22222222-2222-2222-2222-222222222222"
ADMIN_ID = "99999999-9999-9999-9999-999999999999"

SHIPPING_RATE = Decimal("2500")
VAT_RATE = Decimal("0.075")


@dataclass
class Catalog:
    """Ids of the seeded catalog records."""

    product_id: str
    shirt_m: str  # 5000, stock 10
    shirt_l: str  # 5000 + 500, stock 3
    cap: str  # 4000, stock 1
    retired: str  # inactive variant
    sold_out: str  # stock 0
    address_id: str
    other_address_id: str


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Fresh database with the full schema."""
    path = tmp_path / "storefront.db"

    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for service tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def catalog(session_factory) -> Catalog:
    """Seed products, variants and addresses."""
    async with session_factory() as session:
        shirt = ProductModel(name="Ankara Shirt", slug="ankara-shirt", base_price=Decimal("5000"))
        cap = ProductModel(name="Kente Cap", slug="kente-cap", base_price=Decimal("4000"))
        session.add_all([shirt, cap])
        await session.flush()

        variants = {
            "shirt_m": ProductVariantModel(
                product_id=shirt.id, sku="ANK-M", color="Blue", size="M", stock_quantity=10
            ),
            "shirt_l": ProductVariantModel(
                product_id=shirt.id,
                sku="ANK-L",
                color="Blue",
                size="L",
                stock_quantity=3,
                price_modifier=Decimal("500"),
            ),
            "cap": ProductVariantModel(
                product_id=cap.id, sku="KEN-OS", color="Gold", size="OS", stock_quantity=1
            ),
            "retired": ProductVariantModel(
                product_id=shirt.id,
                sku="ANK-XS",
                color="Blue",
                size="XS",
                stock_quantity=5,
                is_active=False,
            ),
            "sold_out": ProductVariantModel(
                product_id=shirt.id, sku="ANK-XL", color="Blue", size="XL", stock_quantity=0
            ),
        }
        session.add_all(variants.values())

        address = make_address(CUSTOMER_ID)
        other_address = make_address(OTHER_CUSTOMER_ID)
        session.add_all([address, other_address])
        await session.commit()

        return Catalog(
            product_id=shirt.id,
            address_id=address.id,
            other_address_id=other_address.id,
            **{name: variant.id for name, variant in variants.items()},
        )


def make_address(user_id: str) -> AddressModel:
    return AddressModel(
        user_id=user_id,
        first_name="Ada",
        last_name="Obi",
        phone="+2348000000000",
        street="12 Marina Road",
        city="Lagos",
        state="Lagos",
        postal_code="100001",
        country="Nigeria",
    )


@pytest.fixture
def add_coupon(session_factory):
    """Factory fixture that inserts a coupon and returns its code."""

    async def _add(
        code: str,
        type: str = "PERCENTAGE",
        value: Decimal = Decimal("10"),
        min_order_amount: Decimal | None = None,
        max_uses: int | None = None,
        used_count: int = 0,
        is_active: bool = True,
        starts_at: datetime | None = None,
        expires_at: datetime | None = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        async with session_factory() as session:
            session.add(
                CouponModel(
                    code=code,
                    type=type,
                    value=value,
                    min_order_amount=min_order_amount,
                    max_uses=max_uses,
                    used_count=used_count,
                    is_active=is_active,
                    starts_at=starts_at or now - timedelta(days=1),
                    expires_at=expires_at or now + timedelta(days=30),
                )
            )
            await session.commit()
        return code

    return _add


async def get_variant_stock(session_factory, variant_id: str) -> int:
    """Read a variant's stock in a fresh session."""
    async with session_factory() as session:
        result = await session.execute(
            select(ProductVariantModel.stock_quantity).where(ProductVariantModel.id == variant_id)
        )
        return result.scalar_one()


async def get_coupon_used_count(session_factory, code: str) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(CouponModel.used_count).where(CouponModel.code == code)
        )
        return result.scalar_one()


# ============================================================================
# Services
# ============================================================================


def build_checkout_service(session: AsyncSession) -> CheckoutService:
    return CheckoutService(
        session,
        calculator=PricingCalculator(PricingConfig(vat_rate=VAT_RATE)),
        shipping=FlatRateShipping(SHIPPING_RATE),
    )


def build_payment_service(
    session: AsyncSession, policy: StatusPolicy = StatusPolicy.STRICT
) -> PaymentService:
    return PaymentService(
        session,
        orders=OrderService(session, policy=policy),
        payment_page_url="http://localhost:3000/payment",
    )


@pytest.fixture
async def place_order(session_factory, catalog):
    """Factory fixture: fill the customer's cart and check it out."""

    async def _place(
        lines: list[tuple[str, int]],
        user_id: str = CUSTOMER_ID,
        coupon_code: str | None = None,
    ):
        address_id = catalog.address_id if user_id == CUSTOMER_ID else catalog.other_address_id
        async with session_factory() as session:
            cart = CartService(session)
            for variant_id, quantity in lines:
                await cart.add_item(user_id, variant_id, quantity)
            if coupon_code:
                await cart.apply_coupon(user_id, coupon_code)
            return await build_checkout_service(session).checkout(user_id, address_id)

    return _place


# ============================================================================
# API
# ============================================================================


@pytest.fixture
def client(session_factory) -> TestClient:
    """Test client backed by the per-test database."""

    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user_id: str = CUSTOMER_ID, role: Role = Role.CUSTOMER) -> dict[str, str]:
    """Authorization header for a user."""
    token = create_access_token(user_id, email=f"{user_id[:4]}@example.com", role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers() -> dict[str, str]:
    return auth_headers(CUSTOMER_ID)


@pytest.fixture
def other_customer_headers() -> dict[str, str]:
    return auth_headers(OTHER_CUSTOMER_ID)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers(ADMIN_ID, Role.ADMIN)
