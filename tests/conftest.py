"""
Shared fixtures: an in-memory SQLite database and a fake Shopify catalog.

Environment defaults are set before anything from `saleflow` is imported,
because configuration is validated at import time.
"""

import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DB_TYPE", "sqlite")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SHOPIFY_API_KEY", "test-api-key")
os.environ.setdefault("SHOPIFY_API_SECRET", "test-api-secret")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

from contextlib import nullcontext
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from saleflow.core.db import Base
from saleflow.core.exceptions import ShopifyAPIError
from saleflow.models.sales.sale_models import Sale, SaleItem
from saleflow.models.enums.sale_status import SaleStatus
from saleflow.models.enums.discount_type import DiscountType
from saleflow.models.enums.discount_strategy import DiscountStrategy
from saleflow.models.enums.deactivation_strategy import DeactivationStrategy

SHOP = "demo-store.myshopify.com"
OTHER_SHOP = "other-store.myshopify.com"


def at(day: int, hour: int = 0) -> datetime:
    return datetime(2026, 1, day, hour, tzinfo=timezone.utc)


def variant_gid(n: int) -> str:
    return f"gid://shopify/ProductVariant/{n}"


def product_gid(n: int) -> str:
    return f"gid://shopify/Product/{n}"


class FakeShopify:
    """In-memory stand-in for ShopifyAdminClient."""

    def __init__(self, shop: str = SHOP, plan: str = "Pro"):
        self.shop = shop
        self.variants: dict[str, dict] = {}
        self.fetch_calls: list[list[str]] = []
        self.bulk_calls: list[tuple[str, list[dict]]] = []
        self.failing_products: set[str] = set()
        self.rejected_products: set[str] = set()
        self.failing_variants: set[str] = set()
        self.subscriptions = [{"name": plan, "status": "ACTIVE"}] if plan else []
        self.subscription_error: Exception | None = None

    def add_variant(self, variant_id, product_id, price, compare_at=None):
        self.variants[variant_id] = {
            "product_id": product_id,
            "price": Decimal(str(price)),
            "compare_at": None if compare_at is None else Decimal(str(compare_at)),
        }

    def price_of(self, variant_id) -> Decimal:
        return self.variants[variant_id]["price"]

    def compare_at_of(self, variant_id) -> Decimal | None:
        return self.variants[variant_id]["compare_at"]

    def set_price(self, variant_id, price):
        self.variants[variant_id]["price"] = Decimal(str(price))

    async def fetch_variants(self, variant_ids):
        self.fetch_calls.append(list(variant_ids))
        if self.failing_variants & set(variant_ids):
            raise ShopifyAPIError("Shopify responded 503", status_code=503)

        nodes = []
        for vid in variant_ids:
            v = self.variants.get(vid)
            if v is None:
                continue
            nodes.append(
                {
                    "id": vid,
                    "price": str(v["price"]),
                    "compareAtPrice": None if v["compare_at"] is None else str(v["compare_at"]),
                    "product": {"id": v["product_id"]},
                }
            )
        return nodes

    async def bulk_update_variants(self, product_id, variants):
        self.bulk_calls.append((product_id, variants))
        if product_id in self.failing_products:
            raise ShopifyAPIError("Shopify responded 502", status_code=502)
        if product_id in self.rejected_products:
            return [{"field": ["variants", "0", "price"], "message": "Price is invalid"}]

        for v in variants:
            stored = self.variants[v["id"]]
            stored["price"] = Decimal(v["price"])
            stored["compare_at"] = None if v["compareAtPrice"] is None else Decimal(v["compareAtPrice"])
        return []

    async def fetch_active_subscriptions(self):
        if self.subscription_error:
            raise self.subscription_error
        return self.subscriptions

    async def aclose(self):
        pass


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def shopify():
    return FakeShopify()


@pytest.fixture
def clients(shopify):
    """Client factory for the end sweep; every shop shares the same fake."""
    def open_client(shop):
        return nullcontext(shopify)
    return open_client


@pytest.fixture
def make_sale(db):
    async def _make_sale(
        variants,
        *,
        title="Winter sale",
        shop=SHOP,
        start=None,
        end=None,
        status=SaleStatus.PENDING,
        discount_type=DiscountType.PERCENTAGE,
        value="20",
        strategy=DiscountStrategy.KEEP_COMPARE_AT,
        deactivation=DeactivationStrategy.RESTORE,
        timer_id=None,
    ) -> Sale:
        sale = Sale(
            shop=shop,
            title=title,
            discount_type=discount_type,
            value=Decimal(value),
            start_time=start or at(1),
            end_time=end or at(10),
            status=status,
            discount_strategy=strategy,
            deactivation_strategy=deactivation,
            timer_id=timer_id,
            items=[SaleItem(product_id=p, variant_id=v) for p, v in variants],
        )
        db.add(sale)
        await db.commit()
        return sale

    return _make_sale


async def reload_sale(db, sale_id) -> Sale | None:
    """Fresh copy of a sale and its items, ignoring what the session has cached."""
    result = await db.execute(
        select(Sale)
        .options(selectinload(Sale.items))
        .where(Sale.id == sale_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
