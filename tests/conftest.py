"""
测试配置文件 - pytest fixtures和共用配置
"""

import uuid
from datetime import datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from courseaccess.core.database import Base
import courseaccess.models.database  # noqa: F401  注册所有表
from courseaccess.models.coupon import Coupon, CouponType
from courseaccess.models.entitlement import Entitlement, EntitlementMetadata, EntitlementType
from courseaccess.models.product import Product, ProductType, Purchase, PurchaseStatus
from courseaccess.models.resource import Resource, ResourceState, ResourceType, ResourceVisibility


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """测试数据库引擎 - 内存SQLite"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,  # 设为True可以看到SQL语句
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )

    # 创建表结构
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_db_engine) -> AsyncSession:
    """测试数据库会话"""
    session_maker = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest.fixture
def make_resource():
    """资源构造器"""
    def _make(resource_id: str, type: ResourceType = ResourceType.LESSON, **kwargs) -> Resource:
        kwargs.setdefault("slug", resource_id)
        kwargs.setdefault("state", ResourceState.PUBLISHED)
        kwargs.setdefault("visibility", ResourceVisibility.PRIVATE)
        return Resource(id=resource_id, type=type, **kwargs)
    return _make


@pytest.fixture
def make_coupon():
    """优惠券构造器"""
    def _make(coupon_id: str = "coupon_001", **kwargs) -> Coupon:
        kwargs.setdefault("type", CouponType.SPECIAL)
        return Coupon(id=coupon_id, **kwargs)
    return _make


@pytest.fixture
def make_product():
    """商品构造器"""
    def _make(product_id: str = "product_001", price: str = "100.00", **kwargs) -> Product:
        kwargs.setdefault("name", f"商品 {product_id}")
        kwargs.setdefault("type", ProductType.SELF_PACED)
        return Product(id=product_id, price=Decimal(price), **kwargs)
    return _make


@pytest.fixture
def make_purchase():
    """购买记录构造器"""
    def _make(purchase_id: str = "purchase_001", user_id: str = "user_001", product_id: str = "product_001", **kwargs) -> Purchase:
        kwargs.setdefault("status", PurchaseStatus.VALID)
        return Purchase(id=purchase_id, user_id=user_id, product_id=product_id, **kwargs)
    return _make


@pytest.fixture
def make_entitlement():
    """权益构造器"""
    def _make(content_id: str, source_id: str = "purchase_001", **kwargs) -> Entitlement:
        kwargs.setdefault("entitlement_type", EntitlementType.WORKSHOP_CONTENT_ACCESS)
        kwargs.setdefault("user_id", "user_001")
        return Entitlement(
            id=kwargs.pop("id", str(uuid.uuid4())),
            source_id=source_id,
            metadata=EntitlementMetadata(content_ids=[content_id]),
            **kwargs
        )
    return _make


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, 0)
