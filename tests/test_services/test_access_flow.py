"""
购买 -> 授权 -> 兑换 -> 退款 全流程测试 - 使用内存SQLite
"""

import pytest
import pytest_asyncio
from decimal import Decimal
from unittest.mock import AsyncMock
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from courseaccess.core.exceptions import StoreUnavailableError
from courseaccess.models.coupon import CouponType
from courseaccess.models.product import PurchaseStatus
from courseaccess.models.redemption import RedemptionStatus
from courseaccess.models.resource import ResourceLink, ResourceType
from courseaccess.repositories import (
    CouponRepository,
    EntitlementRepository,
    ProductRepository,
    PurchaseRepository,
    ResourceRepository,
    UserRepository
)
from courseaccess.services.authorization_service import AuthorizationService
from courseaccess.services.common_cache import SimpleCache
from courseaccess.services.entitlement_service import EntitlementService
from courseaccess.services.resource_tree import ResourceTreeService
from courseaccess.services.seat_redemption_service import SeatRedemptionService


@pytest_asyncio.fixture
async def services(db_session, make_resource, make_product):
    """基于真实仓储组装的服务，缓存未初始化时直接读库"""
    resource_repo = ResourceRepository(db_session)
    for resource in (
        make_resource("workshop", ResourceType.WORKSHOP),
        make_resource("section_1", ResourceType.SECTION),
        make_resource("lesson_1"),
        make_resource("other_workshop", ResourceType.WORKSHOP),
        make_resource("other_lesson"),
    ):
        await resource_repo.create_resource(resource)
    await resource_repo.add_link(ResourceLink(parent_id="workshop", child_id="section_1"))
    await resource_repo.add_link(ResourceLink(parent_id="section_1", child_id="lesson_1"))
    await resource_repo.add_link(ResourceLink(parent_id="other_workshop", child_id="other_lesson"))

    await ProductRepository(db_session).create_product(make_product(resource_ids=["workshop"]))

    resource_tree = ResourceTreeService(resource_repo, cache=SimpleCache(key_prefix="test:"))
    entitlement_service = EntitlementService(
        EntitlementRepository(db_session),
        PurchaseRepository(db_session),
        ProductRepository(db_session),
        resource_tree
    )
    return {
        "entitlements": entitlement_service,
        "seats": SeatRedemptionService(CouponRepository(db_session), PurchaseRepository(db_session), entitlement_service),
        "auth": AuthorizationService(
            UserRepository(db_session),
            entitlement_service,
            PurchaseRepository(db_session),
            CouponRepository(db_session),
            resource_tree
        ),
    }


@pytest.mark.asyncio
class TestAccessFlow:
    """访问控制全流程测试类"""

    async def test_purchase_grant_and_refund(self, db_session, services, make_purchase):
        await PurchaseRepository(db_session).create_purchase(make_purchase())
        auth = services["auth"]

        assert not await auth.can_read("user_001", "lesson_1")

        ids = await services["entitlements"].grant_for_purchase("purchase_001")
        assert len(ids) == 1
        # 重复投递购买事件不会产生新的权益
        assert await services["entitlements"].grant_for_purchase("purchase_001") == ids

        assert await auth.can_read("user_001", "lesson_1")
        assert await auth.can_read("user_001", "workshop")
        assert not await auth.can_read("user_001", "other_lesson")

        result = await services["entitlements"].handle_refund("purchase_001")

        assert result.entitlements_revoked == 1
        assert (await PurchaseRepository(db_session).get_purchase("purchase_001")).status == PurchaseStatus.REFUNDED
        assert not await auth.can_read("user_001", "lesson_1")

    async def test_seat_redemption_and_bulk_refund(self, db_session, services, make_purchase, make_coupon):
        await CouponRepository(db_session).create_coupon(make_coupon("bulk_001", type=CouponType.BULK, percentage_discount=Decimal("1"), max_uses=2))
        await PurchaseRepository(db_session).create_purchase(
            make_purchase("bulk_purchase", user_id="owner", bulk_coupon_id="bulk_001")
        )
        seats = services["seats"]
        auth = services["auth"]

        # 购买者本身不占席位
        assert await services["entitlements"].grant_for_purchase("bulk_purchase") == []

        first = await seats.redeem_bulk_seat("bulk_001", "user_002")
        again = await seats.redeem_bulk_seat("bulk_001", "user_002")
        second = await seats.redeem_bulk_seat("bulk_001", "user_003")
        third = await seats.redeem_bulk_seat("bulk_001", "user_004")

        assert first.status == RedemptionStatus.REDEEMED
        assert first.remaining_seats == 1
        assert again.status == RedemptionStatus.ALREADY_REDEEMED
        assert second.status == RedemptionStatus.REDEEMED
        assert third.status == RedemptionStatus.SEAT_UNAVAILABLE
        assert await seats.remaining_seats("bulk_001") == 0
        assert await auth.can_read("user_002", "lesson_1")
        assert not await auth.can_read("user_004", "lesson_1")

        result = await services["entitlements"].handle_refund("bulk_purchase")

        assert result.is_bulk_purchase
        assert result.entitlements_revoked == 2
        assert not await auth.can_read("user_002", "lesson_1")
        assert not await auth.can_read("user_003", "lesson_1")


@pytest.mark.asyncio
class TestStoreErrors:
    """存储层异常转换测试类"""

    async def test_sqlalchemy_error_becomes_store_unavailable(self):
        session = AsyncMock(spec=AsyncSession)
        session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection lost"))

        with pytest.raises(StoreUnavailableError):
            await PurchaseRepository(session).get_purchase("purchase_001")
