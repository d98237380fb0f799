"""
依赖注入：按请求创建仓储与服务
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courseaccess.core.database import get_db_session
from courseaccess.repositories import (
    CouponRepository,
    EntitlementRepository,
    ProductRepository,
    PurchaseRepository,
    ResourceRepository,
    UserRepository
)
from courseaccess.services.authorization_service import AuthorizationService
from courseaccess.services.entitlement_service import EntitlementService
from courseaccess.services.price_calculator_service import PriceCalculatorService
from courseaccess.services.resource_tree import ResourceTreeService
from courseaccess.services.seat_redemption_service import SeatRedemptionService


def get_resource_tree_service(db: AsyncSession = Depends(get_db_session)) -> ResourceTreeService:
    return ResourceTreeService(ResourceRepository(db))


def get_price_calculator_service(db: AsyncSession = Depends(get_db_session)) -> PriceCalculatorService:
    return PriceCalculatorService(
        product_repo=ProductRepository(db),
        coupon_repo=CouponRepository(db),
        purchase_repo=PurchaseRepository(db)
    )


def get_entitlement_service(
    db: AsyncSession = Depends(get_db_session),
    resource_tree: ResourceTreeService = Depends(get_resource_tree_service)
) -> EntitlementService:
    return EntitlementService(
        entitlement_repo=EntitlementRepository(db),
        purchase_repo=PurchaseRepository(db),
        product_repo=ProductRepository(db),
        resource_tree=resource_tree
    )


def get_seat_redemption_service(
    db: AsyncSession = Depends(get_db_session),
    entitlement_service: EntitlementService = Depends(get_entitlement_service)
) -> SeatRedemptionService:
    return SeatRedemptionService(
        coupon_repo=CouponRepository(db),
        purchase_repo=PurchaseRepository(db),
        entitlement_service=entitlement_service
    )


def get_authorization_service(
    db: AsyncSession = Depends(get_db_session),
    entitlement_service: EntitlementService = Depends(get_entitlement_service),
    resource_tree: ResourceTreeService = Depends(get_resource_tree_service)
) -> AuthorizationService:
    return AuthorizationService(
        user_repo=UserRepository(db),
        entitlement_service=entitlement_service,
        purchase_repo=PurchaseRepository(db),
        coupon_repo=CouponRepository(db),
        resource_tree=resource_tree
    )
