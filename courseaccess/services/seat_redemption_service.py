"""
团队席位兑换服务

席位占用依赖优惠券表上的条件自增(used_count < max_uses)，
并发兑换时 used_count 不会超过 max_uses；
兑换记录上的 (redeemed_bulk_coupon_id, user_id) 唯一约束保证每个用户只兑换一次。
"""

import uuid
from decimal import Decimal
from typing import Optional

import structlog

from courseaccess.core.exceptions import SeatAlreadyRedeemedError
from courseaccess.models.coupon import Coupon, CouponStatus, CouponType
from courseaccess.models.product import Purchase, PurchaseStatus
from courseaccess.models.redemption import RedemptionResult, RedemptionStatus
from courseaccess.repositories.coupon_repository import CouponRepository
from courseaccess.repositories.purchase_repository import PurchaseRepository
from courseaccess.services.coupon_validator import validate_coupon
from courseaccess.services.entitlement_service import EntitlementService

logger = structlog.get_logger()


class SeatRedemptionService:
    """团队席位兑换服务"""

    def __init__(
        self,
        coupon_repo: CouponRepository,
        purchase_repo: PurchaseRepository,
        entitlement_service: EntitlementService
    ):
        self.coupon_repo = coupon_repo
        self.purchase_repo = purchase_repo
        self.entitlement_service = entitlement_service

    async def remaining_seats(self, bulk_coupon_id: str) -> Optional[int]:
        """剩余席位数，优惠券不存在或不限次数时返回None"""
        coupon = await self.coupon_repo.get_coupon(bulk_coupon_id)
        if not coupon:
            return None
        return coupon.number_of_redemptions_left

    async def redeem(self, bulk_coupon_id: str, user_id: str) -> RedemptionResult:
        """
        兑换一个团队席位

        依次检查: 优惠券存在 -> 是有效团队购买的席位池且可兑换 -> 用户未兑换过 -> 仍有剩余席位，
        最后在同一保存点内条件自增并写入兑换记录。自增失败视为席位已被抢完，
        唯一约束失败视为同一用户的并发重复兑换。
        """
        found = await self.coupon_repo.get_coupon_with_bulk_purchases(bulk_coupon_id)
        if not found:
            return self._result(RedemptionStatus.NOT_FOUND, bulk_coupon_id, user_id, error="coupon-not-found")

        coupon, bulk_purchases = found
        owner_purchase = next((purchase for purchase in bulk_purchases if purchase.is_active()), None)
        if coupon.type != CouponType.BULK or owner_purchase is None or coupon.is_unlimited:
            return self._result(RedemptionStatus.INVALID_COUPON, coupon.id, user_id, error="coupon-not-seat-pool")

        if coupon.status != CouponStatus.ACTIVE:
            return self._result(RedemptionStatus.INVALID_COUPON, coupon.id, user_id, error="coupon-inactive")

        # 用完的席位池交给下面的剩余席位检查，返回 seat_unavailable
        validation = validate_coupon(coupon, [owner_purchase.product_id])
        if not validation.is_redeemable and not validation.is_used_up:
            return self._result(
                RedemptionStatus.INVALID_COUPON,
                coupon.id,
                user_id,
                error=validation.error or "coupon-not-redeemable"
            )

        existing = await self.purchase_repo.get_redeemed_purchase(coupon.id, user_id)
        if existing:
            return self._already_redeemed(coupon, user_id, existing)

        if not coupon.has_redemptions_left:
            return self._result(RedemptionStatus.SEAT_UNAVAILABLE, coupon.id, user_id, remaining_seats=0, error="no-seats-left")

        try:
            purchase = await self.coupon_repo.claim_seat(coupon.id, Purchase(
                id=str(uuid.uuid4()),
                user_id=user_id,
                product_id=owner_purchase.product_id,
                status=PurchaseStatus.VALID,
                total_amount=Decimal("0"),
                redeemed_bulk_coupon_id=coupon.id,
                organization_id=owner_purchase.organization_id
            ))
        except SeatAlreadyRedeemedError:
            logger.info("重复兑换被唯一约束拦截", bulk_coupon_id=coupon.id, user_id=user_id)
            existing = await self.purchase_repo.get_redeemed_purchase(coupon.id, user_id)
            return self._already_redeemed(coupon, user_id, existing)

        if purchase is None:
            logger.info("席位竞争失败", bulk_coupon_id=coupon.id, user_id=user_id)
            return self._result(RedemptionStatus.SEAT_UNAVAILABLE, coupon.id, user_id, remaining_seats=0, error="no-seats-left")

        entitlement_ids = await self.entitlement_service.grant_for_purchase(purchase.id)
        remaining = await self.remaining_seats(coupon.id)

        logger.info(
            "席位兑换成功",
            bulk_coupon_id=coupon.id,
            user_id=user_id,
            purchase_id=purchase.id,
            remaining_seats=remaining
        )
        return self._result(
            RedemptionStatus.REDEEMED,
            coupon.id,
            user_id,
            purchase=purchase,
            entitlement_ids=entitlement_ids,
            remaining_seats=remaining
        )

    redeem_bulk_seat = redeem

    def _already_redeemed(self, coupon: Coupon, user_id: str, existing: Optional[Purchase]) -> RedemptionResult:
        return self._result(
            RedemptionStatus.ALREADY_REDEEMED,
            coupon.id,
            user_id,
            purchase=existing,
            remaining_seats=coupon.number_of_redemptions_left,
            error="already-redeemed"
        )

    def _result(self, status: RedemptionStatus, bulk_coupon_id: str, user_id: str, **kwargs) -> RedemptionResult:
        return RedemptionResult(status=status, bulk_coupon_id=bulk_coupon_id, user_id=user_id, **kwargs)
