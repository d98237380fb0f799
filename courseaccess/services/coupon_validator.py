"""
优惠券验证
判断一张优惠券是否可用(is_valid)以及是否可作为兑换码使用(is_redeemable)
"""

from datetime import datetime
from typing import List, Optional, Tuple

from courseaccess.models.coupon import Coupon, CouponValidation, MIN_REDEEMABLE_PERCENTAGE
from courseaccess.repositories.coupon_repository import CouponRepository


def validate_coupon(
    coupon: Optional[Coupon],
    product_ids: Optional[List[str]] = None,
    now: Optional[datetime] = None
) -> CouponValidation:
    """
    验证优惠券

    默认促销券可以是有效的，但永远不能作为兑换码使用；
    限定商品不在本次购买范围内时直接判定无效。该函数不会抛出异常。
    """
    if coupon is None:
        return CouponValidation(is_valid=False, is_redeemable=False, error="coupon-not-found")

    now = now or datetime.now()
    product_ids = product_ids or []

    is_used_up = coupon.max_uses > 0 and coupon.used_count >= coupon.max_uses
    is_expired = coupon.expires is not None and coupon.expires < now

    if coupon.restricted_to_product_id and coupon.restricted_to_product_id not in product_ids:
        return CouponValidation(
            is_valid=False,
            is_redeemable=False,
            is_expired=is_expired,
            is_used_up=is_used_up,
            error="coupon-not-valid-for-product"
        )

    is_valid = not is_used_up and not is_expired
    is_redeemable = (
        is_valid
        and coupon.percentage_discount >= MIN_REDEEMABLE_PERCENTAGE
        and not coupon.default
    )

    error = None
    if is_expired:
        error = "coupon-expired"
    elif is_used_up:
        error = "coupon-used-up"

    return CouponValidation(
        is_valid=is_valid,
        is_redeemable=is_redeemable,
        is_expired=is_expired,
        is_used_up=is_used_up,
        error=error
    )


class CouponService:
    """优惠券业务服务"""

    def __init__(self, coupon_repo: CouponRepository):
        self.coupon_repo = coupon_repo

    async def get_coupon(self, code_or_id: str) -> Optional[Coupon]:
        """根据兑换码或ID获取优惠券"""
        if not code_or_id:
            return None
        return await self.coupon_repo.get_coupon(code_or_id)

    async def get_default_coupon(self, product_ids: List[str]) -> Optional[Coupon]:
        """获取商品的默认促销券"""
        return await self.coupon_repo.get_default_coupon(product_ids)

    async def validate(
        self,
        code_or_id: str,
        product_ids: List[str],
        now: Optional[datetime] = None
    ) -> Tuple[Optional[Coupon], CouponValidation]:
        """查询并验证优惠券"""
        coupon = await self.get_coupon(code_or_id)
        return coupon, validate_coupon(coupon, product_ids, now)
