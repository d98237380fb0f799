"""
优惠券相关数据模型
"""

from decimal import Decimal
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from enum import Enum


class CouponType(str, Enum):
    """优惠券类型枚举"""
    SPECIAL = "special"  # 普通优惠券(含默认促销券)
    PPP = "ppp"  # 购买力平价券
    BULK = "bulk"  # 团队席位券


class CouponStatus(str, Enum):
    """优惠券状态枚举"""
    ACTIVE = "active"
    INACTIVE = "inactive"


class DiscountKind(str, Enum):
    """一张优惠券提供的折扣形态"""
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    NONE = "none"


# 可作为兑换码使用的最小折扣率
MIN_REDEEMABLE_PERCENTAGE = Decimal("0.01")


class Coupon(BaseModel):
    """优惠券基础模型"""

    id: str = Field(..., description="优惠券ID")
    code: Optional[str] = Field(None, max_length=50, description="兑换码")
    type: CouponType = Field(default=CouponType.SPECIAL, description="优惠券类型")
    status: CouponStatus = Field(default=CouponStatus.ACTIVE, description="优惠券状态")
    percentage_discount: Decimal = Field(default=Decimal("0"), ge=0, le=1, description="折扣率(0-1)")
    amount_discount: Optional[Decimal] = Field(None, ge=0, description="固定减免金额")
    max_uses: int = Field(default=-1, description="最大使用次数，0或负数表示不限")
    used_count: int = Field(default=0, ge=0, description="已使用次数")
    expires: Optional[datetime] = Field(None, description="过期时间")
    restricted_to_product_id: Optional[str] = Field(None, description="限定商品ID")
    default: bool = Field(default=False, description="是否为默认促销券(不可手动兑换)")
    country: Optional[str] = Field(None, description="PPP券对应国家")
    organization_id: Optional[str] = Field(None, description="所属组织ID")
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def discount_kind(self) -> DiscountKind:
        """固定金额优先于百分比"""
        if self.amount_discount is not None and self.amount_discount > 0:
            return DiscountKind.FIXED
        if self.percentage_discount > 0:
            return DiscountKind.PERCENTAGE
        return DiscountKind.NONE

    @property
    def is_unlimited(self) -> bool:
        return self.max_uses <= 0

    @property
    def number_of_redemptions_left(self) -> Optional[int]:
        """剩余可兑换次数，不限次数时返回None"""
        if self.is_unlimited:
            return None
        return max(self.max_uses - self.used_count, 0)

    @property
    def has_redemptions_left(self) -> bool:
        return self.is_unlimited or self.max_uses > self.used_count

    def discount_amount_for(self, subtotal: Decimal, quantity: int = 1) -> Decimal:
        """估算该券在给定小计上的减免金额，用于与PPP/批量折扣比较"""
        if self.discount_kind == DiscountKind.FIXED:
            return self.amount_discount * quantity
        if self.discount_kind == DiscountKind.PERCENTAGE:
            return subtotal * self.percentage_discount
        return Decimal("0")


class CouponValidation(BaseModel):
    """优惠券验证结果"""

    is_valid: bool = Field(..., description="是否可用(可作为促销展示)")
    is_redeemable: bool = Field(..., description="是否可作为兑换码使用")
    is_expired: bool = Field(default=False, description="是否已过期")
    is_used_up: bool = Field(default=False, description="是否已用完")
    error: Optional[str] = Field(None, description="错误码")
