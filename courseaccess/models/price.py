"""
价格计算结果模型
"""

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum


class AppliedDiscountType(str, Enum):
    """已应用折扣类型"""
    PERCENTAGE = "percentage"
    PPP = "ppp"
    BULK = "bulk"
    FIXED = "fixed"
    UPGRADE = "upgrade"
    NONE = "none"


# 互斥的比例折扣，一次只能有一种
RATE_DISCOUNT_TYPES = (AppliedDiscountType.PERCENTAGE, AppliedDiscountType.PPP, AppliedDiscountType.BULK)


class RateDiscount(BaseModel):
    """比例折扣输入(普通百分比券 / PPP / 批量)"""

    rate: Decimal = Field(..., description="折扣率(0-1)")
    type: AppliedDiscountType = Field(default=AppliedDiscountType.PERCENTAGE, description="来源类型")
    coupon_id: Optional[str] = Field(None, description="来源优惠券ID")


class AppliedDiscount(BaseModel):
    """单项已应用折扣，用于价格明细审计"""

    type: AppliedDiscountType = Field(..., description="折扣类型")
    amount: Decimal = Field(..., ge=0, description="单件实际减免金额")
    rate: Optional[Decimal] = Field(None, description="折扣率(仅比例折扣)")
    coupon_id: Optional[str] = Field(None, description="来源优惠券ID")


class AvailableCoupon(BaseModel):
    """可供用户选择的优惠(目前只有PPP)"""

    type: AppliedDiscountType = Field(..., description="优惠类型")
    rate: Decimal = Field(..., description="折扣率")
    country: Optional[str] = Field(None, description="国家代码")
    coupon_id: Optional[str] = Field(None, description="优惠券ID")


class PriceBreakdown(BaseModel):
    """价格明细"""

    product_id: Optional[str] = Field(None, description="商品ID")
    unit_price: Decimal = Field(..., ge=0, description="单价")
    quantity: int = Field(default=1, ge=1, description="数量")
    full_price: Decimal = Field(..., ge=0, description="未折扣总价")
    unit_final_price: Decimal = Field(..., ge=0, description="折后单价")
    calculated_price: Decimal = Field(..., ge=0, description="最终应付总价")
    applied_discounts: List[AppliedDiscount] = Field(default_factory=list, description="已应用折扣明细")
    applied_discount_type: AppliedDiscountType = Field(default=AppliedDiscountType.NONE, description="主折扣类型")
    applied_coupon_id: Optional[str] = Field(None, description="应用的优惠券ID")
    available_coupons: List[AvailableCoupon] = Field(default_factory=list, description="可选优惠")
    upgrade_from_purchase_id: Optional[str] = Field(None, description="升级来源购买ID")
    bulk: bool = Field(default=False, description="是否按团队购买处理")

    @property
    def savings(self) -> Decimal:
        """总节省金额"""
        return self.full_price - self.calculated_price

    @property
    def applied_discount_types(self) -> List[AppliedDiscountType]:
        return [discount.type for discount in self.applied_discounts]
