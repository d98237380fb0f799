"""
商品与购买记录数据模型
"""

from decimal import Decimal
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum


class ProductType(str, Enum):
    """商品类型枚举"""
    SELF_PACED = "self-paced"
    COHORT = "cohort"
    LIVE = "live"
    MEMBERSHIP = "membership"


class ProductStatus(str, Enum):
    """商品状态枚举"""
    ACTIVE = "active"
    INACTIVE = "inactive"


class PurchaseStatus(str, Enum):
    """购买状态枚举"""
    VALID = "Valid"  # 正常
    RESTRICTED = "Restricted"  # PPP购买，限区域
    REFUNDED = "Refunded"  # 已退款
    DISPUTED = "Disputed"  # 争议中


# 仍然有效的购买状态
ACTIVE_PURCHASE_STATUSES = (PurchaseStatus.VALID, PurchaseStatus.RESTRICTED)

# 不再授予访问权限的购买状态
REVOKED_PURCHASE_STATUSES = (PurchaseStatus.REFUNDED, PurchaseStatus.DISPUTED)


class Product(BaseModel):
    """商品模型"""

    id: str = Field(..., description="商品ID")
    name: str = Field(..., description="商品名称")
    type: ProductType = Field(default=ProductType.SELF_PACED, description="商品类型")
    price: Decimal = Field(..., ge=0, description="单价")
    quantity_available: int = Field(default=-1, description="可售数量，-1表示不限")
    status: ProductStatus = Field(default=ProductStatus.ACTIVE, description="商品状态")
    resource_ids: List[str] = Field(default_factory=list, description="关联资源ID")

    @property
    def is_unlimited(self) -> bool:
        return self.quantity_available < 0

    def is_available(self) -> bool:
        """检查商品是否可售"""
        return self.status == ProductStatus.ACTIVE and (self.is_unlimited or self.quantity_available > 0)


class Purchase(BaseModel):
    """购买记录模型"""

    id: str = Field(..., description="购买ID")
    user_id: Optional[str] = Field(None, description="用户ID")
    product_id: str = Field(..., description="商品ID")
    status: PurchaseStatus = Field(default=PurchaseStatus.VALID, description="购买状态")
    total_amount: Decimal = Field(default=Decimal("0"), ge=0, description="实付金额")
    bulk_coupon_id: Optional[str] = Field(None, description="席位池优惠券ID(团队购买者)")
    redeemed_bulk_coupon_id: Optional[str] = Field(None, description="兑换的席位池优惠券ID")
    coupon_id: Optional[str] = Field(None, description="使用的优惠券ID")
    merchant_charge_id: Optional[str] = Field(None, description="支付渠道扣款ID")
    country: Optional[str] = Field(None, description="购买时国家")
    upgraded_from_id: Optional[str] = Field(None, description="升级来源购买ID")
    organization_id: Optional[str] = Field(None, description="组织ID")
    created_at: datetime = Field(default_factory=datetime.now)

    def is_active(self) -> bool:
        """是否仍然有效"""
        return self.status in ACTIVE_PURCHASE_STATUSES

    def is_seat_pool_owner(self) -> bool:
        """是否是团队席位池的购买者"""
        return self.bulk_coupon_id is not None

    def has_charge(self) -> bool:
        return bool(self.merchant_charge_id)


class UpgradableProduct(BaseModel):
    """可升级商品关系"""

    upgradable_from_id: str = Field(..., description="原商品ID")
    upgradable_to_id: str = Field(..., description="升级目标商品ID")
    position: int = Field(default=0)
