"""
团队席位兑换结果模型
"""

from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum

from courseaccess.models.product import Purchase


class RedemptionStatus(str, Enum):
    """兑换结果状态"""
    REDEEMED = "redeemed"
    NOT_FOUND = "not_found"
    SEAT_UNAVAILABLE = "seat_unavailable"
    ALREADY_REDEEMED = "already_redeemed"
    INVALID_COUPON = "invalid_coupon"


class RedemptionResult(BaseModel):
    """席位兑换结果"""

    status: RedemptionStatus = Field(..., description="兑换状态")
    bulk_coupon_id: str = Field(..., description="席位池优惠券ID")
    user_id: str = Field(..., description="兑换用户ID")
    purchase: Optional[Purchase] = Field(None, description="兑换生成的购买记录")
    entitlement_ids: List[str] = Field(default_factory=list, description="授予的权益ID")
    remaining_seats: Optional[int] = Field(None, description="兑换后剩余席位")
    error: Optional[str] = Field(None, description="错误码")

    @property
    def succeeded(self) -> bool:
        return self.status == RedemptionStatus.REDEEMED
