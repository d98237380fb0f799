"""
权益、组织及成员关系数据模型
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum


class EntitlementType(str, Enum):
    """权益类型枚举"""
    COHORT_CONTENT_ACCESS = "cohort_content_access"
    WORKSHOP_CONTENT_ACCESS = "workshop_content_access"
    SUBSCRIPTION_TIER = "subscription_tier"


class EntitlementSourceType(str, Enum):
    """权益来源类型"""
    PURCHASE = "PURCHASE"
    SUBSCRIPTION = "SUBSCRIPTION"
    MANUAL = "MANUAL"


class MembershipRole(str, Enum):
    """组织内角色"""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    LEARNER = "learner"


class EntitlementMetadata(BaseModel):
    """权益元数据"""

    content_ids: List[str] = Field(default_factory=list, alias="contentIds", description="授权的资源ID")

    model_config = {"populate_by_name": True}


class Entitlement(BaseModel):
    """权益模型"""

    id: str = Field(..., description="权益ID")
    user_id: Optional[str] = Field(None, description="用户ID")
    organization_id: Optional[str] = Field(None, description="组织ID")
    organization_membership_id: Optional[str] = Field(None, description="组织成员ID")
    entitlement_type: EntitlementType = Field(..., description="权益类型")
    source_id: str = Field(..., description="来源ID(购买或订阅)")
    source_type: EntitlementSourceType = Field(default=EntitlementSourceType.PURCHASE, description="来源类型")
    metadata: EntitlementMetadata = Field(default_factory=EntitlementMetadata, description="元数据")
    expires_at: Optional[datetime] = Field(None, description="过期时间")
    deleted_at: Optional[datetime] = Field(None, description="软删除时间")
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def content_ids(self) -> List[str]:
        return self.metadata.content_ids

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """未被软删除且未过期"""
        if self.deleted_at is not None:
            return False
        if self.expires_at is None:
            return True
        return self.expires_at > (now or datetime.now())


class Organization(BaseModel):
    """组织模型"""

    id: str = Field(..., description="组织ID")
    name: Optional[str] = Field(None, description="组织名称")
    created_at: datetime = Field(default_factory=datetime.now)


class OrganizationMembership(BaseModel):
    """组织成员关系"""

    id: str = Field(..., description="成员关系ID")
    organization_id: str = Field(..., description="组织ID")
    user_id: str = Field(..., description="用户ID")
    role: MembershipRole = Field(default=MembershipRole.MEMBER, description="组织内角色")
    created_at: datetime = Field(default_factory=datetime.now)


class RefundResult(BaseModel):
    """退款处理结果"""

    purchase_id: str = Field(..., description="退款的购买ID")
    found: bool = Field(default=True, description="是否找到购买记录")
    is_bulk_purchase: bool = Field(default=False, description="是否为团队购买")
    entitlements_revoked: int = Field(default=0, ge=0, description="软删除的权益数量")
    purchases_affected: List[str] = Field(default_factory=list, description="受影响的购买ID")
