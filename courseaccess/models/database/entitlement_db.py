"""
权益、组织及成员关系数据库模型
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, UniqueConstraint, Index
from courseaccess.core.database import Base


class OrganizationDB(Base):
    """组织表"""

    __tablename__ = "organizations"

    id = Column(String(50), primary_key=True, comment="组织ID")
    name = Column(String(200), comment="组织名称")
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")

    __table_args__ = (
        {'comment': '组织表'}
    )


class OrganizationMembershipDB(Base):
    """组织成员表"""

    __tablename__ = "organization_memberships"

    id = Column(String(50), primary_key=True, comment="成员关系ID")
    organization_id = Column(String(50), ForeignKey("organizations.id"), nullable=False, comment="组织ID")
    user_id = Column(String(50), nullable=False, index=True, comment="用户ID")
    role = Column(String(20), default="member", comment="组织内角色")
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")

    __table_args__ = (
        UniqueConstraint('organization_id', 'user_id', name='uq_membership_org_user'),
        {'comment': '组织成员表'}
    )


class EntitlementDB(Base):
    """权益表"""

    __tablename__ = "entitlements"

    id = Column(String(50), primary_key=True, comment="权益ID")
    user_id = Column(String(50), index=True, comment="用户ID")
    organization_id = Column(String(50), comment="组织ID")
    organization_membership_id = Column(String(50), index=True, comment="组织成员ID")
    entitlement_type = Column(String(50), nullable=False, comment="权益类型")

    # 来源
    source_id = Column(String(50), nullable=False, index=True, comment="来源ID")
    source_type = Column(String(20), default="PURCHASE", comment="来源类型")
    resource_key = Column(String(50), nullable=False, comment="授权资源ID(幂等键)")

    # "metadata"是声明式基类的保留属性名
    entitlement_metadata = Column("metadata", JSON, default=dict, comment="元数据")

    expires_at = Column(DateTime, comment="过期时间")
    deleted_at = Column(DateTime, index=True, comment="软删除时间")
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")

    __table_args__ = (
        UniqueConstraint('source_id', 'resource_key', name='uq_entitlement_source_resource'),
        Index('idx_entitlement_membership_active', 'organization_membership_id', 'deleted_at'),
        {'comment': '权益表'}
    )
