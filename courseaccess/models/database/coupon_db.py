"""
优惠券数据库模型
"""

from datetime import datetime

from sqlalchemy import Column, String, Integer, Numeric, Boolean, DateTime
from courseaccess.core.database import Base


class CouponDB(Base):
    """优惠券数据库表"""

    __tablename__ = "coupons"

    # 主键和基本信息
    id = Column(String(50), primary_key=True, comment="优惠券ID")
    code = Column(String(50), unique=True, index=True, comment="兑换码")
    type = Column(String(20), default="special", comment="优惠券类型")
    status = Column(String(20), default="active", index=True, comment="优惠券状态")

    # 折扣信息
    percentage_discount = Column(Numeric(5, 4), default=0, comment="折扣率(0-1)")
    amount_discount = Column(Numeric(10, 2), comment="固定减免金额")

    # 使用限制
    max_uses = Column(Integer, default=-1, comment="最大使用次数")
    used_count = Column(Integer, default=0, nullable=False, comment="已使用次数")
    expires = Column(DateTime, index=True, comment="过期时间")
    restricted_to_product_id = Column(String(50), index=True, comment="限定商品ID")
    default = Column(Boolean, default=False, comment="是否默认促销券")

    country = Column(String(2), comment="PPP券国家")
    organization_id = Column(String(50), comment="所属组织ID")

    # 时间戳
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")

    __table_args__ = (
        {'comment': '优惠券信息表'}
    )
