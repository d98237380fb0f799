"""
商品与购买记录数据库模型
"""

from datetime import datetime

from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint
from courseaccess.core.database import Base


class ProductDB(Base):
    """商品表"""

    __tablename__ = "products"

    id = Column(String(50), primary_key=True, comment="商品ID")
    name = Column(String(200), nullable=False, comment="商品名称")
    type = Column(String(20), default="self-paced", comment="商品类型")
    price = Column(Numeric(10, 2), nullable=False, comment="单价")
    quantity_available = Column(Integer, default=-1, comment="可售数量，-1表示不限")
    status = Column(String(20), default="active", index=True, comment="商品状态")

    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")

    __table_args__ = (
        {'comment': '商品表'}
    )


class ProductResourceDB(Base):
    """商品与资源关联表"""

    __tablename__ = "product_resources"

    product_id = Column(String(50), ForeignKey("products.id"), primary_key=True, comment="商品ID")
    resource_id = Column(String(50), ForeignKey("content_resources.id"), primary_key=True, comment="资源ID")
    position = Column(Integer, default=0, comment="排序")

    __table_args__ = (
        {'comment': '商品资源关联表'}
    )


class PurchaseDB(Base):
    """购买记录表"""

    __tablename__ = "purchases"

    id = Column(String(50), primary_key=True, comment="购买ID")
    user_id = Column(String(50), index=True, comment="用户ID")
    product_id = Column(String(50), ForeignKey("products.id"), nullable=False, index=True, comment="商品ID")
    status = Column(String(20), default="Valid", index=True, comment="购买状态")
    total_amount = Column(Numeric(10, 2), default=0, comment="实付金额")

    # 团队席位
    bulk_coupon_id = Column(String(50), index=True, comment="席位池优惠券ID")
    redeemed_bulk_coupon_id = Column(String(50), index=True, comment="兑换的席位池优惠券ID")

    coupon_id = Column(String(50), comment="使用的优惠券ID")
    merchant_charge_id = Column(String(100), comment="支付渠道扣款ID")
    country = Column(String(2), comment="购买时国家")
    upgraded_from_id = Column(String(50), comment="升级来源购买ID")
    organization_id = Column(String(50), index=True, comment="组织ID")

    created_at = Column(DateTime, default=datetime.now, index=True, comment="创建时间")

    __table_args__ = (
        # 每个用户在同一席位池上只能有一条兑换记录，NULL 不参与唯一性比较
        UniqueConstraint('redeemed_bulk_coupon_id', 'user_id', name='uq_purchase_redeemer'),
        {'comment': '购买记录表'}
    )


class UpgradableProductDB(Base):
    """可升级商品关系表"""

    __tablename__ = "upgradable_products"

    upgradable_from_id = Column(String(50), ForeignKey("products.id"), primary_key=True, comment="原商品ID")
    upgradable_to_id = Column(String(50), ForeignKey("products.id"), primary_key=True, comment="升级目标商品ID")
    position = Column(Integer, default=0, comment="排序")

    __table_args__ = (
        {'comment': '可升级商品关系表'}
    )
