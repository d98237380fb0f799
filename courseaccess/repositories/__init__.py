"""
数据访问层
"""

from .resource_repository import ResourceRepository
from .product_repository import ProductRepository
from .purchase_repository import PurchaseRepository
from .coupon_repository import CouponRepository
from .entitlement_repository import EntitlementRepository
from .user_repository import UserRepository

__all__ = [
    "ResourceRepository",
    "ProductRepository",
    "PurchaseRepository",
    "CouponRepository",
    "EntitlementRepository",
    "UserRepository"
]
