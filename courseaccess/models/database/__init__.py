"""
数据库模型包初始化文件
"""

from .resource_db import ContentResourceDB, ContentResourceLinkDB
from .product_db import ProductDB, ProductResourceDB, PurchaseDB, UpgradableProductDB
from .coupon_db import CouponDB
from .entitlement_db import EntitlementDB, OrganizationDB, OrganizationMembershipDB
from .user_db import UserDB

__all__ = [
    "ContentResourceDB",
    "ContentResourceLinkDB",
    "ProductDB",
    "ProductResourceDB",
    "PurchaseDB",
    "UpgradableProductDB",
    "CouponDB",
    "EntitlementDB",
    "OrganizationDB",
    "OrganizationMembershipDB",
    "UserDB"
]
