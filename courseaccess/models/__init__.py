"""
数据模型包初始化文件
"""

from .resource import (
    Resource,
    ResourceLink,
    ResourceType,
    ResourceVisibility,
    ResourceState,
    ResourceTier
)
from .product import Product, ProductType, Purchase, PurchaseStatus, UpgradableProduct
from .coupon import Coupon, CouponType, CouponValidation, DiscountKind
from .price import PriceBreakdown, AppliedDiscount, AppliedDiscountType, RateDiscount
from .entitlement import (
    Entitlement,
    EntitlementType,
    EntitlementSourceType,
    Organization,
    OrganizationMembership,
    MembershipRole,
    RefundResult
)
from .user import User, UserRole
from .ability import Ability, Action, Effect, Rule, Subject
from .redemption import RedemptionResult, RedemptionStatus

__all__ = [
    "Resource",
    "ResourceLink",
    "ResourceType",
    "ResourceVisibility",
    "ResourceState",
    "ResourceTier",
    "Product",
    "ProductType",
    "Purchase",
    "PurchaseStatus",
    "UpgradableProduct",
    "Coupon",
    "CouponType",
    "CouponValidation",
    "DiscountKind",
    "PriceBreakdown",
    "AppliedDiscount",
    "AppliedDiscountType",
    "RateDiscount",
    "Entitlement",
    "EntitlementType",
    "EntitlementSourceType",
    "Organization",
    "OrganizationMembership",
    "MembershipRole",
    "RefundResult",
    "User",
    "UserRole",
    "Ability",
    "Action",
    "Effect",
    "Rule",
    "Subject",
    "RedemptionResult",
    "RedemptionStatus"
]
