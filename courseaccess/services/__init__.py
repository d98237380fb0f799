"""
业务服务层
"""

from .resource_tree import ResourceTree, ResourceTreeService
from .coupon_validator import CouponService, validate_coupon
from .price_calculator_service import PriceCalculatorService, calculate_price
from .entitlement_service import EntitlementService
from .seat_redemption_service import SeatRedemptionService
from .authorization_service import AuthorizationService, build_rules

__all__ = [
    "ResourceTree",
    "ResourceTreeService",
    "CouponService",
    "validate_coupon",
    "PriceCalculatorService",
    "calculate_price",
    "EntitlementService",
    "SeatRedemptionService",
    "AuthorizationService",
    "build_rules"
]
