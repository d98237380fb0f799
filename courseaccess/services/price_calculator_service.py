"""
价格计算服务
按 比例折扣 -> 固定减免 -> 升级抵扣 的顺序计算最终价格，每一步结果都不低于0。
比例折扣(PPP、团队批量、普通百分比券)一次只应用一种。
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Union

from courseaccess.core.config import settings
from courseaccess.core.exceptions import InvalidPricingInputError
from courseaccess.config.pricing_rules import get_bulk_discount_percent, get_ppp_discount_percent
from courseaccess.models.coupon import Coupon, CouponType, DiscountKind
from courseaccess.models.price import (
    AppliedDiscount,
    AppliedDiscountType,
    AvailableCoupon,
    PriceBreakdown,
    RateDiscount
)
from courseaccess.models.product import Product, Purchase, PurchaseStatus
from courseaccess.repositories.coupon_repository import CouponRepository
from courseaccess.repositories.product_repository import ProductRepository
from courseaccess.repositories.purchase_repository import PurchaseRepository
from courseaccess.services.coupon_validator import validate_coupon

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """金额统一保留两位小数(四舍五入)"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_price(
    base_price: Union[Decimal, int, float, str],
    quantity: int = 1,
    percentage_coupon: Union[RateDiscount, Decimal, None] = None,
    fixed_discount: Union[Decimal, int, float, str, None] = None,
    upgrade_credit: Union[Decimal, int, float, str, None] = None,
    product_id: Optional[str] = None,
    fixed_coupon_id: Optional[str] = None
) -> PriceBreakdown:
    """
    计算价格明细

    Args:
        base_price: 单价
        quantity: 数量，至少为1
        percentage_coupon: 比例折扣，可以是RateDiscount或0-1之间的折扣率
        fixed_discount: 每件固定减免金额
        upgrade_credit: 每件升级抵扣金额

    Raises:
        InvalidPricingInputError: 数量小于1、负价格、折扣率越界或负的减免金额
    """
    if quantity is None or quantity < 1:
        raise InvalidPricingInputError("购买数量必须大于等于1", field="quantity")

    base = Decimal(str(base_price))
    if base < 0:
        raise InvalidPricingInputError("单价不能为负数", field="base_price")

    rate_discount = percentage_coupon
    if rate_discount is not None and not isinstance(rate_discount, RateDiscount):
        rate_discount = RateDiscount(rate=Decimal(str(rate_discount)))
    if rate_discount is not None and not (ZERO <= rate_discount.rate <= 1):
        raise InvalidPricingInputError("折扣率必须在0到1之间", field="percentage_coupon")

    fixed = Decimal(str(fixed_discount)) if fixed_discount is not None else ZERO
    if fixed < 0:
        raise InvalidPricingInputError("固定减免金额不能为负数", field="fixed_discount")

    credit = Decimal(str(upgrade_credit)) if upgrade_credit is not None else ZERO
    if credit < 0:
        raise InvalidPricingInputError("升级抵扣金额不能为负数", field="upgrade_credit")

    unit_price = to_money(base)
    applied: List[AppliedDiscount] = []

    # 1. 比例折扣
    after_rate = unit_price
    if rate_discount is not None and rate_discount.rate > 0:
        after_rate = to_money(unit_price * (1 - rate_discount.rate))
        applied.append(AppliedDiscount(
            type=rate_discount.type,
            amount=unit_price - after_rate,
            rate=rate_discount.rate,
            coupon_id=rate_discount.coupon_id
        ))

    # 2. 固定减免
    after_fixed = max(ZERO, after_rate - to_money(fixed))
    if fixed > 0:
        applied.append(AppliedDiscount(
            type=AppliedDiscountType.FIXED,
            amount=after_rate - after_fixed,
            coupon_id=fixed_coupon_id
        ))

    # 3. 升级抵扣
    unit_final = max(ZERO, after_fixed - to_money(credit))
    if credit > 0:
        applied.append(AppliedDiscount(type=AppliedDiscountType.UPGRADE, amount=after_fixed - unit_final))

    main_discount = next(
        (discount for discount in applied if discount.type != AppliedDiscountType.UPGRADE),
        None
    )

    return PriceBreakdown(
        product_id=product_id,
        unit_price=unit_price,
        quantity=quantity,
        full_price=unit_price * quantity,
        unit_final_price=unit_final,
        calculated_price=unit_final * quantity,
        applied_discounts=applied,
        applied_discount_type=main_discount.type if main_discount else AppliedDiscountType.NONE,
        applied_coupon_id=main_discount.coupon_id if main_discount else None
    )


class PriceCalculatorService:
    """价格计算服务：选出适用的优惠并给出价格明细"""

    def __init__(
        self,
        product_repo: ProductRepository,
        coupon_repo: CouponRepository,
        purchase_repo: PurchaseRepository,
        auto_apply_ppp: Optional[bool] = None
    ):
        self.product_repo = product_repo
        self.coupon_repo = coupon_repo
        self.purchase_repo = purchase_repo
        self.auto_apply_ppp = settings.auto_apply_ppp if auto_apply_ppp is None else auto_apply_ppp

    async def compute_price(
        self,
        product_id: str,
        coupon_code: Optional[str] = None,
        quantity: int = 1,
        country_code: Optional[str] = None,
        upgrade_from_purchase_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Optional[PriceBreakdown]:
        """
        计算商品价格

        优先级: PPP > 团队批量 > 优惠券，三者互斥。
        商品不存在时返回None。
        """
        if quantity is None or quantity < 1:
            raise InvalidPricingInputError("购买数量必须大于等于1", field="quantity")

        product = await self.product_repo.get_product(product_id)
        if not product:
            return None

        country = (country_code or settings.default_country).upper()
        subtotal = product.price * quantity
        user_purchases = await self.purchase_repo.get_purchases_for_user(user_id) if user_id else []

        candidate = await self._resolve_candidate_coupon(product, coupon_code)
        special = candidate if candidate and candidate.type == CouponType.SPECIAL else None
        merchant_amount = special.discount_amount_for(subtotal, quantity) if special else ZERO

        # PPP
        ppp_rate = get_ppp_discount_percent(country)
        has_full_price_purchase = any(p.status == PurchaseStatus.VALID for p in user_purchases)
        ppp_conditions_met = (
            ppp_rate > 0
            and quantity == 1
            and not has_full_price_purchase
            and merchant_amount < ppp_rate * subtotal
        )
        available_coupons: List[AvailableCoupon] = []
        if ppp_conditions_met:
            available_coupons.append(AvailableCoupon(type=AppliedDiscountType.PPP, rate=ppp_rate, country=country))

        ppp_applied = False
        ppp_coupon_id = None
        if candidate and candidate.type == CouponType.PPP:
            # 手动选择的PPP券必须与当前国家的折扣率一致
            ppp_applied = quantity == 1 and ZERO < ppp_rate < 1 and candidate.percentage_discount == ppp_rate
            ppp_coupon_id = candidate.id if ppp_applied else None
            if not ppp_applied:
                available_coupons = []
        elif self.auto_apply_ppp and ppp_conditions_met:
            ppp_applied = special is None or special.discount_kind == DiscountKind.FIXED

        # 团队批量
        seat_count = quantity + await self._existing_seat_count(user_id, product.id)
        is_bulk = seat_count > 1
        bulk_rate = get_bulk_discount_percent(seat_count)
        bulk_applied = not ppp_applied and bulk_rate > 0 and merchant_amount < bulk_rate * subtotal

        rate_discount: Optional[RateDiscount] = None
        fixed_discount: Optional[Decimal] = None
        fixed_coupon_id: Optional[str] = None
        if ppp_applied:
            rate_discount = RateDiscount(rate=ppp_rate, type=AppliedDiscountType.PPP, coupon_id=ppp_coupon_id)
        elif bulk_applied:
            rate_discount = RateDiscount(rate=bulk_rate, type=AppliedDiscountType.BULK)
        elif special and special.discount_kind == DiscountKind.FIXED:
            fixed_discount = special.amount_discount
            fixed_coupon_id = special.id
        elif special and special.discount_kind == DiscountKind.PERCENTAGE:
            rate_discount = RateDiscount(
                rate=special.percentage_discount,
                type=AppliedDiscountType.PERCENTAGE,
                coupon_id=special.id
            )

        upgrade_credit = None
        if upgrade_from_purchase_id and not is_bulk:
            upgrade_credit = await self._upgrade_credit(
                product,
                upgrade_from_purchase_id,
                user_id,
                will_be_restricted=ppp_applied
            )

        breakdown = calculate_price(
            product.price,
            quantity=quantity,
            percentage_coupon=rate_discount,
            fixed_discount=fixed_discount,
            upgrade_credit=upgrade_credit,
            product_id=product.id,
            fixed_coupon_id=fixed_coupon_id
        )
        breakdown.available_coupons = available_coupons
        breakdown.bulk = is_bulk
        if upgrade_credit is not None:
            breakdown.upgrade_from_purchase_id = upgrade_from_purchase_id

        logger.debug(
            f"价格计算完成 product={product.id} quantity={quantity} country={country} "
            f"discount={breakdown.applied_discount_type.value} total={breakdown.calculated_price}"
        )
        return breakdown

    async def _resolve_candidate_coupon(self, product: Product, coupon_code: Optional[str]) -> Optional[Coupon]:
        """兑换码可兑换时使用兑换码，否则退回到商品的默认促销券"""
        product_ids = [product.id]

        if coupon_code:
            coupon = await self.coupon_repo.get_coupon(coupon_code)
            if coupon and coupon.type != CouponType.BULK and validate_coupon(coupon, product_ids).is_redeemable:
                return coupon

        default_coupon = await self.coupon_repo.get_default_coupon(product_ids)
        if default_coupon and validate_coupon(default_coupon, product_ids).is_valid:
            return default_coupon
        return None

    async def _existing_seat_count(self, user_id: Optional[str], product_id: str) -> int:
        """用户已购买的团队席位数"""
        if not user_id:
            return 0
        bulk_purchase = await self.purchase_repo.get_bulk_purchase_for_user(user_id, product_id)
        if not bulk_purchase:
            return 0
        bulk_coupon = await self.coupon_repo.get_coupon(bulk_purchase.bulk_coupon_id)
        if not bulk_coupon or bulk_coupon.max_uses <= 0:
            return 0
        return bulk_coupon.max_uses

    async def _upgrade_credit(
        self,
        product: Product,
        purchase_id: str,
        user_id: Optional[str],
        will_be_restricted: bool = False
    ) -> Optional[Decimal]:
        """
        升级抵扣金额

        同一商品从Restricted升级为完整访问时，抵扣为升级链上已支付金额之和，
        本次仍按PPP购买(结果仍是Restricted)时不抵扣；
        不同商品之间升级时，抵扣为原商品的价格。
        """
        if user_id:
            purchase = await self.purchase_repo.get_purchase_details(purchase_id, user_id)
        else:
            purchase = await self.purchase_repo.get_purchase(purchase_id)
        if not purchase or not purchase.is_active():
            return None

        if purchase.product_id == product.id:
            if purchase.status != PurchaseStatus.RESTRICTED or will_be_restricted:
                return None
            chain: List[Purchase] = await self.purchase_repo.get_upgrade_chain(purchase.id)
            return sum((p.total_amount for p in chain), ZERO)

        upgradable = await self.product_repo.get_upgradable_product(purchase.product_id, product.id)
        if not upgradable:
            return None
        original_product = await self.product_repo.get_product(purchase.product_id)
        return original_product.price if original_product else None
