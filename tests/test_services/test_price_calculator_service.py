"""
价格计算测试
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from courseaccess.core.exceptions import InvalidPricingInputError
from courseaccess.models.coupon import CouponType
from courseaccess.models.price import AppliedDiscountType, RateDiscount
from courseaccess.models.product import PurchaseStatus, UpgradableProduct
from courseaccess.repositories.coupon_repository import CouponRepository
from courseaccess.repositories.product_repository import ProductRepository
from courseaccess.repositories.purchase_repository import PurchaseRepository
from courseaccess.services.price_calculator_service import (
    PriceCalculatorService,
    calculate_price,
    to_money
)


class TestCalculatePrice:
    """calculate_price 纯函数测试"""

    def test_no_discount(self):
        breakdown = calculate_price(Decimal("100"))
        assert breakdown.calculated_price == Decimal("100.00")
        assert breakdown.applied_discount_type == AppliedDiscountType.NONE
        assert breakdown.applied_discounts == []

    def test_percentage_discount(self):
        breakdown = calculate_price(Decimal("100"), percentage_coupon=Decimal("0.2"))
        assert breakdown.unit_final_price == Decimal("80.00")
        assert breakdown.applied_discount_type == AppliedDiscountType.PERCENTAGE
        assert breakdown.savings == Decimal("20.00")

    def test_rounding_to_cents(self):
        breakdown = calculate_price(Decimal("19.99"), percentage_coupon=Decimal("0.333"))
        assert breakdown.unit_final_price == Decimal("13.33")
        assert to_money("0.005") == Decimal("0.01")

    def test_quantity_multiplies(self):
        breakdown = calculate_price(Decimal("50"), quantity=3, percentage_coupon=Decimal("0.1"))
        assert breakdown.full_price == Decimal("150.00")
        assert breakdown.calculated_price == Decimal("135.00")

    def test_discount_order_rate_fixed_upgrade(self):
        """先比例折扣，再固定减免，最后升级抵扣"""
        breakdown = calculate_price(
            Decimal("100"),
            percentage_coupon=RateDiscount(rate=Decimal("0.5"), type=AppliedDiscountType.PPP),
            fixed_discount=Decimal("10"),
            upgrade_credit=Decimal("15")
        )
        assert breakdown.unit_final_price == Decimal("25.00")
        assert breakdown.applied_discount_types == [
            AppliedDiscountType.PPP,
            AppliedDiscountType.FIXED,
            AppliedDiscountType.UPGRADE
        ]

    def test_fixed_discount_clamped_at_zero(self):
        breakdown = calculate_price(Decimal("100"), fixed_discount=Decimal("150"))
        assert breakdown.calculated_price == Decimal("0")
        assert breakdown.applied_discounts[0].amount == Decimal("100.00")

    def test_upgrade_credit_clamped_at_zero(self):
        breakdown = calculate_price(Decimal("100"), percentage_coupon=Decimal("0.5"), upgrade_credit=Decimal("80"))
        assert breakdown.calculated_price == Decimal("0")

    def test_full_discount(self):
        assert calculate_price(Decimal("100"), percentage_coupon=Decimal("1")).calculated_price == Decimal("0.00")

    def test_larger_discount_never_costs_more(self):
        prices = [
            calculate_price(Decimal("79.99"), percentage_coupon=Decimal(rate)).calculated_price
            for rate in ("0", "0.1", "0.25", "0.5", "0.75", "1")
        ]
        assert prices == sorted(prices, reverse=True)
        assert all(price >= 0 for price in prices)

    @pytest.mark.parametrize("kwargs", [
        {"base_price": Decimal("100"), "quantity": 0},
        {"base_price": Decimal("-1")},
        {"base_price": Decimal("100"), "percentage_coupon": Decimal("1.5")},
        {"base_price": Decimal("100"), "percentage_coupon": Decimal("-0.1")},
        {"base_price": Decimal("100"), "fixed_discount": Decimal("-5")},
        {"base_price": Decimal("100"), "upgrade_credit": Decimal("-5")},
    ])
    def test_invalid_inputs_rejected(self, kwargs):
        with pytest.raises(InvalidPricingInputError):
            calculate_price(**kwargs)


class TestPriceCalculatorService:
    """价格计算服务测试"""

    @pytest.fixture
    def product_repo(self, make_product):
        repo = AsyncMock(spec=ProductRepository)
        products = {
            "product_001": make_product("product_001", "100.00"),
            "basic": make_product("basic", "40.00"),
        }
        repo.get_product.side_effect = lambda product_id: products.get(product_id)
        repo.get_upgradable_product.return_value = None
        return repo

    @pytest.fixture
    def coupon_repo(self):
        repo = AsyncMock(spec=CouponRepository)
        repo.get_coupon.return_value = None
        repo.get_default_coupon.return_value = None
        return repo

    @pytest.fixture
    def purchase_repo(self):
        repo = AsyncMock(spec=PurchaseRepository)
        repo.get_purchases_for_user.return_value = []
        repo.get_bulk_purchase_for_user.return_value = None
        return repo

    @pytest.fixture
    def service(self, product_repo, coupon_repo, purchase_repo):
        return PriceCalculatorService(product_repo, coupon_repo, purchase_repo, auto_apply_ppp=True)

    @pytest.mark.asyncio
    async def test_missing_product(self, service):
        assert await service.compute_price("missing") is None

    @pytest.mark.asyncio
    async def test_invalid_quantity(self, service):
        with pytest.raises(InvalidPricingInputError):
            await service.compute_price("product_001", quantity=0)

    @pytest.mark.asyncio
    async def test_full_price(self, service):
        breakdown = await service.compute_price("product_001", country_code="US")
        assert breakdown.calculated_price == Decimal("100.00")
        assert breakdown.available_coupons == []
        assert not breakdown.bulk

    @pytest.mark.asyncio
    async def test_ppp_applied(self, service):
        breakdown = await service.compute_price("product_001", country_code="in")
        assert breakdown.applied_discount_type == AppliedDiscountType.PPP
        assert breakdown.calculated_price == Decimal("25.00")
        assert breakdown.available_coupons[0].country == "IN"

    @pytest.mark.asyncio
    async def test_ppp_not_offered_after_full_price_purchase(self, service, purchase_repo, make_purchase):
        purchase_repo.get_purchases_for_user.return_value = [make_purchase(product_id="other")]

        breakdown = await service.compute_price("product_001", country_code="IN", user_id="user_001")

        assert breakdown.applied_discount_type == AppliedDiscountType.NONE
        assert breakdown.available_coupons == []

    @pytest.mark.asyncio
    async def test_ppp_not_applied_to_bulk(self, service):
        """团队购买不使用PPP，改用批量折扣"""
        breakdown = await service.compute_price("product_001", quantity=5, country_code="IN")
        assert breakdown.applied_discount_type == AppliedDiscountType.BULK
        assert breakdown.unit_final_price == Decimal("85.00")
        assert breakdown.calculated_price == Decimal("425.00")
        assert breakdown.bulk

    @pytest.mark.asyncio
    async def test_small_team_has_no_bulk_rate(self, service):
        breakdown = await service.compute_price("product_001", quantity=2, country_code="US")
        assert breakdown.bulk
        assert breakdown.applied_discount_type == AppliedDiscountType.NONE
        assert breakdown.calculated_price == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_existing_seats_count_towards_bulk_tier(
        self, service, purchase_repo, coupon_repo, make_purchase, make_coupon
    ):
        purchase_repo.get_bulk_purchase_for_user.return_value = make_purchase(bulk_coupon_id="bulk_001")
        coupon_repo.get_coupon.return_value = make_coupon("bulk_001", type=CouponType.BULK, max_uses=9)

        breakdown = await service.compute_price("product_001", quantity=1, country_code="US", user_id="user_001")

        assert breakdown.applied_discount_type == AppliedDiscountType.BULK
        assert breakdown.unit_final_price == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_percentage_coupon(self, service, coupon_repo, make_coupon):
        coupon_repo.get_coupon.return_value = make_coupon(code="SAVE20", percentage_discount=Decimal("0.2"))

        breakdown = await service.compute_price("product_001", coupon_code="SAVE20", country_code="US")

        assert breakdown.applied_discount_type == AppliedDiscountType.PERCENTAGE
        assert breakdown.applied_coupon_id == "coupon_001"
        assert breakdown.calculated_price == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_percentage_coupon_keeps_ppp_as_option(self, service, coupon_repo, make_coupon):
        """已输入百分比券时PPP不自动覆盖，只作为可选优惠返回"""
        coupon_repo.get_coupon.return_value = make_coupon(code="SAVE20", percentage_discount=Decimal("0.2"))

        breakdown = await service.compute_price("product_001", coupon_code="SAVE20", country_code="IN")

        assert breakdown.applied_discount_type == AppliedDiscountType.PERCENTAGE
        assert [c.type for c in breakdown.available_coupons] == [AppliedDiscountType.PPP]

    @pytest.mark.asyncio
    async def test_larger_coupon_beats_ppp(self, service, coupon_repo, make_coupon):
        coupon_repo.get_coupon.return_value = make_coupon(code="HALF", percentage_discount=Decimal("0.8"))

        breakdown = await service.compute_price("product_001", coupon_code="HALF", country_code="IN")

        assert breakdown.applied_discount_type == AppliedDiscountType.PERCENTAGE
        assert breakdown.available_coupons == []
        assert breakdown.calculated_price == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_default_coupon_used_without_code(self, service, coupon_repo, make_coupon):
        coupon_repo.get_default_coupon.return_value = make_coupon(
            "sale", percentage_discount=Decimal("0.1"), default=True
        )

        breakdown = await service.compute_price("product_001", country_code="US")

        assert breakdown.applied_coupon_id == "sale"
        assert breakdown.calculated_price == Decimal("90.00")

    @pytest.mark.asyncio
    async def test_unredeemable_code_falls_back_to_default(self, service, coupon_repo, make_coupon):
        coupon_repo.get_coupon.return_value = make_coupon("other_sale", default=True, percentage_discount=Decimal("0.5"))
        coupon_repo.get_default_coupon.return_value = None

        breakdown = await service.compute_price("product_001", coupon_code="other_sale", country_code="US")

        assert breakdown.applied_discount_type == AppliedDiscountType.NONE

    @pytest.mark.asyncio
    async def test_fixed_coupon(self, service, coupon_repo, make_coupon):
        coupon_repo.get_coupon.return_value = make_coupon(
            code="TEN", amount_discount=Decimal("15"), percentage_discount=Decimal("0.05")
        )

        breakdown = await service.compute_price("product_001", coupon_code="TEN", country_code="US")

        assert breakdown.applied_discount_type == AppliedDiscountType.FIXED
        assert breakdown.calculated_price == Decimal("85.00")

    @pytest.mark.asyncio
    async def test_ppp_replaces_smaller_fixed_coupon(self, service, coupon_repo, make_coupon):
        """PPP折扣更大时替换固定减免券"""
        coupon_repo.get_coupon.return_value = make_coupon(
            code="TEN", amount_discount=Decimal("10"), percentage_discount=Decimal("0.05")
        )

        breakdown = await service.compute_price("product_001", coupon_code="TEN", country_code="IN")

        assert breakdown.applied_discount_types == [AppliedDiscountType.PPP]
        assert breakdown.calculated_price == Decimal("25.00")

    @pytest.mark.asyncio
    async def test_explicit_ppp_coupon_must_match_country(self, service, coupon_repo, make_coupon):
        coupon_repo.get_coupon.return_value = make_coupon(
            "ppp_br", type=CouponType.PPP, percentage_discount=Decimal("0.50"), country="BR"
        )

        breakdown = await service.compute_price("product_001", coupon_code="ppp_br", country_code="IN")

        assert breakdown.applied_discount_type == AppliedDiscountType.NONE
        assert breakdown.available_coupons == []

    @pytest.mark.asyncio
    async def test_explicit_ppp_coupon_applied(self, service, coupon_repo, make_coupon):
        coupon_repo.get_coupon.return_value = make_coupon(
            "ppp_in", type=CouponType.PPP, percentage_discount=Decimal("0.75"), country="IN"
        )

        breakdown = await service.compute_price("product_001", coupon_code="ppp_in", country_code="IN")

        assert breakdown.applied_discount_type == AppliedDiscountType.PPP
        assert breakdown.applied_coupon_id == "ppp_in"

    @pytest.mark.asyncio
    async def test_upgrade_between_products(self, service, product_repo, purchase_repo, make_purchase):
        purchase_repo.get_purchase_details.return_value = make_purchase("purchase_basic", product_id="basic")
        product_repo.get_upgradable_product.return_value = UpgradableProduct(
            upgradable_from_id="basic", upgradable_to_id="product_001"
        )

        breakdown = await service.compute_price(
            "product_001",
            country_code="US",
            upgrade_from_purchase_id="purchase_basic",
            user_id="user_001"
        )

        assert breakdown.calculated_price == Decimal("60.00")
        assert breakdown.upgrade_from_purchase_id == "purchase_basic"
        assert AppliedDiscountType.UPGRADE in breakdown.applied_discount_types

    @pytest.mark.asyncio
    async def test_restricted_upgrade_credits_amount_paid(self, service, purchase_repo, make_purchase):
        restricted = make_purchase(
            "purchase_ppp",
            status=PurchaseStatus.RESTRICTED,
            total_amount=Decimal("25.00")
        )
        purchase_repo.get_purchase_details.return_value = restricted
        purchase_repo.get_upgrade_chain.return_value = [restricted]

        breakdown = await service.compute_price(
            "product_001",
            country_code="US",
            upgrade_from_purchase_id="purchase_ppp",
            user_id="user_001"
        )

        assert breakdown.calculated_price == Decimal("75.00")

    @pytest.mark.asyncio
    async def test_restricted_upgrade_with_ppp_gets_no_credit(self, service, purchase_repo, make_purchase):
        """仍按PPP购买时结果依旧受限，不抵扣已支付金额"""
        restricted = make_purchase(
            "purchase_ppp",
            status=PurchaseStatus.RESTRICTED,
            total_amount=Decimal("25.00")
        )
        purchase_repo.get_purchase_details.return_value = restricted
        purchase_repo.get_upgrade_chain.return_value = [restricted]

        breakdown = await service.compute_price(
            "product_001",
            country_code="IN",
            upgrade_from_purchase_id="purchase_ppp",
            user_id="user_001"
        )

        assert breakdown.calculated_price == Decimal("25.00")
        assert breakdown.applied_discount_types == [AppliedDiscountType.PPP]
        assert breakdown.upgrade_from_purchase_id is None
        purchase_repo.get_upgrade_chain.assert_not_called()

    @pytest.mark.asyncio
    async def test_upgrade_ignored_without_path(self, service, purchase_repo, make_purchase):
        purchase_repo.get_purchase_details.return_value = make_purchase("purchase_basic", product_id="basic")

        breakdown = await service.compute_price(
            "product_001",
            country_code="US",
            upgrade_from_purchase_id="purchase_basic",
            user_id="user_001"
        )

        assert breakdown.calculated_price == Decimal("100.00")
        assert breakdown.upgrade_from_purchase_id is None
