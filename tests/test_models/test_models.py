"""
数据模型测试
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta
from pydantic import ValidationError

from courseaccess.models.ability import Ability, Action, Effect, Subject, can, cannot
from courseaccess.models.coupon import Coupon, DiscountKind
from courseaccess.models.entitlement import Entitlement, EntitlementMetadata, EntitlementType
from courseaccess.models.price import PriceBreakdown
from courseaccess.models.product import Purchase, PurchaseStatus
from courseaccess.models.resource import Resource, ResourceType, ResourceState, ResourceVisibility


class TestCouponModel:
    """优惠券模型测试"""

    def test_fixed_amount_takes_precedence(self):
        """同时设置固定金额和百分比时按固定金额处理"""
        coupon = Coupon(id="c1", percentage_discount=Decimal("0.2"), amount_discount=Decimal("10"))
        assert coupon.discount_kind == DiscountKind.FIXED

    def test_percentage_kind(self):
        coupon = Coupon(id="c1", percentage_discount=Decimal("0.2"))
        assert coupon.discount_kind == DiscountKind.PERCENTAGE
        assert coupon.discount_amount_for(Decimal("100")) == Decimal("20.0")

    def test_redemptions_left(self):
        """剩余次数计算"""
        assert Coupon(id="c1", max_uses=5, used_count=2).number_of_redemptions_left == 3
        assert Coupon(id="c1", max_uses=5, used_count=5).has_redemptions_left is False
        unlimited = Coupon(id="c1", max_uses=-1, used_count=100)
        assert unlimited.is_unlimited
        assert unlimited.has_redemptions_left
        assert unlimited.number_of_redemptions_left is None

    def test_percentage_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            Coupon(id="c1", percentage_discount=Decimal("1.5"))


class TestResourceModel:
    """资源模型测试"""

    def test_region_codes_normalized(self):
        resource = Resource(id="r1", type=ResourceType.WORKSHOP, slug="r1", region_restrictions=["us", " ca "])
        assert resource.region_restrictions == ["US", "CA"]

    def test_excludes_country(self):
        resource = Resource(id="r1", type=ResourceType.WORKSHOP, slug="r1", region_restrictions=["US"])
        assert resource.excludes_country("us") is False
        assert resource.excludes_country("FR") is True
        # 未知国家在有区域限制时视为排除
        assert resource.excludes_country(None) is True

    def test_unrestricted_resource_never_excludes(self):
        resource = Resource(id="r1", type=ResourceType.WORKSHOP, slug="r1")
        assert resource.excludes_country(None) is False

    def test_publicly_readable(self):
        published = Resource(id="r1", type=ResourceType.POST, slug="r1", state=ResourceState.PUBLISHED)
        draft = Resource(id="r2", type=ResourceType.POST, slug="r2", state=ResourceState.DRAFT)
        private = Resource(
            id="r3", type=ResourceType.POST, slug="r3",
            state=ResourceState.PUBLISHED, visibility=ResourceVisibility.PRIVATE
        )
        assert published.is_publicly_readable()
        assert not draft.is_publicly_readable()
        assert not private.is_publicly_readable()


class TestEntitlementModel:
    """权益模型测试"""

    def test_metadata_accepts_alias(self):
        entitlement = Entitlement(
            id="e1",
            entitlement_type=EntitlementType.WORKSHOP_CONTENT_ACCESS,
            source_id="p1",
            metadata={"contentIds": ["w1"]}
        )
        assert entitlement.content_ids == ["w1"]
        assert EntitlementMetadata(content_ids=["w1"]).model_dump(by_alias=True) == {"contentIds": ["w1"]}

    def test_is_active(self):
        now = datetime(2024, 1, 1)
        base = dict(id="e1", entitlement_type=EntitlementType.WORKSHOP_CONTENT_ACCESS, source_id="p1")
        assert Entitlement(**base).is_active(now)
        assert not Entitlement(**base, deleted_at=now).is_active(now)
        assert not Entitlement(**base, expires_at=now - timedelta(seconds=1)).is_active(now)
        assert Entitlement(**base, expires_at=now + timedelta(days=1)).is_active(now)


class TestPurchaseModel:

    def test_status_helpers(self):
        purchase = Purchase(id="p1", product_id="prod", bulk_coupon_id="bulk", merchant_charge_id="ch_1")
        assert purchase.is_active()
        assert purchase.is_seat_pool_owner()
        assert purchase.has_charge()
        assert not Purchase(id="p2", product_id="prod", status=PurchaseStatus.REFUNDED).is_active()


class TestAbility:
    """规则求值测试"""

    def test_first_matching_rule_wins(self):
        """cannot在前时覆盖后面的can"""
        ability = Ability([
            cannot(Action.READ, Subject.CONTENT, lambda target: target == "blocked"),
            can(Action.READ, Subject.CONTENT),
        ])
        assert ability.can(Action.READ, Subject.CONTENT, "open")
        assert ability.cannot(Action.READ, Subject.CONTENT, "blocked")
        assert ability.relevant_rule_for(Action.READ, Subject.CONTENT, "blocked").effect == Effect.CANNOT

    def test_no_rule_means_deny(self):
        ability = Ability([can(Action.READ, Subject.USER)])
        assert not ability.can(Action.READ, Subject.CONTENT, "r1")

    def test_manage_and_all_are_wildcards(self):
        ability = Ability([can(Action.MANAGE, Subject.ALL)])
        assert ability.can(Action.PUBLISH, Subject.CONTENT, "r1")
        assert ability.can(Action.DELETE, Subject.INVOICE, "p1")

    def test_conditional_rule_needs_target(self):
        rule = can(Action.READ, Subject.CONTENT, lambda target: True)
        assert rule.matches(Action.READ, Subject.CONTENT, "r1")
        assert not rule.matches(Action.READ, Subject.CONTENT, None)

    def test_predicate_not_serialized(self):
        rule = can([Action.READ, Action.UPDATE], Subject.USER, lambda target: True, reason="self")
        dumped = rule.model_dump(mode="json")
        assert "predicate" not in dumped
        assert dumped["actions"] == ["read", "update"]


class TestPriceBreakdown:

    def test_savings(self):
        breakdown = PriceBreakdown(
            unit_price=Decimal("100.00"),
            full_price=Decimal("100.00"),
            unit_final_price=Decimal("80.00"),
            calculated_price=Decimal("80.00")
        )
        assert breakdown.savings == Decimal("20.00")

    def test_json_dump_keeps_money_as_string(self):
        breakdown = PriceBreakdown(
            unit_price=Decimal("100.00"),
            full_price=Decimal("100.00"),
            unit_final_price=Decimal("25.00"),
            calculated_price=Decimal("25.00")
        )

        dumped = breakdown.model_dump(mode="json")

        assert dumped["calculated_price"] == "25.00"
        assert dumped["applied_discount_type"] == breakdown.applied_discount_type.value
