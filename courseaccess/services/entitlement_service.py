"""
权益服务
负责购买或订阅后授予权益、退款或取消订阅时软删除权益以及查询用户当前有效的权益
"""

import uuid
from datetime import datetime
from typing import List, Optional

import structlog

from courseaccess.core.exceptions import UnauthorizedError
from courseaccess.models.entitlement import (
    Entitlement,
    EntitlementMetadata,
    EntitlementSourceType,
    EntitlementType,
    MembershipRole,
    OrganizationMembership,
    RefundResult
)
from courseaccess.models.product import ProductType, Purchase, PurchaseStatus
from courseaccess.models.resource import Resource
from courseaccess.models.user import User, UserRole
from courseaccess.repositories.entitlement_repository import EntitlementRepository
from courseaccess.repositories.product_repository import ProductRepository
from courseaccess.repositories.purchase_repository import PurchaseRepository
from courseaccess.services.resource_tree import ResourceTreeService

logger = structlog.get_logger()


class EntitlementService:
    """权益业务服务"""

    def __init__(
        self,
        entitlement_repo: EntitlementRepository,
        purchase_repo: PurchaseRepository,
        product_repo: ProductRepository,
        resource_tree: ResourceTreeService
    ):
        self.entitlement_repo = entitlement_repo
        self.purchase_repo = purchase_repo
        self.product_repo = product_repo
        self.resource_tree = resource_tree

    async def grant(
        self,
        purchase: Purchase,
        product_type: ProductType,
        resource: Resource,
        membership: Optional[OrganizationMembership] = None
    ) -> List[str]:
        """
        为一次购买授予某个资源的访问权益

        队列课程按子资源逐个授予cohort_content_access，其余商品授予该资源本身。
        以 (购买ID, 资源ID) 作为幂等键，重复授予直接返回已有权益ID。
        """
        if membership is None:
            membership = await self._resolve_membership(purchase.user_id, purchase.organization_id)

        if product_type == ProductType.COHORT:
            tree = await self.resource_tree.load_tree()
            targets = [(child.id, EntitlementType.COHORT_CONTENT_ACCESS) for child in tree.children(resource.id)]
        else:
            targets = [(resource.id, EntitlementType.WORKSHOP_CONTENT_ACCESS)]

        entitlement_ids = []
        for content_id, entitlement_type in targets:
            entitlement = Entitlement(
                id=str(uuid.uuid4()),
                user_id=purchase.user_id,
                organization_id=membership.organization_id if membership else purchase.organization_id,
                organization_membership_id=membership.id if membership else None,
                entitlement_type=entitlement_type,
                source_id=purchase.id,
                source_type=EntitlementSourceType.PURCHASE,
                metadata=EntitlementMetadata(content_ids=[content_id])
            )
            entitlement_id, created = await self.entitlement_repo.insert_entitlement(entitlement, content_id)
            if not created:
                logger.info("权益已存在，跳过", purchase_id=purchase.id, content_id=content_id)
            entitlement_ids.append(entitlement_id)

        logger.info(
            "权益授予完成",
            purchase_id=purchase.id,
            resource_id=resource.id,
            product_type=product_type.value,
            count=len(entitlement_ids)
        )
        return entitlement_ids

    async def grant_for_purchase(self, purchase_id: str) -> List[str]:
        """购买事件处理：为购买的商品关联资源授予权益"""
        purchase = await self.purchase_repo.get_purchase(purchase_id)
        if not purchase:
            logger.warning("购买记录不存在，跳过授予", purchase_id=purchase_id)
            return []

        # 团队购买者本身不占用席位，需通过兑换获得访问权
        if not purchase.is_active() or purchase.is_seat_pool_owner():
            return []

        product = await self.product_repo.get_product(purchase.product_id)
        if not product:
            logger.warning("商品不存在，跳过授予", purchase_id=purchase_id, product_id=purchase.product_id)
            return []

        membership = await self._resolve_membership(purchase.user_id, purchase.organization_id)
        tree = await self.resource_tree.load_tree()

        entitlement_ids: List[str] = []
        for resource_id in product.resource_ids:
            resource = tree.get(resource_id)
            if not resource:
                continue
            entitlement_ids.extend(await self.grant(purchase, product.type, resource, membership))
        return entitlement_ids

    async def revoke_for_purchase(self, purchase_id: str, now: Optional[datetime] = None) -> int:
        """软删除来源为该购买的权益，重复调用返回0"""
        revoked = await self.entitlement_repo.soft_delete_entitlements_for_source(purchase_id, now)
        logger.info("权益已撤销", purchase_id=purchase_id, count=revoked)
        return revoked

    async def grant_for_subscription(
        self,
        subscription_id: str,
        user_id: str,
        content_ids: List[str],
        expires_at: Optional[datetime] = None,
        organization_id: Optional[str] = None
    ) -> List[str]:
        """
        为订阅授予访问权益

        每个资源一条subscription_tier权益，到期时间跟随订阅当前计费周期；
        以 (订阅ID, 资源ID) 作为幂等键，重复投递不会产生新记录。
        """
        membership = await self._resolve_membership(user_id, organization_id)
        tree = await self.resource_tree.load_tree()

        entitlement_ids = []
        for content_id in content_ids:
            if content_id not in tree:
                logger.warning("订阅资源不存在，跳过", subscription_id=subscription_id, content_id=content_id)
                continue
            entitlement = Entitlement(
                id=str(uuid.uuid4()),
                user_id=user_id,
                organization_id=membership.organization_id if membership else organization_id,
                organization_membership_id=membership.id if membership else None,
                entitlement_type=EntitlementType.SUBSCRIPTION_TIER,
                source_id=subscription_id,
                source_type=EntitlementSourceType.SUBSCRIPTION,
                metadata=EntitlementMetadata(content_ids=[content_id]),
                expires_at=expires_at
            )
            entitlement_id, _ = await self.entitlement_repo.insert_entitlement(entitlement, content_id)
            entitlement_ids.append(entitlement_id)

        logger.info(
            "订阅权益授予完成",
            subscription_id=subscription_id,
            user_id=user_id,
            count=len(entitlement_ids)
        )
        return entitlement_ids

    async def revoke_for_subscription(self, subscription_id: str, now: Optional[datetime] = None) -> int:
        """订阅取消或移除成员时软删除其权益"""
        revoked = await self.entitlement_repo.soft_delete_entitlements_for_source(
            subscription_id,
            now,
            source_type=EntitlementSourceType.SUBSCRIPTION
        )
        logger.info("订阅权益已撤销", subscription_id=subscription_id, count=revoked)
        return revoked

    async def handle_refund(self, purchase_id: str) -> RefundResult:
        """
        处理退款

        购买标记为Refunded并撤销其权益；团队购买还会撤销所有从该席位池兑换的权益。
        """
        purchase = await self.purchase_repo.get_purchase(purchase_id)
        if not purchase:
            logger.warning("退款的购买记录不存在", purchase_id=purchase_id)
            return RefundResult(purchase_id=purchase_id, found=False)

        await self.purchase_repo.update_purchase_status(purchase.id, PurchaseStatus.REFUNDED)

        revoked = await self.revoke_for_purchase(purchase.id)
        affected = [purchase.id]

        if purchase.is_seat_pool_owner():
            redeemed_purchases = await self.purchase_repo.get_purchases_redeemed_from(purchase.bulk_coupon_id)
            for redeemed in redeemed_purchases:
                revoked += await self.revoke_for_purchase(redeemed.id)
                affected.append(redeemed.id)

        logger.info(
            "退款处理完成",
            purchase_id=purchase.id,
            is_bulk_purchase=purchase.is_seat_pool_owner(),
            entitlements_revoked=revoked,
            purchases_affected=len(affected)
        )
        return RefundResult(
            purchase_id=purchase.id,
            is_bulk_purchase=purchase.is_seat_pool_owner(),
            entitlements_revoked=revoked,
            purchases_affected=affected
        )

    async def list_active_for_user(self, user_id: str, now: Optional[datetime] = None) -> List[Entitlement]:
        """用户在所有组织成员关系下的有效权益"""
        memberships = await self.entitlement_repo.get_memberships_for_user(user_id)
        return await self.entitlement_repo.list_active_entitlements(
            [membership.id for membership in memberships],
            user_id=user_id,
            current_time=now
        )

    async def create_manual_entitlement(
        self,
        actor: Optional[User],
        user_id: str,
        content_ids: List[str],
        entitlement_type: EntitlementType = EntitlementType.WORKSHOP_CONTENT_ACCESS,
        expires_at: Optional[datetime] = None,
        organization_id: Optional[str] = None
    ) -> List[str]:
        """
        管理员手动授予权益

        Raises:
            UnauthorizedError: 操作者不是管理员
        """
        if actor is None or not actor.has_role(UserRole.ADMIN):
            raise UnauthorizedError("create", "Entitlement", actor.id if actor else None)

        membership = await self._resolve_membership(user_id, organization_id)
        grant_id = f"manual_{uuid.uuid4().hex}"

        entitlement_ids = []
        for content_id in content_ids:
            entitlement = Entitlement(
                id=str(uuid.uuid4()),
                user_id=user_id,
                organization_id=membership.organization_id if membership else organization_id,
                organization_membership_id=membership.id if membership else None,
                entitlement_type=entitlement_type,
                source_id=grant_id,
                source_type=EntitlementSourceType.MANUAL,
                metadata=EntitlementMetadata(content_ids=[content_id]),
                expires_at=expires_at
            )
            entitlement_id, _ = await self.entitlement_repo.insert_entitlement(entitlement, content_id)
            entitlement_ids.append(entitlement_id)

        logger.info("手动授予权益", actor_id=actor.id, user_id=user_id, count=len(entitlement_ids))
        return entitlement_ids

    async def _resolve_membership(
        self,
        user_id: Optional[str],
        organization_id: Optional[str]
    ) -> Optional[OrganizationMembership]:
        """获取用户在组织中的成员关系，没有组织时创建个人组织"""
        if not user_id:
            return None

        if organization_id:
            membership = await self.entitlement_repo.get_membership(organization_id, user_id)
            if membership:
                return membership
            return await self.entitlement_repo.add_membership(organization_id, user_id, MembershipRole.MEMBER)

        memberships = await self.entitlement_repo.get_memberships_for_user(user_id)
        if memberships:
            return memberships[0]

        organization = await self.entitlement_repo.create_organization(name=f"personal:{user_id}")
        logger.info("创建个人组织", user_id=user_id, organization_id=organization.id)
        return await self.entitlement_repo.add_membership(organization.id, user_id, MembershipRole.OWNER)
