"""
权限判定服务

按用户角色、有效权益、购买记录和区域限制生成有序规则列表，
规则按声明顺序求值，第一条匹配的规则决定结果，没有匹配则拒绝。
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from courseaccess.models.ability import Ability, Action, Effect, Rule, Subject, can, cannot
from courseaccess.models.entitlement import Entitlement, EntitlementSourceType, EntitlementType
from courseaccess.models.product import Purchase, REVOKED_PURCHASE_STATUSES
from courseaccess.models.resource import READABLE_STATES
from courseaccess.models.user import User, UserRole
from courseaccess.repositories.coupon_repository import CouponRepository
from courseaccess.repositories.purchase_repository import PurchaseRepository
from courseaccess.repositories.user_repository import UserRepository
from courseaccess.services.entitlement_service import EntitlementService
from courseaccess.services.resource_tree import ResourceTree, ResourceTreeService

logger = logging.getLogger(__name__)

CONTRIBUTOR_ACTIONS = (Action.MANAGE, Action.SAVE, Action.PUBLISH, Action.ARCHIVE, Action.UNPUBLISH)


def build_rules(
    user: Optional[User],
    tree: ResourceTree,
    entitlements: Iterable[Entitlement] = (),
    purchases: Iterable[Purchase] = (),
    revoked_source_ids: Optional[Set[str]] = None,
    country: Optional[str] = None,
    remaining_seats: Optional[Dict[str, Optional[int]]] = None,
    free_root_ids: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None
) -> List[Rule]:
    """
    生成有序规则列表

    顺序: 管理员 -> 创建者/评审 -> 区域限制(cannot) -> 直接授权 -> 祖先授权 -> 公开与免费内容。
    未登录用户只有区域限制和公开内容规则。

    Args:
        user: 当前用户，None表示未登录
        tree: 资源树
        entitlements: 用户的有效权益
        purchases: 用户的购买记录(团队与发票规则使用)
        revoked_source_ids: 已退款或争议中的来源购买ID，其权益被忽略
        country: 访问者国家代码
        remaining_seats: 席位池优惠券ID -> 剩余席位
        free_root_ids: 计算免费试看内容的根节点，None表示全部根节点
    """
    now = now or datetime.now()
    revoked_source_ids = revoked_source_ids or set()
    remaining_seats = remaining_seats or {}
    rules: List[Rule] = []

    def resource_of(resource_id):
        return tree.get(resource_id) if isinstance(resource_id, str) else None

    if user is not None:
        # 1. 管理员
        if user.has_role(UserRole.ADMIN):
            rules.append(can(Action.MANAGE, Subject.ALL, reason="admin"))

        # 2. 创建者与评审
        if user.has_role(UserRole.CONTRIBUTOR):
            rules.append(can(
                CONTRIBUTOR_ACTIONS,
                Subject.CONTENT,
                lambda resource_id: _created_by(resource_of(resource_id), user.id),
                reason="contributor-owns-content"
            ))
        if user.has_role(UserRole.REVIEWER):
            rules.append(can(Action.READ, Subject.CONTENT, reason="reviewer"))

    # 3. 区域限制: 资源本身受限，或每条父路径都经过受限的祖先
    excluded_cache: Dict[str, bool] = {}

    def path_excluded(resource_id: str) -> bool:
        if resource_id not in excluded_cache:
            resource = tree.get(resource_id)
            parent_ids = tree.get_parents(resource_id)
            excluded_cache[resource_id] = resource is not None and (
                resource.excludes_country(country)
                or (bool(parent_ids) and all(path_excluded(parent_id) for parent_id in parent_ids))
            )
        return excluded_cache[resource_id]

    def region_excluded(resource_id) -> bool:
        return isinstance(resource_id, str) and path_excluded(resource_id)

    rules.append(cannot(Action.READ, Subject.CONTENT, region_excluded, reason="region-restricted"))

    if user is not None:
        entitled_ids: Set[str] = set()
        open_ancestor_ids: Set[str] = set()
        pending_ids: Set[str] = set()

        for entitlement in entitlements:
            if not entitlement.is_active(now):
                continue
            if entitlement.source_type == EntitlementSourceType.PURCHASE and entitlement.source_id in revoked_source_ids:
                continue
            for content_id in entitlement.content_ids:
                entitled_ids.add(content_id)
                entitled = tree.get(content_id)
                is_cohort = entitlement.entitlement_type == EntitlementType.COHORT_CONTENT_ACCESS
                if is_cohort and entitled is not None and not entitled.has_started(now):
                    pending_ids.add(content_id)
                else:
                    open_ancestor_ids.add(content_id)

        # 4. 直接授权
        if entitled_ids:
            rules.append(can(
                Action.READ,
                Subject.CONTENT,
                lambda resource_id: resource_id in entitled_ids,
                reason="entitled"
            ))

        # 5. 任一祖先被授权，检查所有父路径
        if open_ancestor_ids:
            rules.append(can(
                Action.READ,
                Subject.CONTENT,
                lambda resource_id: bool(tree.get_ancestor_ids(resource_id) & open_ancestor_ids),
                reason="entitled-ancestor"
            ))
        if pending_ids:
            rules.append(can(
                Action.READ,
                Subject.PENDING_OPEN_ACCESS,
                lambda resource_id: (
                    resource_id in pending_ids or bool(tree.get_ancestor_ids(resource_id) & pending_ids)
                ),
                reason="cohort-not-started"
            ))

        # 用户本人、团队与发票
        rules.append(can(
            [Action.READ, Action.UPDATE],
            Subject.USER,
            lambda user_id: user_id == user.id,
            reason="self"
        ))

        purchases = list(purchases)
        pool_ids = {p.bulk_coupon_id for p in purchases if p.is_seat_pool_owner() and p.is_active()}
        if pool_ids:
            rules.append(can(Action.READ, Subject.TEAM, lambda coupon_id: coupon_id in pool_ids, reason="team-owner"))
            invitable = {pool_id for pool_id in pool_ids if (remaining_seats.get(pool_id) or 0) > 0}
            if invitable:
                rules.append(can(
                    Action.INVITE,
                    Subject.TEAM,
                    lambda coupon_id: coupon_id in invitable,
                    reason="team-seats-left"
                ))

        charged_ids = {p.id for p in purchases if p.has_charge()}
        if charged_ids:
            rules.append(can(
                Action.READ,
                Subject.INVOICE,
                lambda purchase_id: purchase_id in charged_ids,
                reason="purchase-charged"
            ))

    # 6. 公开内容与免费试看
    rules.append(can(
        Action.READ,
        Subject.CONTENT,
        lambda resource_id: _is_public(resource_of(resource_id)),
        reason="public"
    ))

    roots = list(free_root_ids) if free_root_ids is not None else [
        node_id for node_id, node in tree.nodes.items() if not node.parent_ids
    ]
    free_ids: Set[str] = set()
    for root_id in roots:
        free_ids |= tree.free_resource_ids(root_id)
    if free_ids:
        rules.append(can(
            Action.READ,
            Subject.CONTENT,
            lambda resource_id: resource_id in free_ids and _is_readable_state(resource_of(resource_id)),
            reason="free-tier"
        ))

    return rules


def _created_by(resource, user_id: str) -> bool:
    return resource is not None and resource.created_by_id == user_id


def _is_public(resource) -> bool:
    return resource is not None and resource.is_publicly_readable()


def _is_readable_state(resource) -> bool:
    return resource is not None and resource.state in READABLE_STATES


class AuthorizationService:
    """权限判定服务"""

    def __init__(
        self,
        user_repo: UserRepository,
        entitlement_service: EntitlementService,
        purchase_repo: PurchaseRepository,
        coupon_repo: CouponRepository,
        resource_tree: ResourceTreeService
    ):
        self.user_repo = user_repo
        self.entitlement_service = entitlement_service
        self.purchase_repo = purchase_repo
        self.coupon_repo = coupon_repo
        self.resource_tree = resource_tree

    async def get_ability_rules(
        self,
        user_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        country: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[Rule]:
        """
        获取用户的规则列表

        指定resource_id时，免费试看内容只在该资源所在的模块内计算。
        """
        tree = await self.resource_tree.load_tree()

        free_root_ids = None
        if resource_id is not None:
            free_root_ids = {resource_id} | tree.get_ancestor_ids(resource_id)

        if not user_id:
            return build_rules(None, tree, country=country, free_root_ids=free_root_ids, now=now)

        user = await self.user_repo.get_user(user_id) or User(id=user_id)
        country = country or user.country

        entitlements = await self.entitlement_service.list_active_for_user(user_id, now)
        purchases = await self.purchase_repo.get_purchases_for_user(user_id)
        revoked_source_ids = await self._revoked_source_ids(entitlements, purchases)

        remaining_seats: Dict[str, Optional[int]] = {}
        for purchase in purchases:
            if purchase.is_seat_pool_owner() and purchase.is_active():
                coupon = await self.coupon_repo.get_coupon(purchase.bulk_coupon_id)
                remaining_seats[purchase.bulk_coupon_id] = coupon.number_of_redemptions_left if coupon else 0

        return build_rules(
            user,
            tree,
            entitlements=entitlements,
            purchases=purchases,
            revoked_source_ids=revoked_source_ids,
            country=country,
            remaining_seats=remaining_seats,
            free_root_ids=free_root_ids,
            now=now
        )

    async def get_ability(
        self,
        user_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        country: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Ability:
        return Ability(await self.get_ability_rules(user_id, resource_id, country, now))

    async def can_read(
        self,
        user_id: Optional[str],
        resource_id: str,
        country: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> bool:
        """用户能否读取资源，资源不存在时返回False"""
        if await self.resource_tree.get_resource(resource_id) is None:
            return False
        ability = await self.get_ability(user_id, resource_id, country, now)
        rule = ability.relevant_rule_for(Action.READ, Subject.CONTENT, resource_id)
        allowed = rule is not None and rule.effect == Effect.CAN
        logger.debug(
            f"权限判定 user={user_id} resource={resource_id} allowed={allowed} "
            f"rule={rule.reason if rule else None}"
        )
        return allowed

    async def _revoked_source_ids(self, entitlements: List[Entitlement], purchases: List[Purchase]) -> Set[str]:
        """权益来源购买中已退款或争议中的ID"""
        status_by_id = {purchase.id: purchase.status for purchase in purchases}
        revoked: Set[str] = set()
        for entitlement in entitlements:
            if entitlement.source_type != EntitlementSourceType.PURCHASE:
                continue
            source_id = entitlement.source_id
            if source_id not in status_by_id:
                source = await self.purchase_repo.get_purchase(source_id)
                status_by_id[source_id] = source.status if source else None
            if status_by_id[source_id] in REVOKED_PURCHASE_STATUSES:
                revoked.add(source_id)
        return revoked
