"""
权益与组织成员数据库操作层
"""

import uuid
from typing import List, Optional, Tuple
from datetime import datetime

from sqlalchemy import select, update, and_, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from courseaccess.core.database import handle_store_errors
from courseaccess.models.entitlement import (
    Entitlement,
    EntitlementSourceType,
    MembershipRole,
    Organization,
    OrganizationMembership
)
from courseaccess.models.database.entitlement_db import EntitlementDB, OrganizationDB, OrganizationMembershipDB


class EntitlementRepository:
    """权益数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # 组织与成员
    # ------------------------------------------------------------------

    @handle_store_errors
    async def get_organization(self, organization_id: str) -> Optional[Organization]:
        """根据ID获取组织"""
        result = await self.db.execute(
            select(OrganizationDB).where(OrganizationDB.id == organization_id)
        )
        row = result.scalar_one_or_none()
        if not row:
            return None
        return Organization(id=row.id, name=row.name, created_at=row.created_at)

    @handle_store_errors
    async def get_memberships_for_user(self, user_id: str) -> List[OrganizationMembership]:
        """获取用户的全部组织成员关系"""
        result = await self.db.execute(
            select(OrganizationMembershipDB)
            .where(OrganizationMembershipDB.user_id == user_id)
            .order_by(OrganizationMembershipDB.created_at)
        )
        return [self.membership_to_model(row) for row in result.scalars().all()]

    @handle_store_errors
    async def get_membership(self, organization_id: str, user_id: str) -> Optional[OrganizationMembership]:
        result = await self.db.execute(
            select(OrganizationMembershipDB).where(
                and_(
                    OrganizationMembershipDB.organization_id == organization_id,
                    OrganizationMembershipDB.user_id == user_id
                )
            )
        )
        row = result.scalar_one_or_none()
        return self.membership_to_model(row) if row else None

    @handle_store_errors
    async def create_organization(self, name: Optional[str] = None, organization_id: Optional[str] = None) -> Organization:
        """创建组织"""
        row = OrganizationDB(id=organization_id or str(uuid.uuid4()), name=name)
        self.db.add(row)
        await self.db.flush()
        return Organization(id=row.id, name=row.name, created_at=row.created_at)

    @handle_store_errors
    async def add_membership(
        self,
        organization_id: str,
        user_id: str,
        role: MembershipRole = MembershipRole.MEMBER
    ) -> OrganizationMembership:
        """添加组织成员"""
        row = OrganizationMembershipDB(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            user_id=user_id,
            role=role.value
        )
        self.db.add(row)
        await self.db.flush()
        return self.membership_to_model(row)

    @handle_store_errors
    async def remove_membership(self, membership_id: str) -> bool:
        """移除成员关系，已授予的权益保留"""
        row = await self.db.get(OrganizationMembershipDB, membership_id)
        if not row:
            return False
        await self.db.delete(row)
        await self.db.flush()
        return True

    # ------------------------------------------------------------------
    # 权益
    # ------------------------------------------------------------------

    @handle_store_errors
    async def list_active_entitlements(
        self,
        membership_ids: List[str],
        user_id: Optional[str] = None,
        current_time: Optional[datetime] = None
    ) -> List[Entitlement]:
        """
        获取有效权益

        未软删除且未过期；按成员关系查询，可附加按用户直接授予的权益
        """
        if current_time is None:
            current_time = datetime.now()

        owners = []
        if membership_ids:
            owners.append(EntitlementDB.organization_membership_id.in_(membership_ids))
        if user_id:
            owners.append(EntitlementDB.user_id == user_id)
        if not owners:
            return []

        query = select(EntitlementDB).where(
            and_(
                or_(*owners),
                EntitlementDB.deleted_at.is_(None),
                or_(EntitlementDB.expires_at.is_(None), EntitlementDB.expires_at > current_time)
            )
        ).order_by(EntitlementDB.created_at)

        result = await self.db.execute(query)
        return [self.to_model(row) for row in result.scalars().all()]

    @handle_store_errors
    async def list_entitlements_for_source(self, source_id: str) -> List[Entitlement]:
        """获取某来源的全部权益(含已软删除)"""
        result = await self.db.execute(
            select(EntitlementDB)
            .where(EntitlementDB.source_id == source_id)
            .execution_options(populate_existing=True)
        )
        return [self.to_model(row) for row in result.scalars().all()]

    @handle_store_errors
    async def get_entitlement_by_natural_key(self, source_id: str, resource_key: str) -> Optional[Entitlement]:
        result = await self.db.execute(
            select(EntitlementDB).where(
                and_(
                    EntitlementDB.source_id == source_id,
                    EntitlementDB.resource_key == resource_key
                )
            )
        )
        row = result.scalar_one_or_none()
        return self.to_model(row) if row else None

    @handle_store_errors
    async def insert_entitlement(self, entitlement: Entitlement, resource_key: str) -> Tuple[str, bool]:
        """
        插入权益，(source_id, resource_key) 已存在时不做任何修改

        Returns:
            (权益ID, 是否新建)
        """
        values = {
            "id": entitlement.id,
            "user_id": entitlement.user_id,
            "organization_id": entitlement.organization_id,
            "organization_membership_id": entitlement.organization_membership_id,
            "entitlement_type": entitlement.entitlement_type.value,
            "source_id": entitlement.source_id,
            "source_type": entitlement.source_type.value,
            "resource_key": resource_key,
            "metadata": entitlement.metadata.model_dump(by_alias=True),
            "expires_at": entitlement.expires_at,
            "created_at": entitlement.created_at
        }

        dialect = self.db.bind.dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(EntitlementDB.__table__).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite.insert(EntitlementDB.__table__).values(**values)
        else:
            existing = await self.get_entitlement_by_natural_key(entitlement.source_id, resource_key)
            if existing:
                return existing.id, False
            await self.db.execute(EntitlementDB.__table__.insert().values(**values))
            return entitlement.id, True

        stmt = stmt.on_conflict_do_nothing(index_elements=["source_id", "resource_key"])
        result = await self.db.execute(stmt)
        if result.rowcount > 0:
            return entitlement.id, True

        existing = await self.get_entitlement_by_natural_key(entitlement.source_id, resource_key)
        return existing.id, False

    @handle_store_errors
    async def soft_delete_entitlements_for_source(
        self,
        source_id: str,
        current_time: Optional[datetime] = None,
        source_type: EntitlementSourceType = EntitlementSourceType.PURCHASE
    ) -> int:
        """软删除该来源的有效权益(默认只处理购买来源)，返回本次删除的数量"""
        if current_time is None:
            current_time = datetime.now()

        result = await self.db.execute(
            update(EntitlementDB)
            .where(
                and_(
                    EntitlementDB.source_id == source_id,
                    EntitlementDB.source_type == source_type.value,
                    EntitlementDB.deleted_at.is_(None)
                )
            )
            .values(deleted_at=current_time)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def to_model(self, db_entitlement: EntitlementDB) -> Entitlement:
        """转换为Pydantic模型"""
        return Entitlement(
            id=db_entitlement.id,
            user_id=db_entitlement.user_id,
            organization_id=db_entitlement.organization_id,
            organization_membership_id=db_entitlement.organization_membership_id,
            entitlement_type=db_entitlement.entitlement_type,
            source_id=db_entitlement.source_id,
            source_type=db_entitlement.source_type or EntitlementSourceType.PURCHASE,
            metadata=db_entitlement.entitlement_metadata or {},
            expires_at=db_entitlement.expires_at,
            deleted_at=db_entitlement.deleted_at,
            created_at=db_entitlement.created_at
        )

    def membership_to_model(self, row: OrganizationMembershipDB) -> OrganizationMembership:
        return OrganizationMembership(
            id=row.id,
            organization_id=row.organization_id,
            user_id=row.user_id,
            role=row.role or MembershipRole.MEMBER,
            created_at=row.created_at
        )
