"""
内容资源数据库操作层
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courseaccess.core.database import handle_store_errors
from courseaccess.models.resource import Resource, ResourceLink
from courseaccess.models.database.resource_db import ContentResourceDB, ContentResourceLinkDB


class ResourceRepository:
    """内容资源数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @handle_store_errors
    async def get_resource(self, resource_id: str) -> Optional[Resource]:
        """根据ID获取资源"""
        result = await self.db.execute(
            select(ContentResourceDB).where(ContentResourceDB.id == resource_id)
        )
        db_resource = result.scalar_one_or_none()
        return self.to_model(db_resource) if db_resource else None

    @handle_store_errors
    async def get_resources(self, resource_ids: List[str]) -> List[Resource]:
        """批量获取资源"""
        if not resource_ids:
            return []
        result = await self.db.execute(
            select(ContentResourceDB).where(ContentResourceDB.id.in_(resource_ids))
        )
        return [self.to_model(row) for row in result.scalars().all()]

    @handle_store_errors
    async def list_resources(self) -> List[Resource]:
        """获取全部资源"""
        result = await self.db.execute(select(ContentResourceDB))
        return [self.to_model(row) for row in result.scalars().all()]

    @handle_store_errors
    async def list_links(self) -> List[ResourceLink]:
        """获取全部父子关系，按父节点和位置排序"""
        result = await self.db.execute(
            select(ContentResourceLinkDB).order_by(
                ContentResourceLinkDB.parent_id,
                ContentResourceLinkDB.position
            )
        )
        return [self.link_to_model(row) for row in result.scalars().all()]

    @handle_store_errors
    async def create_resource(self, resource: Resource) -> Resource:
        """创建资源"""
        db_resource = ContentResourceDB(
            id=resource.id,
            type=resource.type.value,
            slug=resource.slug,
            title=resource.title,
            created_by_id=resource.created_by_id,
            visibility=resource.visibility.value,
            state=resource.state.value,
            region_restrictions=list(resource.region_restrictions),
            starts_at=resource.starts_at
        )
        self.db.add(db_resource)
        await self.db.flush()
        return self.to_model(db_resource)

    @handle_store_errors
    async def add_link(self, link: ResourceLink) -> ResourceLink:
        """添加父子关系"""
        db_link = ContentResourceLinkDB(
            parent_id=link.parent_id,
            child_id=link.child_id,
            position=link.position,
            tier=link.tier.value
        )
        self.db.add(db_link)
        await self.db.flush()
        return self.link_to_model(db_link)

    def to_model(self, db_resource: ContentResourceDB) -> Resource:
        """转换为Pydantic模型"""
        return Resource(
            id=db_resource.id,
            type=db_resource.type,
            slug=db_resource.slug,
            title=db_resource.title,
            created_by_id=db_resource.created_by_id,
            visibility=db_resource.visibility,
            state=db_resource.state,
            region_restrictions=db_resource.region_restrictions or [],
            starts_at=db_resource.starts_at
        )

    def link_to_model(self, db_link: ContentResourceLinkDB) -> ResourceLink:
        return ResourceLink(
            parent_id=db_link.parent_id,
            child_id=db_link.child_id,
            position=db_link.position or 0,
            tier=db_link.tier or "standard"
        )
