"""
商品数据库操作层
"""

from typing import List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from courseaccess.core.database import handle_store_errors
from courseaccess.models.product import Product, UpgradableProduct
from courseaccess.models.database.product_db import ProductDB, ProductResourceDB, UpgradableProductDB


class ProductRepository:
    """商品数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @handle_store_errors
    async def get_product(self, product_id: str) -> Optional[Product]:
        """根据ID获取商品(包含关联资源ID)"""
        result = await self.db.execute(
            select(ProductDB).where(ProductDB.id == product_id)
        )
        db_product = result.scalar_one_or_none()
        if not db_product:
            return None

        resource_ids = await self.get_product_resource_ids(product_id)
        return self.to_model(db_product, resource_ids)

    @handle_store_errors
    async def get_product_resource_ids(self, product_id: str) -> List[str]:
        """获取商品关联的资源ID，按位置排序"""
        result = await self.db.execute(
            select(ProductResourceDB.resource_id)
            .where(ProductResourceDB.product_id == product_id)
            .order_by(ProductResourceDB.position)
        )
        return list(result.scalars().all())

    @handle_store_errors
    async def get_upgradable_product(
        self,
        upgradable_from_id: str,
        upgradable_to_id: str
    ) -> Optional[UpgradableProduct]:
        """获取可升级关系"""
        result = await self.db.execute(
            select(UpgradableProductDB).where(
                and_(
                    UpgradableProductDB.upgradable_from_id == upgradable_from_id,
                    UpgradableProductDB.upgradable_to_id == upgradable_to_id
                )
            )
        )
        row = result.scalar_one_or_none()
        if not row:
            return None
        return UpgradableProduct(
            upgradable_from_id=row.upgradable_from_id,
            upgradable_to_id=row.upgradable_to_id,
            position=row.position or 0
        )

    @handle_store_errors
    async def create_product(self, product: Product) -> Product:
        """创建商品及资源关联"""
        db_product = ProductDB(
            id=product.id,
            name=product.name,
            type=product.type.value,
            price=product.price,
            quantity_available=product.quantity_available,
            status=product.status.value
        )
        self.db.add(db_product)
        for position, resource_id in enumerate(product.resource_ids):
            self.db.add(ProductResourceDB(product_id=product.id, resource_id=resource_id, position=position))
        await self.db.flush()
        return self.to_model(db_product, list(product.resource_ids))

    @handle_store_errors
    async def add_upgradable_product(self, upgrade: UpgradableProduct) -> None:
        self.db.add(UpgradableProductDB(
            upgradable_from_id=upgrade.upgradable_from_id,
            upgradable_to_id=upgrade.upgradable_to_id,
            position=upgrade.position
        ))
        await self.db.flush()

    def to_model(self, db_product: ProductDB, resource_ids: Optional[List[str]] = None) -> Product:
        """转换为Pydantic模型"""
        return Product(
            id=db_product.id,
            name=db_product.name,
            type=db_product.type,
            price=db_product.price,
            quantity_available=db_product.quantity_available if db_product.quantity_available is not None else -1,
            status=db_product.status or "active",
            resource_ids=resource_ids or []
        )
