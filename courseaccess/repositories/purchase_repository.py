"""
购买记录数据库操作层
"""

from typing import List, Optional, Sequence

from sqlalchemy import select, update, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from courseaccess.core.database import handle_store_errors
from courseaccess.models.product import Purchase, PurchaseStatus, ACTIVE_PURCHASE_STATUSES
from courseaccess.models.database.product_db import PurchaseDB


class PurchaseRepository:
    """购买记录数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @handle_store_errors
    async def get_purchase(self, purchase_id: str) -> Optional[Purchase]:
        """根据ID获取购买记录"""
        result = await self.db.execute(
            select(PurchaseDB)
            .where(PurchaseDB.id == purchase_id)
            .execution_options(populate_existing=True)
        )
        db_purchase = result.scalar_one_or_none()
        return self.to_model(db_purchase) if db_purchase else None

    @handle_store_errors
    async def get_purchase_details(self, purchase_id: str, user_id: str) -> Optional[Purchase]:
        """获取属于指定用户的购买记录"""
        result = await self.db.execute(
            select(PurchaseDB).where(
                and_(
                    PurchaseDB.id == purchase_id,
                    PurchaseDB.user_id == user_id
                )
            )
        )
        db_purchase = result.scalar_one_or_none()
        return self.to_model(db_purchase) if db_purchase else None

    @handle_store_errors
    async def get_purchases_for_user(
        self,
        user_id: str,
        statuses: Optional[Sequence[PurchaseStatus]] = None
    ) -> List[Purchase]:
        """获取用户购买记录，可按状态过滤"""
        conditions = [PurchaseDB.user_id == user_id]
        if statuses:
            conditions.append(PurchaseDB.status.in_([status.value for status in statuses]))

        result = await self.db.execute(
            select(PurchaseDB).where(and_(*conditions)).order_by(desc(PurchaseDB.created_at))
        )
        return [self.to_model(row) for row in result.scalars().all()]

    @handle_store_errors
    async def get_bulk_purchase_for_user(self, user_id: str, product_id: str) -> Optional[Purchase]:
        """获取用户对某商品仍有效的团队购买"""
        result = await self.db.execute(
            select(PurchaseDB).where(
                and_(
                    PurchaseDB.user_id == user_id,
                    PurchaseDB.product_id == product_id,
                    PurchaseDB.bulk_coupon_id.is_not(None),
                    PurchaseDB.status.in_([status.value for status in ACTIVE_PURCHASE_STATUSES])
                )
            ).order_by(desc(PurchaseDB.created_at))
        )
        db_purchase = result.scalars().first()
        return self.to_model(db_purchase) if db_purchase else None

    @handle_store_errors
    async def get_purchase_for_bulk_coupon(self, bulk_coupon_id: str) -> Optional[Purchase]:
        """获取拥有该席位池的团队购买"""
        result = await self.db.execute(
            select(PurchaseDB).where(PurchaseDB.bulk_coupon_id == bulk_coupon_id)
        )
        db_purchase = result.scalars().first()
        return self.to_model(db_purchase) if db_purchase else None

    @handle_store_errors
    async def get_purchases_redeemed_from(self, bulk_coupon_id: str) -> List[Purchase]:
        """获取从该席位池兑换的所有购买"""
        result = await self.db.execute(
            select(PurchaseDB).where(PurchaseDB.redeemed_bulk_coupon_id == bulk_coupon_id)
        )
        return [self.to_model(row) for row in result.scalars().all()]

    @handle_store_errors
    async def get_redeemed_purchase(self, bulk_coupon_id: str, user_id: str) -> Optional[Purchase]:
        """获取用户在该席位池上的兑换记录"""
        result = await self.db.execute(
            select(PurchaseDB).where(
                and_(
                    PurchaseDB.redeemed_bulk_coupon_id == bulk_coupon_id,
                    PurchaseDB.user_id == user_id
                )
            )
        )
        db_purchase = result.scalars().first()
        return self.to_model(db_purchase) if db_purchase else None

    @handle_store_errors
    async def get_upgrade_chain(self, purchase_id: str) -> List[Purchase]:
        """沿 upgraded_from_id 回溯升级链，包含起点"""
        chain: List[Purchase] = []
        visited = set()
        current_id: Optional[str] = purchase_id

        while current_id and current_id not in visited:
            visited.add(current_id)
            purchase = await self.get_purchase(current_id)
            if not purchase:
                break
            chain.append(purchase)
            current_id = purchase.upgraded_from_id

        return chain

    @handle_store_errors
    async def create_purchase(self, purchase: Purchase) -> Purchase:
        """创建购买记录"""
        db_purchase = self.add_purchase(purchase)
        await self.db.flush()
        return self.to_model(db_purchase)

    def add_purchase(self, purchase: Purchase) -> PurchaseDB:
        """加入会话但不flush，由调用方决定提交时机"""
        db_purchase = PurchaseDB(
            id=purchase.id,
            user_id=purchase.user_id,
            product_id=purchase.product_id,
            status=purchase.status.value,
            total_amount=purchase.total_amount,
            bulk_coupon_id=purchase.bulk_coupon_id,
            redeemed_bulk_coupon_id=purchase.redeemed_bulk_coupon_id,
            coupon_id=purchase.coupon_id,
            merchant_charge_id=purchase.merchant_charge_id,
            country=purchase.country,
            upgraded_from_id=purchase.upgraded_from_id,
            organization_id=purchase.organization_id,
            created_at=purchase.created_at
        )
        self.db.add(db_purchase)
        return db_purchase

    @handle_store_errors
    async def update_purchase_status(self, purchase_id: str, status: PurchaseStatus) -> bool:
        """更新购买状态"""
        result = await self.db.execute(
            update(PurchaseDB)
            .where(PurchaseDB.id == purchase_id)
            .values(status=status.value)
        )
        return result.rowcount > 0

    def to_model(self, db_purchase: PurchaseDB) -> Purchase:
        """转换为Pydantic模型"""
        return Purchase(
            id=db_purchase.id,
            user_id=db_purchase.user_id,
            product_id=db_purchase.product_id,
            status=db_purchase.status,
            total_amount=db_purchase.total_amount or 0,
            bulk_coupon_id=db_purchase.bulk_coupon_id,
            redeemed_bulk_coupon_id=db_purchase.redeemed_bulk_coupon_id,
            coupon_id=db_purchase.coupon_id,
            merchant_charge_id=db_purchase.merchant_charge_id,
            country=db_purchase.country,
            upgraded_from_id=db_purchase.upgraded_from_id,
            organization_id=db_purchase.organization_id,
            created_at=db_purchase.created_at
        )
