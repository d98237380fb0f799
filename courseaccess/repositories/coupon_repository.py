"""
优惠券数据库操作层
"""

from typing import List, Optional, Tuple
from datetime import datetime

from sqlalchemy import select, update, and_, or_, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from courseaccess.core.database import handle_store_errors
from courseaccess.core.exceptions import SeatAlreadyRedeemedError
from courseaccess.models.coupon import Coupon
from courseaccess.models.product import Purchase
from courseaccess.models.database.coupon_db import CouponDB
from courseaccess.models.database.product_db import PurchaseDB
from courseaccess.repositories.purchase_repository import PurchaseRepository


class CouponRepository:
    """优惠券数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @handle_store_errors
    async def get_coupon(self, code_or_id: str) -> Optional[Coupon]:
        """根据兑换码或ID获取优惠券"""
        result = await self.db.execute(
            select(CouponDB)
            .where(or_(CouponDB.id == code_or_id, CouponDB.code == code_or_id))
            .execution_options(populate_existing=True)
        )
        db_coupon = result.scalars().first()
        return self.to_model(db_coupon) if db_coupon else None

    @handle_store_errors
    async def get_default_coupon(
        self,
        product_ids: List[str],
        current_time: Optional[datetime] = None
    ) -> Optional[Coupon]:
        """获取适用于商品的默认促销券，折扣最大的优先"""
        if current_time is None:
            current_time = datetime.now()

        query = select(CouponDB).where(
            and_(
                CouponDB.default.is_(True),
                CouponDB.status == "active",
                or_(
                    CouponDB.restricted_to_product_id.is_(None),
                    CouponDB.restricted_to_product_id.in_(product_ids)
                ),
                or_(CouponDB.expires.is_(None), CouponDB.expires > current_time)
            )
        ).order_by(desc(CouponDB.percentage_discount))

        result = await self.db.execute(query)
        db_coupon = result.scalars().first()
        return self.to_model(db_coupon) if db_coupon else None

    @handle_store_errors
    async def get_coupon_with_bulk_purchases(
        self,
        coupon_id: str
    ) -> Optional[Tuple[Coupon, List[Purchase]]]:
        """获取优惠券及以其作为席位池的团队购买"""
        coupon = await self.get_coupon(coupon_id)
        if not coupon:
            return None

        result = await self.db.execute(
            select(PurchaseDB).where(PurchaseDB.bulk_coupon_id == coupon.id)
        )
        purchase_repo = PurchaseRepository(self.db)
        return coupon, [purchase_repo.to_model(row) for row in result.scalars().all()]

    @handle_store_errors
    async def increment_coupon_usage_if_available(self, coupon_id: str) -> bool:
        """
        原子地占用一个席位

        单条条件UPDATE完成比较与自增，并发时不会超过 max_uses。

        Returns:
            True 表示占用成功，False 表示已无剩余次数或优惠券不存在
        """
        result = await self.db.execute(
            update(CouponDB)
            .where(
                and_(
                    CouponDB.id == coupon_id,
                    or_(CouponDB.max_uses <= 0, CouponDB.used_count < CouponDB.max_uses)
                )
            )
            .values(used_count=CouponDB.used_count + 1, updated_at=datetime.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @handle_store_errors
    async def claim_seat(self, coupon_id: str, purchase: Purchase) -> Optional[Purchase]:
        """
        占用一个席位并写入兑换购买记录

        条件自增与插入在同一个保存点内完成。同一用户重复兑换时
        uq_purchase_redeemer 唯一约束失败，保存点回滚，自增一并撤销。

        Returns:
            新建的购买记录；席位已满时返回None

        Raises:
            SeatAlreadyRedeemedError: 该用户已兑换过此席位池
        """
        try:
            async with self.db.begin_nested():
                if not await self.increment_coupon_usage_if_available(coupon_id):
                    return None
                db_purchase = PurchaseRepository(self.db).add_purchase(purchase)
                await self.db.flush()
        except IntegrityError as e:
            raise SeatAlreadyRedeemedError(coupon_id, purchase.user_id) from e

        return PurchaseRepository(self.db).to_model(db_purchase)

    @handle_store_errors
    async def create_coupon(self, coupon: Coupon) -> Coupon:
        """创建优惠券"""
        db_coupon = CouponDB(
            id=coupon.id,
            code=coupon.code,
            type=coupon.type.value,
            status=coupon.status.value,
            percentage_discount=coupon.percentage_discount,
            amount_discount=coupon.amount_discount,
            max_uses=coupon.max_uses,
            used_count=coupon.used_count,
            expires=coupon.expires,
            restricted_to_product_id=coupon.restricted_to_product_id,
            default=coupon.default,
            country=coupon.country,
            organization_id=coupon.organization_id,
            created_at=coupon.created_at
        )
        self.db.add(db_coupon)
        await self.db.flush()
        return self.to_model(db_coupon)

    def to_model(self, db_coupon: CouponDB) -> Coupon:
        """转换为Pydantic模型"""
        return Coupon(
            id=db_coupon.id,
            code=db_coupon.code,
            type=db_coupon.type or "special",
            status=db_coupon.status or "active",
            percentage_discount=db_coupon.percentage_discount or 0,
            amount_discount=db_coupon.amount_discount,
            max_uses=db_coupon.max_uses if db_coupon.max_uses is not None else -1,
            used_count=db_coupon.used_count or 0,
            expires=db_coupon.expires,
            restricted_to_product_id=db_coupon.restricted_to_product_id,
            default=bool(db_coupon.default),
            country=db_coupon.country,
            organization_id=db_coupon.organization_id,
            created_at=db_coupon.created_at
        )
