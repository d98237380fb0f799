"""
用户数据库操作层
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courseaccess.core.database import handle_store_errors
from courseaccess.models.user import User
from courseaccess.models.database.user_db import UserDB


class UserRepository:
    """用户数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @handle_store_errors
    async def get_user(self, user_id: str) -> Optional[User]:
        """根据ID获取用户"""
        result = await self.db.execute(select(UserDB).where(UserDB.id == user_id))
        db_user = result.scalar_one_or_none()
        return self.to_model(db_user) if db_user else None

    @handle_store_errors
    async def create_user(self, user: User) -> User:
        """创建用户"""
        db_user = UserDB(
            id=user.id,
            email=user.email,
            roles=list(user.roles),
            country=user.country,
            created_at=user.created_at
        )
        self.db.add(db_user)
        await self.db.flush()
        return self.to_model(db_user)

    def to_model(self, db_user: UserDB) -> User:
        """转换为Pydantic模型"""
        return User(
            id=db_user.id,
            email=db_user.email,
            roles=db_user.roles or [],
            country=db_user.country,
            created_at=db_user.created_at
        )
