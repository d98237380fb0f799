"""
用户数据库模型
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, JSON
from courseaccess.core.database import Base


class UserDB(Base):
    """用户表"""

    __tablename__ = "users"

    id = Column(String(50), primary_key=True, comment="用户ID")
    email = Column(String(255), unique=True, comment="邮箱")
    roles = Column(JSON, default=list, comment="全局角色列表")
    country = Column(String(2), comment="常用国家代码")
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")

    __table_args__ = (
        {'comment': '用户表'}
    )
