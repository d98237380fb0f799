"""
用户数据模型
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum


class UserRole(str, Enum):
    """全局角色"""
    ADMIN = "admin"
    CONTRIBUTOR = "contributor"
    REVIEWER = "reviewer"
    USER = "user"


class User(BaseModel):
    """用户模型"""

    id: str = Field(..., description="用户ID")
    email: Optional[str] = Field(None, description="邮箱")
    roles: List[str] = Field(default_factory=list, description="全局角色名")
    country: Optional[str] = Field(None, description="常用国家代码")
    created_at: datetime = Field(default_factory=datetime.now)

    def has_role(self, role: UserRole) -> bool:
        return role.value in self.roles
