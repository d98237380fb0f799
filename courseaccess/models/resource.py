"""
内容资源相关数据模型
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from enum import Enum


class ResourceType(str, Enum):
    """资源类型枚举"""
    WORKSHOP = "workshop"
    COHORT = "cohort"
    SECTION = "section"
    LESSON = "lesson"
    EXERCISE = "exercise"
    SOLUTION = "solution"
    VIDEO_RESOURCE = "videoResource"
    POST = "post"
    TUTORIAL = "tutorial"
    EVENT = "event"


class ResourceVisibility(str, Enum):
    """可见性枚举"""
    PUBLIC = "public"
    PRIVATE = "private"
    UNLISTED = "unlisted"


class ResourceState(str, Enum):
    """发布状态枚举"""
    DRAFT = "draft"
    PUBLISHED = "published"
    REVIEW = "review"
    ARCHIVED = "archived"


class ResourceTier(str, Enum):
    """父子关系上的访问层级"""
    STANDARD = "standard"
    FREE = "free"


# 默认规则下可被任何人读取的发布状态
READABLE_STATES = (ResourceState.PUBLISHED, ResourceState.REVIEW)

# 可单独标记为免费试看的资源类型
FREE_TIER_TYPES = (ResourceType.LESSON, ResourceType.EXERCISE, ResourceType.POST)


class Resource(BaseModel):
    """内容资源节点"""

    id: str = Field(..., description="资源ID")
    type: ResourceType = Field(..., description="资源类型")
    slug: str = Field(..., min_length=1, description="资源slug")
    title: Optional[str] = Field(None, description="标题")
    created_by_id: Optional[str] = Field(None, description="创建者用户ID")
    visibility: ResourceVisibility = Field(default=ResourceVisibility.PUBLIC, description="可见性")
    state: ResourceState = Field(default=ResourceState.DRAFT, description="发布状态")
    region_restrictions: List[str] = Field(default_factory=list, description="允许访问的国家代码，空表示不限")
    starts_at: Optional[datetime] = Field(None, description="开放时间(队列课程使用)")

    @field_validator("region_restrictions")
    @classmethod
    def normalize_countries(cls, v: List[str]) -> List[str]:
        """国家代码统一大写"""
        return [country.strip().upper() for country in v if country and country.strip()]

    def is_publicly_readable(self) -> bool:
        """公开且已发布(或评审中)的资源默认可读"""
        return self.visibility == ResourceVisibility.PUBLIC and self.state in READABLE_STATES

    def excludes_country(self, country: Optional[str]) -> bool:
        """区域限制是否排除该国家；未知国家在有限制时视为排除"""
        if not self.region_restrictions:
            return False
        if not country:
            return True
        return country.upper() not in self.region_restrictions

    def has_started(self, now: Optional[datetime] = None) -> bool:
        """开放时间是否已到"""
        if self.starts_at is None:
            return True
        return self.starts_at < (now or datetime.now())


class ResourceLink(BaseModel):
    """父子资源关系"""

    parent_id: str = Field(..., description="父资源ID")
    child_id: str = Field(..., description="子资源ID")
    position: float = Field(default=0, description="兄弟节点排序")
    tier: ResourceTier = Field(default=ResourceTier.STANDARD, description="访问层级")
