"""
内容资源数据库模型
"""

from datetime import datetime

from sqlalchemy import Column, String, Float, DateTime, JSON, ForeignKey, Index
from courseaccess.core.database import Base


class ContentResourceDB(Base):
    """内容资源表"""

    __tablename__ = "content_resources"

    # 主键和基本信息
    id = Column(String(50), primary_key=True, comment="资源ID")
    type = Column(String(30), nullable=False, index=True, comment="资源类型")
    slug = Column(String(200), nullable=False, comment="资源slug")
    title = Column(String(300), comment="标题")
    created_by_id = Column(String(50), index=True, comment="创建者用户ID")

    # 可见性与发布
    visibility = Column(String(20), default="public", comment="可见性")
    state = Column(String(20), default="draft", index=True, comment="发布状态")
    region_restrictions = Column(JSON, default=list, comment="允许访问的国家代码列表")
    starts_at = Column(DateTime, comment="开放时间")

    # 时间戳
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")

    __table_args__ = (
        {'comment': '内容资源表'}
    )


class ContentResourceLinkDB(Base):
    """资源父子关系表，一个资源可以有多个父节点"""

    __tablename__ = "content_resource_links"

    parent_id = Column(String(50), ForeignKey("content_resources.id"), primary_key=True, comment="父资源ID")
    child_id = Column(String(50), ForeignKey("content_resources.id"), primary_key=True, comment="子资源ID")
    position = Column(Float, default=0, comment="兄弟节点排序")
    tier = Column(String(20), default="standard", comment="访问层级")

    __table_args__ = (
        Index('idx_resource_link_child', 'child_id'),
        {'comment': '资源父子关系表'}
    )
