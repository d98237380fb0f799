"""
资源树

内容以节点表 + 父子ID列表的形式保存，一个节点可以挂在多个父节点下。
构建时检测环，所有遍历都带visited集合。
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from courseaccess.core.config import settings
from courseaccess.core.exceptions import ResourceCycleError, ResourceTreeError
from courseaccess.models.resource import (
    Resource,
    ResourceLink,
    ResourceTier,
    ResourceType,
    FREE_TIER_TYPES
)
from courseaccess.repositories.resource_repository import ResourceRepository
from courseaccess.services.common_cache import SimpleCache, resource_cache

logger = logging.getLogger(__name__)


class ResourceNode:
    """资源树节点"""

    __slots__ = ("resource", "parent_ids", "child_ids", "child_tiers")

    def __init__(self, resource: Resource):
        self.resource = resource
        self.parent_ids: List[str] = []
        self.child_ids: List[str] = []
        self.child_tiers: Dict[str, ResourceTier] = {}

    @property
    def id(self) -> str:
        return self.resource.id


class ResourceTree:
    """只读资源树视图"""

    def __init__(self, nodes: Dict[str, ResourceNode]):
        self.nodes = nodes
        self._check_acyclic()

    @classmethod
    def from_links(cls, resources: Iterable[Resource], links: Iterable[ResourceLink]) -> "ResourceTree":
        """
        由资源列表和父子关系构建资源树

        Raises:
            ResourceTreeError: 关系引用了不存在的资源
            ResourceCycleError: 父子关系存在环
        """
        nodes: Dict[str, ResourceNode] = {resource.id: ResourceNode(resource) for resource in resources}
        links = list(links)

        for link in links:
            parent = nodes.get(link.parent_id)
            child = nodes.get(link.child_id)
            if parent is None or child is None:
                missing = link.parent_id if parent is None else link.child_id
                raise ResourceTreeError(f"资源关系引用了不存在的资源: {missing}", {"resource_id": missing})
            if link.parent_id not in child.parent_ids:
                child.parent_ids.append(link.parent_id)

        # 同一父节点下按position排序，position相同时保持原有顺序
        for link in sorted(links, key=lambda link: link.position):
            parent = nodes[link.parent_id]
            if link.child_id in parent.child_tiers:
                continue
            parent.child_ids.append(link.child_id)
            parent.child_tiers[link.child_id] = link.tier

        return cls(nodes)

    def _check_acyclic(self) -> None:
        visited: Set[str] = set()

        def visit(node_id: str, path: List[str], on_path: Set[str]) -> None:
            for child_id in self.nodes[node_id].child_ids:
                if child_id in on_path:
                    cycle_start = path.index(child_id)
                    raise ResourceCycleError(path[cycle_start:] + [child_id])
                if child_id in visited:
                    continue
                path.append(child_id)
                on_path.add(child_id)
                visit(child_id, path, on_path)
                on_path.discard(child_id)
                path.pop()
            visited.add(node_id)

        for node_id in self.nodes:
            if node_id not in visited:
                visit(node_id, [node_id], {node_id})

    def __contains__(self, resource_id: str) -> bool:
        return resource_id in self.nodes

    def get(self, resource_id: str) -> Optional[Resource]:
        node = self.nodes.get(resource_id)
        return node.resource if node else None

    def children(self, resource_id: str) -> List[Resource]:
        """按position排序的直接子节点"""
        node = self.nodes.get(resource_id)
        if not node:
            return []
        return [self.nodes[child_id].resource for child_id in node.child_ids]

    def get_parents(self, resource_id: str) -> List[str]:
        """全部直接父节点ID"""
        node = self.nodes.get(resource_id)
        return list(node.parent_ids) if node else []

    def get_ancestor_ids(self, resource_id: str) -> Set[str]:
        """沿所有父节点向上可达的祖先ID(不含自身)"""
        return self._walk(resource_id, lambda node: node.parent_ids)

    def get_all_descendant_ids(self, resource_id: str) -> Set[str]:
        """沿子节点向下可达的全部后代ID(不含自身)"""
        return self._walk(resource_id, lambda node: node.child_ids)

    def is_descendant_of(self, resource_id: str, ancestor_id: str) -> bool:
        return ancestor_id in self.get_ancestor_ids(resource_id)

    def _walk(self, start_id: str, next_ids) -> Set[str]:
        start = self.nodes.get(start_id)
        if not start:
            return set()

        seen: Set[str] = set()
        stack = list(next_ids(start))
        while stack:
            current_id = stack.pop()
            if current_id in seen or current_id == start_id:
                continue
            seen.add(current_id)
            stack.extend(next_ids(self.nodes[current_id]))
        return seen

    def free_resource_ids(self, root_id: str) -> Set[str]:
        """
        模块内的免费试看资源

        以free层级挂载的课时/练习/文章本身免费；以free层级挂载的章节，其下课时全部免费。
        """
        free_ids: Set[str] = set()
        if root_id not in self.nodes:
            return free_ids
        for node_id in {root_id} | self.get_all_descendant_ids(root_id):
            node = self.nodes[node_id]
            for child_id, tier in node.child_tiers.items():
                if tier != ResourceTier.FREE:
                    continue
                child = self.nodes[child_id]
                if child.resource.type in FREE_TIER_TYPES:
                    free_ids.add(child_id)
                elif child.resource.type == ResourceType.SECTION:
                    free_ids.update(
                        descendant_id
                        for descendant_id in self.get_all_descendant_ids(child_id)
                        if self.nodes[descendant_id].resource.type in FREE_TIER_TYPES
                    )
        return free_ids


class ResourceTreeService:
    """资源树服务：从数据库加载资源树并缓存后代集合"""

    def __init__(self, resource_repo: ResourceRepository, cache: Optional[SimpleCache] = None):
        self.resource_repo = resource_repo
        self.cache = cache or resource_cache
        self.cache_ttl = settings.resource_tree_cache_ttl
        self._tree: Optional[ResourceTree] = None

    async def load_tree(self, refresh: bool = False) -> ResourceTree:
        """加载资源树，同一个服务实例内只加载一次"""
        if self._tree is None or refresh:
            resources = await self.resource_repo.list_resources()
            links = await self.resource_repo.list_links()
            self._tree = ResourceTree.from_links(resources, links)
            logger.debug(f"资源树加载完成: {len(resources)} 个节点, {len(links)} 条关系")
        return self._tree

    async def get_resource(self, resource_id: str) -> Optional[Resource]:
        tree = await self.load_tree()
        return tree.get(resource_id)

    async def get_all_descendant_ids(self, resource_id: str, use_cache: bool = True) -> Set[str]:
        """获取全部后代ID，优先读缓存"""
        cache_key = f"descendants:{resource_id}"

        if use_cache:
            cached_ids = await self.cache.get(cache_key)
            if cached_ids is not None:
                return set(cached_ids)

        tree = await self.load_tree()
        descendant_ids = tree.get_all_descendant_ids(resource_id)

        if use_cache:
            await self.cache.set(cache_key, sorted(descendant_ids), ttl=self.cache_ttl)

        return descendant_ids

    async def get_parents(self, resource_id: str) -> List[str]:
        tree = await self.load_tree()
        return tree.get_parents(resource_id)

    async def invalidate(self) -> int:
        """资源结构变化后清除缓存"""
        self._tree = None
        return await self.cache.delete_pattern("descendants:*")
