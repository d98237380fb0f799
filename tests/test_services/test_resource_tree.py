"""
资源树测试
"""

import pytest
from unittest.mock import AsyncMock

from courseaccess.core.exceptions import ResourceCycleError, ResourceTreeError
from courseaccess.models.resource import ResourceLink, ResourceTier, ResourceType
from courseaccess.repositories.resource_repository import ResourceRepository
from courseaccess.services.common_cache import SimpleCache
from courseaccess.services.resource_tree import ResourceTree, ResourceTreeService


@pytest.fixture
def workshop_tree(make_resource):
    """
    workshop
    ├── section_1
    │   ├── lesson_1
    │   └── lesson_2 (同时挂在 workshop_b 下)
    └── lesson_3 (free)
    workshop_b
    └── lesson_2
    """
    resources = [
        make_resource("workshop", ResourceType.WORKSHOP),
        make_resource("workshop_b", ResourceType.WORKSHOP),
        make_resource("section_1", ResourceType.SECTION),
        make_resource("lesson_1"),
        make_resource("lesson_2"),
        make_resource("lesson_3"),
    ]
    links = [
        ResourceLink(parent_id="workshop", child_id="section_1", position=0),
        ResourceLink(parent_id="workshop", child_id="lesson_3", position=1, tier=ResourceTier.FREE),
        ResourceLink(parent_id="section_1", child_id="lesson_2", position=2),
        ResourceLink(parent_id="section_1", child_id="lesson_1", position=1),
        ResourceLink(parent_id="workshop_b", child_id="lesson_2", position=0),
    ]
    return ResourceTree.from_links(resources, links)


class TestResourceTree:
    """资源树遍历测试"""

    def test_descendants_are_transitive(self, workshop_tree):
        assert workshop_tree.get_all_descendant_ids("workshop") == {"section_1", "lesson_1", "lesson_2", "lesson_3"}
        assert workshop_tree.get_all_descendant_ids("section_1") == {"lesson_1", "lesson_2"}
        assert workshop_tree.get_all_descendant_ids("lesson_1") == set()

    def test_children_sorted_by_position(self, workshop_tree):
        assert [r.id for r in workshop_tree.children("section_1")] == ["lesson_1", "lesson_2"]

    def test_multiple_parents(self, workshop_tree):
        """同一节点挂在多个父节点下"""
        assert workshop_tree.get_parents("lesson_2") == ["section_1", "workshop_b"]
        assert workshop_tree.get_ancestor_ids("lesson_2") == {"section_1", "workshop", "workshop_b"}
        assert workshop_tree.is_descendant_of("lesson_2", "workshop_b")
        assert not workshop_tree.is_descendant_of("lesson_1", "workshop_b")

    def test_unknown_resource(self, workshop_tree):
        """未知资源返回空结果而不是抛异常"""
        assert workshop_tree.get("missing") is None
        assert workshop_tree.get_all_descendant_ids("missing") == set()
        assert workshop_tree.get_parents("missing") == []
        assert workshop_tree.children("missing") == []
        assert "missing" not in workshop_tree

    def test_cycle_is_rejected(self, make_resource):
        resources = [make_resource("a", ResourceType.SECTION), make_resource("b", ResourceType.SECTION)]
        links = [
            ResourceLink(parent_id="a", child_id="b"),
            ResourceLink(parent_id="b", child_id="a"),
        ]
        with pytest.raises(ResourceCycleError) as exc_info:
            ResourceTree.from_links(resources, links)
        assert exc_info.value.path[0] == exc_info.value.path[-1]

    def test_self_link_is_cycle(self, make_resource):
        with pytest.raises(ResourceCycleError):
            ResourceTree.from_links(
                [make_resource("a", ResourceType.SECTION)],
                [ResourceLink(parent_id="a", child_id="a")]
            )

    def test_link_to_missing_resource(self, make_resource):
        with pytest.raises(ResourceTreeError):
            ResourceTree.from_links(
                [make_resource("a", ResourceType.SECTION)],
                [ResourceLink(parent_id="a", child_id="ghost")]
            )

    def test_free_resource_ids(self, workshop_tree):
        assert workshop_tree.free_resource_ids("workshop") == {"lesson_3"}
        assert workshop_tree.free_resource_ids("missing") == set()

    def test_free_section_frees_its_lessons(self, make_resource):
        resources = [
            make_resource("workshop", ResourceType.WORKSHOP),
            make_resource("intro", ResourceType.SECTION),
            make_resource("lesson_1"),
            make_resource("video_1", ResourceType.VIDEO_RESOURCE),
        ]
        links = [
            ResourceLink(parent_id="workshop", child_id="intro", tier=ResourceTier.FREE),
            ResourceLink(parent_id="intro", child_id="lesson_1"),
            ResourceLink(parent_id="lesson_1", child_id="video_1"),
        ]
        tree = ResourceTree.from_links(resources, links)
        assert tree.free_resource_ids("workshop") == {"lesson_1"}


class TestResourceTreeService:
    """资源树服务测试"""

    @pytest.fixture
    def mock_repo(self, make_resource):
        repo = AsyncMock(spec=ResourceRepository)
        repo.list_resources.return_value = [
            make_resource("workshop", ResourceType.WORKSHOP),
            make_resource("lesson_1"),
        ]
        repo.list_links.return_value = [ResourceLink(parent_id="workshop", child_id="lesson_1")]
        return repo

    @pytest.fixture
    def mock_cache(self):
        cache = AsyncMock(spec=SimpleCache)
        cache.get.return_value = None
        cache.set.return_value = True
        cache.delete_pattern.return_value = 1
        return cache

    @pytest.mark.asyncio
    async def test_tree_loaded_once(self, mock_repo, mock_cache):
        service = ResourceTreeService(mock_repo, cache=mock_cache)

        await service.get_resource("workshop")
        await service.get_parents("lesson_1")

        mock_repo.list_resources.assert_called_once()

    @pytest.mark.asyncio
    async def test_descendants_written_to_cache(self, mock_repo, mock_cache):
        service = ResourceTreeService(mock_repo, cache=mock_cache)

        result = await service.get_all_descendant_ids("workshop")

        assert result == {"lesson_1"}
        mock_cache.set.assert_called_once()
        assert mock_cache.set.call_args[0][:2] == ("descendants:workshop", ["lesson_1"])

    @pytest.mark.asyncio
    async def test_descendants_cache_hit(self, mock_repo, mock_cache):
        mock_cache.get.return_value = ["lesson_1"]
        service = ResourceTreeService(mock_repo, cache=mock_cache)

        result = await service.get_all_descendant_ids("workshop")

        assert result == {"lesson_1"}
        mock_repo.list_resources.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalidate_reloads(self, mock_repo, mock_cache):
        service = ResourceTreeService(mock_repo, cache=mock_cache)
        await service.load_tree()

        await service.invalidate()
        await service.load_tree()

        assert mock_repo.list_resources.call_count == 2
        mock_cache.delete_pattern.assert_called_once_with("descendants:*")
