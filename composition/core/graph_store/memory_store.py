"""
In-memory graph store.

Nothing survives the process; useful for one-shot renders and tests.
"""

from composition.core.graph_store.base import GraphStore
from composition.models.cache import CacheEntry
from composition.models.graph import DependencyEdge, ResourceNode
from composition.models.resource import ResourceId


class InMemoryGraphStore(GraphStore):
    """Dict-backed store. Values are copied in and out so callers cannot alias them."""

    def __init__(self):
        self._nodes: dict[ResourceId, ResourceNode] = {}
        self._edges: dict[ResourceId, list[DependencyEdge]] = {}
        self._cache: dict[ResourceId, CacheEntry] = {}

    async def initialize(self) -> None:
        pass

    async def get_node(self, node_id: ResourceId) -> ResourceNode | None:
        node = self._nodes.get(node_id)
        if node is None:
            return None
        return node.model_copy(
            update={"dependencies": await self.get_edges(node_id), "dependents": set()},
            deep=True,
        )

    async def put_node(self, node: ResourceNode) -> None:
        self._nodes[node.id] = node.model_copy(
            update={"dependencies": [], "dependents": set()}, deep=True
        )
        await self.put_edges(node.id, node.dependencies)

    async def delete_node(self, node_id: ResourceId) -> None:
        self._nodes.pop(node_id, None)
        self._edges.pop(node_id, None)

    async def list_node_ids(self) -> list[ResourceId]:
        return sorted(self._nodes, key=lambda node_id: node_id.key)

    async def get_edges(self, node_id: ResourceId) -> list[DependencyEdge]:
        return [edge.model_copy() for edge in self._edges.get(node_id, [])]

    async def put_edges(self, node_id: ResourceId, edges: list[DependencyEdge]) -> None:
        self._edges[node_id] = [edge.model_copy() for edge in edges]

    async def get_cache_entry(self, resource_id: ResourceId) -> CacheEntry | None:
        entry = self._cache.get(resource_id)
        return entry.model_copy() if entry is not None else None

    async def put_cache_entry(self, entry: CacheEntry) -> None:
        self._cache[entry.resource_id] = entry.model_copy()

    async def delete_cache_entry(self, resource_id: ResourceId) -> None:
        self._cache.pop(resource_id, None)

    async def close(self) -> None:
        pass
