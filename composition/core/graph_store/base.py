"""
Base interface for graph and cache persistence.

The engine is agnostic to the concrete storage engine; everything it keeps
between runs goes through this interface.
"""

from abc import ABC, abstractmethod

from composition.models.cache import CacheEntry
from composition.models.graph import DependencyEdge, ResourceNode
from composition.models.resource import ResourceId


class GraphStore(ABC):
    """Abstract base class for graph storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the store (create tables/schema)."""
        pass

    # ═══════════════════════════════════════════════════════════
    # NODE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_node(self, node_id: ResourceId) -> ResourceNode | None:
        """
        Retrieve a node, with its ordered dependency edges.

        Args:
            node_id: Resource identity

        Returns:
            ResourceNode or None if not found
        """
        pass

    @abstractmethod
    async def put_node(self, node: ResourceNode) -> None:
        """
        Insert or replace a node and its dependency edges.

        `dependents` is derived from the graph and is not persisted.
        """
        pass

    @abstractmethod
    async def delete_node(self, node_id: ResourceId) -> None:
        """Delete a node and its outgoing edges."""
        pass

    @abstractmethod
    async def list_node_ids(self) -> list[ResourceId]:
        """All persisted node identities."""
        pass

    # ═══════════════════════════════════════════════════════════
    # EDGE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_edges(self, node_id: ResourceId) -> list[DependencyEdge]:
        """
        Outgoing edges of a node in directive order.

        Returns:
            List of edges (empty if the node is unknown)
        """
        pass

    @abstractmethod
    async def put_edges(self, node_id: ResourceId, edges: list[DependencyEdge]) -> None:
        """Replace the outgoing edges of a node."""
        pass

    # ═══════════════════════════════════════════════════════════
    # CACHE ENTRIES
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_cache_entry(self, resource_id: ResourceId) -> CacheEntry | None:
        pass

    @abstractmethod
    async def put_cache_entry(self, entry: CacheEntry) -> None:
        pass

    @abstractmethod
    async def delete_cache_entry(self, resource_id: ResourceId) -> None:
        pass

    # ═══════════════════════════════════════════════════════════
    # UTILITY
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup."""
        pass
