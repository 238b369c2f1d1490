"""
Dependency graph models.
"""

from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from composition.models.resource import (
    ConsistencyClass,
    Requirement,
    ResourceId,
    ResourceKind,
)


class DependencyEdge(BaseModel):
    """A "depends-on" edge, owned by the node that holds the reference."""

    target: ResourceId
    kind: ResourceKind = ResourceKind.DOCUMENT
    requirement: Requirement = Requirement.DEFAULT
    directive_index: int = Field(default=0, ge=0, description="Directive slot in the parent")
    line: int | None = Field(default=None, description="Source line of the directive")
    cache_ttl: int | None = Field(default=None, description="TTL override from `cache:`")


class ResourceNode(BaseModel):
    """
    Vertex of the dependency graph.

    `dependencies` keeps directive order. `dependents` is maintained by the
    graph for layering and is not persisted.
    """

    id: ResourceId
    kind: ResourceKind
    content_hash: str | None = Field(default=None, description="Computed lazily")
    dependencies: list[DependencyEdge] = Field(default_factory=list)
    dependents: set[ResourceId] = Field(default_factory=set)
    requirement: Requirement = Requirement.DEFAULT
    consistency: ConsistencyClass = ConsistencyClass.LOCAL_SYNC
    cache_ttl: int | None = Field(default=None, description="TTL in seconds (remote only)")
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def dependency_ids(self) -> list[ResourceId]:
        seen: dict[ResourceId, None] = {}
        for edge in self.dependencies:
            seen.setdefault(edge.target, None)
        return list(seen)

    @property
    def in_degree(self) -> int:
        return len(self.dependents)


class DependencyGraph:
    """
    All nodes reachable from one or more roots.

    Nodes live in a dict keyed by ResourceId; edges are stored on the node
    that owns the reference, so traversal never needs object back-pointers.
    """

    def __init__(
        self,
        roots: Iterable[ResourceId] | None = None,
        nodes: dict[ResourceId, ResourceNode] | None = None,
    ):
        self.roots: list[ResourceId] = list(roots or [])
        self.nodes: dict[ResourceId, ResourceNode] = dict(nodes or {})
        # target -> sources with an edge to it, including targets not added yet
        self._incoming: dict[ResourceId, set[ResourceId]] = {}
        for node_id in self.nodes:
            self.link_dependents(node_id)

    # ═══════════════════════════════════════════════════════════
    # MUTATION
    # ═══════════════════════════════════════════════════════════

    def add_root(self, root: ResourceId) -> None:
        if root not in self.roots:
            self.roots.append(root)

    def add_node(self, node: ResourceNode) -> ResourceNode:
        """Insert a node and link it to its targets and to sources already present."""
        existing = self.nodes.get(node.id)
        if existing is not None:
            node.dependents |= existing.dependents
            self._unindex(existing)
        self.nodes[node.id] = node
        self.link_dependents(node.id)
        node.dependents |= {
            source for source in self._incoming.get(node.id, ()) if source in self.nodes
        }
        self._refresh_requirement(node.id)
        return node

    def add_edge(self, source: ResourceId, edge: DependencyEdge) -> None:
        node = self.nodes[source]
        if not any(
            e.target == edge.target and e.directive_index == edge.directive_index
            for e in node.dependencies
        ):
            node.dependencies.append(edge)
        self.link_dependents(source)

    def link_dependents(self, node_id: ResourceId) -> None:
        """Register `node_id` as a dependent of each of its (present) targets."""
        node = self.nodes[node_id]
        for target_id in node.dependency_ids:
            self._incoming.setdefault(target_id, set()).add(node_id)
            target = self.nodes.get(target_id)
            if target is not None:
                target.dependents.add(node_id)
                self._refresh_requirement(target_id)

    def remove_node(self, node_id: ResourceId) -> None:
        node = self.nodes.pop(node_id, None)
        if node is None:
            return
        self._unindex(node)
        self._incoming.pop(node_id, None)
        for target_id in node.dependency_ids:
            target = self.nodes.get(target_id)
            if target is not None:
                target.dependents.discard(node_id)
                self._refresh_requirement(target_id)
        for parent_id in node.dependents:
            parent = self.nodes.get(parent_id)
            if parent is not None:
                parent.dependencies = [e for e in parent.dependencies if e.target != node_id]

    def _unindex(self, node: ResourceNode) -> None:
        for target_id in node.dependency_ids:
            sources = self._incoming.get(target_id)
            if sources is not None:
                sources.discard(node.id)

    def _refresh_requirement(self, node_id: ResourceId) -> None:
        """A node is as required as the strongest edge that reaches it."""
        requirements = [
            edge.requirement
            for source in self.nodes[node_id].dependents
            if source in self.nodes
            for edge in self.nodes[source].dependencies
            if edge.target == node_id
        ]
        if requirements:
            self.nodes[node_id].requirement = Requirement.strongest(*requirements)

    # ═══════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════

    def get(self, node_id: ResourceId) -> ResourceNode | None:
        return self.nodes.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(self.nodes.values())

    @property
    def edges(self) -> list[tuple[ResourceId, ResourceId]]:
        return [
            (node.id, edge.target)
            for node in self.nodes.values()
            for edge in node.dependencies
        ]

    def reachable_from(self, roots: Iterable[ResourceId]) -> set[ResourceId]:
        """Every node reachable from `roots` (inclusive), iteratively."""
        seen: set[ResourceId] = set()
        stack = [root for root in roots if root in self.nodes]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            for target in self.nodes[current].dependency_ids:
                if target in self.nodes and target not in seen:
                    stack.append(target)
        return seen

    def ancestors_of(self, node_id: ResourceId) -> set[ResourceId]:
        """Every node that transitively depends on `node_id` (exclusive)."""
        seen: set[ResourceId] = set()
        stack = list(self.nodes[node_id].dependents) if node_id in self.nodes else []
        while stack:
            current = stack.pop()
            if current in seen or current not in self.nodes:
                continue
            seen.add(current)
            stack.extend(self.nodes[current].dependents)
        return seen

    def roots_reaching(self, roots: Iterable[ResourceId]) -> dict[ResourceId, set[ResourceId]]:
        """Map each reachable node to the set of given roots that reach it."""
        owners: dict[ResourceId, set[ResourceId]] = {}
        for root in roots:
            for node_id in self.reachable_from([root]):
                owners.setdefault(node_id, set()).add(root)
        return owners

    def find_cycle(self) -> list[ResourceId] | None:
        """
        Return the members of one cycle in path order, or None.

        Iterative three-colour DFS so deep chains do not grow the call stack.
        """
        done: set[ResourceId] = set()
        for start in self.nodes:
            if start in done:
                continue
            path: list[ResourceId] = []
            on_path: dict[ResourceId, int] = {}
            stack: list[tuple[ResourceId, Iterator[ResourceId]]] = []

            path.append(start)
            on_path[start] = 0
            stack.append((start, iter(self.nodes[start].dependency_ids)))

            while stack:
                current, children = stack[-1]
                child = next(children, None)
                if child is None:
                    stack.pop()
                    path.pop()
                    del on_path[current]
                    done.add(current)
                    continue
                if child not in self.nodes or child in done:
                    continue
                if child in on_path:
                    return path[on_path[child]:]
                on_path[child] = len(path)
                path.append(child)
                stack.append((child, iter(self.nodes[child].dependency_ids)))
        return None

    def merge(self, other: "DependencyGraph") -> None:
        for root in other.roots:
            self.add_root(root)
        for node in other.nodes.values():
            if node.id not in self.nodes:
                self.add_node(node.model_copy(update={"dependents": set()}))
        for node in other.nodes.values():
            self.link_dependents(node.id)
