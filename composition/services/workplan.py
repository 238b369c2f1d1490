"""
Workplan Generator.

Checks every node reachable from the requested roots, drops the fresh ones
and arranges the dirty ones into layers:

    layer(n) = 1 + max(layer(d) for dirty dependencies d), or 0

Dirtiness propagates upwards: a node with a dirty dependency is dirty
without being checked.
"""

from collections.abc import Iterable
from typing import Any

from composition.core.renderers.base import RendererRegistry
from composition.core.resources.session import RenderSession
from composition.models.cache import CacheEntry
from composition.models.diagnostic import Diagnostic
from composition.models.graph import DependencyGraph, ResourceNode
from composition.models.resource import ResourceId
from composition.models.workplan import Layer, Workplan
from composition.services.cache_store import EMPTY_HASH, CacheStore, compute_fingerprint
from composition.utils.logger import get_logger

logger = get_logger(__name__)


def inherited_states(
    graph: DependencyGraph,
    roots: Iterable[ResourceId],
    initial_state: dict[str, Any] | None = None,
) -> dict[ResourceId, dict[str, Any]]:
    """
    State seen by each node: the root's initial state merged with each
    document's frontmatter down the first-discovery path, child keys winning.

    Roots always take `initial_state` as their base, even when another root
    reaches them first.
    """
    base = dict(initial_state or {})
    roots = [root for root in roots if root in graph]
    states: dict[ResourceId, dict[str, Any]] = {
        root: {**base, **graph.nodes[root].frontmatter} for root in roots
    }

    for root in roots:
        stack = [root]
        while stack:
            current = stack.pop()
            state = states[current]
            # Reversed so the first directive is discovered first
            for target in reversed(graph.nodes[current].dependency_ids):
                if target in states or target not in graph:
                    continue
                states[target] = {**state, **graph.nodes[target].frontmatter}
                stack.append(target)
    return states


def post_order(graph: DependencyGraph, roots: Iterable[ResourceId]) -> list[ResourceId]:
    """Reachable nodes with every dependency before its dependents."""
    order: list[ResourceId] = []
    visited: set[ResourceId] = set()
    for root in roots:
        if root not in graph or root in visited:
            continue
        visited.add(root)
        stack = [(root, iter(graph.nodes[root].dependency_ids))]
        while stack:
            current, children = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                order.append(current)
                continue
            if child in visited or child not in graph:
                continue
            visited.add(child)
            stack.append((child, iter(graph.nodes[child].dependency_ids)))
    return order


def node_fingerprint(
    node: ResourceNode,
    state: dict[str, Any],
    dependency_hashes: list[str],
    registry: RendererRegistry,
) -> str:
    """Fingerprint of `node`'s render inputs; state counts only where the renderer reads it."""
    return compute_fingerprint(
        state if registry.uses_state(node.kind) else {},
        node.options,
        dependency_hashes,
        registry.cache_key(node.kind),
    )


class WorkplanGenerator:
    """Turns a graph plus cache state into an ordered plan of dirty nodes."""

    def __init__(self, cache: CacheStore, registry: RendererRegistry):
        self.cache = cache
        self.registry = registry

    async def generate(
        self,
        graph: DependencyGraph,
        roots: Iterable[ResourceId],
        session: RenderSession,
        initial_state: dict[str, Any] | None = None,
    ) -> Workplan:
        """
        Check reachable nodes bottom-up and layer the dirty ones.

        Freshness warnings (stale or vanished remote resources) are returned
        on the workplan.
        """
        roots = [root for root in roots if root in graph]
        states = inherited_states(graph, roots, initial_state)
        owners = graph.roots_reaching(roots)

        layer_of: dict[ResourceId, int] = {}
        entries: dict[ResourceId, CacheEntry] = {}
        fresh: set[ResourceId] = set()
        diagnostics: list[Diagnostic] = []

        for node_id in post_order(graph, roots):
            node = graph.nodes[node_id]
            dependencies = [target for target in node.dependency_ids if target in graph]

            dirty_dependencies = [target for target in dependencies if target in layer_of]
            if dirty_dependencies:
                layer_of[node_id] = 1 + max(layer_of[target] for target in dirty_dependencies)
                continue

            fingerprint = node_fingerprint(
                node,
                states.get(node_id, {}),
                [
                    entries[target].artifact_hash if target in entries else EMPTY_HASH
                    for target in dependencies
                ],
                self.registry,
            )
            verdict = await self.cache.check(node, session, fingerprint)

            first_root = next((root for root in roots if root in owners.get(node_id, ())), None)
            for diagnostic in verdict.diagnostics:
                diagnostics.append(diagnostic.model_copy(update={"root": first_root}))

            if verdict.reusable and verdict.entry is not None:
                fresh.add(node_id)
                entries[node_id] = verdict.entry
            else:
                layer_of[node_id] = 0

        layers: list[Layer] = []
        for node_id, index in layer_of.items():
            while len(layers) <= index:
                layers.append(Layer(index=len(layers)))
            layers[index].resources.append(node_id)
        for layer in layers:
            layer.resources.sort(key=lambda rid: (-graph.nodes[rid].in_degree, rid.key))

        workplan = Workplan(layers=layers, fresh=fresh, diagnostics=diagnostics)
        logger.info(
            f"Workplan: {workplan.total_tasks} dirty, {len(fresh)} fresh in {len(layers)} layers",
            extra={"roots": len(roots), "warnings": len(diagnostics)},
        )
        return workplan
