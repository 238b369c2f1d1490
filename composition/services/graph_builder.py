"""
Dependency Graph Builder.

Expands root documents into the graph of everything they reference:
1. Load and hash each document (through the session memo)
2. Reuse stored edges when the content hash is unchanged, otherwise parse
3. Map each directive to a child node (derived nodes for AI directives)
4. Detect cycles against the active DFS path
5. Upsert nodes and edge lists into the GraphStore
"""

from collections import deque
from collections.abc import Iterable, Iterator

from composition.core.graph_store.base import GraphStore
from composition.core.parser.base import DocumentParser
from composition.core.resources.identifier import derived_id, identify
from composition.core.resources.session import RenderSession
from composition.models.document import ParsedDocument
from composition.models.graph import DependencyEdge, DependencyGraph, ResourceNode
from composition.models.resource import ResourceId, ResourceKind
from composition.services.consistency import ConsistencyPolicy
from composition.utils.exceptions import (
    CompositionError,
    CyclicDependency,
    GraphStoreError,
    ParseError,
    ResourceUnavailable,
)
from composition.utils.logger import get_logger

logger = get_logger(__name__)


class GraphBuilder:
    """
    Builds and persists dependency graphs.

    Traversal is an iterative DFS with an explicit frame stack, so deeply
    nested transclusion chains never grow the call stack.
    """

    def __init__(
        self,
        store: GraphStore,
        parser: DocumentParser,
        policy: ConsistencyPolicy | None = None,
    ):
        """
        Initialize graph builder.

        Args:
            store: GraphStore for persisted nodes, edges and cache entries
            parser: Parser for document directives
            policy: Consistency policy used to classify nodes
        """
        self.store = store
        self.parser = parser
        self.policy = policy or ConsistencyPolicy()

    async def build(
        self,
        roots: Iterable[ResourceId],
        session: RenderSession,
        errors: dict[ResourceId, CompositionError] | None = None,
    ) -> DependencyGraph:
        """
        Build the graph reachable from `roots`.

        Args:
            roots: Root documents, in order
            session: Per-call memo of loaded contents
            errors: When given, per-root failures are collected here and the
                    remaining roots are still built. Otherwise the first
                    failure is raised.

        Raises:
            CyclicDependency: If a root's expansion revisits its active path
            ResourceUnavailable: If a root document cannot be loaded
            ParseError: If a root document is malformed
        """
        graph = DependencyGraph()
        derived: dict[ResourceId, ResourceNode] = {}

        for root in roots:
            graph.add_root(root)
            try:
                await self._expand(root, graph, session, derived)
            except CompositionError as e:
                graph.roots.remove(root)
                logger.error(
                    f"Graph build failed for {root}: {e.message}",
                    extra={"root": str(root), "error": type(e).__name__},
                )
                if errors is None:
                    raise
                errors[root] = e

        for node_id in list(graph.nodes):
            graph.link_dependents(node_id)

        logger.debug(
            f"Built graph with {len(graph)} nodes from {len(graph.roots)} roots",
            extra={"nodes": len(graph), "edges": len(graph.edges)},
        )
        return graph

    async def _expand(
        self,
        root: ResourceId,
        graph: DependencyGraph,
        session: RenderSession,
        derived: dict[ResourceId, ResourceNode],
    ) -> None:
        if root in graph:
            return

        root_node = await self._resolve(
            root, ResourceKind.DOCUMENT, None, session, derived, is_root=True
        )
        graph.add_node(root_node)

        path: list[ResourceId] = [root]
        on_path: dict[ResourceId, int] = {root: 0}
        stack: list[tuple[ResourceNode, Iterator[DependencyEdge]]] = [
            (root_node, iter(root_node.dependencies))
        ]

        try:
            while stack:
                node, edges = stack[-1]
                edge = next(edges, None)
                if edge is None:
                    stack.pop()
                    del on_path[path.pop()]
                    continue

                target = edge.target
                if target in on_path:
                    raise CyclicDependency(path[on_path[target] :] + [target], root)

                existing = graph.get(target)
                if existing is not None:
                    if existing.kind is not edge.kind:
                        logger.warning(
                            f"{target} referenced as {edge.kind.value}, "
                            f"already a {existing.kind.value}",
                            extra={"source": str(node.id), "line": edge.line},
                        )
                        edge.kind = existing.kind
                    continue

                child = await self._resolve(
                    target, edge.kind, edge.cache_ttl, session, derived, is_root=False
                )
                graph.add_node(child)
                if child.dependencies:
                    on_path[target] = len(path)
                    path.append(target)
                    stack.append((child, iter(child.dependencies)))
        except CompositionError:
            # Nodes still on the path were never completed
            for member in path:
                graph.remove_node(member)
            raise

    # ═══════════════════════════════════════════════════════════
    # NODE RESOLUTION
    # ═══════════════════════════════════════════════════════════

    async def _resolve(
        self,
        resource_id: ResourceId,
        kind: ResourceKind,
        cache_ttl: int | None,
        session: RenderSession,
        derived: dict[ResourceId, ResourceNode],
        is_root: bool,
    ) -> ResourceNode:
        if resource_id.is_derived:
            return await self._resolve_derived(resource_id, derived)
        if kind.is_expandable:
            return await self._resolve_document(
                resource_id, cache_ttl, session, derived, is_root
            )
        return await self._resolve_leaf(resource_id, kind, cache_ttl)

    async def _resolve_document(
        self,
        resource_id: ResourceId,
        cache_ttl: int | None,
        session: RenderSession,
        derived: dict[ResourceId, ResourceNode],
        is_root: bool,
    ) -> ResourceNode:
        stored = await self.store.get_node(resource_id)
        if stored is not None and stored.kind is not ResourceKind.DOCUMENT:
            stored = None

        # Remote documents inside their TTL keep their edges without a fetch
        if resource_id.is_remote and stored is not None and stored.cache_ttl == cache_ttl:
            entry = await self.store.get_cache_entry(resource_id)
            if (
                entry is not None
                and not entry.stale
                and self.policy.is_fresh(entry, stored.consistency, session.now)
                and await self._derived_targets_exist(stored, derived)
            ):
                return stored

        try:
            data = await session.load(resource_id)
        except ResourceUnavailable as e:
            if is_root:
                raise
            logger.warning(
                f"Cannot load {resource_id}: {e.message}",
                extra={"resource_id": str(resource_id), "reason": e.reason},
            )
            return self._leaf(resource_id, ResourceKind.DOCUMENT, cache_ttl)

        digest = await session.hash(resource_id)
        consistency = self.policy.classify(resource_id, ResourceKind.DOCUMENT, data)

        if (
            stored is not None
            and stored.content_hash == digest
            and await self._derived_targets_exist(stored, derived)
        ):
            if stored.consistency is not consistency or stored.cache_ttl != cache_ttl:
                stored.consistency = consistency
                stored.cache_ttl = cache_ttl
                await self.store.put_node(stored)
            return stored

        try:
            parsed = await session.parse(resource_id, self.parser)
            edges = self._edges_for(parsed, resource_id, derived)
        except ParseError as e:
            if is_root:
                raise
            # Left to the renderer, where the reference's requirement decides
            logger.warning(
                f"Cannot parse {resource_id}: {e.message}",
                extra={"resource_id": str(resource_id)},
            )
            return self._leaf(resource_id, ResourceKind.DOCUMENT, cache_ttl)

        node = ResourceNode(
            id=resource_id,
            kind=ResourceKind.DOCUMENT,
            content_hash=digest,
            dependencies=edges,
            consistency=consistency,
            cache_ttl=cache_ttl,
            frontmatter=parsed.frontmatter,
        )
        await self.store.put_node(node)
        logger.debug(
            f"Parsed {resource_id}: {len(node.dependencies)} references",
            extra={"resource_id": str(resource_id)},
        )
        return node

    async def _resolve_derived(
        self, resource_id: ResourceId, derived: dict[ResourceId, ResourceNode]
    ) -> ResourceNode:
        node = derived.get(resource_id)
        stored = await self.store.get_node(resource_id)
        if node is None:
            if stored is None:
                raise GraphStoreError(
                    f"Derived node missing from store: {resource_id}",
                    context={"resource_id": str(resource_id)},
                )
            return stored
        if (
            stored is None
            or stored.dependencies != node.dependencies
            or stored.options != node.options
        ):
            await self.store.put_node(node)
        return node.model_copy(deep=True)

    async def _resolve_leaf(
        self, resource_id: ResourceId, kind: ResourceKind, cache_ttl: int | None
    ) -> ResourceNode:
        node = self._leaf(resource_id, kind, cache_ttl)
        stored = await self.store.get_node(resource_id)
        if (
            stored is None
            or stored.kind is not kind
            or stored.consistency is not node.consistency
            or stored.cache_ttl != cache_ttl
        ):
            await self.store.put_node(node)
        return node

    def _leaf(
        self, resource_id: ResourceId, kind: ResourceKind, cache_ttl: int | None
    ) -> ResourceNode:
        return ResourceNode(
            id=resource_id,
            kind=kind,
            consistency=self.policy.classify(resource_id, kind),
            cache_ttl=cache_ttl if resource_id.is_remote else None,
        )

    async def _derived_targets_exist(
        self, node: ResourceNode, derived: dict[ResourceId, ResourceNode]
    ) -> bool:
        """Stored edges may point at derived nodes that were pruned since."""
        for edge in node.dependencies:
            if edge.target.is_derived and edge.target not in derived:
                if await self.store.get_node(edge.target) is None:
                    return False
        return True

    def _edges_for(
        self,
        parsed: ParsedDocument,
        source: ResourceId,
        derived: dict[ResourceId, ResourceNode],
    ) -> list[DependencyEdge]:
        """One edge per directive; AI directives point at a derived node."""
        edges: list[DependencyEdge] = []
        for index, directive in enumerate(parsed.directives):
            kind = directive.kind.resource_kind
            line = directive.position.line
            targets = [identify(reference, source) for reference in directive.references]

            if not kind.is_derived:
                reference = directive.references[0]
                edges.append(
                    DependencyEdge(
                        target=targets[0],
                        kind=kind,
                        requirement=reference.requirement,
                        directive_index=index,
                        line=line,
                        cache_ttl=reference.cache_ttl,
                    )
                )
                continue

            node_id = derived_id(kind, targets, directive.options)
            if node_id not in derived:
                derived[node_id] = ResourceNode(
                    id=node_id,
                    kind=kind,
                    options=dict(directive.options),
                    dependencies=[
                        DependencyEdge(
                            target=target,
                            kind=ResourceKind.DOCUMENT,
                            requirement=reference.requirement,
                            directive_index=position,
                            line=line,
                            cache_ttl=reference.cache_ttl,
                        )
                        for position, (target, reference) in enumerate(
                            zip(targets, directive.references)
                        )
                    ],
                )
            edges.append(
                DependencyEdge(
                    target=node_id,
                    kind=kind,
                    requirement=directive.requirement,
                    directive_index=index,
                    line=line,
                )
            )
        return edges

    # ═══════════════════════════════════════════════════════════
    # MAINTENANCE
    # ═══════════════════════════════════════════════════════════

    async def prune(self, keep_roots: Iterable[ResourceId]) -> list[ResourceId]:
        """
        Delete persisted nodes (and their cache entries) that are not
        reachable from `keep_roots`.

        Returns:
            IDs of the removed nodes
        """
        keep: set[ResourceId] = set()
        queue = deque(keep_roots)
        while queue:
            current = queue.popleft()
            if current in keep:
                continue
            keep.add(current)
            for edge in await self.store.get_edges(current):
                if edge.target not in keep:
                    queue.append(edge.target)

        removed = []
        for node_id in await self.store.list_node_ids():
            if node_id in keep:
                continue
            await self.store.delete_node(node_id)
            await self.store.delete_cache_entry(node_id)
            removed.append(node_id)

        if removed:
            logger.info(
                f"Pruned {len(removed)} unreachable nodes", extra={"kept": len(keep)}
            )
        return removed
