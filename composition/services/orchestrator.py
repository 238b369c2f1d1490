"""
Render Orchestrator - executes a workplan.

Layers run strictly in order; nodes inside a layer run concurrently on a
bounded worker pool. Each node moves pending -> rendering -> rendered |
failed, or is skipped once every root that reaches it has failed.

Failure policy per edge:
- required (`!`): fatal for every root reaching the parent
- optional (`?`): empty content, warning `optional-resource-missing`
- default: empty content, warning `resource-missing`
"""

import asyncio
from collections.abc import Iterable
from typing import Any

from composition.core.renderers.base import RenderContext, RendererRegistry
from composition.core.resources.hasher import content_hash
from composition.core.resources.session import RenderSession
from composition.models.diagnostic import Diagnostic
from composition.models.document import SourcePosition
from composition.models.graph import DependencyGraph, ResourceNode
from composition.models.render import (
    ComposedDocument,
    Diagnostics,
    NodeState,
    RenderResult,
)
from composition.models.resource import ConsistencyClass, Requirement, ResourceId
from composition.models.workplan import Workplan
from composition.services.cache_store import EMPTY_HASH, CacheStore
from composition.services.workplan import inherited_states, node_fingerprint
from composition.utils.concurrency import SingleFlight
from composition.utils.exceptions import (
    CompositionError,
    RendererError,
    RenderTimeout,
    RequiredResourceFailed,
    ResourceUnavailable,
)
from composition.utils.logger import get_logger

logger = get_logger(__name__)


class RenderOrchestrator:
    """
    Runs workplans against a renderer registry and the cache store.

    One instance may serve concurrent render calls: the worker pool and the
    per-resource single-flight are shared, so a resource is rendered at
    most once at a time across calls.
    """

    def __init__(
        self,
        cache: CacheStore,
        registry: RendererRegistry,
        workers: int = 4,
        render_timeout: float = 60.0,
        flight: SingleFlight | None = None,
    ):
        """
        Initialize render orchestrator.

        Args:
            cache: Cache store for lookups and recording results
            registry: Renderer per resource kind
            workers: Maximum concurrent renders
            render_timeout: Seconds allowed per renderer invocation
            flight: Shared single-flight for cross-call deduplication
        """
        self.cache = cache
        self.registry = registry
        self.workers = workers
        self.render_timeout = render_timeout
        self.flight = flight or SingleFlight()
        self._semaphore = asyncio.Semaphore(workers)

    async def render(
        self,
        graph: DependencyGraph,
        workplan: Workplan,
        roots: Iterable[ResourceId],
        session: RenderSession,
        initial_state: dict[str, Any] | None = None,
        diagnostics: Diagnostics | None = None,
        node_states: dict[ResourceId, NodeState] | None = None,
    ) -> dict[ResourceId, ComposedDocument | CompositionError]:
        """
        Execute `workplan` and assemble each root.

        `diagnostics` and `node_states`, when given, are filled in place with
        the warnings raised and the final state of each node touched.

        Returns:
            Per root, either the composed document or the fatal error
        """
        run = _RenderRun(
            self,
            graph,
            [root for root in roots if root in graph],
            session,
            initial_state,
            diagnostics if diagnostics is not None else Diagnostics(),
            node_states if node_states is not None else {},
        )
        return await run.execute(workplan)

    async def render_node(
        self,
        node: ResourceNode,
        context: RenderContext,
        fingerprint: str,
    ) -> RenderResult:
        """
        Render one node under the worker pool, deduplicated per resource.

        A result recorded by a concurrent call since this session started is
        reused instead of rendering again.
        """
        async with self._semaphore:
            key = (node.id, node.content_hash, fingerprint)
            return await self.flight.run(
                key, lambda: self._render_or_reuse(node, context, fingerprint)
            )

    async def _render_or_reuse(
        self,
        node: ResourceNode,
        context: RenderContext,
        fingerprint: str,
    ) -> RenderResult:
        entry = await self.cache.lookup(node.id)
        if (
            entry is not None
            and entry.fingerprint == fingerprint
            and entry.rendered_at >= context.session.now
            and (node.content_hash is None or entry.content_hash == node.content_hash)
        ):
            return RenderResult(
                resource_id=node.id,
                content=entry.artifact,
                content_hash=entry.content_hash,
                artifact_hash=entry.artifact_hash,
                from_cache=True,
            )

        renderer = self.registry.get(node.kind)
        try:
            result = await asyncio.wait_for(renderer.render(context), self.render_timeout)
        except asyncio.TimeoutError:
            raise RenderTimeout(node.id, self.render_timeout) from None
        except CompositionError:
            raise
        except Exception as e:
            raise RendererError(
                f"{node.kind.value} renderer failed: {e}", resource_id=node.id
            ) from e

        await self.cache.record(node, result, fingerprint)
        return result


class _RenderRun:
    """Mutable state of one `RenderOrchestrator.render` call."""

    def __init__(
        self,
        orchestrator: RenderOrchestrator,
        graph: DependencyGraph,
        roots: list[ResourceId],
        session: RenderSession,
        initial_state: dict[str, Any] | None,
        diagnostics: Diagnostics,
        node_state: dict[ResourceId, NodeState],
    ):
        self.orchestrator = orchestrator
        self.cache = orchestrator.cache
        self.registry = orchestrator.registry
        self.graph = graph
        self.roots = roots
        self.session = session
        self.diagnostics = diagnostics

        self.states = inherited_states(graph, roots, initial_state)
        self.owners = graph.roots_reaching(roots)
        self.node_state = node_state
        self.contents: dict[ResourceId, str] = {}
        self.artifact_hashes: dict[ResourceId, str] = {}
        self.failures: dict[ResourceId, BaseException] = {}
        self.dead: dict[ResourceId, CompositionError] = {}

    async def execute(
        self, workplan: Workplan
    ) -> dict[ResourceId, ComposedDocument | CompositionError]:
        await self._load_fresh(workplan)

        for layer in workplan.layers:
            tasks: dict[asyncio.Task, ResourceId] = {}
            for node_id in layer.resources:
                if node_id not in self.owners:
                    continue
                if self._is_dead(node_id):
                    self.node_state[node_id] = NodeState.SKIPPED
                    continue
                self.node_state[node_id] = NodeState.PENDING
                tasks[asyncio.create_task(self._run_node(node_id))] = node_id

            pending = set(tasks)
            try:
                while pending:
                    done, pending = await asyncio.wait(
                        pending, return_when=asyncio.FIRST_COMPLETED
                    )
                    for task in done:
                        self._settle(tasks[task], task)
                    for task in pending:
                        if self._is_dead(tasks[task]):
                            task.cancel()
            except asyncio.CancelledError:
                for task in pending:
                    task.cancel()
                raise

            logger.debug(
                f"Layer {layer.index} finished",
                extra={"tasks": len(tasks), "dead_roots": len(self.dead)},
            )

        return self._assemble()

    # ═══════════════════════════════════════════════════════════
    # NODE EXECUTION
    # ═══════════════════════════════════════════════════════════

    async def _load_fresh(self, workplan: Workplan) -> None:
        for node_id in workplan.fresh:
            if node_id not in self.owners:
                continue
            entry = await self.cache.lookup(node_id)
            if entry is None:
                continue
            self.contents[node_id] = entry.artifact
            self.artifact_hashes[node_id] = entry.artifact_hash
            self.node_state[node_id] = NodeState.RENDERED
            self.diagnostics.record_cached(self.graph.nodes[node_id].kind)

    async def _run_node(self, node_id: ResourceId) -> RenderResult:
        node = self.graph.nodes[node_id]
        self.node_state[node_id] = NodeState.RENDERING

        dependencies: dict[ResourceId, str] = {}
        hashes: list[str] = []
        for target in node.dependency_ids:
            if target not in self.graph or target in self.failures:
                dependencies[target] = ""
                hashes.append(EMPTY_HASH)
            else:
                dependencies[target] = self.contents.get(target, "")
                hashes.append(self.artifact_hashes.get(target, EMPTY_HASH))
        self._warn_missing_dependencies(node)

        state = self.states.get(node_id, {})
        fingerprint = node_fingerprint(node, state, hashes, self.registry)
        context = RenderContext(
            node=node,
            session=self.session,
            registry=self.registry,
            state=state,
            dependencies=dependencies,
        )

        try:
            return await self.orchestrator.render_node(node, context, fingerprint)
        except CompositionError as e:
            fallback = await self._fallback(node, e)
            if fallback is None:
                raise
            return fallback

    async def _fallback(self, node: ResourceNode, error: CompositionError) -> RenderResult | None:
        """Reuse the last artifact where the consistency class allows it."""
        entry = await self.cache.lookup(node.id)
        if entry is None:
            return None

        if self.cache.policy.tolerates_render_failure(node.consistency):
            code = "render-failed"
            message = f"Render failed, keeping last output: {error.message}"
        elif node.consistency is ConsistencyClass.REMOTE and (
            isinstance(error, RenderTimeout)
            or (isinstance(error, ResourceUnavailable) and error.is_connectivity)
        ):
            await self.cache.mark_stale(node.id)
            code = "stale-resource"
            message = f"Using stale content: {error.message}"
        else:
            return None

        logger.warning(message, extra={"resource_id": str(node.id)})
        return RenderResult(
            resource_id=node.id,
            content=entry.artifact,
            content_hash=entry.content_hash,
            artifact_hash=entry.artifact_hash,
            diagnostics=[
                Diagnostic(
                    code=code,
                    message=message,
                    resource_id=node.id,
                    root=self._first_owner(node.id),
                )
            ],
            from_cache=True,
            stale=True,
        )

    def _warn_missing_dependencies(self, node: ResourceNode) -> None:
        for edge in node.dependencies:
            if edge.target not in self.failures or edge.requirement is Requirement.REQUIRED:
                continue
            cause = self.failures[edge.target]
            code = (
                "optional-resource-missing"
                if edge.requirement is Requirement.OPTIONAL
                else "resource-missing"
            )
            self.diagnostics.add(
                Diagnostic(
                    code=code,
                    message=f"{edge.target} rendered as empty: {cause}",
                    resource_id=edge.target,
                    root=self._first_owner(node.id),
                    position=SourcePosition(line=edge.line) if edge.line else None,
                )
            )

    # ═══════════════════════════════════════════════════════════
    # OUTCOMES
    # ═══════════════════════════════════════════════════════════

    def _settle(self, node_id: ResourceId, task: asyncio.Task) -> None:
        if task.cancelled():
            self.node_state[node_id] = NodeState.SKIPPED
            return

        error = task.exception()
        if error is not None:
            self._fail(node_id, error)
            return

        result: RenderResult = task.result()
        node = self.graph.nodes[node_id]
        self.contents[node_id] = result.content
        self.artifact_hashes[node_id] = result.artifact_hash or content_hash(result.content)
        self.node_state[node_id] = NodeState.RENDERED
        self.diagnostics.extend(result.diagnostics)
        if result.from_cache:
            self.diagnostics.record_cached(node.kind)
        else:
            self.diagnostics.record_rendered(node_id, node.kind)

    def _fail(self, node_id: ResourceId, error: BaseException) -> None:
        self.node_state[node_id] = NodeState.FAILED
        self.failures[node_id] = error
        logger.warning(
            f"Render failed for {node_id}: {error}",
            extra={"resource_id": str(node_id), "error": type(error).__name__},
        )

        if node_id in self.roots:
            if not isinstance(error, CompositionError):
                error = RendererError(str(error), resource_id=node_id)
            self._kill(node_id, error)

        node = self.graph.nodes[node_id]
        for parent_id in node.dependents:
            if parent_id not in self.owners:
                continue
            for edge in self.graph.nodes[parent_id].dependencies:
                if edge.target != node_id or edge.requirement is not Requirement.REQUIRED:
                    continue
                for root in self.owners[parent_id]:
                    self._kill(
                        root,
                        RequiredResourceFailed(
                            node_id,
                            root=root,
                            position=SourcePosition(line=edge.line) if edge.line else None,
                            cause=error,
                        ),
                    )

    def _kill(self, root: ResourceId, error: CompositionError) -> None:
        if root in self.dead:
            return
        self.dead[root] = error
        logger.error(
            f"Render of {root} aborted: {error.message}",
            extra={"root": str(root), "error": type(error).__name__},
        )

    def _is_dead(self, node_id: ResourceId) -> bool:
        owners = self.owners.get(node_id, set())
        return bool(owners) and all(root in self.dead for root in owners)

    def _first_owner(self, node_id: ResourceId) -> ResourceId | None:
        owners = self.owners.get(node_id, set())
        return next((root for root in self.roots if root in owners), None)

    def _assemble(self) -> dict[ResourceId, ComposedDocument | CompositionError]:
        outcomes: dict[ResourceId, ComposedDocument | CompositionError] = {}
        for root in self.roots:
            if root in self.dead:
                outcomes[root] = self.dead[root]
                continue
            content = self.contents.get(root, "")
            outcomes[root] = ComposedDocument(
                root=root,
                content=content,
                content_hash=content_hash(content),
                frontmatter=self.graph.nodes[root].frontmatter,
            )
        return outcomes
