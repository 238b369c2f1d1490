"""
Composition Engine - public facade.

Brings together:
- Resource loading, identification and hashing
- Dependency graph building and persistence
- Cache store with the consistency policy
- Workplan generation and render orchestration
"""

import re
from collections.abc import Iterable
from typing import Any

from composition.config import Config
from composition.core.embeddings.base import Embedder
from composition.core.factory import EmbedderFactory, GraphStoreFactory, LLMFactory
from composition.core.graph_store.base import GraphStore
from composition.core.llm.base import LLMProvider
from composition.core.parser.base import DocumentParser
from composition.core.parser.darkmatter import DarkMatterParser
from composition.core.renderers import RendererRegistry, default_registry
from composition.core.resources.gitignore import GitignoreFilter
from composition.core.resources.identifier import identify
from composition.core.resources.loader import ResourceLoader
from composition.core.resources.session import RenderSession
from composition.models.diagnostic import Diagnostic, DiagnosticLevel
from composition.models.graph import DependencyGraph
from composition.models.render import ComposedDocument, RenderReport
from composition.models.resource import ResourceId
from composition.models.workplan import Workplan
from composition.services.cache_store import CacheStore
from composition.services.consistency import ConsistencyPolicy
from composition.services.graph_builder import GraphBuilder
from composition.services.orchestrator import RenderOrchestrator
from composition.services.watcher import DocumentWatcher, WatchCallback
from composition.services.workplan import WorkplanGenerator
from composition.utils.concurrency import SingleFlight
from composition.utils.exceptions import CompositionError
from composition.utils.logger import get_logger

logger = get_logger(__name__)

RootReference = str | ResourceId


def _error_code(error: CompositionError) -> str:
    """CyclicDependency -> cyclic-dependency"""
    return re.sub(r"(?<!^)(?=[A-Z])", "-", type(error).__name__).lower()


class CompositionEngine:
    """
    Incremental document composition.

    Features:
    - Transclusion of local and remote documents, media and data files
    - AI-derived summaries, consolidations, topic extracts and embeddings
    - Persistent graph and cache; only dirty resources are re-rendered
    - Concurrent rendering with per-resource deduplication
    - Polling watch mode
    """

    def __init__(
        self,
        config: Config | None = None,
        store: GraphStore | None = None,
        parser: DocumentParser | None = None,
        registry: RendererRegistry | None = None,
        llm: LLMProvider | None = None,
        embedder: Embedder | None = None,
        loader: ResourceLoader | None = None,
    ):
        """
        Initialize Composition Engine.

        Args:
            config: Configuration object (default: from environment)
            store: Graph store (default: from `config.cache`)
            parser: Document parser (default: DarkMatterParser)
            registry: Renderers per kind (default: built-in renderers)
            llm: LLM provider for AI renderers (default: from `config.llm`)
            embedder: Embedder for `::embed` (default: from `config.embedder`)
            loader: Resource loader (default: from `config.http`)
        """
        self.config = config or Config.from_env()
        self.store = store or GraphStoreFactory.create(self.config)
        self.parser = parser or DarkMatterParser()

        self._owned: list[Any] = []
        if registry is None:
            if llm is None:
                llm = LLMFactory.create(self.config.llm)
                self._owned.append(llm)
            if embedder is None:
                embedder = EmbedderFactory.create(self.config.embedder)
                self._owned.append(embedder)
            registry = default_registry(self.parser, llm, embedder)
        self.registry = registry
        self.llm = llm
        self.embedder = embedder

        if loader is None:
            loader = ResourceLoader(
                timeout=self.config.http.timeout,
                user_agent=self.config.http.user_agent,
                follow_redirects=self.config.http.follow_redirects,
                gitignore=GitignoreFilter() if self.config.engine.respect_gitignore else None,
            )
            self._owned.append(loader)
        self.loader = loader

        self.policy = ConsistencyPolicy(remote_ttl=self.config.cache.remote_ttl_seconds)
        self.cache = CacheStore(self.store, self.policy)
        self.builder = GraphBuilder(self.store, self.parser, self.policy)
        self.planner = WorkplanGenerator(self.cache, self.registry)
        self.orchestrator = RenderOrchestrator(
            self.cache,
            self.registry,
            workers=self.config.engine.workers,
            render_timeout=self.config.engine.render_timeout,
            flight=SingleFlight(),
        )
        self._watchers: list[DocumentWatcher] = []

    async def initialize(self) -> None:
        """Initialize the graph store."""
        logger.info("Initializing Composition Engine")
        await self.store.initialize()
        logger.info("Composition Engine ready")

    async def __aenter__(self) -> "CompositionEngine":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ═══════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════

    def identify_roots(self, roots: Iterable[RootReference]) -> list[ResourceId]:
        """Identify root references against `engine.base_dir`, dropping duplicates."""
        identified: dict[ResourceId, None] = {}
        for root in roots:
            if not isinstance(root, ResourceId):
                root = identify(root, self.config.engine.base_dir)
            identified.setdefault(root, None)
        return list(identified)

    def new_session(self) -> RenderSession:
        return RenderSession(self.loader)

    # ═══════════════════════════════════════════════════════════
    # OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def build_graph(
        self,
        roots: Iterable[RootReference],
        errors: dict[ResourceId, CompositionError] | None = None,
    ) -> DependencyGraph:
        """
        Build and persist the dependency graph of `roots`.

        Raises:
            CyclicDependency: If a root's references form a cycle (unless `errors` is given)
            ResourceUnavailable: If a root cannot be loaded (unless `errors` is given)
        """
        return await self.builder.build(self.identify_roots(roots), self.new_session(), errors)

    async def generate_workplan(
        self,
        roots: Iterable[RootReference],
        initial_state: dict[str, Any] | None = None,
    ) -> Workplan:
        """Plan which resources a render of `roots` would recompute."""
        root_ids = self.identify_roots(roots)
        session = self.new_session()
        graph = await self.builder.build(root_ids, session)
        return await self.planner.generate(graph, root_ids, session, initial_state)

    async def render(
        self,
        roots: Iterable[RootReference],
        initial_state: dict[str, Any] | None = None,
    ) -> RenderReport:
        """
        Render every root, recomputing only dirty resources.

        Fatal failures are per root: a failing root lands in `report.errors`
        while the others still render.

        Args:
            roots: Root document paths, URLs or ResourceIds
            initial_state: State every root starts from (frontmatter overrides it)

        Returns:
            RenderReport with composed documents, errors and diagnostics
        """
        root_ids = self.identify_roots(roots)
        session = self.new_session()
        logger.info(
            f"Rendering {len(root_ids)} roots", extra={"roots": [str(r) for r in root_ids]}
        )

        build_errors: dict[ResourceId, CompositionError] = {}
        graph = await self.builder.build(root_ids, session, errors=build_errors)
        live = [root for root in root_ids if root not in build_errors]

        workplan = await self.planner.generate(graph, live, session, initial_state)
        report = RenderReport(workplan=workplan)
        report.diagnostics.extend(workplan.diagnostics)

        outcomes = await self.orchestrator.render(
            graph, workplan, live, session, initial_state, report.diagnostics, report.node_states
        )

        for root in root_ids:
            outcome = build_errors.get(root) or outcomes.get(root)
            if isinstance(outcome, ComposedDocument):
                report.documents[root] = outcome
                continue
            if outcome is None:
                outcome = CompositionError(f"Root was not rendered: {root}")
            report.errors[root] = outcome
            report.diagnostics.add(
                Diagnostic(
                    level=DiagnosticLevel.ERROR,
                    code=_error_code(outcome),
                    message=outcome.message,
                    resource_id=getattr(outcome, "resource_id", None) or root,
                    root=root,
                    position=getattr(outcome, "position", None),
                )
            )

        logger.info(
            f"Render complete: {len(report.documents)} ok, {len(report.errors)} failed",
            extra=report.diagnostics.summary(),
        )
        return report

    async def compose(
        self,
        root: RootReference,
        initial_state: dict[str, Any] | None = None,
    ) -> ComposedDocument:
        """
        Render a single root.

        Raises:
            CompositionError: The fatal error for the root, if any
        """
        report = await self.render([root], initial_state)
        report.raise_for_errors()
        return next(iter(report.documents.values()))

    async def prune(self, roots: Iterable[RootReference]) -> list[ResourceId]:
        """Delete persisted nodes and cache entries not reachable from `roots`."""
        return await self.builder.prune(self.identify_roots(roots))

    def watch(
        self,
        roots: Iterable[RootReference],
        callback: WatchCallback,
        interval: float | None = None,
        debounce: float | None = None,
    ) -> DocumentWatcher:
        """
        Start a polling watcher that re-renders `roots` on local changes.

        Must be called from a running event loop. Stop it with
        `await watcher.stop()` or `engine.close()`.
        """
        watcher = DocumentWatcher(
            self,
            self.identify_roots(roots),
            callback,
            interval=interval if interval is not None else self.config.watch.interval,
            debounce=debounce if debounce is not None else self.config.watch.debounce,
        )
        watcher.start()
        self._watchers.append(watcher)
        return watcher

    async def close(self) -> None:
        """Stop watchers and close owned connections."""
        logger.info("Shutting down Composition Engine")
        for watcher in self._watchers:
            await watcher.stop()
        self._watchers.clear()

        for component in self._owned:
            try:
                await component.close()
            except Exception as e:
                logger.warning(f"Error closing {type(component).__name__}: {e}")
        await self.store.close()
        logger.info("Composition Engine closed")
