"""
Tests for RenderOrchestrator.

Graphs and workplans are built by hand and rendered with stub renderers, so
each failure policy can be exercised in isolation.
"""

import asyncio

import pytest

from composition.core.renderers.base import RendererRegistry, Renderer
from composition.core.resources.identifier import identify
from composition.core.resources.session import RenderSession
from composition.models.graph import DependencyEdge, DependencyGraph, ResourceNode
from composition.models.render import Diagnostics, NodeState
from composition.models.resource import ConsistencyClass, Requirement, ResourceKind
from composition.models.workplan import Layer, Workplan
from composition.services.orchestrator import RenderOrchestrator
from composition.utils.exceptions import (
    RendererError,
    RenderTimeout,
    RequiredResourceFailed,
)


class JoinRenderer(Renderer):
    """Documents render as their dependency contents joined by `|`."""

    kind = ResourceKind.DOCUMENT

    def __init__(self, error: Exception | None = None):
        self.calls = 0
        self.error = error

    async def render(self, context):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return context.result("|".join(context.dependency_contents()))


class ImageStub(Renderer):
    """Images render as `img:<path>` after an optional delay or failure."""

    kind = ResourceKind.IMAGE

    def __init__(self, delay: float = 0.0, fail: set[str] | None = None):
        self.delay = delay
        self.fail = fail or set()
        self.calls = 0
        self.active = 0
        self.peak = 0

    async def render(self, context):
        self.calls += 1
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            if context.node.id.location in self.fail:
                raise RendererError(f"cannot render {context.node.id}")
            return context.result(f"img:{context.node.id.location}")
        finally:
            self.active -= 1


def _image(path: str, consistency=ConsistencyClass.LOCAL_SYNC) -> ResourceNode:
    return ResourceNode(id=identify(path), kind=ResourceKind.IMAGE, consistency=consistency)


def _document(path: str, *targets: tuple[str, Requirement]) -> ResourceNode:
    return ResourceNode(
        id=identify(path),
        kind=ResourceKind.DOCUMENT,
        dependencies=[
            DependencyEdge(
                target=identify(target),
                kind=ResourceKind.IMAGE,
                requirement=requirement,
                directive_index=index,
                line=index + 1,
            )
            for index, (target, requirement) in enumerate(targets)
        ],
    )


def _plan(graph: DependencyGraph, *layers: list[str]) -> Workplan:
    return Workplan(
        layers=[
            Layer(index=index, resources=[identify(path) for path in paths])
            for index, paths in enumerate(layers)
        ]
    )


def _build(*nodes: ResourceNode, roots: list[str]) -> DependencyGraph:
    graph = DependencyGraph(roots=[identify(root) for root in roots])
    for node in nodes:
        graph.add_node(node)
    for node_id in list(graph.nodes):
        graph.link_dependents(node_id)
    return graph


@pytest.fixture
def images() -> ImageStub:
    return ImageStub()


@pytest.fixture
def documents() -> JoinRenderer:
    return JoinRenderer()


@pytest.fixture
def orchestrator(cache, images, documents) -> RenderOrchestrator:
    return RenderOrchestrator(cache, RendererRegistry([documents, images]), workers=4)


@pytest.mark.unit
@pytest.mark.asyncio
class TestRendering:
    """Test successful execution."""

    async def test_layers_feed_dependents(self, orchestrator, session, cache):
        graph = _build(
            _image("/a.png"),
            _image("/b.png"),
            _document("/root.md", ("/a.png", Requirement.DEFAULT), ("/b.png", Requirement.DEFAULT)),
            roots=["/root.md"],
        )
        workplan = _plan(graph, ["/a.png", "/b.png"], ["/root.md"])
        diagnostics = Diagnostics()

        outcomes = await orchestrator.render(
            graph, workplan, graph.roots, session, diagnostics=diagnostics
        )

        document = outcomes[identify("/root.md")]
        assert document.content == "img:/a.png|img:/b.png"
        assert diagnostics.rendered == {"image": 2, "document": 1}
        assert (await cache.lookup(identify("/a.png"))).artifact == "img:/a.png"

    async def test_fresh_nodes_come_from_cache(self, orchestrator, loader, images):
        graph = _build(
            _image("/a.png"),
            _document("/root.md", ("/a.png", Requirement.DEFAULT)),
            roots=["/root.md"],
        )
        workplan = _plan(graph, ["/a.png"], ["/root.md"])
        await orchestrator.render(graph, workplan, graph.roots, RenderSession(loader))

        workplan = Workplan(
            layers=[Layer(index=0, resources=[identify("/root.md")])],
            fresh={identify("/a.png")},
        )
        diagnostics = Diagnostics()
        states = {}
        outcomes = await orchestrator.render(
            graph,
            workplan,
            graph.roots,
            RenderSession(loader),
            diagnostics=diagnostics,
            node_states=states,
        )

        assert images.calls == 1
        assert diagnostics.cached == {"image": 1}
        assert diagnostics.rendered == {"document": 1}
        assert outcomes[identify("/root.md")].content == "img:/a.png"
        assert states == {
            identify("/a.png"): NodeState.RENDERED,
            identify("/root.md"): NodeState.RENDERED,
        }

    async def test_worker_pool_is_bounded(self, cache, session, documents):
        images = ImageStub(delay=0.05)
        orchestrator = RenderOrchestrator(cache, RendererRegistry([documents, images]), workers=2)
        paths = [f"/{index}.png" for index in range(6)]
        graph = _build(
            *(_image(path) for path in paths),
            _document("/root.md", *((path, Requirement.DEFAULT) for path in paths)),
            roots=["/root.md"],
        )

        await orchestrator.render(graph, _plan(graph, paths, ["/root.md"]), graph.roots, session)

        assert images.calls == 6
        assert images.peak == 2


@pytest.mark.unit
@pytest.mark.asyncio
class TestFailurePolicy:
    """Test required, optional and default failures."""

    async def test_required_failure_aborts_root(self, cache, session, documents):
        images = ImageStub(fail={"/a.png"})
        orchestrator = RenderOrchestrator(cache, RendererRegistry([documents, images]))
        graph = _build(
            _image("/a.png"),
            _document("/root.md", ("/a.png", Requirement.REQUIRED)),
            roots=["/root.md"],
        )

        states = {}

        outcomes = await orchestrator.render(
            graph,
            _plan(graph, ["/a.png"], ["/root.md"]),
            graph.roots,
            session,
            node_states=states,
        )

        error = outcomes[identify("/root.md")]
        assert isinstance(error, RequiredResourceFailed)
        assert error.resource_id == identify("/a.png")
        assert error.position.line == 1
        assert isinstance(error.cause, RendererError)
        assert documents.calls == 0
        assert states[identify("/a.png")] is NodeState.FAILED
        assert states[identify("/root.md")] is NodeState.SKIPPED

    async def test_required_failure_aborts_every_owner(self, cache, session, documents):
        images = ImageStub(fail={"/shared.png"})
        orchestrator = RenderOrchestrator(cache, RendererRegistry([documents, images]))
        graph = _build(
            _image("/shared.png"),
            _document("/inner.md", ("/shared.png", Requirement.REQUIRED)),
            ResourceNode(
                id=identify("/one.md"),
                kind=ResourceKind.DOCUMENT,
                dependencies=[DependencyEdge(target=identify("/inner.md"))],
            ),
            ResourceNode(
                id=identify("/two.md"),
                kind=ResourceKind.DOCUMENT,
                dependencies=[DependencyEdge(target=identify("/inner.md"))],
            ),
            roots=["/one.md", "/two.md"],
        )
        workplan = _plan(graph, ["/shared.png"], ["/inner.md"], ["/one.md", "/two.md"])

        outcomes = await orchestrator.render(graph, workplan, graph.roots, session)

        assert isinstance(outcomes[identify("/one.md")], RequiredResourceFailed)
        assert isinstance(outcomes[identify("/two.md")], RequiredResourceFailed)

    async def test_optional_failure_warns(self, cache, session, documents):
        images = ImageStub(fail={"/a.png"})
        orchestrator = RenderOrchestrator(cache, RendererRegistry([documents, images]))
        graph = _build(
            _image("/a.png"),
            _image("/b.png"),
            _document(
                "/root.md", ("/a.png", Requirement.OPTIONAL), ("/b.png", Requirement.DEFAULT)
            ),
            roots=["/root.md"],
        )
        diagnostics = Diagnostics()

        outcomes = await orchestrator.render(
            graph,
            _plan(graph, ["/a.png", "/b.png"], ["/root.md"]),
            graph.roots,
            session,
            diagnostics=diagnostics,
        )

        assert outcomes[identify("/root.md")].content == "|img:/b.png"
        assert diagnostics.warning_codes() == ["optional-resource-missing"]
        assert diagnostics.warnings[0].root == identify("/root.md")
        assert diagnostics.warnings[0].position.line == 1

    async def test_sibling_cancelled_once_root_is_dead(self, cache, session):
        """Test that slow work for an aborted root is cancelled, not recorded."""
        images = ImageStub(delay=0.0, fail={"/fast.png"})
        slow = ImageStub(delay=5.0)

        class SlowDocument(JoinRenderer):
            async def render(self, context):
                if context.node.id == identify("/slow.md"):
                    return await slow.render(context)
                return await super().render(context)

        orchestrator = RenderOrchestrator(cache, RendererRegistry([SlowDocument(), images]))
        graph = _build(
            _image("/fast.png"),
            ResourceNode(id=identify("/slow.md"), kind=ResourceKind.DOCUMENT),
            ResourceNode(
                id=identify("/root.md"),
                kind=ResourceKind.DOCUMENT,
                dependencies=[
                    DependencyEdge(
                        target=identify("/fast.png"),
                        kind=ResourceKind.IMAGE,
                        requirement=Requirement.REQUIRED,
                    ),
                    DependencyEdge(target=identify("/slow.md"), directive_index=1),
                ],
            ),
            roots=["/root.md"],
        )

        outcomes = await asyncio.wait_for(
            orchestrator.render(
                graph, _plan(graph, ["/fast.png", "/slow.md"], ["/root.md"]), graph.roots, session
            ),
            timeout=2.0,
        )

        assert isinstance(outcomes[identify("/root.md")], RequiredResourceFailed)
        assert await cache.lookup(identify("/slow.md")) is None

    async def test_timeout(self, cache, session, documents):
        images = ImageStub(delay=1.0)
        orchestrator = RenderOrchestrator(
            cache, RendererRegistry([documents, images]), render_timeout=0.05
        )
        graph = _build(
            _image("/a.png"),
            _document("/root.md", ("/a.png", Requirement.REQUIRED)),
            roots=["/root.md"],
        )

        outcomes = await orchestrator.render(
            graph, _plan(graph, ["/a.png"], ["/root.md"]), graph.roots, session
        )

        assert isinstance(outcomes[identify("/root.md")].cause, RenderTimeout)

    async def test_unexpected_exception_is_wrapped(self, cache, session, images):
        orchestrator = RenderOrchestrator(
            cache, RendererRegistry([JoinRenderer(error=ValueError("boom")), images])
        )
        graph = _build(_document("/root.md"), roots=["/root.md"])

        outcomes = await orchestrator.render(
            graph, _plan(graph, ["/root.md"]), graph.roots, session
        )

        error = outcomes[identify("/root.md")]
        assert isinstance(error, RendererError)
        assert "boom" in error.message

    async def test_local_async_keeps_last_artifact(self, cache, session, documents, make_result):
        images = ImageStub(fail={"/widget.png"})
        orchestrator = RenderOrchestrator(cache, RendererRegistry([documents, images]))
        widget = _image("/widget.png", ConsistencyClass.LOCAL_ASYNC)
        await cache.record(widget, make_result(widget, "previous"), "old")
        graph = _build(
            widget,
            _document("/root.md", ("/widget.png", Requirement.REQUIRED)),
            roots=["/root.md"],
        )
        diagnostics = Diagnostics()

        outcomes = await orchestrator.render(
            graph,
            _plan(graph, ["/widget.png"], ["/root.md"]),
            graph.roots,
            session,
            diagnostics=diagnostics,
        )

        assert outcomes[identify("/root.md")].content == "previous"
        assert diagnostics.warning_codes() == ["render-failed"]

    async def test_remote_timeout_reuses_stale_artifact(
        self, cache, session, documents, make_result
    ):
        url = "https://example.com/slow.png"
        images = ImageStub(delay=1.0)
        orchestrator = RenderOrchestrator(
            cache, RendererRegistry([documents, images]), render_timeout=0.05
        )
        banner = _image(url, ConsistencyClass.REMOTE)
        await cache.record(banner, make_result(banner, "OLD"), "old")
        graph = _build(
            banner,
            _document("/root.md", (url, Requirement.REQUIRED)),
            roots=["/root.md"],
        )
        diagnostics = Diagnostics()

        outcomes = await orchestrator.render(
            graph,
            _plan(graph, [url], ["/root.md"]),
            graph.roots,
            session,
            diagnostics=diagnostics,
        )

        assert outcomes[identify("/root.md")].content == "OLD"
        assert diagnostics.warning_codes() == ["stale-resource"]
        assert (await cache.lookup(identify(url))).stale is True


@pytest.mark.unit
@pytest.mark.asyncio
class TestDeduplication:
    """Test single-flight rendering across concurrent calls."""

    async def test_concurrent_calls_share_one_render(self, cache, session, documents):
        images = ImageStub(delay=0.05)
        orchestrator = RenderOrchestrator(cache, RendererRegistry([documents, images]))
        shared = _image("/shared.png")
        first = _build(
            shared.model_copy(deep=True),
            _document("/one.md", ("/shared.png", Requirement.DEFAULT)),
            roots=["/one.md"],
        )
        second = _build(
            shared.model_copy(deep=True),
            _document("/two.md", ("/shared.png", Requirement.DEFAULT)),
            roots=["/two.md"],
        )

        results = await asyncio.gather(
            orchestrator.render(
                first, _plan(first, ["/shared.png"], ["/one.md"]), first.roots, session
            ),
            orchestrator.render(
                second, _plan(second, ["/shared.png"], ["/two.md"]), second.roots, session
            ),
        )

        assert images.calls == 1
        assert results[0][identify("/one.md")].content == "img:/shared.png"
        assert results[1][identify("/two.md")].content == "img:/shared.png"
