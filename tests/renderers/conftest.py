"""Fixtures for renderer tests."""

import pytest

from composition.core.parser.darkmatter import DarkMatterParser
from composition.core.renderers import default_registry
from composition.core.renderers.base import RenderContext, RendererRegistry
from composition.models.graph import ResourceNode


@pytest.fixture
def renderers(fake_llm, fake_embedder) -> RendererRegistry:
    return default_registry(DarkMatterParser(), fake_llm, fake_embedder)


@pytest.fixture
def make_context(session, renderers):
    """Build a RenderContext for a node, as the orchestrator would."""

    def _make(node: ResourceNode, dependencies=None, state=None) -> RenderContext:
        return RenderContext(
            node=node,
            session=session,
            registry=renderers,
            state=state or {},
            dependencies=dependencies or {},
        )

    return _make
