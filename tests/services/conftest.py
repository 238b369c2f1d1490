"""Fixtures for service tests.

Services run against the in-memory graph store and the fake remote site
from the top-level conftest.
"""

import pytest

from composition.core.parser.darkmatter import DarkMatterParser
from composition.core.resources.hasher import content_hash
from composition.core.resources.identifier import identify
from composition.models.graph import ResourceNode
from composition.models.render import RenderResult
from composition.models.resource import ConsistencyClass, ResourceKind
from composition.services.cache_store import CacheStore
from composition.services.consistency import ConsistencyPolicy
from composition.services.graph_builder import GraphBuilder


@pytest.fixture
def policy() -> ConsistencyPolicy:
    return ConsistencyPolicy(remote_ttl=3600)


@pytest.fixture
def cache(memory_store, policy) -> CacheStore:
    return CacheStore(memory_store, policy)


@pytest.fixture
def builder(memory_store, policy) -> GraphBuilder:
    return GraphBuilder(memory_store, DarkMatterParser(), policy)


@pytest.fixture
def make_result():
    """Build a RenderResult the way a renderer would."""

    def _make(node: ResourceNode, content: str, source_hash: str = "") -> RenderResult:
        return RenderResult(
            resource_id=node.id,
            content=content,
            content_hash=source_hash,
            artifact_hash=content_hash(content),
        )

    return _make


@pytest.fixture
def remote_node(site) -> ResourceNode:
    url = site.add("/page.md", "remote page\n")
    return ResourceNode(
        id=identify(url),
        kind=ResourceKind.DOCUMENT,
        consistency=ConsistencyClass.REMOTE,
    )
