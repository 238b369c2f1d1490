"""
Shared test fixtures for graph store tests.

Every store test runs against both backends.
"""

from datetime import datetime

import pytest

from composition.core.graph_store.memory_store import InMemoryGraphStore
from composition.core.graph_store.sqlite_store import SQLiteGraphStore
from composition.core.resources.identifier import derived_id, identify
from composition.models.cache import CacheEntry
from composition.models.graph import DependencyEdge, ResourceNode
from composition.models.resource import ConsistencyClass, Requirement, ResourceKind


@pytest.fixture(params=["memory", pytest.param("sqlite", marks=pytest.mark.sqlite)])
async def store(request, tmp_path):
    """Initialized store for each backend."""
    if request.param == "memory":
        backend = InMemoryGraphStore()
    else:
        backend = SQLiteGraphStore(db_path=str(tmp_path / "db" / "cache.db"))
    await backend.initialize()
    yield backend
    await backend.close()


@pytest.fixture
def sample_node() -> ResourceNode:
    """Document with a remote child and a derived summary."""
    return ResourceNode(
        id=identify("/docs/book.md"),
        kind=ResourceKind.DOCUMENT,
        content_hash="0123456789abcdef",
        frontmatter={"title": "Book", "max_tokens": 42},
        dependencies=[
            DependencyEdge(
                target=identify("https://example.com/intro.md"),
                requirement=Requirement.REQUIRED,
                directive_index=0,
                line=2,
                cache_ttl=7200,
            ),
            DependencyEdge(
                target=derived_id(ResourceKind.SUMMARY, [identify("/docs/notes.md")]),
                kind=ResourceKind.SUMMARY,
                directive_index=1,
                line=3,
            ),
        ],
        updated_at=datetime(2026, 1, 2, 3, 4, 5, 678901),
    )


@pytest.fixture
def sample_entry() -> CacheEntry:
    return CacheEntry(
        resource_id=identify("https://example.com/intro.md"),
        kind=ResourceKind.DOCUMENT,
        content_hash="aaaa",
        artifact="# Intro\n",
        artifact_hash="bbbb",
        consistency=ConsistencyClass.REMOTE,
        checked_at=datetime(2026, 1, 2, 3, 4, 5, 1),
        rendered_at=datetime(2026, 1, 2, 3, 4, 5, 1),
        ttl=3600,
        stale=True,
        fingerprint="cccc",
    )
