"""
Tests for graph store backends.

Tests:
1. Node round trips with ordered edges
2. Edge replacement and node deletion
3. Cache entry round trips
4. SQLite persistence across connections
"""

import pytest

from composition.core.graph_store.sqlite_store import SQLiteGraphStore
from composition.core.resources.identifier import identify
from composition.models.graph import DependencyEdge


@pytest.mark.integration
@pytest.mark.asyncio
class TestNodes:
    """Test node and edge persistence."""

    async def test_round_trip(self, store, sample_node):
        await store.put_node(sample_node)

        loaded = await store.get_node(sample_node.id)

        assert loaded == sample_node.model_copy(update={"dependents": set()})
        assert [edge.line for edge in loaded.dependencies] == [2, 3]
        assert loaded.dependencies[0].cache_ttl == 7200

    async def test_dependents_are_not_persisted(self, store, sample_node):
        sample_node.dependents = {identify("/docs/index.md")}
        await store.put_node(sample_node)
        assert (await store.get_node(sample_node.id)).dependents == set()

    async def test_missing_node(self, store):
        assert await store.get_node(identify("/nowhere.md")) is None
        assert await store.get_edges(identify("/nowhere.md")) == []

    async def test_replace_edges(self, store, sample_node):
        await store.put_node(sample_node)
        replacement = [DependencyEdge(target=identify("/docs/other.md"), line=9)]

        await store.put_edges(sample_node.id, replacement)

        assert await store.get_edges(sample_node.id) == replacement

    async def test_put_node_replaces_edges(self, store, sample_node):
        await store.put_node(sample_node)
        sample_node.dependencies = sample_node.dependencies[1:]

        await store.put_node(sample_node)

        assert len(await store.get_edges(sample_node.id)) == 1

    async def test_delete_and_list(self, store, sample_node):
        other = sample_node.model_copy(update={"id": identify("/docs/a.md")})
        await store.put_node(sample_node)
        await store.put_node(other)

        assert await store.list_node_ids() == [other.id, sample_node.id]

        await store.delete_node(sample_node.id)

        assert await store.list_node_ids() == [other.id]
        assert await store.get_edges(sample_node.id) == []

    async def test_returned_nodes_are_copies(self, store, sample_node):
        await store.put_node(sample_node)
        loaded = await store.get_node(sample_node.id)
        loaded.dependencies.clear()
        assert len((await store.get_node(sample_node.id)).dependencies) == 2


@pytest.mark.integration
@pytest.mark.asyncio
class TestCacheEntries:
    """Test cache entry persistence."""

    async def test_round_trip(self, store, sample_entry):
        await store.put_cache_entry(sample_entry)
        assert await store.get_cache_entry(sample_entry.resource_id) == sample_entry

    async def test_overwrite_and_delete(self, store, sample_entry):
        await store.put_cache_entry(sample_entry)
        await store.put_cache_entry(sample_entry.model_copy(update={"artifact": "new"}))

        assert (await store.get_cache_entry(sample_entry.resource_id)).artifact == "new"

        await store.delete_cache_entry(sample_entry.resource_id)
        assert await store.get_cache_entry(sample_entry.resource_id) is None


@pytest.mark.integration
@pytest.mark.sqlite
@pytest.mark.asyncio
class TestSQLitePersistence:
    """Test that the SQLite store survives a reconnect."""

    async def test_reopen(self, tmp_path, sample_node, sample_entry):
        db_path = str(tmp_path / "cache.db")
        first = SQLiteGraphStore(db_path=db_path)
        await first.initialize()
        await first.put_node(sample_node)
        await first.put_cache_entry(sample_entry)
        await first.close()

        second = SQLiteGraphStore(db_path=db_path)
        await second.initialize()
        try:
            assert (await second.get_node(sample_node.id)).dependencies == (
                sample_node.dependencies
            )
            assert await second.get_cache_entry(sample_entry.resource_id) == sample_entry
        finally:
            await second.close()
