"""
SQLite graph store implementation.

Persists dependency nodes, their ordered edges and render cache entries
using aiosqlite.
"""

import json
from datetime import datetime
from pathlib import Path

import aiosqlite

from composition.core.graph_store.base import GraphStore
from composition.models.cache import CacheEntry
from composition.models.graph import DependencyEdge, ResourceNode
from composition.models.resource import (
    ConsistencyClass,
    Requirement,
    ResourceId,
    ResourceKind,
)
from composition.utils.concurrency import KeyedLock
from composition.utils.exceptions import GraphStoreError
from composition.utils.logger import get_logger

logger = get_logger(__name__)


class SQLiteGraphStore(GraphStore):
    """
    SQLite-based store for the dependency graph and render cache.

    Features:
    - Single local file, survives restarts
    - Edge order preserved per source node
    - WAL journal for concurrent readers
    """

    def __init__(self, db_path: str = ".composition/cache.db"):
        """
        Initialize SQLite graph store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None
        # Edge lists are rewritten as delete + insert; serialize per node
        self._node_locks = KeyedLock()

        # Ensure directory exists
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.commit()

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS nodes (
                id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                content_hash TEXT,
                requirement TEXT NOT NULL,
                consistency TEXT NOT NULL,
                cache_ttl INTEGER,
                frontmatter TEXT DEFAULT '{}',
                options TEXT DEFAULT '{}',
                updated_at TEXT NOT NULL
            )
        """
        )

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS edges (
                source_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                target_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                requirement TEXT NOT NULL,
                directive_index INTEGER NOT NULL,
                line INTEGER,
                cache_ttl INTEGER,
                PRIMARY KEY (source_id, position)
            )
        """
        )

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS cache_entries (
                id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                content_hash TEXT NOT NULL,
                artifact TEXT NOT NULL,
                artifact_hash TEXT NOT NULL,
                consistency TEXT NOT NULL,
                checked_at TEXT NOT NULL,
                rendered_at TEXT NOT NULL,
                ttl INTEGER,
                stale INTEGER DEFAULT 0,
                fingerprint TEXT DEFAULT ''
            )
        """
        )

        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_edges_target ON edges(target_id)"
        )
        await self.connection.commit()

    async def _execute(self, query: str, params: tuple = ()) -> aiosqlite.Cursor:
        await self.connect()
        try:
            return await self.connection.execute(query, params)
        except aiosqlite.Error as e:
            logger.error(f"SQLite error: {e}", extra={"query": query.strip().split()[0]})
            raise GraphStoreError(f"SQLite operation failed: {e}") from e

    async def _commit(self) -> None:
        try:
            await self.connection.commit()
        except aiosqlite.Error as e:
            raise GraphStoreError(f"SQLite commit failed: {e}") from e

    # ═══════════════════════════════════════════════════════════
    # NODE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def get_node(self, node_id: ResourceId) -> ResourceNode | None:
        """Retrieve a node by ID."""
        cursor = await self._execute("SELECT * FROM nodes WHERE id = ?", (node_id.key,))
        row = await cursor.fetchone()
        if not row:
            return None

        node = self._row_to_node(row)
        node.dependencies = await self.get_edges(node_id)
        return node

    async def put_node(self, node: ResourceNode) -> None:
        """Insert or replace a node and its edges."""
        async with self._node_locks.acquire(node.id):
            await self._execute(
                """
                INSERT OR REPLACE INTO nodes (
                    id, kind, content_hash, requirement, consistency,
                    cache_ttl, frontmatter, options, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    node.id.key,
                    node.kind.value,
                    node.content_hash,
                    node.requirement.value,
                    node.consistency.value,
                    node.cache_ttl,
                    json.dumps(node.frontmatter, default=str),
                    json.dumps(node.options, default=str),
                    node.updated_at.isoformat(),
                ),
            )
            await self._replace_edges(node.id, node.dependencies)
            await self._commit()

    async def delete_node(self, node_id: ResourceId) -> None:
        """Delete a node and its outgoing edges."""
        async with self._node_locks.acquire(node_id):
            await self._execute("DELETE FROM edges WHERE source_id = ?", (node_id.key,))
            await self._execute("DELETE FROM nodes WHERE id = ?", (node_id.key,))
            await self._commit()

    async def list_node_ids(self) -> list[ResourceId]:
        cursor = await self._execute("SELECT id FROM nodes ORDER BY id")
        rows = await cursor.fetchall()
        return [ResourceId.from_key(row[0]) for row in rows]

    # ═══════════════════════════════════════════════════════════
    # EDGE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def get_edges(self, node_id: ResourceId) -> list[DependencyEdge]:
        cursor = await self._execute(
            """
            SELECT target_id, kind, requirement, directive_index, line, cache_ttl
            FROM edges WHERE source_id = ? ORDER BY position
            """,
            (node_id.key,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_edge(row) for row in rows]

    async def put_edges(self, node_id: ResourceId, edges: list[DependencyEdge]) -> None:
        async with self._node_locks.acquire(node_id):
            await self._replace_edges(node_id, edges)
            await self._commit()

    async def _replace_edges(self, node_id: ResourceId, edges: list[DependencyEdge]) -> None:
        await self._execute("DELETE FROM edges WHERE source_id = ?", (node_id.key,))
        for position, edge in enumerate(edges):
            await self._execute(
                """
                INSERT INTO edges (
                    source_id, position, target_id, kind, requirement, directive_index, line,
                    cache_ttl
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    node_id.key,
                    position,
                    edge.target.key,
                    edge.kind.value,
                    edge.requirement.value,
                    edge.directive_index,
                    edge.line,
                    edge.cache_ttl,
                ),
            )

    # ═══════════════════════════════════════════════════════════
    # CACHE ENTRIES
    # ═══════════════════════════════════════════════════════════

    async def get_cache_entry(self, resource_id: ResourceId) -> CacheEntry | None:
        cursor = await self._execute(
            "SELECT * FROM cache_entries WHERE id = ?", (resource_id.key,)
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return self._row_to_cache_entry(row)

    async def put_cache_entry(self, entry: CacheEntry) -> None:
        await self._execute(
            """
            INSERT OR REPLACE INTO cache_entries (
                id, kind, content_hash, artifact, artifact_hash, consistency,
                checked_at, rendered_at, ttl, stale, fingerprint
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.resource_id.key,
                entry.kind.value,
                entry.content_hash,
                entry.artifact,
                entry.artifact_hash,
                entry.consistency.value,
                entry.checked_at.isoformat(),
                entry.rendered_at.isoformat(),
                entry.ttl,
                int(entry.stale),
                entry.fingerprint,
            ),
        )
        await self._commit()

    async def delete_cache_entry(self, resource_id: ResourceId) -> None:
        await self._execute("DELETE FROM cache_entries WHERE id = ?", (resource_id.key,))
        await self._commit()

    # ═══════════════════════════════════════════════════════════
    # UTILITY
    # ═══════════════════════════════════════════════════════════

    async def close(self) -> None:
        """Close the connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    def _row_to_node(self, row: tuple) -> ResourceNode:
        """Convert database row to ResourceNode (without edges)."""
        return ResourceNode(
            id=ResourceId.from_key(row[0]),
            kind=ResourceKind(row[1]),
            content_hash=row[2],
            requirement=Requirement(row[3]),
            consistency=ConsistencyClass(row[4]),
            cache_ttl=row[5],
            frontmatter=json.loads(row[6]) if row[6] else {},
            options=json.loads(row[7]) if row[7] else {},
            updated_at=datetime.fromisoformat(row[8]),
        )

    def _row_to_edge(self, row: tuple) -> DependencyEdge:
        return DependencyEdge(
            target=ResourceId.from_key(row[0]),
            kind=ResourceKind(row[1]),
            requirement=Requirement(row[2]),
            directive_index=row[3],
            line=row[4],
            cache_ttl=row[5],
        )

    def _row_to_cache_entry(self, row: tuple) -> CacheEntry:
        return CacheEntry(
            resource_id=ResourceId.from_key(row[0]),
            kind=ResourceKind(row[1]),
            content_hash=row[2],
            artifact=row[3],
            artifact_hash=row[4],
            consistency=ConsistencyClass(row[5]),
            checked_at=datetime.fromisoformat(row[6]),
            rendered_at=datetime.fromisoformat(row[7]),
            ttl=row[8],
            stale=bool(row[9]),
            fingerprint=row[10] or "",
        )
