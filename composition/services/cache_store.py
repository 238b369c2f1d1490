"""
Cache Store - persisted render state and freshness checks.

Wraps a GraphStore's cache entries with the consistency policy:
- lookup / record / mark_stale / touch / reset
- check: decide whether a node's last artifact can be reused this render

Writes are serialized per ResourceId; there is no global lock.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from composition.core.graph_store.base import GraphStore
from composition.core.resources.hasher import content_hash
from composition.core.resources.session import RenderSession
from composition.models.cache import CacheEntry
from composition.models.diagnostic import Diagnostic
from composition.models.graph import ResourceNode
from composition.models.render import RenderResult
from composition.models.resource import ConsistencyClass, ResourceId
from composition.services.consistency import ConsistencyPolicy
from composition.utils.concurrency import KeyedLock
from composition.utils.exceptions import ResourceUnavailable
from composition.utils.logger import get_logger

logger = get_logger(__name__)

EMPTY_HASH = content_hash("")


class Freshness(str, Enum):
    FRESH = "fresh"  # reuse the artifact as is
    STALE = "stale"  # remote unreachable; reuse the old artifact with a warning
    MISSING = "missing"  # remote gone; the artifact was reset to empty
    DIRTY = "dirty"  # must be re-rendered


class FreshnessVerdict(BaseModel):
    """Outcome of a freshness check for one node."""

    status: Freshness
    entry: CacheEntry | None = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def reusable(self) -> bool:
        return self.status is not Freshness.DIRTY


def compute_fingerprint(
    state: dict[str, Any],
    options: dict[str, Any],
    dependency_hashes: list[str],
    renderer_key: str = "",
) -> str:
    """
    Hash of every render input besides the resource's own bytes.

    Dependency hashes are artifact hashes in edge order, so a parent is
    dirty whenever any child's output changed.
    """
    payload = {
        "state": state,
        "options": options,
        "dependencies": dependency_hashes,
        "renderer": renderer_key,
    }
    return content_hash(json.dumps(payload, sort_keys=True, default=str))


class CacheStore:
    """
    Render cache over a GraphStore.

    Injected into the workplan generator and the orchestrator; never a
    process-wide singleton.
    """

    def __init__(self, store: GraphStore, policy: ConsistencyPolicy | None = None):
        """
        Initialize cache store.

        Args:
            store: GraphStore holding the cache entries
            policy: Consistency policy (default: one-day remote TTL)
        """
        self.store = store
        self.policy = policy or ConsistencyPolicy()
        self._locks = KeyedLock()

    # ═══════════════════════════════════════════════════════════
    # READ
    # ═══════════════════════════════════════════════════════════

    async def lookup(self, resource_id: ResourceId) -> CacheEntry | None:
        return await self.store.get_cache_entry(resource_id)

    def is_fresh(
        self,
        entry: CacheEntry,
        consistency: ConsistencyClass,
        now: datetime | None = None,
    ) -> bool:
        return self.policy.is_fresh(entry, consistency, now)

    # ═══════════════════════════════════════════════════════════
    # WRITE
    # ═══════════════════════════════════════════════════════════

    async def record(
        self,
        node: ResourceNode,
        result: RenderResult,
        fingerprint: str,
        now: datetime | None = None,
    ) -> CacheEntry:
        """Store a fresh render result for `node`."""
        now = now or datetime.now()
        entry = CacheEntry(
            resource_id=node.id,
            kind=node.kind,
            content_hash=result.content_hash or node.content_hash or "",
            artifact=result.content,
            artifact_hash=result.artifact_hash or content_hash(result.content),
            consistency=node.consistency,
            checked_at=now,
            rendered_at=now,
            ttl=self.policy.ttl_for(node.consistency, node.cache_ttl),
            stale=False,
            fingerprint=fingerprint,
        )
        async with self._locks.acquire(node.id):
            await self.store.put_cache_entry(entry)
        return entry

    async def mark_stale(self, resource_id: ResourceId) -> CacheEntry | None:
        """Keep the artifact but flag it; `checked_at` is left alone so it is re-checked."""
        return await self._update(resource_id, stale=True)

    async def touch(
        self, resource_id: ResourceId, now: datetime | None = None
    ) -> CacheEntry | None:
        """Refresh the check timestamp after a successful re-validation."""
        return await self._update(resource_id, checked_at=now or datetime.now(), stale=False)

    async def reset(
        self, resource_id: ResourceId, now: datetime | None = None
    ) -> CacheEntry | None:
        """Empty the artifact of a resource that no longer exists."""
        return await self._update(
            resource_id,
            content_hash="",
            artifact="",
            artifact_hash=EMPTY_HASH,
            checked_at=now or datetime.now(),
            stale=False,
        )

    async def invalidate(self, resource_id: ResourceId) -> None:
        async with self._locks.acquire(resource_id):
            await self.store.delete_cache_entry(resource_id)

    async def _update(self, resource_id: ResourceId, **changes: Any) -> CacheEntry | None:
        async with self._locks.acquire(resource_id):
            entry = await self.store.get_cache_entry(resource_id)
            if entry is None:
                return None
            entry = entry.model_copy(update=changes)
            await self.store.put_cache_entry(entry)
            return entry

    # ═══════════════════════════════════════════════════════════
    # FRESHNESS
    # ═══════════════════════════════════════════════════════════

    async def check(
        self,
        node: ResourceNode,
        session: RenderSession,
        fingerprint: str,
    ) -> FreshnessVerdict:
        """
        Decide whether `node` can reuse its cached artifact.

        Local resources are re-hashed on every call. Remote resources are
        trusted inside their TTL and re-fetched after it. Derived resources
        depend only on their fingerprint.
        """
        entry = await self.lookup(node.id)
        if entry is None:
            if not node.id.is_derived:
                await self._hash_into(node, session)
            return FreshnessVerdict(status=Freshness.DIRTY)

        if node.id.is_derived:
            status = Freshness.FRESH if entry.fingerprint == fingerprint else Freshness.DIRTY
            return FreshnessVerdict(status=status, entry=entry)

        if node.consistency is ConsistencyClass.REMOTE:
            return await self._check_remote(node, entry, session, fingerprint)

        try:
            current = await session.hash(node.id)
        except ResourceUnavailable:
            return FreshnessVerdict(status=Freshness.DIRTY, entry=entry)
        node.content_hash = current
        if entry.content_hash == current and entry.fingerprint == fingerprint:
            return FreshnessVerdict(status=Freshness.FRESH, entry=entry)
        return FreshnessVerdict(status=Freshness.DIRTY, entry=entry)

    @staticmethod
    async def _hash_into(node: ResourceNode, session: RenderSession) -> None:
        """Record the current hash so the render result carries it into the cache."""
        try:
            node.content_hash = await session.hash(node.id)
        except ResourceUnavailable:
            pass  # The renderer reports the failure

    async def _check_remote(
        self,
        node: ResourceNode,
        entry: CacheEntry,
        session: RenderSession,
        fingerprint: str,
    ) -> FreshnessVerdict:
        if entry.fingerprint == fingerprint and self.is_fresh(entry, node.consistency, session.now):
            return FreshnessVerdict(status=Freshness.FRESH, entry=entry)

        try:
            current = await session.hash(node.id)
        except ResourceUnavailable as e:
            if e.is_not_found:
                logger.warning(
                    f"Remote resource gone: {node.id}",
                    extra={"resource_id": str(node.id)},
                )
                entry = await self.reset(node.id, session.now) or entry
                return FreshnessVerdict(
                    status=Freshness.MISSING,
                    entry=entry,
                    diagnostics=[
                        Diagnostic(
                            code="remote-not-found",
                            message=f"Remote resource no longer exists: {e.message}",
                            resource_id=node.id,
                        )
                    ],
                )
            logger.warning(
                f"Remote resource unreachable, reusing stale artifact: {node.id}",
                extra={"resource_id": str(node.id), "reason": e.reason},
            )
            entry = await self.mark_stale(node.id) or entry
            return FreshnessVerdict(
                status=Freshness.STALE,
                entry=entry,
                diagnostics=[
                    Diagnostic(
                        code="stale-resource",
                        message=f"Using stale content: {e.message}",
                        resource_id=node.id,
                    )
                ],
            )

        node.content_hash = current
        if entry.content_hash == current and entry.fingerprint == fingerprint:
            entry = await self.touch(node.id, session.now) or entry
            return FreshnessVerdict(status=Freshness.FRESH, entry=entry)
        return FreshnessVerdict(status=Freshness.DIRTY, entry=entry)
