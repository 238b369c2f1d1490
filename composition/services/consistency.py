"""
Consistency policy: how far a cached artifact may be trusted.

Three classes:
1. local_sync: re-verified by content hash on every request
2. local_async: local HTML with scripts; render failures keep the last artifact
3. remote: trusted until its TTL elapses, then re-fetched and compared
"""

from datetime import datetime, timedelta

from composition.models.cache import CacheEntry
from composition.models.resource import ConsistencyClass, ResourceId, ResourceKind

DEFAULT_REMOTE_TTL = 86400  # one day

_HTML_SUFFIXES = ("html", "htm")


class ConsistencyPolicy:
    """Classifies resources and decides timestamp-based freshness."""

    def __init__(self, remote_ttl: int = DEFAULT_REMOTE_TTL):
        self.remote_ttl = remote_ttl

    def classify(
        self,
        resource_id: ResourceId,
        kind: ResourceKind,
        content: bytes | None = None,
    ) -> ConsistencyClass:
        """
        Assign a consistency class.

        Args:
            resource_id: Identity of the resource
            kind: Resource kind
            content: Raw bytes, when already loaded (needed to detect scripts)
        """
        if resource_id.is_remote:
            return ConsistencyClass.REMOTE
        if (
            resource_id.is_local
            and kind is ResourceKind.DOCUMENT
            and resource_id.suffix in _HTML_SUFFIXES
            and content is not None
            and b"<script" in content.lower()
        ):
            return ConsistencyClass.LOCAL_ASYNC
        return ConsistencyClass.LOCAL_SYNC

    def ttl_for(self, consistency: ConsistencyClass, override: int | None = None) -> int | None:
        """TTL in seconds; only remote resources expire by time."""
        if consistency is not ConsistencyClass.REMOTE:
            return None
        return override if override is not None else self.remote_ttl

    def is_fresh(
        self,
        entry: CacheEntry,
        consistency: ConsistencyClass,
        now: datetime | None = None,
    ) -> bool:
        """
        Timestamp-only freshness.

        Local classes are never fresh by timestamp; they must be re-hashed.
        A remote entry is fresh while `now - checked_at < ttl`.
        """
        if consistency is not ConsistencyClass.REMOTE:
            return False
        ttl = entry.ttl if entry.ttl is not None else self.remote_ttl
        return (now or datetime.now()) - entry.checked_at < timedelta(seconds=ttl)

    @staticmethod
    def tolerates_render_failure(consistency: ConsistencyClass) -> bool:
        return consistency is ConsistencyClass.LOCAL_ASYNC
