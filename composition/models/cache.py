"""
Cache entry model persisted per resource.
"""

from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from composition.models.resource import ConsistencyClass, ResourceId, ResourceKind


class CacheEntry(BaseModel):
    """
    Last known state of a rendered resource.

    `fingerprint` captures everything besides the resource's own bytes that
    went into the artifact (inherited state, options and the artifact hashes
    of its dependencies), so a parent is re-rendered when a child changed in
    an earlier pass even if the parent's own content did not.
    """

    resource_id: ResourceId
    kind: ResourceKind
    content_hash: str = Field(default="", description="Hash of the source bytes")
    artifact: str = Field(default="", description="Rendered content")
    artifact_hash: str = Field(default="", description="Hash of the rendered content")
    consistency: ConsistencyClass = ConsistencyClass.LOCAL_SYNC
    checked_at: datetime = Field(default_factory=datetime.now, description="Last freshness check")
    rendered_at: datetime = Field(default_factory=datetime.now, description="Last render")
    ttl: int | None = Field(default=None, description="TTL in seconds, remote only")
    stale: bool = Field(default=False, description="Kept after a failed re-check")
    fingerprint: str = Field(default="", description="Hash of render inputs besides content")

    class Config:
        """Pydantic configuration."""

        json_encoders = {datetime: lambda v: v.isoformat()}

    def age(self, now: datetime | None = None) -> timedelta:
        """Time since the last freshness check."""
        return (now or datetime.now()) - self.checked_at

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once the TTL has elapsed; entries without a TTL never expire."""
        if self.ttl is None:
            return False
        return self.age(now) >= timedelta(seconds=self.ttl)
