"""
Resource identity and classification models.
"""

import posixpath
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field


class ResourceSource(str, Enum):
    """Where a resource's bytes come from."""

    LOCAL = "local"
    REMOTE = "remote"
    DERIVED = "derived"  # AI output computed from other resources


class ResourceKind(str, Enum):
    """Closed set of resource kinds; one renderer per kind."""

    DOCUMENT = "document"
    IMAGE = "image"
    TABLE_DATA = "table_data"
    AUDIO = "audio"

    # AI-derived
    SUMMARY = "summary"
    CONSOLIDATION = "consolidation"
    TOPIC = "topic"
    EMBEDDING = "embedding"

    @property
    def is_derived(self) -> bool:
        return self in _DERIVED_KINDS

    @property
    def is_expandable(self) -> bool:
        """Only documents are parsed for further references."""
        return self is ResourceKind.DOCUMENT


_DERIVED_KINDS = frozenset(
    {
        ResourceKind.SUMMARY,
        ResourceKind.CONSOLIDATION,
        ResourceKind.TOPIC,
        ResourceKind.EMBEDDING,
    }
)


class Requirement(str, Enum):
    """Requirement level for a reference (based on suffix syntax)."""

    REQUIRED = "required"  # `!` suffix - error if missing
    OPTIONAL = "optional"  # `?` suffix - empty content plus warning
    DEFAULT = "default"  # no suffix - empty content plus warning

    @property
    def marker(self) -> str:
        return {"required": "!", "optional": "?", "default": ""}[self.value]

    @property
    def strength(self) -> int:
        return {"optional": 0, "default": 1, "required": 2}[self.value]

    @classmethod
    def strongest(cls, *requirements: "Requirement") -> "Requirement":
        if not requirements:
            return cls.DEFAULT
        return max(requirements, key=lambda r: r.strength)


class ConsistencyClass(str, Enum):
    """How a cached artifact may be trusted."""

    LOCAL_SYNC = "local_sync"  # re-verified by hash on every request
    LOCAL_ASYNC = "local_async"  # like LOCAL_SYNC, render errors are not invalidating
    REMOTE = "remote"  # trusted until the TTL elapses


class ResourceId(BaseModel):
    """
    Normalized identity of a composable input.

    The identity is the normalized location itself, so two different
    resources can never collide. Build instances through
    `composition.core.resources.identify` rather than by hand.
    """

    model_config = ConfigDict(frozen=True)

    source: ResourceSource = Field(..., description="Local path, remote URL or derived key")
    location: str = Field(..., description="Canonical absolute path, URL or derived key")

    @property
    def key(self) -> str:
        """Storage key, stable across runs."""
        return f"{self.source.value}:{self.location}"

    @classmethod
    def from_key(cls, key: str) -> "ResourceId":
        source, _, location = key.partition(":")
        return cls(source=ResourceSource(source), location=location)

    @property
    def is_local(self) -> bool:
        return self.source is ResourceSource.LOCAL

    @property
    def is_remote(self) -> bool:
        return self.source is ResourceSource.REMOTE

    @property
    def is_derived(self) -> bool:
        return self.source is ResourceSource.DERIVED

    @property
    def suffix(self) -> str:
        """Lowercased file extension of the path component, without the dot."""
        if self.is_derived:
            return ""
        path = self.location
        if self.is_remote:
            path = path.split("?", 1)[0]
        return PurePosixPath(path).suffix.lower().lstrip(".")

    @property
    def directory(self) -> str:
        """Directory (or URL prefix) that relative references resolve against."""
        if self.is_remote:
            base = self.location.split("?", 1)[0]
            return base.rsplit("/", 1)[0] + "/"
        return posixpath.dirname(self.location)

    def __str__(self) -> str:
        return self.location


class Reference(BaseModel):
    """A reference as written in a directive, before identification."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., description="Path or URL with the suffix stripped")
    requirement: Requirement = Requirement.DEFAULT
    cache_ttl: int | None = Field(default=None, description="TTL override in seconds")

    def __str__(self) -> str:
        return f"{self.target}{self.requirement.marker}"
