"""
Per-call memo of loaded bytes, hashes and parsed documents.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from composition.core.resources.hasher import ContentHasher
from composition.core.resources.loader import ResourceLoader
from composition.models.document import ParsedDocument
from composition.models.resource import ResourceId
from composition.utils.exceptions import ResourceUnavailable

if TYPE_CHECKING:
    from composition.core.parser.base import DocumentParser


class RenderSession:
    """
    Snapshot of resource contents for one engine call.

    Graph building, freshness checks and rendering all read through the
    session, so a resource is read at most once per call and every stage
    sees the same bytes. Load failures are memoized too.
    """

    def __init__(
        self,
        loader: ResourceLoader,
        hasher: ContentHasher | None = None,
        now: datetime | None = None,
    ):
        self.loader = loader
        self.hasher = hasher or ContentHasher()
        self.now = now or datetime.now()
        self._contents: dict[ResourceId, bytes] = {}
        self._failures: dict[ResourceId, ResourceUnavailable] = {}
        self._hashes: dict[ResourceId, str] = {}
        self._parsed: dict[ResourceId, ParsedDocument] = {}

    async def load(self, resource_id: ResourceId) -> bytes:
        if resource_id in self._contents:
            return self._contents[resource_id]
        if resource_id in self._failures:
            raise self._failures[resource_id]
        try:
            data = await self.loader.load(resource_id)
        except ResourceUnavailable as e:
            self._failures[resource_id] = e
            raise
        self._contents[resource_id] = data
        return data

    def is_loaded(self, resource_id: ResourceId) -> bool:
        return resource_id in self._contents

    async def text(self, resource_id: ResourceId) -> str:
        data = await self.load(resource_id)
        return data.decode("utf-8", errors="replace")

    async def hash(self, resource_id: ResourceId) -> str:
        if resource_id not in self._hashes:
            self._hashes[resource_id] = await self.hasher.hash(resource_id, self)
        return self._hashes[resource_id]

    async def parse(self, resource_id: ResourceId, parser: "DocumentParser") -> ParsedDocument:
        if resource_id not in self._parsed:
            text = await self.text(resource_id)
            self._parsed[resource_id] = parser.parse(text, resource_id)
        return self._parsed[resource_id]

    def forget(self, resource_id: ResourceId) -> None:
        """Drop everything memoized for a resource."""
        self._contents.pop(resource_id, None)
        self._failures.pop(resource_id, None)
        self._hashes.pop(resource_id, None)
        self._parsed.pop(resource_id, None)
