"""
Content hashing for change detection.
"""

import hashlib
from typing import TYPE_CHECKING

from composition.models.resource import ResourceId

if TYPE_CHECKING:
    from composition.core.resources.session import RenderSession

DIGEST_SIZE = 8  # 64-bit digest, 16 hex characters


def content_hash(data: bytes | str) -> str:
    """
    Fast, stable hash of raw content.

    Only used to decide whether content changed, never for identity.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.blake2b(data, digest_size=DIGEST_SIZE).hexdigest()


class ContentHasher:
    """Hashes resources through a session, so bytes are read once per render."""

    def __init__(self, digest_size: int = DIGEST_SIZE):
        self.digest_size = digest_size

    def hash_bytes(self, data: bytes | str) -> str:
        if isinstance(data, str):
            data = data.encode("utf-8")
        return hashlib.blake2b(data, digest_size=self.digest_size).hexdigest()

    async def hash(self, resource_id: ResourceId, session: "RenderSession") -> str:
        data = await session.load(resource_id)
        return self.hash_bytes(data)
