"""
Byte-level access to local files and remote URLs.
"""

import asyncio
from pathlib import Path

import httpx

from composition.core.resources.gitignore import GitignoreFilter
from composition.models.resource import ResourceId
from composition.utils.concurrency import SingleFlight
from composition.utils.exceptions import ResourceIgnored, ResourceUnavailable
from composition.utils.logger import get_logger

logger = get_logger(__name__)

_NOT_FOUND_STATUSES = {404, 410}


class ResourceLoader:
    """
    Loads raw bytes for local and remote resources.

    Local reads run in a worker thread; remote fetches go through a shared
    httpx.AsyncClient. Concurrent loads of the same resource share a single
    read or request.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        user_agent: str = "composition-engine/0.1",
        follow_redirects: bool = True,
        gitignore: GitignoreFilter | None = None,
    ):
        """
        Initialize loader.

        Args:
            http_client: Client to use for remote fetches (created lazily if None)
            timeout: HTTP timeout in seconds
            user_agent: User-Agent header for remote fetches
            follow_redirects: Follow HTTP redirects
            gitignore: Filter that refuses ignored local files (None disables it)
        """
        self._client = http_client
        self._owns_client = http_client is None
        self.timeout = timeout
        self.user_agent = user_agent
        self.follow_redirects = follow_redirects
        self.gitignore = gitignore
        self._flight = SingleFlight()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create shared HTTP client for connection reuse."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=self.follow_redirects,
                headers={"User-Agent": self.user_agent},
            )
            self._owns_client = True
        return self._client

    async def load(self, resource_id: ResourceId) -> bytes:
        """
        Read the bytes behind a resource.

        Raises:
            ResourceUnavailable: If the resource cannot be read
            ValueError: For derived resources, which have no bytes of their own
        """
        if resource_id.is_derived:
            raise ValueError(f"Derived resource has no source bytes: {resource_id}")
        if resource_id.is_remote:
            return await self._flight.run(resource_id, lambda: self._fetch(resource_id))
        return await self._flight.run(resource_id, lambda: self._read(resource_id))

    async def _read(self, resource_id: ResourceId) -> bytes:
        path = Path(resource_id.location)
        if self.gitignore is not None:
            ignored = await asyncio.to_thread(self.gitignore.is_ignored, path)
            if ignored:
                raise ResourceIgnored(str(path), resource_id)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise ResourceUnavailable(
                f"File not found: {path}",
                kind=ResourceUnavailable.LOCAL,
                reason=ResourceUnavailable.NOT_FOUND,
                resource_id=resource_id,
            ) from e
        except OSError as e:
            raise ResourceUnavailable(
                f"Cannot read {path}: {e}",
                kind=ResourceUnavailable.LOCAL,
                reason=ResourceUnavailable.IO,
                resource_id=resource_id,
            ) from e

    async def _fetch(self, resource_id: ResourceId) -> bytes:
        url = resource_id.location
        logger.debug(f"Fetching {url}")
        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            raise ResourceUnavailable(
                f"Timed out fetching {url}",
                kind=ResourceUnavailable.REMOTE,
                reason=ResourceUnavailable.TIMEOUT,
                resource_id=resource_id,
            ) from e
        except httpx.RequestError as e:
            raise ResourceUnavailable(
                f"Cannot reach {url}: {e}",
                kind=ResourceUnavailable.REMOTE,
                reason=ResourceUnavailable.CONNECTION,
                resource_id=resource_id,
            ) from e

        if response.status_code in _NOT_FOUND_STATUSES:
            raise ResourceUnavailable(
                f"Remote resource not found: {url}",
                kind=ResourceUnavailable.REMOTE,
                reason=ResourceUnavailable.NOT_FOUND,
                resource_id=resource_id,
                context={"status_code": response.status_code},
            )
        if response.status_code >= 400:
            raise ResourceUnavailable(
                f"HTTP {response.status_code} fetching {url}",
                kind=ResourceUnavailable.REMOTE,
                reason=ResourceUnavailable.HTTP_STATUS,
                resource_id=resource_id,
                context={"status_code": response.status_code},
            )
        return response.content

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
