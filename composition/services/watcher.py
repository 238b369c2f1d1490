"""
Polling document watcher.

Watches the local files of a dependency graph (mtime and size), and once
changes have settled for `debounce` seconds re-renders the roots and hands
the report to a callback.
"""

import asyncio
import inspect
import os
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from composition.models.render import RenderReport
from composition.models.resource import ResourceId
from composition.utils.exceptions import CompositionError
from composition.utils.logger import get_logger

if TYPE_CHECKING:
    from composition.services.engine import CompositionEngine

logger = get_logger(__name__)

FileSignature = tuple[int, int] | None  # (mtime_ns, size), None when missing
WatchCallback = Callable[[RenderReport], Awaitable[None] | None]


def _signatures(paths: list[str]) -> dict[str, FileSignature]:
    signatures: dict[str, FileSignature] = {}
    for path in paths:
        try:
            stat = os.stat(path)
        except OSError:
            signatures[path] = None
        else:
            signatures[path] = (stat.st_mtime_ns, stat.st_size)
    return signatures


class DocumentWatcher:
    """Re-renders roots whenever one of their local files changes."""

    def __init__(
        self,
        engine: "CompositionEngine",
        roots: list[ResourceId],
        callback: WatchCallback,
        interval: float = 0.5,
        debounce: float = 1.0,
    ):
        """
        Initialize watcher.

        Args:
            engine: Engine used to rebuild the graph and render
            roots: Root documents to keep rendered
            callback: Receives each RenderReport (sync or async)
            interval: Seconds between polls
            debounce: Seconds without further changes before re-rendering
        """
        self.engine = engine
        self.roots = roots
        self.callback = callback
        self.interval = interval
        self.debounce = debounce
        self.renders = 0
        self._paths: list[str] = []
        self._worker_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    @property
    def paths(self) -> list[str]:
        """Local files currently watched."""
        return list(self._paths)

    def start(self) -> None:
        if not self.running:
            self._worker_task = asyncio.create_task(self._watch())

    async def stop(self) -> None:
        if self._worker_task is None:
            return
        self._worker_task.cancel()
        try:
            await self._worker_task
        except asyncio.CancelledError:
            pass  # Expected when cancelling
        self._worker_task = None

    async def refresh_paths(self) -> list[str]:
        """Recompute the watched files from the current graph."""
        errors: dict[ResourceId, CompositionError] = {}
        graph = await self.engine.build_graph(self.roots, errors=errors)
        paths = {node.id.location for node in graph if node.id.is_local}
        paths.update(root.location for root in self.roots if root.is_local)
        self._paths = sorted(paths)
        return self._paths

    async def _watch(self) -> None:
        loop = asyncio.get_running_loop()
        await self.refresh_paths()
        snapshot = await asyncio.to_thread(_signatures, self._paths)
        changed_at: float | None = None

        logger.info(f"Watching {len(self._paths)} files", extra={"roots": len(self.roots)})
        while True:
            try:
                await asyncio.sleep(self.interval)
                current = await asyncio.to_thread(_signatures, self._paths)
                if current != snapshot:
                    snapshot = current
                    changed_at = loop.time()
                    continue
                if changed_at is None or loop.time() - changed_at < self.debounce:
                    continue

                changed_at = None
                report = await self.engine.render(self.roots)
                self.renders += 1
                await self.refresh_paths()
                snapshot = await asyncio.to_thread(_signatures, self._paths)

                outcome = self.callback(report)
                if inspect.isawaitable(outcome):
                    await outcome
            except asyncio.CancelledError:
                logger.info("Document watcher stopped")
                raise
            except Exception as e:
                logger.error(f"Error in document watcher: {e}")
