"""
.gitignore filtering for local resources.
"""

import os
import threading
from pathlib import Path

import pathspec

from composition.utils.logger import get_logger

logger = get_logger(__name__)


def find_project_root(path: str | Path) -> Path | None:
    """Nearest ancestor directory (inclusive) that contains `.git`."""
    current = Path(path)
    if not current.is_dir():
        current = current.parent
    for candidate in (current, *current.parents):
        if (candidate / ".git").exists():
            return candidate
    return None


class GitignoreFilter:
    """
    Answers "is this path ignored?" using the project's root .gitignore.

    Matchers are compiled once per project root and cached. Lookups run in
    worker threads, so the cache is guarded by a lock.
    """

    def __init__(self):
        self._specs: dict[Path, pathspec.PathSpec | None] = {}
        self._lock = threading.Lock()

    def _spec_for(self, root: Path) -> pathspec.PathSpec | None:
        with self._lock:
            if root in self._specs:
                return self._specs[root]

        gitignore_path = root / ".gitignore"
        spec = None
        if gitignore_path.is_file():
            logger.debug(f"Loading .gitignore from {gitignore_path}")
            with open(gitignore_path, encoding="utf-8") as f:
                spec = pathspec.GitIgnoreSpec.from_lines(f)

        with self._lock:
            self._specs[root] = spec
        return spec

    def is_ignored(self, path: str | Path) -> bool:
        """
        Check a local path against its project's .gitignore.

        Paths outside any git project are never ignored.
        """
        path = Path(path)
        root = find_project_root(path)
        if root is None:
            return False
        spec = self._spec_for(root)
        if spec is None:
            return False
        try:
            relative = path.relative_to(root)
        except ValueError:
            return False
        return spec.match_file(relative.as_posix())

    def invalidate(self, root: str | Path | None = None) -> None:
        """Drop cached matchers, e.g. after a .gitignore changed."""
        with self._lock:
            if root is None:
                self._specs.clear()
            else:
                self._specs.pop(Path(os.path.abspath(root)), None)
