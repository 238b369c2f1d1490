"""
Custom exception hierarchy for the composition engine.

Provides structured error types for graph construction, caching and rendering.
All exceptions inherit from CompositionError for easy catching.
"""

from typing import Any


class CompositionError(Exception):
    """
    Base exception for all composition errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        """
        Initialize composition error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ResourceUnavailable(CompositionError):
    """
    A resource could not be read.

    `kind` is "local" or "remote". `reason` distinguishes an explicit
    not-found from a connectivity problem, since the consistency policy
    treats a remote 404 differently from a failed connection.
    """

    LOCAL = "local"
    REMOTE = "remote"

    NOT_FOUND = "not_found"
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    IGNORED = "ignored"
    IO = "io"

    def __init__(
        self,
        message: str,
        kind: str,
        reason: str,
        resource_id: Any = None,
        context: dict[str, Any] | None = None,
    ):
        context = dict(context or {})
        context.update({"kind": kind, "reason": reason, "resource_id": str(resource_id)})
        super().__init__(message, context)
        self.kind = kind
        self.reason = reason
        self.resource_id = resource_id

    @property
    def is_remote(self) -> bool:
        return self.kind == self.REMOTE

    @property
    def is_not_found(self) -> bool:
        return self.reason == self.NOT_FOUND

    @property
    def is_connectivity(self) -> bool:
        """True for failures that leave a stale remote artifact usable."""
        return self.reason in (self.CONNECTION, self.TIMEOUT, self.HTTP_STATUS)


class ResourceIgnored(ResourceUnavailable):
    """
    Local file excluded by the project's .gitignore rules.
    """

    def __init__(self, path: str, resource_id: Any = None):
        super().__init__(
            f"Resource is ignored by .gitignore: {path}",
            kind=ResourceUnavailable.LOCAL,
            reason=ResourceUnavailable.IGNORED,
            resource_id=resource_id,
            context={"path": path},
        )


class CyclicDependency(CompositionError):
    """
    Transclusion cycle detected while building the dependency graph.
    Fatal for the root being expanded.
    """

    def __init__(self, cycle: list[Any], root: Any = None):
        members = " -> ".join(str(member) for member in cycle)
        super().__init__(
            f"Circular dependency detected: {members}",
            context={"cycle": [str(member) for member in cycle], "root": str(root)},
        )
        self.cycle = list(cycle)
        self.root = root


class ParseError(CompositionError):
    """
    Document parsing errors.
    Raised when a directive is malformed or a document cannot be parsed.
    """

    pass


class RenderError(CompositionError):
    """
    Base exception for failures while rendering a single resource.
    """

    def __init__(
        self,
        message: str,
        resource_id: Any = None,
        context: dict[str, Any] | None = None,
    ):
        context = dict(context or {})
        context.setdefault("resource_id", str(resource_id))
        super().__init__(message, context)
        self.resource_id = resource_id


class RendererError(RenderError):
    """
    Wraps a failure raised by an external renderer.
    """

    pass


class RenderTimeout(RenderError):
    """
    A renderer did not finish within the configured timeout.
    """

    def __init__(self, resource_id: Any, timeout: float):
        super().__init__(
            f"Rendering {resource_id} timed out after {timeout}s",
            resource_id=resource_id,
            context={"timeout": timeout},
        )
        self.timeout = timeout


class RequiredResourceFailed(RenderError):
    """
    A resource marked as required (`!`) could not be rendered.
    Aborts the render of every root that transitively depends on it.
    """

    def __init__(
        self,
        resource_id: Any,
        root: Any = None,
        position: Any = None,
        cause: BaseException | None = None,
    ):
        reason = f": {cause}" if cause else ""
        super().__init__(
            f"Required resource {resource_id} failed{reason}",
            resource_id=resource_id,
            context={"root": str(root), "position": position},
        )
        self.root = root
        self.position = position
        self.cause = cause


class OptionalResourceFailed(RenderError):
    """
    A non-required resource failed. Never raised to callers; recorded as a
    warning in the render diagnostics.
    """

    pass


class StoreError(CompositionError):
    """
    Base exception for store operations.
    Used for errors related to data storage operations.
    """

    pass


class GraphStoreError(StoreError):
    """
    Graph store operation errors.
    Raised when persistence of nodes, edges or cache entries fails.
    """

    pass


class ValidationError(CompositionError):
    """
    Validation errors.
    Raised when input validation fails or data is invalid.
    """

    pass


class ConfigurationError(CompositionError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass


class EmbeddingError(CompositionError):
    """
    Embedding generation errors.
    Raised when embedding generation fails.
    """

    pass


class LLMError(CompositionError):
    """
    LLM operation errors.
    Raised when LLM operations fail (API errors, timeouts, etc.).
    """

    pass
